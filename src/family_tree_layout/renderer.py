from __future__ import annotations

import json
from pathlib import Path

from family_tree_layout.canvas import TreeData
from family_tree_layout.config import AppConfig
from family_tree_layout.frame_drawer import LayoutDrawer
from family_tree_layout.models import FamilyGraph


def render_layout(
    layout: TreeData,
    graph: FamilyGraph,
    output_path: str | Path,
    config: AppConfig | None = None,
    fmt: str = "png",
) -> Path:
    """レイアウト結果をファイルとして出力する。

    Args:
        layout: generate_layout の結果
        graph: 名前・性別の参照に使う家族データ
        output_path: 出力ファイルパス（例: output/tree.png）
        config: 描画設定（省略時はデフォルト）
        fmt: 出力形式（"png" または "json"）

    Returns:
        出力されたファイルのパス
    """
    output_path = Path(output_path)

    # 出力先ディレクトリの自動作成
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if fmt == "json":
        output_path.write_text(layout_to_json(layout), encoding="utf-8")
    elif fmt == "png":
        drawer = LayoutDrawer(layout, graph, config or AppConfig())
        drawer.draw().save(output_path, format="PNG")
    else:
        raise ValueError(f"未対応の出力形式です: {fmt}")

    return output_path


def layout_to_json(layout: TreeData) -> str:
    return json.dumps(layout.to_dict(), ensure_ascii=False, indent=2)
