"""設定ファイルの読み込みと設定値の管理。

TOML 形式の設定ファイルを読み込み、AppConfig として返す。
設定ファイルが存在しない場合はデフォルト値を使用する。
"""

from __future__ import annotations

import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from family_tree_layout.layout_engine import LayoutOptions
from family_tree_layout.models import DisplayOptions


@dataclass
class ColorConfig:
    """描画色の設定（和色）。"""

    background: tuple[int, int, int] = (245, 240, 232)    # 生成色（きなりいろ）
    male_fill: tuple[int, int, int] = (193, 216, 236)      # 白藍（しらあい）
    female_fill: tuple[int, int, int] = (253, 239, 242)    # 桜色（さくらいろ）
    other_fill: tuple[int, int, int] = (230, 230, 220)     # 白鼠（しろねず）
    male_border: tuple[int, int, int] = (46, 79, 111)      # 藍色（あいいろ）
    female_border: tuple[int, int, int] = (142, 53, 74)    # 蘇芳（すおう）
    other_border: tuple[int, int, int] = (114, 113, 113)   # 鈍色（にびいろ）
    focal_border: tuple[int, int, int] = (230, 180, 34)    # 山吹色（やまぶきいろ）
    marked_border: tuple[int, int, int] = (56, 180, 139)   # 翡翠色（ひすいいろ）
    duplicate_border: tuple[int, int, int] = (175, 175, 176)  # 銀鼠（ぎんねず）
    partner_line: tuple[int, int, int] = (197, 61, 67)     # 朱色（しゅいろ）
    child_line: tuple[int, int, int] = (89, 88, 87)        # 墨色（すみいろ）
    non_bio_line: tuple[int, int, int] = (116, 131, 82)    # 老竹色（おいたけいろ）
    text: tuple[int, int, int] = (43, 43, 43)              # 墨


@dataclass
class DimensionConfig:
    """描画パラメータの設定（グリッド1単位あたりのピクセル数など）。"""

    box_width: int = 240         # グリッド1単位の横幅 (px)
    box_height: int = 200        # グリッド1単位の縦幅 (px)
    padding: int = 80            # 周囲の余白 (px)
    line_width_partner: int = 4
    line_width_child: int = 3
    border_width: int = 3
    focal_border_width: int = 8
    corner_radius: int = 16      # ボックス角丸半径 (px)
    font_size_name: int = 22     # 名前フォントサイズ (px)
    font_size_label: int = 16    # パートナーラベルのフォントサイズ (px)
    dash_length: int = 10        # 点線の1区間の長さ (px)


@dataclass
class LayoutConfig:
    """表示する世代数などのレイアウト設定。"""

    child_depth: int = 3
    parent_depth: int = 0
    sibling_depth: int = 0
    flip: bool = False


@dataclass
class AppConfig:
    """アプリケーション全体の設定。"""

    colors: ColorConfig = field(default_factory=ColorConfig)
    dimensions: DimensionConfig = field(default_factory=DimensionConfig)
    layout: LayoutConfig = field(default_factory=LayoutConfig)
    display: DisplayOptions = field(default_factory=DisplayOptions)

    def layout_options(self, marked_id: str | None = None) -> LayoutOptions:
        return LayoutOptions(
            child_depth=self.layout.child_depth,
            parent_depth=self.layout.parent_depth,
            sibling_depth=self.layout.sibling_depth,
            flip=self.layout.flip,
            display=self.display,
            marked_id=marked_id,
        )


# ---------------------------------------------------------------------------
# バリデーション
# ---------------------------------------------------------------------------

_RGB_KEYS = (
    "background",
    "male_fill",
    "female_fill",
    "other_fill",
    "male_border",
    "female_border",
    "other_border",
    "focal_border",
    "marked_border",
    "duplicate_border",
    "partner_line",
    "child_line",
    "non_bio_line",
    "text",
)

_DIM_INT_KEYS = (
    "box_width",
    "box_height",
    "padding",
    "line_width_partner",
    "line_width_child",
    "border_width",
    "focal_border_width",
    "corner_radius",
    "font_size_name",
    "font_size_label",
    "dash_length",
)

_DEPTH_KEYS = ("child_depth", "parent_depth", "sibling_depth")
_DISPLAY_KEYS = ("marriage_dates", "wedding", "divorce_dates")


def _validate_rgb(value: object, key: str) -> tuple[int, int, int]:
    """RGB 配列値を検証し tuple[int, int, int] に変換する。"""
    if not isinstance(value, list) or len(value) != 3:
        print(
            f"設定エラー: {key} は [R, G, B] 形式の3要素配列で指定してください",
            file=sys.stderr,
        )
        sys.exit(1)
    for i, v in enumerate(value):
        if not isinstance(v, int) or not (0 <= v <= 255):
            print(
                f"設定エラー: {key}[{i}] は 0〜255 の整数で指定してください",
                file=sys.stderr,
            )
            sys.exit(1)
    return (int(value[0]), int(value[1]), int(value[2]))


def _validate_bool(value: object, key: str) -> bool:
    if not isinstance(value, bool):
        print(f"設定エラー: {key} は true / false で指定してください", file=sys.stderr)
        sys.exit(1)
    return value


def _build_colors(data: dict[str, object]) -> ColorConfig:
    cfg = ColorConfig()
    for key in _RGB_KEYS:
        if key in data:
            setattr(cfg, key, _validate_rgb(data[key], f"style.colors.{key}"))
    return cfg


def _build_dimensions(data: dict[str, object]) -> DimensionConfig:
    cfg = DimensionConfig()
    for key in _DIM_INT_KEYS:
        if key in data:
            val = data[key]
            if not isinstance(val, int) or isinstance(val, bool):
                print(
                    f"設定エラー: style.dimensions.{key} は整数で指定してください",
                    file=sys.stderr,
                )
                sys.exit(1)
            setattr(cfg, key, val)
    return cfg


def _build_layout(data: dict[str, object]) -> LayoutConfig:
    cfg = LayoutConfig()
    for key in _DEPTH_KEYS:
        if key in data:
            val = data[key]
            if not isinstance(val, int) or isinstance(val, bool) or val < 0:
                print(
                    f"設定エラー: layout.{key} は 0 以上の整数で指定してください",
                    file=sys.stderr,
                )
                sys.exit(1)
            setattr(cfg, key, val)
    if "flip" in data:
        cfg.flip = _validate_bool(data["flip"], "layout.flip")
    return cfg


def _build_display(data: dict[str, object]) -> DisplayOptions:
    values = {key: _validate_bool(data[key], f"display.{key}") for key in _DISPLAY_KEYS if key in data}
    return DisplayOptions(**values)


# ---------------------------------------------------------------------------
# ロード
# ---------------------------------------------------------------------------


def load_config(path: Path | None) -> AppConfig:
    """設定ファイルを読み込んで AppConfig を返す。

    Args:
        path: 設定ファイルのパス。None の場合はカレントディレクトリの
              config.toml を探索し、存在しなければデフォルト値を使用する。

    Returns:
        AppConfig オブジェクト。
    """
    config_path = path if path is not None else Path("config.toml")

    if not config_path.exists():
        return AppConfig()

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    app_config = AppConfig()

    layout = data.get("layout")
    if isinstance(layout, dict):
        app_config.layout = _build_layout(layout)

    display = data.get("display")
    if isinstance(display, dict):
        app_config.display = _build_display(display)

    style: dict[str, object] = data.get("style", {})  # type: ignore[assignment]
    if isinstance(style, dict):
        colors = style.get("colors")
        if isinstance(colors, dict):
            app_config.colors = _build_colors(colors)  # type: ignore[arg-type]
        dimensions = style.get("dimensions")
        if isinstance(dimensions, dict):
            app_config.dimensions = _build_dimensions(dimensions)  # type: ignore[arg-type]

    return app_config
