"""直近のレイアウト結果を1件だけ保持するキャッシュ。"""

from __future__ import annotations

import logging

from family_tree_layout.canvas import TreeData
from family_tree_layout.layout_engine import LayoutOptions, build_full_tree
from family_tree_layout.models import FamilyGraph

log = logging.getLogger(__name__)


def compute_data_signature(graph: FamilyGraph) -> str:
    """家族全体の構造を表す文字列を返す。

    人物ごとのパートナー数・配偶者・子供の数・第1親セットをID順に連結したもの。
    どこかの関係が変わればこの値も変わる。
    """
    parts = []
    for pid in sorted(graph.persons):
        person = graph.persons[pid]
        mother_id, father_id = person.parents(1)
        parts.append(
            ":".join(
                [
                    pid,
                    str(len(person.partners)),
                    person.spouse_id or "",
                    str(len(person.children)),
                    mother_id or "",
                    father_id or "",
                ]
            )
        )
    return f"{len(parts)}|{','.join(parts)}"


class LayoutCache:
    """直前の呼び出しと同じ入力なら前回の TreeData をそのまま返す。

    スレッド間で共有する場合は呼び出し側で排他制御すること。
    """

    def __init__(self) -> None:
        self._key: tuple | None = None
        self._tree: TreeData | None = None

    def get_or_compute(self, graph: FamilyGraph, focal_id: str, options: LayoutOptions) -> TreeData:
        key = (focal_id, options, compute_data_signature(graph))
        if self._tree is not None and key == self._key:
            log.debug("キャッシュ済みのレイアウトを返します: %s", focal_id)
            return self._tree
        tree = build_full_tree(graph, focal_id, options)
        self._key = key
        self._tree = tree
        return tree

    def clear(self) -> None:
        self._key = None
        self._tree = None
