"""レイアウト結果を蓄積するキャンバス。

座標はグリッド単位（1単位 ≒ 人物ボックス1つ分）。各部分木は自分の中心人物を
原点 (0, 0) として組み立て、merge_tree_data で親のキャンバスへずらして合成する。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class LineType(Enum):
    """線の種類。大文字は実線、小文字は点線（省略・推定された接続）。"""

    BIOLOGICAL = "B"
    BIOLOGICAL_STUB = "b"
    NON_BIOLOGICAL = "C"
    NON_BIOLOGICAL_STUB = "c"
    PARTNER = "P"
    PARTNER_STUB = "p"
    SPOUSE = "S"
    SPOUSE_STUB = "s"

    @property
    def is_dashed(self) -> bool:
        return self.value.islower()

    @property
    def is_partnership(self) -> bool:
        return self.value in "PpSs"

    @property
    def is_current_partnership(self) -> bool:
        return self.value in "Ss"

    @property
    def is_non_biological(self) -> bool:
        return self.value in "Cc"

    @property
    def is_biological(self) -> bool:
        return self.value in "Bb"


def child_line_type(non_bio: bool, dashed: bool = False) -> LineType:
    if non_bio:
        return LineType.NON_BIOLOGICAL_STUB if dashed else LineType.NON_BIOLOGICAL
    return LineType.BIOLOGICAL_STUB if dashed else LineType.BIOLOGICAL


def partner_line_type(current: bool, dashed: bool = False) -> LineType:
    if current:
        return LineType.SPOUSE_STUB if dashed else LineType.SPOUSE
    return LineType.PARTNER_STUB if dashed else LineType.PARTNER


@dataclass
class Entity:
    """配置された人物ボックス。"""

    person_id: str
    x: float
    y: float
    is_focal: bool = False
    is_marked: bool = False
    duplicate_of: str | None = None  # 同一人物が複数回描かれる場合の正規ID
    duplicate_group: int | None = None  # 正規エンティティ側にだけ付く通し番号


@dataclass
class Line:
    x1: float
    y1: float
    x2: float
    y2: float
    type: LineType


@dataclass
class PartnerLabel:
    """隣接していないパートナー間のラベル位置。"""

    person_id: str
    partner_id: str
    x1: float
    x2: float
    y: float
    below: bool


@dataclass
class TreeData:
    """部分木1つ分のレイアウト。

    境界は原点を含むよう 0 から始まる。row_left / row_right は
    行（y）ごとの左右端で、兄弟の部分木を重ならないよう詰めるのに使う。
    """

    left: float = 0.0
    right: float = 0.0
    top: float = 0.0
    bottom: float = 0.0
    entities: dict[str, Entity] = field(default_factory=dict)
    lines: list[Line] = field(default_factory=list)
    labels: list[PartnerLabel] = field(default_factory=list)
    row_left: dict[float, float] = field(default_factory=dict)
    row_right: dict[float, float] = field(default_factory=dict)
    duplicate_groups: int = 0
    occurrences: dict[str, int] = field(default_factory=dict)

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    def to_dict(self) -> dict[str, Any]:
        """JSON 出力用の辞書に変換する。"""
        return {
            "bounds": {
                "left": self.left,
                "right": self.right,
                "top": self.top,
                "bottom": self.bottom,
                "width": self.width,
                "height": self.height,
            },
            "entities": {
                key: {
                    "person_id": e.person_id,
                    "x": e.x,
                    "y": e.y,
                    "focal": e.is_focal,
                    "marked": e.is_marked,
                    "duplicate_of": e.duplicate_of,
                    "duplicate_group": e.duplicate_group,
                }
                for key, e in self.entities.items()
            },
            "lines": [
                {"x1": n.x1, "y1": n.y1, "x2": n.x2, "y2": n.y2, "type": n.type.value}
                for n in self.lines
            ],
            "labels": [
                {
                    "person_id": p.person_id,
                    "partner_id": p.partner_id,
                    "x1": p.x1,
                    "x2": p.x2,
                    "y": p.y,
                    "below": p.below,
                }
                for p in self.labels
            ],
        }


def add_entity(
    d: TreeData, person_id: str, x: float, y: float, is_focal: bool = False
) -> Entity:
    """人物ボックスを (x, y) に置き、境界と行ごとの端を広げる。

    同じ人物が既に置かれている場合は上書きせず ``"<id>#<n>"`` のキーで追加し、
    正規エンティティへの参照を持たせる。
    """
    entity = Entity(person_id=person_id, x=x, y=y, is_focal=is_focal)

    existing = d.entities.get(person_id)
    if existing is not None:
        entity.duplicate_of = person_id
        if existing.duplicate_of is None:
            existing.duplicate_of = person_id
            d.duplicate_groups += 1
            existing.duplicate_group = d.duplicate_groups
        n = d.occurrences.get(person_id, 1) + 1
        d.occurrences[person_id] = n
        d.entities[f"{person_id}#{n}"] = entity
    else:
        d.entities[person_id] = entity

    d.left = min(d.left, x)
    d.right = max(d.right, 1 + x)
    d.top = min(d.top, y)
    d.bottom = max(d.bottom, 1 + y)

    d.row_left[y] = min(d.row_left.get(y, x), x)
    d.row_right[y] = max(d.row_right.get(y, 1 + x), 1 + x)
    return entity


def add_line(d: TreeData, x1: float, y1: float, x2: float, y2: float, line_type: LineType) -> None:
    d.lines.append(Line(x1, y1, x2, y2, line_type))


def add_partner_label(
    d: TreeData,
    person_id: str,
    partner_id: str,
    x1: float,
    x2: float,
    y: float,
    below: bool,
) -> None:
    """パートナーが隣接していない場合だけラベルを追加する。"""
    if abs(x1 - x2) > 1.1:
        d.labels.append(PartnerLabel(person_id, partner_id, x1, x2, y, below))


def merge_tree_data(target: TreeData, subtree: TreeData, dx: float, dy: float) -> None:
    """subtree の全要素を (dx, dy) だけ平行移動して target に追加する。"""
    for n in subtree.lines:
        add_line(target, n.x1 + dx, n.y1 + dy, n.x2 + dx, n.y2 + dy, n.type)

    for p in subtree.labels:
        add_partner_label(target, p.person_id, p.partner_id, p.x1 + dx, p.x2 + dx, p.y + dy, p.below)

    for e in subtree.entities.values():
        add_entity(target, e.person_id, e.x + dx, e.y + dy, e.is_focal)
