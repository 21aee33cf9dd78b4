"""人物・配偶者・子孫を下方向に再帰的に配置する。

各部分木は中心人物を原点に組み立てて返し、呼び出し側が merge_tree_data で
ずらして合成する。再婚などで同じ夫婦・子供グループに複数の経路から到達しても
Visited により1度だけ展開し、2度目以降は短い接続線だけを描く。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from family_tree_layout.canvas import (
    TreeData,
    add_entity,
    add_line,
    add_partner_label,
    child_line_type,
    merge_tree_data,
    partner_line_type,
)
from family_tree_layout.models import WEDDED_KINDS, DisplayOptions, FamilyGraph, PartnerKind
from family_tree_layout.ordering import has_actual_date
from family_tree_layout.relations import (
    get_alone_children,
    get_partner_children,
    get_sorted_partners,
    get_spouse_side,
    has_existing_parents,
    is_current_partnership,
    is_non_biological,
    is_parent_set_non_bio,
)

log = logging.getLogger(__name__)

# 配偶者間隔の追加幅（注記の種類ごと）
MARRIAGE_DATE_GAP = 0.625
WEDDING_GAP = 1.125
DIVORCE_DATE_GAP = 0.625

# 省略された接続を示す短い線の長さ
PARENT_STUB = 0.425
SECOND_PARENT_STUB = 0.45
PARTNER_STUB = 0.475
CHILDREN_STUB = 0.35

# 片親の子の横棒を夫婦の子の横棒と重ならないよう少し上げる
ALONE_CHILDREN_OFFSET = -0.15


@dataclass
class Visited:
    """1回のレイアウト計算の中で展開済みのものを記録する。"""

    ancestors: set[str] = field(default_factory=set)
    couples: set[frozenset[str]] = field(default_factory=set)
    child_groups: set[str] = field(default_factory=set)

    def has_couple(self, a: str, b: str) -> bool:
        return frozenset((a, b)) in self.couples

    def add_couple(self, a: str, b: str) -> None:
        self.couples.add(frozenset((a, b)))


@dataclass
class LayoutContext:
    graph: FamilyGraph
    flip: bool = False
    display: DisplayOptions = field(default_factory=DisplayOptions)
    visited: Visited = field(default_factory=Visited)


@dataclass
class ChildrenGroup:
    """並べる前の子供の部分木のまとまり。"""

    trees: list[TreeData]
    non_bio: list[bool]
    total_width: float
    first_left: float
    last_right: float

    @property
    def anchor_width(self) -> float:
        """最初の子と最後の子のボックス位置の間隔。"""
        return self.total_width + self.first_left - self.last_right


def calculate_marriage_gap(
    graph: FamilyGraph, person_id: str, partner_id: str | None, display: DisplayOptions
) -> float:
    """夫婦の間隔を返す。基本は1で、表示する注記があれば広げる。"""
    person = graph.get_person(person_id)
    if person is None or not partner_id:
        return 1.0
    partnership = person.partners.get(partner_id)
    if partnership is None:
        return 1.0

    extra = 0.0
    wedded = partnership.kind in WEDDED_KINDS
    if display.marriage_dates and wedded and has_actual_date(partnership.marriage_date):
        extra = max(extra, MARRIAGE_DATE_GAP)
    if display.wedding and wedded and partnership.wedding:
        extra = max(extra, WEDDING_GAP)
    if (
        display.divorce_dates
        and partnership.kind == PartnerKind.DIVORCED
        and has_actual_date(partnership.divorce_date)
    ):
        extra = max(extra, DIVORCE_DATE_GAP)
    return 1 + extra


def add_children_stub(
    d: TreeData, graph: FamilyGraph, person_id: str, child_ids: list[str], x: float, y: float
) -> None:
    """表示しない子供がいることを示す下向きの点線を描く。

    生物学的な子と非生物学的な子が混在する場合は両方の種類を重ねて描く。
    """
    kinds = {is_non_biological(graph.persons[cid], person_id) for cid in child_ids if cid in graph}
    for non_bio in sorted(kinds):
        add_line(d, x, y, x, y + CHILDREN_STUB, child_line_type(non_bio, dashed=True))


def add_alone_children_stub(d: TreeData, graph: FamilyGraph, person_id: str, x: float, y: float) -> None:
    add_children_stub(d, graph, person_id, get_alone_children(graph, person_id), x, y)


def draw_children_lines(
    d: TreeData,
    vx: float,
    child_xs: list[float],
    vy: float,
    cy: float,
    non_bio: list[bool],
    y_offset: float,
) -> None:
    """親から子供への線（縦線・横棒・子供への縦線）を描く。

    Args:
        d: 描画先
        vx: 親側の縦線の X 座標
        child_xs: 子供の X 座標
        vy: 親側の縦線の開始 Y 座標
        cy: 子供の行の Y 座標
        non_bio: 子供ごとの非生物学的フラグ
        y_offset: 横棒の Y 位置の補正
    """
    bar_y = (vy + cy) / 2 + y_offset
    spans: dict[bool, tuple[float, float]] = {}
    for x, nb in zip(child_xs, non_bio):
        lo, hi = spans.get(nb, (vx, vx))
        spans[nb] = (min(lo, x), max(hi, x))
        add_line(d, x, bar_y, x, cy, child_line_type(nb))

    for nb in (False, True):
        if nb not in spans:
            continue
        lo, hi = spans[nb]
        line_type = child_line_type(nb)
        add_line(d, vx, vy, vx, bar_y, line_type)
        add_line(d, lo, bar_y, hi, bar_y, line_type)


def add_person_box(
    ctx: LayoutContext,
    d: TreeData,
    person_id: str,
    partner_id: str | None,
    x: float,
    y: float,
    parent_stubs: bool,
    partner_side: bool | None,
    alone_stub: bool,
) -> None:
    """人物ボックスと、表示しない関係を示す短い点線を追加する。

    Args:
        parent_stubs: 親がいれば上向きの点線を描く
        partner_side: 描いていないパートナーがいる場合の点線の向き（None なら描かない）
        alone_stub: 片親の子がいれば下向きの点線を描く
    """
    graph = ctx.graph
    person = graph.persons[person_id]
    add_entity(d, person_id, x, y)

    if parent_stubs:
        if has_existing_parents(graph, person, 1):
            line_type = child_line_type(is_parent_set_non_bio(person, 1), dashed=True)
            add_line(d, x, y, x, y - PARENT_STUB, line_type)
        if has_existing_parents(graph, person, 2):
            line_type = child_line_type(is_parent_set_non_bio(person, 2), dashed=True)
            add_line(d, x + 0.05, y, x + 0.05, y - SECOND_PARENT_STUB, line_type)

    if partner_side is not None:
        partners = [pid for pid in person.partners if pid in graph]
        drawn = 1 if partner_id in partners else 0
        if len(partners) > drawn:
            current = person.spouse_id in graph and person.spouse_id != partner_id
            dx = PARTNER_STUB if partner_side else -PARTNER_STUB
            add_line(d, x, y, x + dx, y, partner_line_type(current, dashed=True))

    if alone_stub:
        add_alone_children_stub(d, graph, person_id, x, y)


def build_children_group(
    ctx: LayoutContext,
    parent_id: str,
    child_ids: list[str],
    depth: int,
    exclude_parent: str | None,
) -> ChildrenGroup:
    """子供ごとに子孫の部分木を作る。

    親セット2・3に別の親がいる子には、その親へ向かう点線を付けておく。
    exclude_parent を含む親セットは呼び出し側で線を描くので省く。
    """
    graph = ctx.graph
    trees: list[TreeData] = []
    non_bio: list[bool] = []
    total_width = 0.0
    for cid in child_ids:
        child = graph.persons[cid]
        sub = build_descendant_tree(ctx, cid, depth)
        primary = child.in_slot(parent_id, 1)
        for slot, offset, top in ((2, 0.05, -0.55), (3, 0.1, -0.6)):
            if (
                has_existing_parents(graph, child, slot)
                and not child.in_slot(parent_id, slot)
                and not child.in_slot(exclude_parent, slot)
            ):
                x = offset if primary else -offset
                line_type = child_line_type(is_parent_set_non_bio(child, slot), dashed=True)
                add_line(sub, x, 0, x, top, line_type)
        trees.append(sub)
        non_bio.append(is_non_biological(child, parent_id))
        total_width += sub.width

    return ChildrenGroup(
        trees=trees,
        non_bio=non_bio,
        total_width=total_width,
        first_left=trees[0].left,
        last_right=trees[-1].right,
    )


def place_children_group(
    d: TreeData,
    group: ChildrenGroup,
    cx: float,
    cy: float,
    vx: float,
    vy: float,
    y_offset: float,
) -> list[float]:
    """子供の部分木を cx を中心に左から詰めて並べ、親からの線を描く。"""
    xs: list[float] = []
    x = cx - group.anchor_width / 2 + group.first_left
    for sub in group.trees:
        xs.append(x - sub.left)
        merge_tree_data(d, sub, xs[-1], cy)
        x += sub.width
    draw_children_lines(d, vx, xs, vy, cy, group.non_bio, y_offset)
    return xs


def draw_partner_with_children(
    ctx: LayoutContext,
    d: TreeData,
    person_id: str,
    partner_id: str | None,
    child_ids: list[str],
    depth: int,
    right: bool,
    fx: float,
    cy: float,
    line_y: float,
    upper_y: float,
    drawn_xs: list[float],
    bus_xs: dict[str, float],
    exclude_parent: str | None,
) -> None:
    """パートナー1人とその子供を、既に描いたものの外側に配置する。

    同じ呼び出しで既に描いたパートナー（drawn_xs）がいる場合は、
    その上をまたぐコの字型の線でつなぐ。partner_id が None のときは
    片親の子だけを並べる。
    """
    graph = ctx.graph
    gap = calculate_marriage_gap(graph, person_id, partner_id, ctx.display)
    side = 0.5 if right else -0.5
    if child_ids:
        group = build_children_group(ctx, person_id, child_ids, depth, exclude_parent)
        if right:
            cx = d.right - group.first_left + group.anchor_width / 2
        else:
            cx = d.left - group.last_right - group.anchor_width / 2
        px = cx + side
        has_partner = partner_id is not None and partner_id in graph
        place_children_group(
            d,
            group,
            cx,
            cy + 1,
            cx if has_partner else fx,
            line_y,
            ALONE_CHILDREN_OFFSET if partner_id is None else 0,
        )
    else:
        px = d.right if right else d.left - 1

    if partner_id is not None:
        bus_xs[partner_id] = px - side

    if partner_id is None or partner_id not in graph:
        return

    line_type = partner_line_type(is_current_partnership(graph, person_id, partner_id))
    if drawn_xs:
        x1 = drawn_xs[0] - side * (1 + len(drawn_xs) / 10)
        x2 = drawn_xs[-1] + side + side / 10
        add_line(d, fx, line_y, x1, line_y, line_type)
        add_line(d, x1, line_y, x1, upper_y, line_type)
        add_line(d, x1, upper_y, x2, upper_y, line_type)
        add_line(d, x2, upper_y, x2, line_y, line_type)
        add_line(d, x2, line_y, px, line_y, line_type)
        if abs(px - x2) >= gap - 1:
            add_partner_label(d, person_id, partner_id, x2 - side, px, line_y, False)
        else:
            add_partner_label(
                d,
                person_id,
                partner_id,
                x2 + (-1.5 if right else -0.5),
                x2 + (0.5 if right else 1.5),
                upper_y,
                True,
            )
    else:
        add_line(d, fx, line_y, px, line_y, line_type)
        add_partner_label(d, person_id, partner_id, fx, px, line_y, True)

    add_person_box(ctx, d, partner_id, person_id, px, cy, True, right, True)
    drawn_xs.append(px)


def draw_additional_partners(
    ctx: LayoutContext,
    d: TreeData,
    person_id: str,
    exclude_id: str | None,
    depth: int,
    right: bool,
    fx: float,
    cy: float,
    exclude_children: list[str],
    bus_xs: dict[str, float],
    exclude_parent: str | None,
) -> None:
    """主な配偶者以外のパートナーを関係の日付順に外側へ並べる。

    パートナーごとに線の高さを少しずつずらし、重ならないようにする。
    既に描いた夫婦には短い点線だけを描く。
    """
    graph = ctx.graph
    person = graph.persons[person_id]
    partner_ids = [pid for pid in get_sorted_partners(person, exclude_id) if pid in graph]
    count = len(partner_ids)
    if not count:
        return

    spread = min(0.1 * (count - 1), 0.15)
    line_y = cy + spread / 2
    line_step = spread / (count - 1) if count > 1 else 0
    upper_step = 0.1 / (count + 1)
    upper_y = cy - 0.5 + upper_step * (count + 1)
    drawn_xs: list[float] = []

    for partner_id in partner_ids:
        if ctx.visited.has_couple(person_id, partner_id):
            line_type = partner_line_type(
                is_current_partnership(graph, person_id, partner_id), dashed=True
            )
            add_line(d, fx, line_y, fx + (PARTNER_STUB if right else -PARTNER_STUB), line_y, line_type)
        else:
            ctx.visited.add_couple(person_id, partner_id)
            child_ids = [
                cid
                for cid in get_partner_children(graph, person_id, partner_id)
                if cid not in exclude_children
            ]
            draw_partner_with_children(
                ctx,
                d,
                person_id,
                partner_id,
                child_ids,
                depth,
                right,
                fx,
                cy,
                line_y,
                upper_y,
                drawn_xs,
                bus_xs,
                exclude_parent,
            )
        line_y -= line_step
        upper_y -= upper_step


def build_descendant_tree(ctx: LayoutContext, person_id: str, depth: int) -> TreeData:
    """person_id を原点に、配偶者と depth 世代分の子孫を配置した部分木を返す。

    depth が0のときは本人のボックスだけを置き、表示しない子供や
    パートナーがいれば短い点線で示す。存在しない人物なら空の部分木を返す。

    Args:
        ctx: レイアウトの設定と展開済みの記録
        person_id: 中心人物のID
        depth: 残りの子孫の世代数

    Returns:
        中心人物を原点とする TreeData
    """
    graph = ctx.graph
    d = TreeData()
    person = graph.get_person(person_id)
    if person is None:
        log.debug("人物ID %s が存在しないため子孫の配置を省略します", person_id)
        return d

    spouse_id = person.spouse_id if person.spouse_id in graph else None
    right = get_spouse_side(graph, person_id, spouse_id)
    gap = calculate_marriage_gap(graph, person_id, spouse_id, ctx.display)
    if ctx.flip:
        right = not right
    sx = gap if right else -gap

    if depth <= 0:
        add_person_box(ctx, d, person_id, None, 0, 0, False, right, False)
        add_children_stub(d, graph, person_id, person.children, 0, 0)
        return d

    add_entity(d, person_id, 0, 0)

    # 本人と配偶者の子供をまとめ、どちらが第1親セットにいるかで分ける
    child_ids = [c.id for c in graph.get_children(person_id)]
    if spouse_id is not None:
        child_ids += [c.id for c in graph.get_children(spouse_id) if c.id not in child_ids]

    of_person: list[str] = []
    of_spouse: list[str] = []
    spouse_in_later_slot: list[tuple[int, str]] = []
    person_in_later_slot: list[tuple[int, str]] = []
    for cid in child_ids:
        child = graph.persons[cid]
        if child.in_slot(person_id, 1):
            of_person.append(cid)
            for slot in (2, 3):
                if child.in_slot(spouse_id, slot):
                    spouse_in_later_slot.append((slot, cid))
                    break
        elif child.in_slot(spouse_id, 1):
            of_spouse.append(cid)
            for slot in (2, 3):
                if child.in_slot(person_id, slot):
                    person_in_later_slot.append((slot, cid))
                    break
        elif child.in_slot(person_id, 2) or child.in_slot(person_id, 3):
            of_person.append(cid)
        else:
            of_spouse.append(cid)

    # 各パートナーとの子供の横棒の X 座標（"" は本人の真下）
    own_bus_xs: dict[str, float] = {"": 0.0}
    spouse_bus_xs: dict[str, float] = {"": sx}
    if spouse_id is not None:
        own_bus_xs[spouse_id] = sx / 2
        spouse_bus_xs[person_id] = sx / 2

    alone = [cid for cid in get_alone_children(graph, person_id) if cid not in of_spouse]
    if alone:
        if person_id in ctx.visited.child_groups:
            add_alone_children_stub(d, graph, person_id, 0, 0)
        else:
            ctx.visited.child_groups.add(person_id)
            group = build_children_group(ctx, person_id, alone, depth - 1, spouse_id)
            place_children_group(d, group, 0, 1, 0, 0, 0)

    if spouse_id is not None:
        if ctx.visited.has_couple(person_id, spouse_id):
            log.debug("%s と %s は展開済みのため接続線のみ描きます", person_id, spouse_id)
            line_type = partner_line_type(
                is_current_partnership(graph, person_id, spouse_id), dashed=True
            )
            add_line(d, 0, 0, PARTNER_STUB if right else -PARTNER_STUB, 0, line_type)
        else:
            ctx.visited.add_couple(person_id, spouse_id)
            shared = [
                cid
                for cid in get_partner_children(graph, person_id, spouse_id)
                if cid not in of_spouse
            ]
            if shared:
                group = build_children_group(ctx, person_id, shared, depth - 1, None)
                if alone:
                    if right:
                        cx = max(
                            gap,
                            d.right + (group.total_width - group.first_left - group.last_right) / 2 + 0.5,
                        )
                        cx -= 0.5
                    else:
                        cx = min(
                            -gap,
                            d.left - (group.total_width + group.last_right + group.first_left) / 2 - 0.5,
                        )
                        cx += 0.5
                else:
                    cx = sx - gap / 2 if right else sx + gap / 2
                place_children_group(d, group, cx, 1, cx, 0, 0)
                own_bus_xs[spouse_id] = cx
                spouse_bus_xs[person_id] = cx

            add_line(d, 0, 0, sx, 0, partner_line_type(is_current_partnership(graph, person_id, spouse_id)))
            add_partner_label(d, person_id, spouse_id, 0, sx, 0, False)
            add_person_box(ctx, d, spouse_id, person_id, sx, 0, True, None, False)

            spouse_alone = [
                cid for cid in get_alone_children(graph, spouse_id) if cid not in of_person
            ]
            if spouse_alone:
                if spouse_id in ctx.visited.child_groups:
                    add_alone_children_stub(d, graph, spouse_id, sx, 0)
                else:
                    ctx.visited.child_groups.add(spouse_id)
                    group = build_children_group(ctx, spouse_id, spouse_alone, depth - 1, None)
                    if right:
                        cx = d.right + (group.total_width - group.first_left - group.last_right) / 2
                    else:
                        cx = d.left - (group.total_width + group.last_right + group.first_left) / 2
                    place_children_group(d, group, cx, 1, sx, 0, ALONE_CHILDREN_OFFSET)

            draw_additional_partners(
                ctx, d, spouse_id, person_id, depth - 1, right, sx, 0,
                of_person, spouse_bus_xs, person_id,
            )

    draw_additional_partners(
        ctx, d, person_id, spouse_id, depth - 1, not right, 0, 0,
        of_spouse, own_bus_xs, spouse_id,
    )

    # 第2・第3親セットとして本人（または配偶者）につながる子供への線
    for slot in (2, 3):
        offset = (slot - 1) * 0.05
        for s, cid in person_in_later_slot:
            entity = d.entities.get(cid)
            if s != slot or entity is None:
                continue
            other = _slot_partner(graph.persons[cid].parents(slot), person_id)
            draw_children_lines(
                d,
                own_bus_xs.get(other, 0.0),
                [entity.x + offset],
                0,
                1,
                [is_parent_set_non_bio(graph.persons[cid], slot)],
                -offset,
            )
        for s, cid in spouse_in_later_slot:
            entity = d.entities.get(cid)
            if s != slot or entity is None:
                continue
            other = _slot_partner(graph.persons[cid].parents(slot), spouse_id)
            draw_children_lines(
                d,
                spouse_bus_xs.get(other, sx),
                [entity.x - offset],
                0,
                1,
                [is_parent_set_non_bio(graph.persons[cid], slot)],
                offset,
            )

    return d


def _slot_partner(parents: tuple[str | None, str | None], parent_id: str | None) -> str:
    mother_id, father_id = parents
    other = father_id if mother_id == parent_id else mother_id
    return other or ""
