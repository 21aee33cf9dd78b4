"""祖先を上方向に配置し、兄弟を左右に振り分けて詰める。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from family_tree_layout.canvas import (
    TreeData,
    add_line,
    add_partner_label,
    child_line_type,
    merge_tree_data,
    partner_line_type,
)
from family_tree_layout.descendants import (
    LayoutContext,
    add_person_box,
    build_descendant_tree,
    calculate_marriage_gap,
    draw_children_lines,
)
from family_tree_layout.models import Gender, Person
from family_tree_layout.ordering import compare_people
from family_tree_layout.relations import (
    existing_parents,
    get_siblings,
    has_existing_parents,
    is_current_partnership,
    is_non_biological,
    is_parent_set_non_bio,
)

log = logging.getLogger(__name__)

# 兄弟の重心に合わせて親の位置をずらすときの上限（グリッド単位）
PARENT_DRIFT = 4


@dataclass
class SiblingSplit:
    """兄弟を左右に並べた結果。

    left_x / right_x はそれぞれの側で最も外側に置いた兄弟の X 座標
    （その側に誰もいなければ 0）。
    """

    left_x: float = 0.0
    right_x: float = 0.0
    positions: dict[str, float] = field(default_factory=dict)
    left_count: int = 0
    right_count: int = 0


def draw_siblings_one_side(
    ctx: LayoutContext,
    d: TreeData,
    sibling_ids: list[str],
    depth: int,
    right: bool,
    cy: float,
) -> dict[str, float]:
    """兄弟を片側に内側から順に並べ、各兄弟の X 座標を返す。

    1行だけの部分木はその行の端に、複数行にわたる部分木は全体の端に詰める。
    """
    graph = ctx.graph
    positions: dict[str, float] = {}
    ordered = sibling_ids if right else list(reversed(sibling_ids))
    for sid in ordered:
        sub = build_descendant_tree(ctx, sid, depth)
        if sub.height == 1:
            row_right = d.row_right.get(cy, d.right)
            row_left = d.row_left.get(cy, d.left)
            x = row_right - sub.left if right else row_left - sub.right
        else:
            x = d.right - sub.left if right else d.left - sub.right
        merge_tree_data(d, sub, x, cy)

        sibling = graph.persons[sid]
        if has_existing_parents(graph, sibling, 2):
            line_type = child_line_type(is_parent_set_non_bio(sibling, 2), dashed=True)
            add_line(d, x + 0.05, cy, x + 0.05, cy - 0.45, line_type)
        positions[sid] = x
    return positions


def split_siblings(
    ctx: LayoutContext,
    d: TreeData,
    person: Person,
    sibling_ids: list[str],
    depth: int,
    direction: bool | None,
    cy: float,
) -> SiblingSplit:
    """兄弟を person の左右に振り分けて配置する。

    direction が None なら person より年下（並び順が後）を右、それ以外を左に置く。
    True / False なら全員をその側（True が右）に置く。
    """
    graph = ctx.graph
    left: list[str] = []
    right: list[str] = []
    for sid in sibling_ids:
        if direction is None:
            to_right = compare_people(person, graph.persons[sid]) < 0
        else:
            to_right = direction
        (right if to_right else left).append(sid)

    left_positions = draw_siblings_one_side(ctx, d, left, depth, False, cy)
    right_positions = draw_siblings_one_side(ctx, d, right, depth, True, cy)

    split = SiblingSplit(left_count=len(left), right_count=len(right))
    if left:
        split.left_x = left_positions[left[0]]
    if right:
        split.right_x = right_positions[right[-1]]
    split.positions = {**left_positions, **right_positions}
    return split


def _sibling_stub(
    ctx: LayoutContext,
    d: TreeData,
    person: Person,
    x: float,
    direction: bool | None,
    both_parents: bool,
    non_bio: bool,
) -> None:
    """表示しない兄弟がいる側に短い横線を描く。"""
    siblings = get_siblings(ctx.graph, person.id, 1)
    if not siblings:
        return
    on_left = on_right = False
    if direction is None or not both_parents:
        for sid in siblings:
            if compare_people(person, ctx.graph.persons[sid]) < 0:
                on_right = True
            else:
                on_left = True
    elif direction:
        on_right = True
    else:
        on_left = True

    if on_left:
        lx = x - (0.05 if on_right else 0.1)
    else:
        lx = x
    add_line(d, lx, -0.5, lx + 0.1, -0.5, child_line_type(non_bio, dashed=True))


def build_ancestor_tree(
    ctx: LayoutContext,
    person_id: str,
    depth: int,
    direction: bool | None,
    draw_link: bool,
) -> TreeData:
    """person_id の祖先を depth 世代分、上方向に配置した部分木を返す。

    person_id 自身のボックスは含めない（呼び出し側が原点に置く）。
    direction が None なら両親を中心の左右に、True / False ならその側へ
    外向きに広げる。展開済みの人物は親への短い点線だけを描く。

    Args:
        ctx: レイアウトの設定と展開済みの記録
        person_id: 起点の人物ID
        depth: 残りの祖先の世代数
        direction: 広げる向き（True が右、None は中央）
        draw_link: 両親から person_id への線を描くかどうか

    Returns:
        person_id を原点とする TreeData
    """
    graph = ctx.graph
    d = TreeData()
    person = graph.get_person(person_id)
    if person is None:
        log.debug("人物ID %s が存在しないため祖先の配置を省略します", person_id)
        return d

    mother_id, father_id = existing_parents(graph, person, 1)
    if depth > 0 and person_id not in ctx.visited.ancestors:
        ctx.visited.ancestors.add(person_id)
        x1 = x2 = 0.0
        if mother_id and father_id:
            gap = calculate_marriage_gap(graph, mother_id, father_id, ctx.display)
            if direction is None:
                mother_first = not ctx.flip
                d1, d2 = False, True
                x1 -= gap / 2
            else:
                mother_first = (not direction) if ctx.flip else direction
                d1 = d2 = direction
            i1, i2 = (mother_id, father_id) if mother_first else (father_id, mother_id)

            merge_tree_data(d, build_ancestor_tree(ctx, i1, depth - 1, d1, True), x1, -1)
            add_person_box(ctx, d, i1, i2, x1, -1, False, d1, True)
            x2 = d.right + gap - 1 if d2 else d.left - gap
            merge_tree_data(d, build_ancestor_tree(ctx, i2, depth - 1, d2, True), x2, -1)
            add_person_box(ctx, d, i2, i1, x2, -1, False, d2, True)

            add_line(d, x1, -1, x2, -1, partner_line_type(is_current_partnership(graph, i1, i2)))
            add_partner_label(d, i1, i2, x1, x2, -1, False)
        elif mother_id or father_id:
            parent_id = mother_id or father_id
            merge_tree_data(d, build_ancestor_tree(ctx, parent_id, depth - 1, direction, True), x1, -1)
            outer = Gender.FEMALE if ctx.flip else Gender.MALE
            add_person_box(
                ctx, d, parent_id, None, x1, -1, False, graph.persons[parent_id].gender != outer, False
            )

        if draw_link and (mother_id or father_id):
            non_bio = is_parent_set_non_bio(person, 1)
            line_type = child_line_type(non_bio)
            x = (x1 + x2) / 2
            add_line(d, x, -0.5, x, -1, line_type)
            add_line(d, x, -0.5, 0, -0.5, line_type)
            add_line(d, 0, -0.5, 0, 0, line_type)
            _sibling_stub(ctx, d, person, x, direction, bool(mother_id and father_id), non_bio)
    elif mother_id or father_id:
        add_line(d, 0, -0.4, 0, 0, child_line_type(is_parent_set_non_bio(person, 1), dashed=True))

    if draw_link and has_existing_parents(graph, person, 2):
        line_type = child_line_type(is_parent_set_non_bio(person, 2), dashed=True)
        add_line(d, 0.05, -0.45, 0.05, 0, line_type)
    return d


def build_parent_siblings(
    ctx: LayoutContext,
    d: TreeData,
    parent_id: str,
    other_parent_id: str | None,
    parent_depth: int,
    sibling_depth: int,
    direction: bool,
    fx: float,
) -> None:
    """親（fx, -1 に配置済み）の兄弟と、その上の祖先を d に追加する。

    もう一方の親にも祖先がいる場合は兄弟を direction の側だけに広げ、
    そうでなければ左右に振り分けて祖父母を兄弟全体の中心に寄せる。
    ただし親の位置から PARENT_DRIFT を超えては動かさない。
    """
    graph = ctx.graph
    parent = graph.persons[parent_id]
    mother_id, father_id = existing_parents(graph, parent, 1)
    if not (mother_id or father_id):
        return

    if has_existing_parents(graph, parent, 2):
        line_type = child_line_type(is_parent_set_non_bio(parent, 2), dashed=True)
        add_line(d, fx + 0.05, -1, fx + 0.05, -1.45, line_type)

    if parent_depth <= 1:
        line_type = child_line_type(is_parent_set_non_bio(parent, 1), dashed=True)
        add_line(d, fx, -1, fx, -1.4, line_type)
        return

    grandparent_id = mother_id or father_id
    non_bio = [is_non_biological(parent, grandparent_id)]
    xs = [fx]
    bx = fx
    other = graph.get_person(other_parent_id)
    outward = other is not None and has_existing_parents(graph, other, 1)

    if sibling_depth > 0:
        siblings = get_siblings(graph, parent_id, 1)
        if siblings:
            if outward:
                split = split_siblings(ctx, d, parent, siblings, sibling_depth - 1, direction, -1)
            else:
                split = split_siblings(ctx, d, parent, siblings, sibling_depth - 1, None, -1)
                left_x = split.left_x if split.left_count else fx
                right_x = split.right_x if split.right_count else fx
                bx = (left_x + right_x) / 2
                if abs(bx - fx) > PARENT_DRIFT:
                    bx = fx + 0.5 * (split.right_count - split.left_count)
            for sid in siblings:
                non_bio.append(is_non_biological(graph.persons[sid], grandparent_id))
                xs.append(split.positions[sid])

    ancestors = build_ancestor_tree(
        ctx, parent_id, parent_depth - 1, direction if outward else None, sibling_depth <= 0
    )
    merge_tree_data(d, ancestors, bx, -1)
    if sibling_depth > 0:
        if -1 in ancestors.row_left:
            vx = bx + (ancestors.row_left[-1] + ancestors.row_right[-1] - 1) / 2
            draw_children_lines(d, vx, xs, -2, -1, non_bio, 0)
        else:
            log.debug("%s の両親は展開済みのため兄弟への線を省略します", parent_id)
