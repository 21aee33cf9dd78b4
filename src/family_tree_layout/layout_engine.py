"""家系図全体のレイアウトを組み立てる。

中心人物の子孫、兄弟、両親と祖先の部分木を1つの TreeData にまとめる。
座標はグリッド単位で、ピクセルへの変換は frame_drawer が行う。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from family_tree_layout.ancestors import PARENT_DRIFT, build_parent_siblings, split_siblings
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
    draw_additional_partners,
    draw_children_lines,
    draw_partner_with_children,
)
from family_tree_layout.models import DisplayOptions, FamilyGraph
from family_tree_layout.relations import (
    existing_parents,
    get_alone_children,
    get_siblings,
    has_existing_parents,
    is_current_partnership,
    is_non_biological,
    is_parent_set_non_bio,
)

if TYPE_CHECKING:
    from family_tree_layout.cache import LayoutCache

log = logging.getLogger(__name__)


class LayoutError(Exception):
    """レイアウトを計算できない場合のエラー。"""


@dataclass(frozen=True)
class LayoutOptions:
    """レイアウトの計算条件。

    child_depth / parent_depth / sibling_depth はそれぞれ子孫・祖先・兄弟側に
    表示する世代数（0 でその方向を表示しない）。
    """

    child_depth: int = 3
    parent_depth: int = 0
    sibling_depth: int = 0
    flip: bool = False
    display: DisplayOptions = field(default_factory=DisplayOptions)
    marked_id: str | None = None


def get_hidden_center(graph: FamilyGraph, person_id: str) -> str | None:
    """代わりに起点とすべきパートナーを返す。

    親がおらず、パートナーが配偶者1人だけで、片親の子もいない人物は
    配偶者を起点にしてその配偶者として描く。該当しなければ None。
    """
    person = graph.get_person(person_id)
    if person is None:
        return None
    spouse_id = person.spouse_id
    if (
        spouse_id
        and spouse_id in graph
        and not has_existing_parents(graph, person, 1)
        and spouse_id in person.partners
        and len(person.partners) == 1
        and not get_alone_children(graph, person_id)
    ):
        return spouse_id
    return None


def _build_hidden_center(
    graph: FamilyGraph, focal_id: str, center_id: str, options: LayoutOptions
) -> TreeData | None:
    inner = build_full_tree(graph, center_id, options)
    focal = inner.entities.get(focal_id)
    if focal is None:
        log.debug("%s が %s の配置に含まれないため通常の配置を行います", focal_id, center_id)
        return None
    d = TreeData()
    merge_tree_data(d, inner, -focal.x, -focal.y)
    d.entities[center_id].is_focal = False
    return d


def _add_parents(ctx: LayoutContext, d: TreeData, focal_id: str, options: LayoutOptions) -> None:
    """中心人物の兄弟・両親・祖先を d に追加する。"""
    graph = ctx.graph
    person = graph.persons[focal_id]
    mother_id, father_id = existing_parents(graph, person, 1)
    flip = options.flip
    sibling_depth = options.sibling_depth

    px = 0.0
    non_bio = [is_parent_set_non_bio(person, 1)]
    xs = [0.0]
    siblings = get_siblings(graph, focal_id, 1)
    if siblings:
        split = split_siblings(ctx, d, person, siblings, sibling_depth, None, 0)
        px = (split.left_x + split.right_x) / 2
        if abs(px) > PARENT_DRIFT:
            px = 0.5 * (split.right_count - split.left_count)
        for sid in siblings:
            non_bio.append(is_non_biological(graph.persons[sid], mother_id or father_id))
            xs.append(split.positions[sid])

    if not (mother_id or father_id):
        log.debug("%s には親がいないため親の配置を省略します", focal_id)
        return

    mx = fx = px
    has_second = has_existing_parents(graph, person, 2)
    draw_children_lines(d, px, xs, -1, 0, non_bio, 0)
    if mother_id and father_id:
        ctx.visited.add_couple(mother_id, father_id)
        half = calculate_marriage_gap(graph, mother_id, father_id, ctx.display) / 2
        mx += half if flip else -half
        fx += -half if flip else half
        add_line(d, mx, -1, fx, -1, partner_line_type(is_current_partnership(graph, mother_id, father_id)))
        add_partner_label(d, mother_id, father_id, mx, fx, -1, False)

    if mother_id:
        add_person_box(ctx, d, mother_id, father_id, mx, -1, False, flip if has_second else None, has_second)
    if father_id:
        add_person_box(
            ctx, d, father_id, mother_id, fx, -1, False, (not flip) if has_second else None, has_second
        )

    # 第2親セットが無ければ両親の他のパートナーと異父母兄弟も並べる
    if not has_second:
        for parent_id, other_id, right, x in (
            (mother_id, father_id, flip, mx),
            (father_id, mother_id, not flip, fx),
        ):
            if not parent_id:
                continue
            alone = get_alone_children(graph, parent_id)
            if alone and other_id:
                draw_partner_with_children(
                    ctx, d, parent_id, None, alone, sibling_depth, right, x, -1, -1, -1, [], {}, None
                )
            draw_additional_partners(
                ctx, d, parent_id, other_id, sibling_depth, right, x, -1, [], {}, None
            )

    if mother_id:
        build_parent_siblings(
            ctx, d, mother_id, father_id, options.parent_depth, sibling_depth, flip, mx
        )
    if father_id:
        build_parent_siblings(
            ctx, d, father_id, mother_id, options.parent_depth, sibling_depth, not flip, fx
        )


def build_full_tree(graph: FamilyGraph, focal_id: str, options: LayoutOptions) -> TreeData:
    """focal_id を原点とする家系図全体のレイアウトを計算する。

    Args:
        graph: 家族全体
        focal_id: 中心人物のID
        options: 計算条件

    Returns:
        中心人物を (0, 0) に置いた TreeData

    Raises:
        LayoutError: focal_id の人物が存在しない場合
    """
    if focal_id not in graph:
        raise LayoutError(f"中心人物のID '{focal_id}' が存在しません")
    d: TreeData | None = None
    center_id = get_hidden_center(graph, focal_id)
    if options.child_depth and center_id and not get_hidden_center(graph, center_id):
        log.debug("%s の代わりに配偶者 %s を起点にします", focal_id, center_id)
        d = _build_hidden_center(graph, focal_id, center_id, options)

    if d is None:
        ctx = LayoutContext(graph=graph, flip=options.flip, display=options.display)
        d = build_descendant_tree(ctx, focal_id, options.child_depth)
        person = graph.persons[focal_id]
        if options.parent_depth > 0:
            _add_parents(ctx, d, focal_id, options)
        elif has_existing_parents(graph, person, 1):
            line_type = child_line_type(is_parent_set_non_bio(person, 1), dashed=True)
            add_line(d, 0, 0, 0, -0.425, line_type)
            if has_existing_parents(graph, person, 2):
                line_type = child_line_type(is_parent_set_non_bio(person, 2), dashed=True)
                add_line(d, 0.05, 0, 0.05, -0.45, line_type)

    d.entities[focal_id].is_focal = True
    marked_id = options.marked_id
    if marked_id and marked_id in d.entities:
        d.entities[marked_id].is_marked = True
    return d


def generate_layout(
    graph: FamilyGraph,
    focal_id: str,
    options: LayoutOptions | None = None,
    cache: LayoutCache | None = None,
) -> TreeData:
    """家系図のレイアウトを計算する。

    cache を渡すと、前回と同じ入力なら前回の結果をそのまま返す。

    Raises:
        LayoutError: focal_id の人物が存在しない場合
    """
    if options is None:
        options = LayoutOptions()

    problems = graph.dangling_references()
    if problems:
        log.warning(
            "存在しない人物への参照が %d 件あります（該当する関係は無視します）: %s",
            len(problems),
            "; ".join(problems),
        )

    if cache is not None:
        return cache.get_or_compute(graph, focal_id, options)
    return build_full_tree(graph, focal_id, options)
