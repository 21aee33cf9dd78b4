"""家族関係の分類と問い合わせ。

配偶者をどちら側に置くか、親子線を非生物学的（点線）にするか、
ある親にとっての「片親の子」「特定パートナーとの子」「兄弟」などを求める。
存在しない人物への参照は不在として扱う。
"""

from __future__ import annotations

from family_tree_layout.models import (
    MAX_PARENT_SETS,
    WEDDED_KINDS,
    FamilyGraph,
    ParentType,
    PartnerKind,
    Person,
)
from family_tree_layout.ordering import compare_gender, parse_date, sort_people

NON_BIOLOGICAL_TYPES = frozenset(
    {ParentType.ADOPTIVE, ParentType.FOSTER, ParentType.STEP, ParentType.GUARDIAN}
)

# 日付が同じ（または無い）ときの配偶者の優先度
_KIND_RANK = {
    PartnerKind.MARRIED: 0,
    PartnerKind.SEPARATED: 0,
    PartnerKind.DIVORCED: 0,
    PartnerKind.ANNULLED: 0,
    PartnerKind.ENGAGED: 1,
    PartnerKind.DATING: 2,
    PartnerKind.RELATIONSHIP: 2,
}


def get_parent_multiplier(graph: FamilyGraph, person_id: str | None) -> int:
    """子供の親セットで母として記録されるごとに -1、父として +1 を積算する。"""
    total = 0
    person = graph.get_person(person_id)
    if person is None:
        return total
    for child in graph.get_children(person.id):
        for slot in range(1, MAX_PARENT_SETS + 1):
            mother_id, father_id = child.parents(slot)
            if mother_id == person.id:
                total -= 1
            if father_id == person.id:
                total += 1
    return total


def get_spouse_side(graph: FamilyGraph, person_id: str, spouse_id: str | None) -> bool:
    """配偶者を右側に置くなら True を返す。

    親としての記録（父側が右）、性別、IDの文字列比較の順に判定する。
    """
    cm = get_parent_multiplier(graph, person_id) - get_parent_multiplier(graph, spouse_id)
    if not cm:
        cm = compare_gender(graph.get_person(person_id), graph.get_person(spouse_id))
    if cm:
        return cm < 0
    return person_id < spouse_id if spouse_id else False


def _explicit_type(person: Person, slot: int) -> ParentType | None:
    t = person.parent_type(slot)
    if t is None or t == ParentType.UNSPECIFIED:
        return None
    return t


def is_parent_set_non_bio(person: Person, slot: int) -> bool:
    """指定スロットの親子線を非生物学的として描くかどうか。

    種別が明示されていればそれに従う。無ければ、他のスロットが
    明示的に生物学的である場合に限り非生物学的とみなす。
    """
    t = _explicit_type(person, slot)
    if t is not None:
        return t in NON_BIOLOGICAL_TYPES
    return any(
        _explicit_type(person, other) == ParentType.BIOLOGICAL
        for other in range(1, MAX_PARENT_SETS + 1)
        if other != slot
    )


def is_non_biological(person: Person, parent_id: str | None) -> bool:
    """parent_id との親子線を非生物学的として描くかどうか。"""
    slot = person.slot_of(parent_id)
    if slot is None:
        return False
    return is_parent_set_non_bio(person, slot)


def is_current_partnership(graph: FamilyGraph, person_id: str | None, partner_id: str | None) -> bool:
    """互いに現在の配偶者として指し合っているかどうか。"""
    person = graph.get_person(person_id)
    partner = graph.get_person(partner_id)
    if person is None or partner is None:
        return False
    return person.spouse_id == partner.id and partner.spouse_id == person.id


def existing_parents(graph: FamilyGraph, person: Person, slot: int = 1) -> tuple[str | None, str | None]:
    """指定スロットの (母ID, 父ID) を、存在しない人物を None にして返す。"""
    mother_id, father_id = person.parents(slot)
    return (
        mother_id if mother_id in graph else None,
        father_id if father_id in graph else None,
    )


def has_existing_parents(graph: FamilyGraph, person: Person, slot: int = 1) -> bool:
    mother_id, father_id = existing_parents(graph, person, slot)
    return bool(mother_id or father_id)


def get_alone_children(graph: FamilyGraph, person_id: str) -> list[str]:
    """もう一方の親が記録されていない（または存在しない）子供を返す。"""
    alone: list[str] = []
    for child in graph.get_children(person_id):
        other = child.co_parent(person_id)
        if not (other and other in graph):
            alone.append(child.id)
    return sort_people(graph, alone)


def get_partner_children(graph: FamilyGraph, person_id: str, partner_id: str) -> list[str]:
    """person_id と partner_id が同じ親セットに記録されている子供を返す。"""
    shared = [
        child.id
        for child in graph.get_children(person_id)
        if child.slot_of(person_id) is not None and child.co_parent(person_id) == partner_id
    ]
    return sort_people(graph, shared)


def has_matching_parents(person: Person, mother_id: str | None, father_id: str | None) -> bool:
    """いずれかの親セットが (mother_id, father_id) の組と一致するかどうか（順不同）。"""
    for slot in range(1, MAX_PARENT_SETS + 1):
        m, f = person.parents(slot)
        if (m == mother_id and f == father_id) or (m == father_id and f == mother_id):
            return True
    return False


def get_siblings(graph: FamilyGraph, person_id: str, slot: int = 1) -> list[str]:
    """指定スロットの親と同じ親の組を持つ兄弟を返す。"""
    person = graph.get_person(person_id)
    if person is None:
        return []
    mother_id, father_id = person.parents(slot)
    candidates: dict[str, None] = {}
    for parent_id in (mother_id, father_id):
        if parent_id and parent_id in graph:
            for child in graph.get_children(parent_id):
                candidates[child.id] = None
    siblings = [
        cid
        for cid in candidates
        if cid != person_id and has_matching_parents(graph.persons[cid], mother_id, father_id)
    ]
    return sort_people(graph, siblings)


def _partnership_date(person: Person, partner_id: str) -> str | None:
    p = person.partners[partner_id]
    if p.kind in WEDDED_KINDS:
        return p.marriage_date
    if p.kind == PartnerKind.ENGAGED:
        return p.engagement_date
    if p.kind in (PartnerKind.DATING, PartnerKind.RELATIONSHIP):
        return p.begin_date
    return None


def get_sorted_partners(person: Person, exclude_id: str | None = None) -> list[str]:
    """exclude_id 以外のパートナーを関係の日付順に返す。

    日付は関係の種類で選ぶ（婚姻系は婚姻日、婚約は婚約日、交際は開始日）。
    日付が同じなら婚姻 > 婚約 > 交際、それも同じなら登録順。
    """
    entries = [pid for pid in person.partners if pid != exclude_id]
    position = {pid: i for i, pid in enumerate(entries)}

    def _key(partner_id: str) -> tuple[tuple[int, int, int, int], int, int]:
        kind = person.partners[partner_id].kind
        return (
            parse_date(_partnership_date(person, partner_id)).sort_key(),
            _KIND_RANK.get(kind, 3) if kind is not None else 3,
            position[partner_id],
        )

    return sorted(entries, key=_key)
