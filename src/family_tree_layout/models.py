from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

# 読み取る親セットの最大数（それ以上のスロットは無視する）
MAX_PARENT_SETS = 3


class Gender(Enum):
    MALE = "m"
    FEMALE = "f"
    OTHER = "o"


class ParentType(Enum):
    """親子関係の種類。"""

    BIOLOGICAL = "b"
    ADOPTIVE = "a"
    FOSTER = "f"
    STEP = "s"
    GUARDIAN = "g"
    UNSPECIFIED = "u"


class PartnerKind(Enum):
    """パートナー関係の種類。"""

    MARRIED = "m"
    SEPARATED = "s"
    DIVORCED = "d"
    ANNULLED = "a"
    ENGAGED = "e"
    DATING = "o"
    RELATIONSHIP = "r"


# 婚姻を経た関係（婚姻日を持ちうる）
WEDDED_KINDS = frozenset(
    {PartnerKind.MARRIED, PartnerKind.SEPARATED, PartnerKind.DIVORCED, PartnerKind.ANNULLED}
)


@dataclass
class ParentSet:
    """1組の親（母・父・関係種別）。どちらの親も欠けていてよい。"""

    mother_id: str | None = None
    father_id: str | None = None
    type: ParentType | None = None


@dataclass
class Partnership:
    """パートナーごとの補助情報（種別と各種日付）。

    日付は YYYYMMDD 形式の文字列（紀元前は先頭に B）。
    """

    kind: PartnerKind | None = None
    marriage_date: str | None = None
    wedding: str | None = None
    divorce_date: str | None = None
    begin_date: str | None = None
    engagement_date: str | None = None


@dataclass
class Person:
    """個人情報を表すデータクラス。

    親セットは最大3組まで読み取る。未知のカラムは metadata 辞書に保持する。
    """

    id: str
    name: str
    gender: Gender = Gender.OTHER
    birth_date: str | None = None
    death_date: str | None = None
    parent_sets: list[ParentSet] = field(default_factory=list)
    children: list[str] = field(default_factory=list)
    partners: dict[str, Partnership] = field(default_factory=dict)
    spouse_id: str | None = None
    order: float | str | None = None
    index: int = 0
    metadata: dict[str, str] = field(default_factory=dict)

    def parent_set(self, slot: int) -> ParentSet | None:
        """1始まりのスロット番号に対応する親セットを返す。"""
        if slot < 1 or slot > MAX_PARENT_SETS or slot > len(self.parent_sets):
            return None
        return self.parent_sets[slot - 1]

    def parents(self, slot: int = 1) -> tuple[str | None, str | None]:
        """(母ID, 父ID) を返す。スロットが無ければ (None, None)。"""
        ps = self.parent_set(slot)
        if ps is None:
            return (None, None)
        return (ps.mother_id, ps.father_id)

    def parent_type(self, slot: int) -> ParentType | None:
        ps = self.parent_set(slot)
        return ps.type if ps is not None else None

    def has_parents(self, slot: int = 1) -> bool:
        mother_id, father_id = self.parents(slot)
        return bool(mother_id or father_id)

    def in_slot(self, parent_id: str | None, slot: int) -> bool:
        """parent_id が指定スロットの母または父かどうか。"""
        if parent_id is None:
            return False
        return parent_id in self.parents(slot)

    def slot_of(self, parent_id: str | None) -> int | None:
        """parent_id を含む最初のスロット番号を返す。"""
        for slot in range(1, MAX_PARENT_SETS + 1):
            if self.in_slot(parent_id, slot):
                return slot
        return None

    def co_parent(self, parent_id: str) -> str | None:
        """parent_id と同じ親セットに記録されたもう一方の親を返す。"""
        slot = self.slot_of(parent_id)
        if slot is None:
            return None
        mother_id, father_id = self.parents(slot)
        return father_id if mother_id == parent_id else mother_id


@dataclass(frozen=True)
class DisplayOptions:
    """配偶者間隔を広げる注記の表示設定。"""

    marriage_dates: bool = False
    wedding: bool = False
    divorce_dates: bool = False


@dataclass
class FamilyGraph:
    """家族全体を管理するデータクラス（person_id -> Person）。"""

    persons: dict[str, Person] = field(default_factory=dict)

    def __contains__(self, person_id: object) -> bool:
        return person_id in self.persons

    def __len__(self) -> int:
        return len(self.persons)

    def add_person(self, person: Person) -> None:
        self.persons[person.id] = person

    def get_person(self, person_id: str | None) -> Person | None:
        if person_id is None:
            return None
        return self.persons.get(person_id)

    def get_children(self, person_id: str) -> list[Person]:
        """指定された人物の子供を返す（存在しないIDは除く）。"""
        person = self.persons.get(person_id)
        if person is None:
            return []
        return [self.persons[cid] for cid in person.children if cid in self.persons]

    def get_parents(self, person_id: str, slot: int = 1) -> list[Person]:
        """指定された人物の親（指定スロット）を返す。"""
        person = self.persons.get(person_id)
        if person is None:
            return []
        return [
            self.persons[pid]
            for pid in person.parents(slot)
            if pid is not None and pid in self.persons
        ]

    def get_spouse(self, person_id: str) -> Person | None:
        """指定された人物の現在の配偶者を返す。"""
        person = self.persons.get(person_id)
        if person is None or person.spouse_id is None:
            return None
        return self.persons.get(person.spouse_id)

    def find_root_person(self) -> str | None:
        """描画の起点として適切な人物を選ぶ。

        両親が揃っている人物、片親のいる人物、親のいない人物の順に優先する。
        """
        ids = list(self.persons)
        for pid in ids:
            mother_id, father_id = self.persons[pid].parents(1)
            if mother_id and father_id:
                return pid
        for pid in ids:
            if self.persons[pid].has_parents(1):
                return pid
        return ids[0] if ids else None

    def dangling_references(self) -> list[str]:
        """存在しない人物を指す参照を説明文のリストとして返す。"""
        problems: list[str] = []
        for person in self.persons.values():
            for slot in range(1, MAX_PARENT_SETS + 1):
                for pid in person.parents(slot):
                    if pid is not None and pid not in self.persons:
                        problems.append(f"{person.id}: 親ID {pid} (セット{slot}) が存在しません")
            for cid in person.children:
                if cid not in self.persons:
                    problems.append(f"{person.id}: 子ID {cid} が存在しません")
            for partner_id in person.partners:
                if partner_id not in self.persons:
                    problems.append(f"{person.id}: パートナーID {partner_id} が存在しません")
            if person.spouse_id is not None and person.spouse_id not in self.persons:
                problems.append(f"{person.id}: 配偶者ID {person.spouse_id} が存在しません")
        return problems
