"""日付の解析と人物の並び順の比較。

兄弟・子供の左右の並びや配偶者の順序はすべてここの比較関数で決まる。
日付が無い、または不正な場合は例外を送出せず「日付なし」として末尾に並べる。
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Iterable

from family_tree_layout.models import FamilyGraph, Gender, Person

# YYYYMMDD（紀元前は先頭に B）
_DATE_RE = re.compile(r"^(B?)(\d{4})(\d{2})(\d{2})$")

# 並び順が不明な人物のキー（既知のキーより後ろ）
UNKNOWN_ORDER = float("inf")


@dataclass(frozen=True)
class ParsedDate:
    """年・月・日に分解した日付。日付なしの場合は全て None。"""

    year: int | None = None
    month: int | None = None
    day: int | None = None

    @property
    def is_empty(self) -> bool:
        return self.year is None

    def sort_key(self) -> tuple[int, int, int, int]:
        if self.year is None:
            return (1, 0, 0, 0)
        return (0, self.year, self.month or 0, self.day or 0)


def parse_date(value: str | None) -> ParsedDate:
    """YYYYMMDD 形式の文字列を年・月・日に分解する。

    先頭の ``B`` は紀元前を表し、年を負にする。
    None や不正な文字列は日付なし（ParsedDate()）を返す。
    """
    if not isinstance(value, str):
        return ParsedDate()
    m = _DATE_RE.match(value.strip())
    if m is None:
        return ParsedDate()
    year = int(m.group(2))
    if m.group(1):
        year = -year
    return ParsedDate(year=year, month=int(m.group(3)), day=int(m.group(4)))


def compare_date(d1: ParsedDate, d2: ParsedDate) -> int:
    """日付を比較する。日付なしは全ての日付より後ろ。"""
    k1 = d1.sort_key()
    k2 = d2.sort_key()
    if k1 < k2:
        return -1
    if k1 > k2:
        return 1
    return 0


def has_actual_date(value: str | None) -> bool:
    """年または月が0でない日付かどうか。"""
    d = parse_date(value)
    return bool(d.month or d.year)


def _numeric_order(order: float | str | None) -> float | None:
    if order is None or isinstance(order, bool):
        return None
    try:
        value = float(order)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def get_person_order(person: Person, prefer_custom_order: bool = False) -> float | None:
    """並べ替え用の数値キーを返す。

    誕生日があり prefer_custom_order が False なら year*10000+month*100+day、
    そうでなければ数値の並び順フィールド、どちらも無ければ None。
    """
    d = parse_date(person.birth_date)
    if not prefer_custom_order and d.year:
        return float(d.year * 10000 + (d.month or 0) * 100 + (d.day or 0))
    return _numeric_order(person.order)


def compare_people(p1: Person, p2: Person) -> int:
    """人物を比較する（誕生日 → 並び順 → 登録順 → ID）。"""
    b1 = get_person_order(p1)
    b2 = get_person_order(p2)
    if b1 == b2:
        b1 = get_person_order(p1, True)
        b2 = get_person_order(p2, True)

    k1 = UNKNOWN_ORDER if b1 is None else b1
    k2 = UNKNOWN_ORDER if b2 is None else b2
    if k1 != k2:
        return -1 if k1 < k2 else 1

    if p1.index != p2.index:
        return -1 if p1.index < p2.index else 1
    if p1.id != p2.id:
        return -1 if p1.id < p2.id else 1
    return 0


def sort_people(graph: FamilyGraph, person_ids: Iterable[str]) -> list[str]:
    """存在する人物IDだけを compare_people の順に並べて返す。"""
    persons = [graph.persons[pid] for pid in person_ids if pid in graph.persons]
    persons.sort(key=cmp_to_key(compare_people))
    return [p.id for p in persons]


def _gender_multiplier(person: Person | None) -> int:
    if person is None:
        return 0
    if person.gender == Gender.FEMALE:
        return -1
    if person.gender == Gender.MALE:
        return 1
    return 0


def compare_gender(p1: Person | None, p2: Person | None) -> int:
    """女性を左、男性を右に置くための比較値。性別不明は0として扱う。"""
    return _gender_multiplier(p1) - _gender_multiplier(p2)
