"""人物表と関係表の2つのCSVを読み込み、FamilyGraph を組み立てる。

people.csv:
    id, name, gender（必須）/ birth_date, death_date, order（任意）
    それ以外の空でないカラムは Person.metadata に入れる。

relationships.csv:
    type, person1_id, person2_id（必須）
    parent_type, parent_set, kind, marriage_date, wedding, divorce_date,
    begin_date, engagement_date（任意）

type は parent-child（person1 が親、person2 が子）、partner、sibling のいずれか。
"""

from __future__ import annotations

import csv
import math
import re
from dataclasses import replace
from pathlib import Path

from family_tree_layout.models import (
    MAX_PARENT_SETS,
    FamilyGraph,
    Gender,
    ParentSet,
    ParentType,
    PartnerKind,
    Partnership,
    Person,
)

PEOPLE_REQUIRED_COLUMNS = {"id", "name", "gender"}
PEOPLE_OPTIONAL_COLUMNS = {"birth_date", "death_date", "order"}
RELATIONSHIP_REQUIRED_COLUMNS = {"type", "person1_id", "person2_id"}

_GENDERS = {
    "m": Gender.MALE,
    "male": Gender.MALE,
    "男": Gender.MALE,
    "f": Gender.FEMALE,
    "female": Gender.FEMALE,
    "女": Gender.FEMALE,
    "o": Gender.OTHER,
    "other": Gender.OTHER,
    "": Gender.OTHER,
}

_PARENT_TYPES = {
    **{t.value: t for t in ParentType},
    "biological": ParentType.BIOLOGICAL,
    "adoptive": ParentType.ADOPTIVE,
    "foster": ParentType.FOSTER,
    "step": ParentType.STEP,
    "guardian": ParentType.GUARDIAN,
    "unspecified": ParentType.UNSPECIFIED,
}

_PARTNER_KINDS = {
    **{k.value: k for k in PartnerKind},
    "married": PartnerKind.MARRIED,
    "separated": PartnerKind.SEPARATED,
    "divorced": PartnerKind.DIVORCED,
    "annulled": PartnerKind.ANNULLED,
    "engaged": PartnerKind.ENGAGED,
    "dating": PartnerKind.DATING,
    "relationship": PartnerKind.RELATIONSHIP,
}

_DATE_RE = re.compile(r"^B?\d{8}$")


class CsvParseError(Exception):
    """CSV読み込み時のエラー。"""


def parse_csv(people_path: str | Path, relationships_path: str | Path) -> FamilyGraph:
    """人物表と関係表を読み込み、FamilyGraph を返す。

    Args:
        people_path: 人物表CSVのパス
        relationships_path: 関係表CSVのパス

    Returns:
        FamilyGraph オブジェクト

    Raises:
        CsvParseError: CSV読み込み・バリデーションエラー
    """
    people_rows, people_headers = _read_rows(Path(people_path))
    _validate_columns(people_headers, PEOPLE_REQUIRED_COLUMNS, Path(people_path))
    extra_columns = people_headers - PEOPLE_REQUIRED_COLUMNS - PEOPLE_OPTIONAL_COLUMNS

    graph = FamilyGraph()
    for i, row in enumerate(people_rows, start=2):  # ヘッダー行が1行目
        try:
            person = _parse_person(row, extra_columns, index=i - 2)
        except (ValueError, KeyError) as e:
            raise CsvParseError(f"{i}行目: {e}") from e
        if person.id in graph:
            raise CsvParseError(f"{i}行目: IDが重複しています: {person.id}")
        graph.add_person(person)

    rel_rows, rel_headers = _read_rows(Path(relationships_path))
    _validate_columns(rel_headers, RELATIONSHIP_REQUIRED_COLUMNS, Path(relationships_path))
    _apply_relationships(graph, rel_rows)
    return graph


def _read_rows(path: Path) -> tuple[list[dict[str, str]], set[str]]:
    if not path.exists():
        raise CsvParseError(f"ファイルが見つかりません: {path}")

    with path.open(encoding="utf-8") as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None:
            raise CsvParseError(f"CSVファイルが空です: {path}")
        headers = {h.strip() for h in reader.fieldnames}
        rows = [
            {k.strip(): (v or "").strip() for k, v in row.items() if k is not None}
            for row in reader
        ]
    return rows, headers


def _validate_columns(headers: set[str], required: set[str], path: Path) -> None:
    """必須カラムの存在を確認する。"""
    missing = required - headers
    if missing:
        raise CsvParseError(f"{path.name}: 必須カラムが不足しています: {', '.join(sorted(missing))}")


def normalize_date(value: str) -> str | None:
    """YYYY-MM-DD / YYYYMMDD / BYYYYMMDD を YYYYMMDD 形式にそろえる。空なら None。"""
    value = value.strip()
    if not value:
        return None
    compact = value.replace("-", "")
    if not _DATE_RE.match(compact):
        raise ValueError(f"不正な日付です: {value}")
    return compact


def _parse_person(row: dict[str, str], extra_columns: set[str], index: int) -> Person:
    """1行のCSVデータをPersonオブジェクトに変換する。"""
    person_id = row["id"]
    if not person_id:
        raise ValueError("IDが空です")
    name = row["name"]
    if not name:
        raise ValueError("名前が空です")

    gender_str = row["gender"].lower()
    if gender_str not in _GENDERS:
        raise ValueError(f"不正な性別値です: {row['gender']}")

    order_str = row.get("order", "")
    order: float | None = None
    if order_str:
        try:
            order = float(order_str)
        except ValueError:
            raise ValueError(f"並び順は数値で指定してください: {order_str}")
        if not math.isfinite(order):
            raise ValueError(f"並び順は有限の数値で指定してください: {order_str}")

    metadata = {col: row[col] for col in sorted(extra_columns) if row.get(col)}

    return Person(
        id=person_id,
        name=name,
        gender=_GENDERS[gender_str],
        birth_date=normalize_date(row.get("birth_date", "")),
        death_date=normalize_date(row.get("death_date", "")),
        order=order,
        index=index,
        metadata=metadata,
    )


# ---------------------------------------------------------------------------
# 関係表
# ---------------------------------------------------------------------------


def _apply_relationships(graph: FamilyGraph, rows: list[dict[str, str]]) -> None:
    """関係表の各行を人物に反映する。

    存在しない人物への参照はまとめて1つのエラーとして報告する。
    兄弟の行は親子・パートナーの行をすべて反映した後に処理する。
    """
    errors: list[str] = []
    siblings: list[tuple[str, str]] = []

    for i, row in enumerate(rows, start=2):
        rel_type = row["type"].lower()
        p1, p2 = row["person1_id"], row["person2_id"]

        missing = [pid for pid in (p1, p2) if pid not in graph]
        if missing:
            errors.extend(f"{i}行目: 人物ID {pid} が存在しません" for pid in missing)
            continue
        if p1 == p2:
            raise CsvParseError(f"{i}行目: 同じ人物同士の関係は指定できません: {p1}")

        try:
            if rel_type == "parent-child":
                _add_parent_child(graph, p1, p2, row)
            elif rel_type == "partner":
                _add_partner(graph, p1, p2, row)
            elif rel_type == "sibling":
                siblings.append((p1, p2))
            else:
                raise ValueError(f"不明な関係の種類です: {row['type']}")
        except ValueError as e:
            raise CsvParseError(f"{i}行目: {e}") from e

    if errors:
        raise CsvParseError("参照整合性エラー:\n" + "\n".join(f"  - {e}" for e in errors))

    for p1, p2 in siblings:
        _add_sibling(graph, p1, p2)

    for person in graph.persons.values():
        person.spouse_id = _primary_spouse(person)


def _parent_set_slot(value: str) -> int:
    if not value:
        return 1
    try:
        slot = int(value)
    except ValueError:
        raise ValueError(f"親セット番号は整数で指定してください: {value}")
    if not 1 <= slot <= MAX_PARENT_SETS:
        raise ValueError(f"親セット番号は 1〜{MAX_PARENT_SETS} で指定してください: {value}")
    return slot


def _add_parent_child(graph: FamilyGraph, parent_id: str, child_id: str, row: dict[str, str]) -> None:
    """親子関係を登録する。女性は母、男性は父、それ以外は空いている方に入れる。"""
    parent = graph.persons[parent_id]
    child = graph.persons[child_id]
    slot = _parent_set_slot(row.get("parent_set", ""))

    type_str = row.get("parent_type", "").lower()
    if type_str and type_str not in _PARENT_TYPES:
        raise ValueError(f"不正な親子関係の種類です: {row['parent_type']}")

    while len(child.parent_sets) < slot:
        child.parent_sets.append(ParentSet())
    ps = child.parent_sets[slot - 1]

    if parent.gender == Gender.FEMALE:
        role = "mother"
    elif parent.gender == Gender.MALE:
        role = "father"
    else:
        role = "mother" if ps.mother_id in (None, parent_id) else "father"

    current = getattr(ps, f"{role}_id")
    if current not in (None, parent_id):
        label = "母" if role == "mother" else "父"
        raise ValueError(f"{child_id} の親セット{slot}の{label}はすでに {current} です")
    setattr(ps, f"{role}_id", parent_id)
    if type_str:
        ps.type = _PARENT_TYPES[type_str]

    if child_id not in parent.children:
        parent.children.append(child_id)


def _add_partner(graph: FamilyGraph, p1: str, p2: str, row: dict[str, str]) -> None:
    kind_str = row.get("kind", "").lower()
    if kind_str and kind_str not in _PARTNER_KINDS:
        raise ValueError(f"不正なパートナー関係の種類です: {row['kind']}")

    partnership = Partnership(
        kind=_PARTNER_KINDS[kind_str] if kind_str else None,
        marriage_date=normalize_date(row.get("marriage_date", "")),
        wedding=row.get("wedding") or None,
        divorce_date=normalize_date(row.get("divorce_date", "")),
        begin_date=normalize_date(row.get("begin_date", "")),
        engagement_date=normalize_date(row.get("engagement_date", "")),
    )
    graph.persons[p1].partners[p2] = partnership
    graph.persons[p2].partners[p1] = replace(partnership)


def _add_sibling(graph: FamilyGraph, p1: str, p2: str) -> None:
    """片方だけに第1親セットがあれば、もう片方にも同じ親を設定する。"""
    a = graph.persons[p1]
    b = graph.persons[p2]
    if a.has_parents(1) and not b.has_parents(1):
        source, target = a, b
    elif b.has_parents(1) and not a.has_parents(1):
        source, target = b, a
    else:
        return

    src = source.parent_sets[0]
    if target.parent_sets:
        target.parent_sets[0] = replace(src)
    else:
        target.parent_sets.append(replace(src))
    for parent_id in (src.mother_id, src.father_id):
        if parent_id is not None and target.id not in graph.persons[parent_id].children:
            graph.persons[parent_id].children.append(target.id)


def _primary_spouse(person: Person) -> str | None:
    """婚姻中（種類未指定を含む）の最初のパートナー、いなければ最初のパートナー。"""
    for partner_id, partnership in person.partners.items():
        if partnership.kind in (None, PartnerKind.MARRIED):
            return partner_id
    return next(iter(person.partners), None)
