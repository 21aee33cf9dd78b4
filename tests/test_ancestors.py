from __future__ import annotations

from family_tree_layout.ancestors import build_ancestor_tree, split_siblings
from family_tree_layout.canvas import LineType, TreeData, add_entity
from family_tree_layout.descendants import LayoutContext
from family_tree_layout.layout_engine import LayoutOptions, generate_layout
from family_tree_layout.models import FamilyGraph, Gender, ParentSet, PartnerKind, Partnership, Person


def _make_person(pid: str, gender: Gender = Gender.OTHER, birth_date: str | None = None) -> Person:
    return Person(id=pid, name=pid, gender=gender, birth_date=birth_date)


def _graph(*persons: Person) -> FamilyGraph:
    graph = FamilyGraph()
    for p in persons:
        graph.add_person(p)
    return graph


def _parent(graph: FamilyGraph, child_id: str, mother_id: str | None, father_id: str | None) -> None:
    graph.persons[child_id].parent_sets.append(ParentSet(mother_id=mother_id, father_id=father_id))
    for pid in (mother_id, father_id):
        if pid is not None and pid in graph and child_id not in graph.persons[pid].children:
            graph.persons[pid].children.append(child_id)


def _partner(graph: FamilyGraph, a: str, b: str) -> None:
    graph.persons[a].partners[b] = Partnership(kind=PartnerKind.MARRIED)
    graph.persons[b].partners[a] = Partnership(kind=PartnerKind.MARRIED)
    graph.persons[a].spouse_id = b
    graph.persons[b].spouse_id = a


def _three_generations() -> FamilyGraph:
    """F の両親 M, P と、P の両親 GM, GF。"""
    graph = _graph(
        _make_person("F", Gender.MALE, "19700101"),
        _make_person("M", Gender.FEMALE, "19450101"),
        _make_person("P", Gender.MALE, "19400101"),
        _make_person("GM", Gender.FEMALE, "19150101"),
        _make_person("GF", Gender.MALE, "19100101"),
    )
    _partner(graph, "M", "P")
    _partner(graph, "GM", "GF")
    _parent(graph, "F", "M", "P")
    _parent(graph, "P", "GM", "GF")
    return graph


def _pos(tree: TreeData, key: str) -> tuple[float, float]:
    e = tree.entities[key]
    return (e.x, e.y)


class TestBuildAncestorTree:
    def test_parents_centered(self) -> None:
        graph = _three_generations()
        d = build_ancestor_tree(LayoutContext(graph=graph), "F", 1, None, True)
        assert "F" not in d.entities
        assert _pos(d, "M") == (-0.5, -1)
        assert _pos(d, "P") == (0.5, -1)
        assert any(n.type == LineType.SPOUSE and n.y1 == -1 for n in d.lines)

    def test_visited_person_gets_stub(self) -> None:
        graph = _three_generations()
        ctx = LayoutContext(graph=graph)
        ctx.visited.ancestors.add("F")
        d = build_ancestor_tree(ctx, "F", 3, None, True)
        assert d.entities == {}
        assert [(n.y1, n.y2, n.type) for n in d.lines] == [(-0.4, 0, LineType.BIOLOGICAL_STUB)]

    def test_cycle_terminates(self) -> None:
        """祖先に循環があっても展開済みの人物で打ち切る。"""
        graph = _three_generations()
        _parent(graph, "GF", None, "P")
        d = build_ancestor_tree(LayoutContext(graph=graph), "F", 10, None, True)
        assert "GF" in d.entities
        assert "P" in d.entities


class TestSplitSiblings:
    def test_older_left_younger_right(self) -> None:
        graph = _graph(
            _make_person("X", birth_date="19800101"),
            _make_person("Old", birth_date="19700101"),
            _make_person("Young1", birth_date="19850101"),
            _make_person("Young2", birth_date="19900101"),
        )
        ctx = LayoutContext(graph=graph)
        d = TreeData()
        add_entity(d, "X", 0, 0)
        split = split_siblings(ctx, d, graph.persons["X"], ["Old", "Young1", "Young2"], 0, None, 0)
        assert split.positions == {"Old": -1, "Young1": 1, "Young2": 2}
        assert (split.left_x, split.right_x) == (-1, 2)
        assert (split.left_count, split.right_count) == (1, 2)

    def test_forced_direction(self) -> None:
        graph = _graph(_make_person("X", birth_date="19800101"), _make_person("Old", birth_date="19700101"))
        ctx = LayoutContext(graph=graph)
        d = TreeData()
        add_entity(d, "X", 0, 0)
        split = split_siblings(ctx, d, graph.persons["X"], ["Old"], 0, True, 0)
        assert split.positions == {"Old": 1}
        assert split.left_count == 0


class TestAncestorLayout:
    def test_grandparents(self) -> None:
        graph = _three_generations()
        tree = generate_layout(graph, "F", LayoutOptions(child_depth=1, parent_depth=2))
        assert _pos(tree, "F") == (0, 0)
        assert _pos(tree, "M") == (-0.5, -1)
        assert _pos(tree, "P") == (0.5, -1)
        assert _pos(tree, "GM") == (0, -2)
        assert _pos(tree, "GF") == (1, -2)

    def test_grandparents_cut_off(self) -> None:
        """表示しない祖父母は親から上向きの点線で示す。"""
        graph = _three_generations()
        tree = generate_layout(graph, "F", LayoutOptions(child_depth=1, parent_depth=1))
        assert "GM" not in tree.entities
        assert any(
            (n.x1, n.y1, n.x2, n.y2) == (0.5, -1, 0.5, -1.4) and n.type == LineType.BIOLOGICAL_STUB
            for n in tree.lines
        )

    def test_parent_sibling(self) -> None:
        graph = _three_generations()
        graph.add_person(_make_person("U", Gender.MALE, "19500101"))
        _parent(graph, "U", "GM", "GF")
        tree = generate_layout(graph, "F", LayoutOptions(child_depth=1, parent_depth=2, sibling_depth=1))
        assert _pos(tree, "U") == (1.5, -1)
        assert _pos(tree, "GM") == (0.5, -2)
        assert _pos(tree, "GF") == (1.5, -2)

    def test_ancestor_cycle_terminates(self) -> None:
        graph = _three_generations()
        _parent(graph, "GF", None, "P")
        tree = generate_layout(graph, "F", LayoutOptions(child_depth=1, parent_depth=10))
        assert "GF" in tree.entities

    def test_siblings_and_their_families(self) -> None:
        """兄弟は年上を左、年下を右に並べ、部分木が重ならないよう詰める。"""
        graph = _graph(
            _make_person("F", Gender.MALE, "19700101"),
            _make_person("W", Gender.FEMALE, "19720101"),
            _make_person("K1", birth_date="19950101"),
            _make_person("K2", birth_date="19970101"),
            _make_person("S1", Gender.FEMALE, "19650101"),
            _make_person("H1", Gender.MALE, "19640101"),
            _make_person("J", birth_date="19900101"),
            _make_person("S2", Gender.MALE, "19750101"),
            _make_person("S3", Gender.FEMALE, "19780101"),
            _make_person("M", Gender.FEMALE, "19450101"),
            _make_person("P", Gender.MALE, "19400101"),
        )
        _partner(graph, "F", "W")
        _partner(graph, "S1", "H1")
        _partner(graph, "M", "P")
        _parent(graph, "K1", "W", "F")
        _parent(graph, "K2", "W", "F")
        _parent(graph, "J", "S1", "H1")
        for child in ("F", "S1", "S2", "S3"):
            _parent(graph, child, "M", "P")

        tree = generate_layout(
            graph, "F", LayoutOptions(child_depth=1, parent_depth=1, sibling_depth=1)
        )
        expected = {
            "S1": (-3, 0),
            "H1": (-2, 0),
            "J": (-2.5, 1),
            "W": (-1, 0),
            "F": (0, 0),
            "K1": (-1, 1),
            "K2": (0, 1),
            "S2": (1, 0),
            "S3": (2, 0),
            "M": (-1, -1),
            "P": (0, -1),
        }
        assert {key: _pos(tree, key) for key in expected} == expected

        rows: dict[float, list[float]] = {}
        for e in tree.entities.values():
            rows.setdefault(e.y, []).append(e.x)
        for xs in rows.values():
            xs.sort()
            assert all(b - a >= 1 for a, b in zip(xs, xs[1:]))
