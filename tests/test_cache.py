from __future__ import annotations

import pytest

from family_tree_layout.cache import LayoutCache, compute_data_signature
from family_tree_layout.layout_engine import LayoutError, LayoutOptions, generate_layout
from family_tree_layout.models import FamilyGraph, ParentSet, Partnership, Person


def _build_family() -> FamilyGraph:
    graph = FamilyGraph()
    graph.add_person(Person(id="A", name="A", spouse_id="B", partners={"B": Partnership()}, children=["C"]))
    graph.add_person(Person(id="B", name="B", spouse_id="A", partners={"A": Partnership()}, children=["C"]))
    graph.add_person(Person(id="C", name="C", parent_sets=[ParentSet(mother_id="B", father_id="A")]))
    return graph


class TestComputeDataSignature:
    def test_format(self) -> None:
        assert compute_data_signature(_build_family()) == "3|A:1:B:1::,B:1:A:1::,C:0::0:B:A"

    def test_changes_with_relationships(self) -> None:
        graph = _build_family()
        before = compute_data_signature(graph)
        graph.persons["C"].parent_sets[0].father_id = None
        assert compute_data_signature(graph) != before

    def test_empty(self) -> None:
        assert compute_data_signature(FamilyGraph()) == "0|"


class TestLayoutCache:
    def test_same_input_returns_same_tree(self) -> None:
        graph = _build_family()
        cache = LayoutCache()
        options = LayoutOptions(child_depth=2)
        first = generate_layout(graph, "A", options, cache)
        second = generate_layout(graph, "A", options, cache)
        assert first is second

    def test_without_cache_geometry_is_identical(self) -> None:
        """キャッシュなしでも同じ入力なら同じ配置になる。"""
        graph = _build_family()
        options = LayoutOptions(child_depth=2)
        first = generate_layout(graph, "A", options)
        second = generate_layout(graph, "A", options)
        assert first is not second
        assert first.to_dict() == second.to_dict()

    def test_recompute_on_change(self) -> None:
        graph = _build_family()
        cache = LayoutCache()
        options = LayoutOptions(child_depth=2)
        first = generate_layout(graph, "A", options, cache)

        assert generate_layout(graph, "A", LayoutOptions(child_depth=1), cache) is not first
        assert generate_layout(graph, "C", options, cache) is not first

        graph.add_person(Person(id="D", name="D"))
        assert generate_layout(graph, "A", options, cache) is not first

    def test_clear(self) -> None:
        graph = _build_family()
        cache = LayoutCache()
        options = LayoutOptions()
        first = cache.get_or_compute(graph, "A", options)
        cache.clear()
        assert cache.get_or_compute(graph, "A", options) is not first

    def test_unknown_focal(self) -> None:
        """存在しない中心人物は LayoutError になり、キャッシュも更新しない。"""
        graph = _build_family()
        cache = LayoutCache()
        options = LayoutOptions()
        first = cache.get_or_compute(graph, "A", options)
        with pytest.raises(LayoutError, match="ghost"):
            cache.get_or_compute(graph, "ghost", options)
        assert cache.get_or_compute(graph, "A", options) is first
