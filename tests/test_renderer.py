from __future__ import annotations

import json
from pathlib import Path

import pytest
from PIL import Image

from family_tree_layout.canvas import PartnerLabel, TreeData, add_entity
from family_tree_layout.config import AppConfig
from family_tree_layout.csv_parser import parse_csv
from family_tree_layout.frame_drawer import LayoutDrawer, _dash_segments
from family_tree_layout.layout_engine import LayoutOptions, generate_layout
from family_tree_layout.models import (
    FamilyGraph,
    Gender,
    ParentSet,
    PartnerKind,
    Partnership,
    Person,
)
from family_tree_layout.renderer import layout_to_json, render_layout

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"


def _build_minimal_family() -> FamilyGraph:
    """太郎 -- 花子 の夫婦と子供2人。"""
    graph = FamilyGraph()
    graph.add_person(Person(id="P1", name="太郎", gender=Gender.MALE, spouse_id="P2", children=["C1", "C2"]))
    graph.add_person(Person(id="P2", name="花子", gender=Gender.FEMALE, spouse_id="P1", children=["C1", "C2"]))
    graph.persons["P1"].partners["P2"] = Partnership(kind=PartnerKind.MARRIED, marriage_date="19700101")
    graph.persons["P2"].partners["P1"] = Partnership(kind=PartnerKind.MARRIED, marriage_date="19700101")
    for i, cid in enumerate(("C1", "C2"), start=1):
        graph.add_person(
            Person(id=cid, name=f"子{i}", order=i, parent_sets=[ParentSet(mother_id="P2", father_id="P1")])
        )
    return graph


def _layout(graph: FamilyGraph) -> TreeData:
    return generate_layout(graph, "P1", LayoutOptions(child_depth=1))


class TestLayoutDrawer:
    def test_canvas_size(self) -> None:
        graph = _build_minimal_family()
        drawer = LayoutDrawer(_layout(graph), graph, AppConfig())
        # 幅2・高さ2のグリッド + 余白80px×2
        assert (drawer.canvas_width, drawer.canvas_height) == (640, 560)

    def test_to_pixel(self) -> None:
        graph = _build_minimal_family()
        drawer = LayoutDrawer(_layout(graph), graph, AppConfig())
        assert drawer.to_pixel(0, 0) == (440, 180)
        assert drawer.to_pixel(-1, 1) == (200, 380)

    def test_entity_at(self) -> None:
        """ピクセル座標から人物ボックスを逆引きできる。"""
        graph = _build_minimal_family()
        drawer = LayoutDrawer(_layout(graph), graph, AppConfig())
        assert drawer.entity_at(440, 180) == "P1"
        assert drawer.entity_at(200, 180) == "P2"
        assert drawer.entity_at(440, 380) == "C2"
        # ボックスの間の余白
        assert drawer.entity_at(320, 180) is None
        assert drawer.entity_at(0, 0) is None

    def test_entity_at_duplicate(self) -> None:
        """重複して描かれたボックスは元の人物IDを返す。"""
        graph = FamilyGraph()
        graph.add_person(Person(id="A", name="A"))
        tree = TreeData()
        add_entity(tree, "A", 0, 0)
        add_entity(tree, "A", 2, 0)
        drawer = LayoutDrawer(tree, graph, AppConfig())
        px, py = drawer.to_pixel(2, 0)
        assert drawer.entity_at(px, py) == "A"

    def test_draw(self) -> None:
        graph = _build_minimal_family()
        drawer = LayoutDrawer(_layout(graph), graph, AppConfig())
        img = drawer.draw()
        assert img.size == (640, 560)
        assert img.getpixel((0, 0)) == (245, 240, 232)

    def test_partner_label_text(self) -> None:
        graph = _build_minimal_family()
        drawer = LayoutDrawer(_layout(graph), graph, AppConfig())
        label = PartnerLabel("P1", "P2", 0, 2, 0, True)
        assert drawer.partner_label_text(label) == "1970年"

        graph.persons["P1"].partners["P2"].marriage_date = "B00440101"
        assert drawer.partner_label_text(label) == "前44年"

        graph.persons["P1"].partners["P2"] = Partnership(kind=PartnerKind.DATING)
        assert drawer.partner_label_text(label) == "交際"

        graph.persons["P1"].partners["P2"] = Partnership()
        assert drawer.partner_label_text(label) == ""

        assert drawer.partner_label_text(PartnerLabel("P1", "ghost", 0, 2, 0, True)) == ""


class TestDashSegments:
    def test_split(self) -> None:
        assert _dash_segments((0, 0), (30, 0), 10) == [((0, 0), (10, 0)), ((20, 0), (30, 0))]

    def test_zero_length(self) -> None:
        assert _dash_segments((5, 5), (5, 5), 10) == [((5, 5), (5, 5))]


class TestRenderLayout:
    def test_render_png(self, tmp_path: Path) -> None:
        graph = _build_minimal_family()
        output = tmp_path / "test.png"
        result = render_layout(_layout(graph), graph, output, fmt="png")
        assert result == output
        assert output.exists()
        with Image.open(output) as img:
            assert img.size == (640, 560)

    def test_render_json(self, tmp_path: Path) -> None:
        graph = _build_minimal_family()
        output = tmp_path / "test.json"
        render_layout(_layout(graph), graph, output, fmt="json")
        data = json.loads(output.read_text(encoding="utf-8"))
        assert data["bounds"]["width"] == 2
        assert data["entities"]["P1"]["focal"] is True
        assert sorted(n["type"] for n in data["lines"]) == ["B", "B", "B", "B", "S"]

    def test_layout_to_json_keeps_japanese(self) -> None:
        tree = TreeData()
        add_entity(tree, "太郎", 0, 0)
        assert "太郎" in layout_to_json(tree)

    def test_auto_create_directory(self, tmp_path: Path) -> None:
        """出力先ディレクトリが存在しない場合に自動作成される。"""
        graph = _build_minimal_family()
        output = tmp_path / "nested" / "dir" / "test.png"
        render_layout(_layout(graph), graph, output)
        assert output.exists()

    def test_unknown_format(self, tmp_path: Path) -> None:
        graph = _build_minimal_family()
        with pytest.raises(ValueError, match="未対応の出力形式"):
            render_layout(_layout(graph), graph, tmp_path / "test.svg", fmt="svg")

    def test_render_sample_csv_png(self, tmp_path: Path) -> None:
        """examples の CSV から祖先・兄弟を含めてPNGを出力できる。"""
        graph = parse_csv(EXAMPLES_DIR / "people.csv", EXAMPLES_DIR / "relationships.csv")
        tree = generate_layout(graph, "P3", LayoutOptions(child_depth=2, parent_depth=1, sibling_depth=1))
        assert {"P1", "P2", "P3", "P4", "P5", "P6", "P7", "P10", "P11"} <= set(tree.entities)
        output = tmp_path / "sample.png"
        render_layout(tree, graph, output, fmt="png")
        assert output.exists()
        assert output.stat().st_size > 0
