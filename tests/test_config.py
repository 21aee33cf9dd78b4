from __future__ import annotations

from pathlib import Path

import pytest

from family_tree_layout.config import AppConfig, load_config
from family_tree_layout.layout_engine import LayoutOptions
from family_tree_layout.models import DisplayOptions

EXAMPLES_DIR = Path(__file__).resolve().parent.parent / "examples"


class TestAppConfigDefaults:
    def test_default_colors(self) -> None:
        cfg = AppConfig()
        assert cfg.colors.background == (245, 240, 232)
        assert cfg.colors.male_fill == (193, 216, 236)
        assert cfg.colors.female_fill == (253, 239, 242)
        assert cfg.colors.male_border == (46, 79, 111)
        assert cfg.colors.female_border == (142, 53, 74)
        assert cfg.colors.partner_line == (197, 61, 67)
        assert cfg.colors.child_line == (89, 88, 87)
        assert cfg.colors.text == (43, 43, 43)

    def test_default_dimensions(self) -> None:
        cfg = AppConfig()
        assert cfg.dimensions.box_width == 240
        assert cfg.dimensions.box_height == 200
        assert cfg.dimensions.padding == 80
        assert cfg.dimensions.corner_radius == 16
        assert cfg.dimensions.font_size_name == 22

    def test_default_layout(self) -> None:
        cfg = AppConfig()
        assert cfg.layout.child_depth == 3
        assert cfg.layout.parent_depth == 0
        assert cfg.layout.sibling_depth == 0
        assert cfg.layout.flip is False
        assert cfg.display == DisplayOptions()

    def test_layout_options(self) -> None:
        cfg = AppConfig()
        cfg.layout.parent_depth = 2
        cfg.display = DisplayOptions(wedding=True)
        assert cfg.layout_options("X") == LayoutOptions(
            child_depth=3,
            parent_depth=2,
            sibling_depth=0,
            flip=False,
            display=DisplayOptions(wedding=True),
            marked_id="X",
        )


class TestLoadConfigNone:
    def test_no_file_returns_defaults(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """config.toml が存在しないディレクトリでは AppConfig デフォルト値を返す。"""
        monkeypatch.chdir(tmp_path)
        cfg = load_config(None)
        assert isinstance(cfg, AppConfig)
        assert cfg.colors.background == (245, 240, 232)
        assert cfg.layout.child_depth == 3

    def test_auto_discover_config_toml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """カレントディレクトリに config.toml があれば自動で読み込む。"""
        monkeypatch.chdir(tmp_path)
        (tmp_path / "config.toml").write_text(
            "[layout]\nparent_depth = 2\n", encoding="utf-8"
        )
        cfg = load_config(None)
        assert cfg.layout.parent_depth == 2
        # 指定していないキーはデフォルト値
        assert cfg.layout.child_depth == 3


class TestLoadConfigPartial:
    def test_partial_colors(self, tmp_path: Path) -> None:
        """一部の色だけ上書きして残りはデフォルト値になる。"""
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[style.colors]\nbackground = [0, 0, 0]\n", encoding="utf-8"
        )
        cfg = load_config(toml)
        assert cfg.colors.background == (0, 0, 0)
        assert cfg.colors.male_fill == (193, 216, 236)  # デフォルト維持

    def test_partial_dimensions(self, tmp_path: Path) -> None:
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[style.dimensions]\nbox_width = 120\n", encoding="utf-8"
        )
        cfg = load_config(toml)
        assert cfg.dimensions.box_width == 120
        assert cfg.dimensions.padding == 80  # デフォルト維持

    def test_display(self, tmp_path: Path) -> None:
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[display]\nmarriage_dates = true\n", encoding="utf-8"
        )
        cfg = load_config(toml)
        assert cfg.display == DisplayOptions(marriage_dates=True)

    def test_empty_file(self, tmp_path: Path) -> None:
        """空ファイルはデフォルト値を返す。"""
        toml = tmp_path / "cfg.toml"
        toml.write_text("", encoding="utf-8")
        cfg = load_config(toml)
        assert cfg.colors.background == (245, 240, 232)

    def test_example_config(self) -> None:
        cfg = load_config(EXAMPLES_DIR / "config.toml")
        assert cfg.layout.parent_depth == 1
        assert cfg.layout.sibling_depth == 1
        assert cfg.display.marriage_dates is True
        assert cfg.display.wedding is False


class TestLoadConfigValidation:
    def test_rgb_wrong_length(self, tmp_path: Path) -> None:
        """RGB 配列が3要素でない場合は sys.exit(1) する。"""
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[style.colors]\nbackground = [1, 2]\n", encoding="utf-8"
        )
        with pytest.raises(SystemExit) as exc_info:
            load_config(toml)
        assert exc_info.value.code == 1

    def test_rgb_out_of_range(self, tmp_path: Path) -> None:
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[style.colors]\nbackground = [256, 0, 0]\n", encoding="utf-8"
        )
        with pytest.raises(SystemExit) as exc_info:
            load_config(toml)
        assert exc_info.value.code == 1

    def test_dimension_not_int(self, tmp_path: Path) -> None:
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[style.dimensions]\nbox_width = 240.5\n", encoding="utf-8"
        )
        with pytest.raises(SystemExit) as exc_info:
            load_config(toml)
        assert exc_info.value.code == 1

    def test_negative_depth(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """世代数が負の場合はエラーメッセージを出して sys.exit(1) する。"""
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[layout]\nchild_depth = -1\n", encoding="utf-8"
        )
        with pytest.raises(SystemExit) as exc_info:
            load_config(toml)
        assert exc_info.value.code == 1
        assert "layout.child_depth" in capsys.readouterr().err

    def test_depth_bool_rejected(self, tmp_path: Path) -> None:
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[layout]\nparent_depth = true\n", encoding="utf-8"
        )
        with pytest.raises(SystemExit):
            load_config(toml)

    def test_flag_not_bool(self, tmp_path: Path) -> None:
        toml = tmp_path / "cfg.toml"
        toml.write_text(
            "[display]\nwedding = \"yes\"\n", encoding="utf-8"
        )
        with pytest.raises(SystemExit) as exc_info:
            load_config(toml)
        assert exc_info.value.code == 1
