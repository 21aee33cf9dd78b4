import logging
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path

import click

from family_tree_layout.config import AppConfig, load_config
from family_tree_layout.csv_parser import CsvParseError, parse_csv
from family_tree_layout.layout_engine import LayoutError, LayoutOptions, generate_layout
from family_tree_layout.models import FamilyGraph
from family_tree_layout.renderer import layout_to_json, render_layout

_CONFIG_OPTION = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True),
    default=None,
    help="設定ファイルのパス（省略時はカレントディレクトリの config.toml を自動検索）",
)


def _input_options(func: Callable[..., None]) -> Callable[..., None]:
    """layout / render 共通のオプション。"""
    options = [
        click.option("--people", "people_path", required=True, help="人物表CSVファイルパス"),
        click.option("--relationships", "relationships_path", required=True, help="関係表CSVファイルパス"),
        click.option("--focal", "focal_id", default=None, help="中心人物のID（省略時は自動選択）"),
        click.option("--marked", "marked_id", default=None, help="強調表示する人物のID"),
        click.option("--child-depth", type=click.IntRange(min=0), default=None, help="子孫の世代数"),
        click.option("--parent-depth", type=click.IntRange(min=0), default=None, help="祖先の世代数"),
        click.option("--sibling-depth", type=click.IntRange(min=0), default=None, help="兄弟側の世代数"),
        click.option("--flip/--no-flip", default=None, help="左右を反転する"),
        _CONFIG_OPTION,
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _prepare(
    people_path: str,
    relationships_path: str,
    focal_id: str | None,
    marked_id: str | None,
    child_depth: int | None,
    parent_depth: int | None,
    sibling_depth: int | None,
    flip: bool | None,
    config_path: str | None,
) -> tuple[FamilyGraph, str, LayoutOptions, AppConfig]:
    """CSVと設定を読み込み、コマンドラインの指定で上書きした計算条件を返す。"""
    try:
        graph = parse_csv(people_path, relationships_path)
    except CsvParseError as e:
        raise click.ClickException(str(e))

    config = load_config(Path(config_path) if config_path else None)
    options = config.layout_options(marked_id)
    overrides = {
        key: value
        for key, value in (
            ("child_depth", child_depth),
            ("parent_depth", parent_depth),
            ("sibling_depth", sibling_depth),
            ("flip", flip),
        )
        if value is not None
    }
    options = replace(options, **overrides)

    if focal_id is None:
        focal_id = graph.find_root_person()
        if focal_id is None:
            raise click.ClickException("人物が1人も登録されていません")
    return graph, focal_id, options, config


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="詳細なログを出力する")
def cli(verbose: bool) -> None:
    """家系図レイアウトCLIアプリケーション"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@_input_options
@click.option("--output", "output_path", default=None, help="出力JSONファイルパス（省略時は標準出力）")
def layout(output_path: str | None, **kwargs) -> None:
    """レイアウト結果をJSONとして出力する"""
    graph, focal_id, options, _ = _prepare(**kwargs)
    try:
        tree = generate_layout(graph, focal_id, options)
    except LayoutError as e:
        raise click.ClickException(str(e))

    if output_path is None:
        click.echo(layout_to_json(tree))
        return
    result = render_layout(tree, graph, output_path, fmt="json")
    click.echo(f"出力しました: {result}")


@cli.command()
@_input_options
@click.option("--output", "output_path", required=True, help="出力PNGファイルパス")
def render(output_path: str, **kwargs) -> None:
    """家系図を画像として出力する"""
    graph, focal_id, options, config = _prepare(**kwargs)
    try:
        tree = generate_layout(graph, focal_id, options)
    except LayoutError as e:
        raise click.ClickException(str(e))

    result = render_layout(tree, graph, output_path, config=config, fmt="png")
    click.echo(f"出力しました: {result}")
