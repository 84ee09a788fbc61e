"""Tagloom CLI entry point."""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

import click

from tagloom import __version__
from tagloom.errors import ConfigError

if TYPE_CHECKING:
    from tagloom.index.tag_index import IndexChange, TagIndex
    from tagloom.infrastructure.config import TagloomConfig

_PROJECT_OPTION = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Workspace root (default: current directory).",
)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__, prog_name="tagloom")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """Tagloom - #tag index for Markdown workspaces."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _load_config_or_exit(root: Path) -> TagloomConfig:
    from tagloom.infrastructure.config import load_config

    try:
        return load_config(root)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _build_index(project: Path | None) -> TagIndex:
    """Load config, then build a fresh index of *project* synchronously."""
    from tagloom.infrastructure.synchronizer import create_index

    root = (project or Path.cwd()).resolve()
    config = _load_config_or_exit(root)
    index = create_index(config)
    index.open(root)
    index.build_full()
    return index


@main.command()
@_PROJECT_OPTION
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Show only the top N tags.")
def tags(*, project: Path | None, output_json: bool, limit: int | None) -> None:
    """List every tag in the workspace, most used first."""
    index = _build_index(project)
    all_tags = index.get_all_tags()
    shown = all_tags[:limit] if limit is not None else all_tags

    if output_json:
        click.echo(json.dumps([dataclasses.asdict(t) for t in shown], indent=2, ensure_ascii=False))
        return

    if not all_tags:
        click.echo("No tags found.")
        return

    from rich.console import Console
    from rich.table import Table

    console = Console()
    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Tag", style="cyan")
    table.add_column("Count", justify="right")
    for info in shown:
        table.add_row(f"#{info.tag}", str(info.count))
    console.print(table)

    stats = index.stats()
    click.echo("")
    click.echo(f"{stats.tags} tags, {stats.paragraphs} paragraphs, {stats.files} files")


@main.command()
@click.argument("tag")
@_PROJECT_OPTION
@click.option("--json", "output_json", is_flag=True, help="Output as JSON.")
def show(*, tag: str, project: Path | None, output_json: bool) -> None:
    """Show the paragraphs tagged with TAG (with or without '#')."""
    index = _build_index(project)
    name = tag[1:] if tag.startswith("#") else tag
    locations = index.get_paragraphs_for_tag(name)

    if output_json:
        click.echo(
            json.dumps([dataclasses.asdict(loc) for loc in locations], indent=2, ensure_ascii=False)
        )
        return

    if not locations:
        click.echo(f"No paragraphs tagged #{name}.")
        return

    for loc in sorted(locations, key=lambda x: (x.relative_path, x.start_line)):
        click.echo(f"--- {loc.relative_path}:{loc.start_line + 1}-{loc.end_line + 1}")
        click.echo(loc.text)
        click.echo("")


@main.command()
@click.argument("prefix", default="")
@_PROJECT_OPTION
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Max suggestions.")
def complete(*, prefix: str, project: Path | None, limit: int | None) -> None:
    """Suggest tags starting with PREFIX (case-insensitive)."""
    index = _build_index(project)
    for info in index.complete_tags(prefix, limit=limit):
        click.echo(info.tag)


@main.command("watch")
@_PROJECT_OPTION
@click.option(
    "--debounce",
    default=None,
    type=click.IntRange(min=0),
    help="Quiet period in ms before a changed file is re-indexed (default: from config or 300).",
)
def watch_cmd(*, project: Path | None, debounce: int | None) -> None:
    """Watch the workspace and keep the tag index up to date.

    Added or changed files are re-indexed one by one; a deleted file
    triggers a full rebuild unless config.yml sets ``on_delete: remove``.
    """
    from rich.console import Console

    from tagloom.infrastructure.synchronizer import open_workspace
    from tagloom.infrastructure.watcher import format_time

    console = Console()
    root = (project or Path.cwd()).resolve()
    config = _load_config_or_exit(root)
    if debounce is not None:
        config = dataclasses.replace(config, stability_ms=debounce)

    def _report(change: IndexChange) -> None:
        stats = sync.index.stats()
        target = change.path or str(root)
        console.print(
            f"[dim]{format_time()}[/dim] "
            f"[green]{change.kind}[/green] {target} "
            f"({stats.tags} tags, {stats.paragraphs} paragraphs)"
        )

    console.print(f"[bold blue]Watching:[/bold blue] {root}")
    console.print(f"[dim]Debounce: {config.stability_ms}ms  |  Press Ctrl+C to stop[/dim]")
    console.print()

    sync = open_workspace(root, config=config)
    sync.subscribe(_report)
    try:
        while True:
            time.sleep(0.5)
    except KeyboardInterrupt:
        console.print("\n[yellow]Watch stopped.[/yellow]")
    finally:
        sync.close()
