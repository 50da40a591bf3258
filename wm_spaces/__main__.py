"""
wm-spaces command-line interface.

Usage:
    wm-spaces run [--config PATH]
    wm-spaces query [--json]
    wm-spaces probe
    wm-spaces focus-space SPACE_ID [--focus-window]
    wm-spaces focus-window WINDOW_ID
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console

from . import daemon
from .config import SpacesConfig, load_config
from .displays import display_probe_results, display_snapshot, format_snapshot_json
from .errors import SpacesError
from .focus import FocusController
from .providers.selector import ProviderSelector


def _load(config_path: Optional[Path]) -> SpacesConfig:
    return load_config(config_path, strict=True)


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="WM_SPACES_CONFIG",
    help="Config file (default: ~/.config/wm-spaces/config.json)",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]):
    """Publish yabai / AeroSpace spaces and windows to a status bar."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.pass_context
def run(ctx: click.Context):
    """
    Run the daemon.

    Every snapshot is written to stdout as one JSON line; logs go to stderr
    (level from LOG_LEVEL).
    """
    daemon.main(ctx.obj["config_path"])


@cli.command()
@click.option("--json", "output_json", is_flag=True, help="Output JSON instead of a formatted table")
@click.pass_context
def query(ctx: click.Context, output_json: bool):
    """Fetch spaces and windows once through the selected backend."""
    console = Console()

    async def fetch():
        selected = await ProviderSelector(_load(ctx.obj["config_path"])).select()
        return await selected.fetch_snapshot()

    try:
        snapshot = asyncio.run(fetch())
    except SpacesError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        if e.suggestion:
            console.print(f"[dim]Tip: {e.suggestion}[/dim]")
        sys.exit(1)

    if output_json:
        click.echo(format_snapshot_json(snapshot))
    else:
        display_snapshot(snapshot, console)


@cli.command()
@click.pass_context
def probe(ctx: click.Context):
    """
    Show which backends are installed and reachable.

    Exit codes:
      0 - At least one backend reachable
      1 - No backend reachable
    """
    console = Console()

    try:
        results = asyncio.run(ProviderSelector(_load(ctx.obj["config_path"])).probe_all())
    except SpacesError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)

    display_probe_results(results, console)
    sys.exit(0 if any(ok for _, ok in results) else 1)


@cli.command("focus-space")
@click.argument("space_id")
@click.option("--focus-window", is_flag=True, help="Focus the first window if the space leaves none focused")
@click.pass_context
def focus_space(ctx: click.Context, space_id: str, focus_window: bool):
    """
    Focus a space.

    SPACE_ID: yabai space index or AeroSpace workspace name
    """
    console = Console()

    async def focus() -> None:
        selected = await ProviderSelector(_load(ctx.obj["config_path"])).select()
        followup = await FocusController(selected).request_focus_space(space_id, focus_window)
        if followup is not None:
            await followup

    try:
        asyncio.run(focus())
    except SpacesError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)


@cli.command("focus-window")
@click.argument("window_id", type=int)
@click.pass_context
def focus_window(ctx: click.Context, window_id: int):
    """Focus a window by window manager ID."""
    console = Console()

    async def focus() -> bool:
        selected = await ProviderSelector(_load(ctx.obj["config_path"])).select()
        return await FocusController(selected).request_focus_window(window_id)

    try:
        ok = asyncio.run(focus())
    except SpacesError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        sys.exit(1)

    if not ok:
        console.print(f"[red]Error: could not focus window {window_id}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
