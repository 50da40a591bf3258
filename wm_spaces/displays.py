"""
Rich-formatted output for the wm-spaces CLI.
"""

import json
from typing import List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .models import SpacesSnapshot
from .providers.base import PushNotifications, SpacesProvider


def display_snapshot(snapshot: SpacesSnapshot, console: Optional[Console] = None) -> None:
    """
    Display spaces and their windows as one table.

    Args:
        snapshot: Snapshot to display
        console: Rich console (optional, creates new if not provided)
    """
    if console is None:
        console = Console()

    console.print(
        f"\n[bold cyan]Spaces ({snapshot.provider})[/bold cyan] "
        f"[dim]{len(snapshot.spaces)} spaces, {snapshot.window_count} windows[/dim]\n"
    )

    table = Table()
    table.add_column("Space", style="bold")
    table.add_column("Display", justify="right")
    table.add_column("State")
    table.add_column("Window", justify="right", style="dim")
    table.add_column("App")
    table.add_column("Title")

    for space in snapshot.spaces:
        if space.is_active:
            state = "[green]active[/green]"
        elif space.is_visible:
            state = "[yellow]visible[/yellow]"
        else:
            state = "[dim]-[/dim]"

        name = str(space.id) if not space.label or space.label == str(space.id) else f"{space.id} ({space.label})"

        if not space.windows:
            table.add_row(name, str(space.display_index), state, "", "[dim](empty)[/dim]", "")
            continue

        for i, window in enumerate(space.windows):
            title = window.title or "[dim](no title)[/dim]"
            if window.is_focused:
                title = f"[bold green]{title}[/bold green]"
            table.add_row(
                name if i == 0 else "",
                str(space.display_index) if i == 0 else "",
                state if i == 0 else "",
                str(window.id),
                window.app_name or "unknown",
                title,
            )

    console.print(table)


def format_snapshot_json(snapshot: SpacesSnapshot) -> str:
    return json.dumps(snapshot.to_publish_dict(), indent=2)


def display_probe_results(results: List[Tuple[SpacesProvider, bool]], console: Optional[Console] = None) -> None:
    """Display backend reachability, marking the backend that would be selected."""
    if console is None:
        console = Console()

    table = Table(title="Window Manager Backends")
    table.add_column("Backend", style="bold")
    table.add_column("Executable")
    table.add_column("Reachable")
    table.add_column("Push")

    selected = next((provider.name for provider, ok in results if ok), None)
    for provider, ok in results:
        reachable = "[green]yes[/green]" if ok else "[red]no[/red]"
        if provider.name == selected:
            reachable += " [cyan](selected)[/cyan]"
        push = "yes" if isinstance(provider, PushNotifications) else "poll only"
        table.add_row(provider.name, getattr(provider, "executable", ""), reachable, push)

    console.print(table)
    if not results:
        console.print("[yellow]All backends are disabled in the config[/yellow]")
