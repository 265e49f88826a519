"""``cutlassfetch status``: show what the cache holds."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from cutlassfetch.config import Settings
from cutlassfetch.core.cache_store import CacheStore
from cutlassfetch.core.materializer import read_marker
from cutlassfetch.models.artifacts import EntryState

console = Console()

_STATE_STYLES = {
    EntryState.COMPLETE: "[green]complete[/green]",
    EntryState.CORRUPT: "[red]corrupt[/red]",
    EntryState.STAGING: "[yellow]staging[/yellow]",
    EntryState.EMPTY: "[dim]empty[/dim]",
}


def status_cmd(
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        "-c",
        help="Cache root (overrides CUTLASS_CACHE_DIR).",
    ),
) -> None:
    """List cache entries, their state and how they were fetched."""
    settings = Settings()
    root = cache_dir or settings.resolve_cache_root()
    store = CacheStore(root)
    entries = store.entries()

    console.print(f"[bold]Cache root:[/bold] {store.root}")
    if not entries:
        console.print("[dim]No cached CUTLASS trees.[/dim]")
        return

    table = Table(title="CUTLASS cache")
    table.add_column("Key", style="cyan")
    table.add_column("State", justify="center")
    table.add_column("Via")
    table.add_column("Completed")
    table.add_column("Path", style="dim")

    for entry in entries:
        marker = read_marker(entry.root_dir)
        table.add_row(
            entry.key,
            _STATE_STYLES[entry.state],
            marker.transport.value if marker else "-",
            marker.completed_at.strftime("%Y-%m-%d %H:%M") if marker else "-",
            str(entry.root_dir),
        )
    console.print(table)
