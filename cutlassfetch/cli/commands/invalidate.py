"""``cutlassfetch invalidate``: drop one cache entry so it is re-fetched."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from cutlassfetch.config import Settings
from cutlassfetch.core.cache_store import CacheStore
from cutlassfetch.core.orchestrator import resolve_version_spec
from cutlassfetch.errors import CutlassFetchError

console = Console()


def invalidate_cmd(
    version: str = typer.Option(
        None,
        "--version",
        "-v",
        help="Version whose entry to drop (defaults to the pinned version).",
    ),
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        "-c",
        help="Cache root (overrides CUTLASS_CACHE_DIR).",
    ),
) -> None:
    """Remove the cache entry for a version."""
    settings = Settings()
    if version is not None:
        settings = settings.model_copy(update={"version": version})
    try:
        spec = resolve_version_spec(settings)
        store = CacheStore(cache_dir or settings.resolve_cache_root())
        removed = store.invalidate(spec.cache_key, force=True)
    except CutlassFetchError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(exc.describe())}")
        raise typer.Exit(code=1) from exc

    if removed:
        console.print(f"[green]Removed[/green] {spec.cache_key} from {store.root}")
    else:
        console.print(f"[dim]No entry for {spec.cache_key} in {store.root}[/dim]")
