"""``cutlassfetch resolve``: the build step.

Resolves CUTLASS and prints the export directives on stdout.  Exits 0 on
success; on failure prints a stage-tagged diagnostic on stderr and exits 1
so the dependent build aborts.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from cutlassfetch.config import Settings
from cutlassfetch.core.build_step import resolve_and_export
from cutlassfetch.errors import CutlassFetchError

err_console = Console(stderr=True)


def resolve_cmd(
    cache_dir: Path = typer.Option(
        None,
        "--cache-dir",
        "-c",
        help="Cache root (overrides CUTLASS_CACHE_DIR).",
    ),
    version: str = typer.Option(
        None,
        "--version",
        "-v",
        help="CUTLASS version to fetch (overrides CUTLASS_VERSION).",
    ),
    env_file: Path = typer.Option(
        None,
        "--env-file",
        "-e",
        help="Also append KEY=VALUE exports to this file.",
    ),
) -> None:
    """Fetch (or reuse) the pinned CUTLASS headers and export their location."""
    updates: dict[str, object] = {}
    if cache_dir is not None:
        updates["cache_dir"] = cache_dir
    if version is not None:
        updates["version"] = version
    if env_file is not None:
        updates["export_env_file"] = env_file
    try:
        settings = Settings().model_copy(update=updates)
    except ValidationError as exc:
        err_console.print(f"[bold red]Invalid CUTLASS_* configuration[/bold red]\n{escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    try:
        resolve_and_export(settings)
    except CutlassFetchError as exc:
        err_console.print(f"[bold red]cutlassfetch failed[/bold red] {escape(exc.describe())}")
        raise typer.Exit(code=1) from exc
