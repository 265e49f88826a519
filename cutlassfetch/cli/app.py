"""Main Typer application: imports and registers all CLI commands.

Entry point: ``cutlassfetch`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from cutlassfetch.cli.commands.invalidate import invalidate_cmd
from cutlassfetch.cli.commands.resolve import resolve_cmd
from cutlassfetch.cli.commands.status import status_cmd

app = typer.Typer(
    name="cutlassfetch",
    help="cutlassfetch: fetch version-pinned NVIDIA CUTLASS headers at build time.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


def configure_logging(level: str) -> None:
    """Send package logs to stderr through Rich, keeping stdout for directives."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
    )
    root = logging.getLogger("cutlassfetch")
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    root.propagate = False


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        envvar="CUTLASS_LOG_LEVEL",
        help="Log level for messages on stderr.",
    ),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(log_level)


# Register subcommands
app.command(name="resolve", help="Resolve CUTLASS and export its paths.")(resolve_cmd)
app.command(name="status", help="Show cached CUTLASS trees.")(status_cmd)
app.command(name="invalidate", help="Drop a cache entry.")(invalidate_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
