"""cutlassfetch CLI: Typer-based command-line interface.

Provides the ``cutlassfetch`` command: ``resolve`` (the build step),
``status`` and ``invalidate``.

Directive output goes to stdout; logs and diagnostics go to stderr via Rich.
"""
