"""Transport protocol and helpers shared by the concrete transports.

A transport retrieves the CUTLASS tree for a ``VersionSpec`` into ``dest``.
It must leave ``dest`` either absent or fully populated: all work happens
in a private temporary directory next to ``dest`` which is renamed into
place only once the data is completely retrieved.
"""

from __future__ import annotations

import contextlib
import logging
import shutil
import uuid
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from cutlassfetch.errors import ExtractionError
from cutlassfetch.models.artifacts import TransportKind
from cutlassfetch.models.version import VersionSpec

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """Anything with a ``kind`` and a ``fetch(spec, dest, timeout=...)`` method."""

    kind: TransportKind

    def fetch(self, spec: VersionSpec, dest: Path, *, timeout: float) -> None:
        """Populate *dest* with the tree for *spec* or raise TransportError."""
        ...


@contextlib.contextmanager
def private_workdir(dest: Path, label: str) -> Iterator[Path]:
    """Yield a fresh directory beside *dest*, removed on exit."""
    work = dest.parent / f".{dest.name}.{label}-{uuid.uuid4().hex[:8]}"
    work.mkdir(parents=True)
    try:
        yield work
    finally:
        shutil.rmtree(work, ignore_errors=True)


def promote_tree(source: Path, dest: Path) -> None:
    """Rename a fully retrieved tree into *dest*.

    If *source* holds a single top-level directory (as GitHub archives do:
    ``cutlass-3.5.1/``), that directory becomes *dest*.
    """
    children = list(source.iterdir())
    if not children:
        raise ExtractionError(f"Retrieved tree is empty: {source}")
    root = source
    if len(children) == 1 and children[0].is_dir():
        root = children[0]
    if dest.exists():
        shutil.rmtree(dest)
    root.rename(dest)
    logger.debug("Promoted %s to %s", root, dest)
