"""Materializer: seals a staged tree with its completeness marker.

The marker is the last thing written into a tree.  A process that dies
before writing it leaves a tree the cache treats as corrupt, so the next
run re-fetches instead of trusting half-extracted headers.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path

from pydantic import ValidationError

from cutlassfetch.errors import ExtractionError, StorageError
from cutlassfetch.models.artifacts import CompletenessMarker, StagingHandle, TransportKind
from cutlassfetch.models.version import VersionSpec

logger = logging.getLogger(__name__)

MARKER_NAME = ".cutlassfetch-complete.json"
EXPECTED_SUBPATH = "include"


def read_marker(tree: Path) -> CompletenessMarker | None:
    """Parse the completeness marker in *tree*, or None if absent/unreadable."""
    marker_path = Path(tree) / MARKER_NAME
    try:
        raw = marker_path.read_text(encoding="utf-8")
    except OSError:
        return None
    try:
        return CompletenessMarker.model_validate_json(raw)
    except ValidationError:
        logger.warning("Unreadable completeness marker at %s", marker_path)
        return None


class Materializer:
    """Verifies a staged tree and writes its completeness marker."""

    def __init__(self, expected_subpath: str = EXPECTED_SUBPATH) -> None:
        self._expected_subpath = expected_subpath

    def verify(self, tree: Path) -> None:
        """Raise ``ExtractionError`` unless *tree* holds the expected subpath."""
        if not (Path(tree) / self._expected_subpath).is_dir():
            raise ExtractionError(
                f"Retrieved tree has no {self._expected_subpath}/ directory: {tree}"
            )

    def finalize(
        self,
        handle: StagingHandle,
        spec: VersionSpec,
        transport: TransportKind,
    ) -> CompletenessMarker:
        """Verify the staged tree, then atomically write the marker into it."""
        tree = handle.tree_dir
        self.verify(tree)

        marker = CompletenessMarker(
            key=handle.key,
            version=spec.version,
            tag=spec.tag,
            transport=transport,
        )
        tmp = tree / f"{MARKER_NAME}.{uuid.uuid4().hex}.tmp"
        try:
            tmp.write_text(marker.model_dump_json(indent=2) + "\n", encoding="utf-8")
            os.replace(tmp, tree / MARKER_NAME)
        except OSError as exc:
            tmp.unlink(missing_ok=True)
            raise StorageError(f"Could not write completeness marker in {tree}: {exc}") from exc

        logger.debug("Sealed %s (%s via %s)", tree, spec.tag, transport.value)
        return marker
