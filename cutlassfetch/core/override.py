"""Local override: a user-supplied CUTLASS tree that bypasses all fetching."""

from __future__ import annotations

import logging
from pathlib import Path

from cutlassfetch.errors import ConfigError
from cutlassfetch.models.artifacts import ArtifactSource, ResolvedArtifact

logger = logging.getLogger(__name__)


class LocalOverrideResolver:
    """Validates the override directory, if one is configured.

    A configured but unusable override is an error, never a silent
    fall-through to the network.

    Parameters
    ----------
    override_dir:
        Value of ``CUTLASS_DIR``, or ``None`` when unset.
    version:
        Version string recorded on the resolved artifact.
    """

    def __init__(self, override_dir: Path | None, version: str) -> None:
        self._override_dir = override_dir
        self._version = version

    @property
    def is_configured(self) -> bool:
        return self._override_dir is not None and str(self._override_dir) != ""

    def resolve(self) -> ResolvedArtifact | None:
        """Return the override as a ResolvedArtifact, or None if unset.

        Raises ``ConfigError`` if the path is missing, not a directory,
        or empty.
        """
        if not self.is_configured:
            return None

        path = Path(self._override_dir).expanduser()
        if not path.exists():
            raise ConfigError(f"CUTLASS_DIR points to a missing path: {path}")
        if not path.is_dir():
            raise ConfigError(f"CUTLASS_DIR is not a directory: {path}")
        if not any(path.iterdir()):
            raise ConfigError(f"CUTLASS_DIR is an empty directory: {path}")

        root = path.resolve()
        include = root / "include"
        if not include.is_dir():
            include = root
        logger.info("Using local CUTLASS override at %s", root)
        return ResolvedArtifact(
            root_dir=root,
            include_dir=include,
            version=self._version,
            source=ArtifactSource.OVERRIDE,
        )
