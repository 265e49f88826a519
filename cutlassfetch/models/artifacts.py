"""Cache entry, completeness marker and resolved artifact models."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class EntryState(str, Enum):
    """Lifecycle of a cache entry as observed on disk."""

    EMPTY = "empty"
    STAGING = "staging"
    COMPLETE = "complete"
    CORRUPT = "corrupt"


class TransportKind(str, Enum):
    """How an artifact tree was retrieved."""

    HTTP = "http"
    GIT = "git"


class ArtifactSource(str, Enum):
    """Where a resolved artifact ultimately came from."""

    OVERRIDE = "override"
    CACHE = "cache"
    HTTP = "http"
    GIT = "git"


class CacheEntry(BaseModel):
    """A cache key and the directory backing it.  Created by CacheStore only."""

    model_config = ConfigDict(frozen=True)

    key: str
    root_dir: Path
    state: EntryState


class StagingHandle(BaseModel):
    """A process-private staging area for one cache key.

    ``path`` is the unique staging directory; transports populate
    ``tree_dir`` inside it, and ``publish`` renames ``tree_dir`` into place.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    path: Path

    @property
    def tree_dir(self) -> Path:
        return self.path / "tree"


class CompletenessMarker(BaseModel):
    """Contents of the sentinel file written last into a materialized tree."""

    model_config = ConfigDict(frozen=True)

    key: str
    version: str
    tag: str
    transport: TransportKind
    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class ResolvedArtifact(BaseModel):
    """Final output of a resolution, valid for the lifetime of the build."""

    model_config = ConfigDict(frozen=True)

    root_dir: Path
    include_dir: Path
    version: str
    source: ArtifactSource
