"""cutlassfetch data models: all Pydantic v2, all frozen (immutable)."""

from cutlassfetch.models.artifacts import (
    ArtifactSource,
    CacheEntry,
    CompletenessMarker,
    EntryState,
    ResolvedArtifact,
    StagingHandle,
    TransportKind,
)
from cutlassfetch.models.stages import (
    TRANSPORT_STAGES,
    VALID_TRANSITIONS,
    FetchAttempt,
    FetchStage,
    StageTransition,
)
from cutlassfetch.models.version import VersionSpec, cache_key_for, parse_semver

__all__ = [
    # version
    "VersionSpec",
    "cache_key_for",
    "parse_semver",
    # artifacts
    "ArtifactSource",
    "CacheEntry",
    "CompletenessMarker",
    "EntryState",
    "ResolvedArtifact",
    "StagingHandle",
    "TransportKind",
    # stages
    "FetchStage",
    "FetchAttempt",
    "StageTransition",
    "VALID_TRANSITIONS",
    "TRANSPORT_STAGES",
]
