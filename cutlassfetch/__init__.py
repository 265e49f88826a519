"""cutlassfetch: build-time acquisition of pinned NVIDIA CUTLASS headers.

The package version tracks the CUTLASS release it provides.  At build time
the headers are taken from a local override, the shared cache, an HTTPS
release archive or, failing that, a shallow git clone, and their location
is exported to downstream build steps:

  - Local override via CUTLASS_DIR (no network, no cache)
  - Version-keyed cache published by atomic rename, safe for parallel builds
  - HTTPS download with bounded exponential-backoff retries (httpx + tenacity)
  - Git shallow-clone fallback with its own retry budget
  - Paths exported as build directives, an env file and process variables
"""

__version__ = "3.5.1"
__description__ = "Build-time fetcher for version-pinned NVIDIA CUTLASS headers"

from cutlassfetch.config import Settings
from cutlassfetch.core.build_step import resolve_and_export
from cutlassfetch.core.orchestrator import FetchOrchestrator
from cutlassfetch.models.artifacts import ResolvedArtifact

__all__ = [
    "FetchOrchestrator",
    "ResolvedArtifact",
    "Settings",
    "resolve_and_export",
    "__version__",
]
