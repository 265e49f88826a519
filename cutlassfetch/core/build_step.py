"""One build invocation: resolve the CUTLASS tree, then export its paths."""

from __future__ import annotations

from cutlassfetch.config import Settings
from cutlassfetch.core.exporter import InterfaceExporter
from cutlassfetch.core.orchestrator import FetchOrchestrator
from cutlassfetch.models.artifacts import ResolvedArtifact


def resolve_and_export(
    settings: Settings | None = None,
    *,
    orchestrator: FetchOrchestrator | None = None,
    exporter: InterfaceExporter | None = None,
) -> ResolvedArtifact:
    """Resolve CUTLASS and publish its location on every export channel.

    Call this once per build, e.g. from a setuptools/hatch build hook.  Raises
    the terminal ``CutlassFetchError`` if resolution fails; nothing is
    exported in that case.
    """
    settings = settings or Settings()
    orchestrator = orchestrator or FetchOrchestrator(settings)
    exporter = exporter or InterfaceExporter.from_settings(settings)

    artifact = orchestrator.resolve()
    exporter.export(artifact)
    return artifact
