"""Fetch orchestrator: the central coordinator for one resolution.

Wires together the LocalOverrideResolver, CacheStore, RetryPolicy,
transports and Materializer and drives them through the FetchMachine:

    check_override -> check_cache -> fetch_http -> fetch_git -> publish -> done
                                                                    \\-> failed

Only the terminal error leaves this module; transport errors and exhausted
retry budgets are absorbed by falling back to the next transport.
"""

from __future__ import annotations

import logging
import shutil

from cutlassfetch.config import Settings
from cutlassfetch.core.cache_store import CacheStore
from cutlassfetch.core.fetch_machine import FetchMachine
from cutlassfetch.core.materializer import EXPECTED_SUBPATH, Materializer
from cutlassfetch.core.override import LocalOverrideResolver
from cutlassfetch.core.retry import RetryPolicy
from cutlassfetch.errors import CutlassFetchError, FetchExhausted, TransportError
from cutlassfetch.models.artifacts import (
    ArtifactSource,
    CacheEntry,
    EntryState,
    ResolvedArtifact,
    StagingHandle,
    TransportKind,
)
from cutlassfetch.models.stages import TRANSPORT_STAGES, FetchAttempt, FetchStage
from cutlassfetch.models.version import VersionSpec
from cutlassfetch.transport import Transport, default_transports

logger = logging.getLogger(__name__)


def resolve_version_spec(settings: Settings) -> VersionSpec:
    """Derive the pinned VersionSpec from CUTLASS_VERSION or the package version."""
    from cutlassfetch import __version__

    return VersionSpec.from_version(
        settings.version or __version__,
        archive_url_template=settings.archive_url_template,
        git_url=settings.git_url,
    )


class FetchOrchestrator:
    """Resolves the CUTLASS tree to a local path.

    Parameters
    ----------
    settings:
        Configuration; read from the environment if not provided.
    transports:
        Transports to try in order.  Defaults to HTTP then git.
    cache:
        Cache store.  Built from ``settings`` on first use if omitted.
    retry_policy:
        Retry policy applied to each transport with a fresh budget.
    materializer:
        Seals staged trees before publish.
    spec:
        Pin to resolve.  Derived from ``settings`` if omitted.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transports: list[Transport] | None = None,
        cache: CacheStore | None = None,
        retry_policy: RetryPolicy | None = None,
        materializer: Materializer | None = None,
        spec: VersionSpec | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.transports = list(transports) if transports is not None else default_transports()
        self.retry_policy = retry_policy or RetryPolicy.from_settings(self.settings)
        self.materializer = materializer or Materializer()
        self._cache = cache
        self._spec = spec
        self.machine = FetchMachine()
        self.attempts: list[FetchAttempt] = []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve(self) -> ResolvedArtifact:
        """Run the pipeline once and return the resolved artifact.

        Raises the terminal ``CutlassFetchError`` (tagged with its stage)
        if the artifact cannot be made available.
        """
        self.machine = FetchMachine()
        self.attempts = []
        try:
            artifact = self._run()
        except CutlassFetchError as exc:
            if not self.machine.is_terminal:
                self.machine.fail(exc)
            logger.error("CUTLASS resolution failed: %s", exc.describe())
            raise
        logger.info(
            "CUTLASS %s resolved from %s: %s",
            artifact.version, artifact.source.value, artifact.root_dir,
        )
        return artifact

    @property
    def cache(self) -> CacheStore:
        if self._cache is None:
            self._cache = CacheStore(
                self.settings.resolve_cache_root(),
                use_lock=self.settings.cache_lock,
            )
        return self._cache

    @property
    def network_attempts(self) -> int:
        """Number of transport calls made by the last resolution."""
        return len(self.attempts)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run(self) -> ResolvedArtifact:
        spec = self._spec or resolve_version_spec(self.settings)

        override = LocalOverrideResolver(self.settings.override_dir, spec.version).resolve()
        if override is not None:
            self.machine.transition(FetchStage.DONE, reason="override")
            return override
        self.machine.transition(FetchStage.CHECK_CACHE)

        cache = self.cache
        key = spec.cache_key
        cache.sweep_stale_staging(self.settings.stale_staging_seconds)
        cached = self._check_cache(cache, key, spec)
        if cached is not None:
            return cached

        with cache.lock(key):
            # Another build may have published while we waited for the lock.
            entry = cache.lookup(key)
            if entry is not None:
                self.machine.transition(FetchStage.DONE, reason="cache hit after lock")
                return self._to_artifact(entry, spec, ArtifactSource.CACHE)

            handle = cache.begin_staging(key)
            try:
                kind = self._fetch_with_fallback(spec, handle)
                self.machine.transition(FetchStage.PUBLISH)
                self.materializer.finalize(handle, spec, kind)
                entry = cache.publish(handle)
            finally:
                cache.discard(handle)

        self.machine.transition(FetchStage.DONE, reason=kind.value)
        return self._to_artifact(entry, spec, ArtifactSource(kind.value))

    def _check_cache(
        self, cache: CacheStore, key: str, spec: VersionSpec
    ) -> ResolvedArtifact | None:
        entry = cache.inspect(key)
        if entry.state == EntryState.COMPLETE:
            self.machine.transition(FetchStage.DONE, reason="cache hit")
            return self._to_artifact(entry, spec, ArtifactSource.CACHE)
        if entry.state == EntryState.CORRUPT:
            logger.warning("Cache entry %s is incomplete; re-fetching", entry.root_dir)
            cache.invalidate(key)
        return None

    def _fetch_with_fallback(self, spec: VersionSpec, handle: StagingHandle) -> TransportKind:
        """Try each transport in order with a fresh retry budget."""
        causes: list[CutlassFetchError] = []
        dest = handle.tree_dir
        for transport in self.transports:
            reason = "fallback" if causes else ""
            self.machine.transition(TRANSPORT_STAGES[transport.kind], reason=reason)
            if dest.exists():
                shutil.rmtree(dest)
            try:
                self.retry_policy.run(transport, spec, dest, self.attempts)
                self.materializer.verify(dest)
                return transport.kind
            except (TransportError, FetchExhausted) as exc:
                causes.append(exc)
                logger.warning(
                    "%s transport failed for %s: %s", transport.kind.value, spec.tag, exc
                )

        if dest.exists():
            shutil.rmtree(dest)
        summary = "; ".join(str(c) for c in causes) or "no transports configured"
        raise FetchExhausted(
            f"Could not fetch CUTLASS {spec.tag}: {summary}",
            last_error=causes[-1] if causes else None,
            attempts=len(self.attempts),
            causes=causes,
        )

    @staticmethod
    def _to_artifact(
        entry: CacheEntry, spec: VersionSpec, source: ArtifactSource
    ) -> ResolvedArtifact:
        return ResolvedArtifact(
            root_dir=entry.root_dir,
            include_dir=entry.root_dir / EXPECTED_SUBPATH,
            version=spec.version,
            source=source,
        )
