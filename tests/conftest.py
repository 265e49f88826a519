"""Shared test fixtures for cutlassfetch."""

from __future__ import annotations

import io
import os
import tarfile
import threading
import time
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from cutlassfetch.config import Settings
from cutlassfetch.core.retry import RetryPolicy
from cutlassfetch.models.artifacts import TransportKind
from cutlassfetch.models.version import VersionSpec

HEADER_PATH = Path("include") / "cutlass" / "cutlass.h"

EXPORTED_NAMES = (
    "CUTLASS_ROOT",
    "CUTLASS_INCLUDE_DIR",
    "DEP_CUTLASS_ROOT",
    "DEP_CUTLASS_INCLUDE",
    "DEP_CUTLASS_INCLUDE_DIR",
    "DEP_CUTLASS_VERSION",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Strip CUTLASS_* configuration from the environment and leave the repo cwd."""
    for name in list(os.environ):
        if name.startswith(("CUTLASS_", "DEP_CUTLASS_")) or name == "BUILD_CACHE_ROOT":
            monkeypatch.delenv(name)
    # Exports land in os.environ; make sure monkeypatch restores them.
    for name in EXPORTED_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """Provide an empty cache root in a temp directory."""
    return tmp_path / "cache"


@pytest.fixture
def settings(cache_root: Path) -> Settings:
    """Provide Settings pointing at the temp cache root."""
    return Settings(cache_dir=cache_root)


@pytest.fixture
def spec() -> VersionSpec:
    """Provide a deterministic VersionSpec that never reaches a real host."""
    return VersionSpec.from_version(
        "3.5.1",
        archive_url_template="https://archive.test/cutlass/{tag}.tar.gz",
        git_url="https://git.test/cutlass.git",
    )


@pytest.fixture
def sleeps() -> list[float]:
    """Record backoff waits instead of sleeping."""
    return []


@pytest.fixture
def retry_policy(sleeps: list[float]) -> RetryPolicy:
    """Provide a three-attempt RetryPolicy that records its waits."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, timeout_per_attempt=5.0, sleep=sleeps.append)


# ---------------------------------------------------------------------------
# Fake transports
# ---------------------------------------------------------------------------


class FakeTransport:
    """Transport double that fails with queued errors, then writes a header tree.

    The tree is built in a private directory and renamed into ``dest``, the
    same way the real transports do.
    """

    def __init__(
        self,
        kind: TransportKind = TransportKind.HTTP,
        failures: list[Exception] | None = None,
        *,
        delay: float = 0.0,
        layout: Path = HEADER_PATH,
    ) -> None:
        self.kind = kind
        self._failures = list(failures or [])
        self.delay = delay
        self.layout = layout
        self.calls = 0
        self.timeouts: list[float] = []
        self._lock = threading.Lock()

    def fetch(self, spec: VersionSpec, dest: Path, *, timeout: float) -> None:
        with self._lock:
            self.calls += 1
            self.timeouts.append(timeout)
            failure = self._failures.pop(0) if self._failures else None
        if self.delay:
            time.sleep(self.delay)
        if failure is not None:
            raise failure
        work = dest.parent / f".{dest.name}.fake-{uuid.uuid4().hex[:8]}"
        target = work / self.layout
        target.parent.mkdir(parents=True)
        target.write_text(f"// CUTLASS {spec.version} via {self.kind.value}\n", encoding="utf-8")
        work.rename(dest)


@pytest.fixture
def make_transport() -> Callable[..., FakeTransport]:
    """Factory fixture: build a FakeTransport."""

    def _factory(kind: TransportKind = TransportKind.HTTP, *args: Any, **kwargs: Any) -> FakeTransport:
        return FakeTransport(kind, *args, **kwargs)

    return _factory


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------


def build_tarball(files: dict[str, bytes], top: str = "cutlass-3.5.1") -> bytes:
    """Return a gzip tarball holding *files* under a single top-level directory."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(f"{top}/{name}" if top else name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    return buf.getvalue()


@pytest.fixture
def cutlass_tarball() -> bytes:
    """A release-shaped archive with one header and a README."""
    return build_tarball(
        {
            "include/cutlass/cutlass.h": b"#pragma once\n",
            "README.md": b"CUTLASS\n",
        }
    )


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Factory fixture: build a custom archive."""
    return build_tarball
