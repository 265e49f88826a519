"""Persistent, version-keyed cache of materialized CUTLASS trees.

Storage layout::

    {root}/{key}/                      complete (or corrupt) entry
    {root}/.staging/{key}.{pid}.{hex}/ in-flight fetch, private to one process
    {root}/.trash/{key}.{pid}.{hex}/   entry being deleted
    {root}/.locks/{key}.lock           optional advisory lock

An entry becomes visible only through ``os.rename`` of a fully sealed tree
from ``.staging`` into ``{root}/{key}``.  That rename is the only
synchronization point between concurrent builds: the first rename wins,
later ones find the destination occupied and discard their own copy.
Entries are never modified after publish; there is no eviction.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import time
import uuid
from collections.abc import Iterator
from pathlib import Path

from filelock import FileLock, Timeout

from cutlassfetch.core.materializer import EXPECTED_SUBPATH, read_marker
from cutlassfetch.errors import StorageError
from cutlassfetch.models.artifacts import CacheEntry, EntryState, StagingHandle

logger = logging.getLogger(__name__)

STAGING_DIR = ".staging"
TRASH_DIR = ".trash"
LOCKS_DIR = ".locks"


def _unique_suffix() -> str:
    return f"{os.getpid()}.{uuid.uuid4().hex[:12]}"


class CacheStore:
    """On-disk store mapping cache keys to materialized trees.

    Parameters
    ----------
    root:
        Cache root directory.  Created if missing.
    use_lock:
        Hold a per-key ``filelock.FileLock`` across staging and publish.
        Only needed on filesystems without atomic directory rename.
    lock_timeout:
        Seconds to wait for the per-key lock before failing.
    """

    def __init__(
        self,
        root: Path,
        *,
        use_lock: bool = False,
        lock_timeout: float = 600.0,
    ) -> None:
        self._root = Path(root)
        self._use_lock = use_lock
        self._lock_timeout = lock_timeout
        try:
            self._root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create cache root {self._root}: {exc}") from exc

    @property
    def root(self) -> Path:
        return self._root

    def entry_path(self, key: str) -> Path:
        """Final location of the entry for *key*."""
        return self._root / key

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def inspect(self, key: str) -> CacheEntry:
        """Return the entry for *key* in whatever state it is on disk."""
        path = self.entry_path(key)
        if path.is_dir():
            state = EntryState.COMPLETE if self._is_complete(path, key) else EntryState.CORRUPT
        elif self._staging_dirs(key):
            state = EntryState.STAGING
        else:
            state = EntryState.EMPTY
        return CacheEntry(key=key, root_dir=path, state=state)

    def lookup(self, key: str) -> CacheEntry | None:
        """Return the complete entry for *key*, or None if empty or corrupt."""
        entry = self.inspect(key)
        if entry.state == EntryState.COMPLETE:
            return entry
        return None

    def entries(self) -> list[CacheEntry]:
        """Every entry directory under the root, sorted by key."""
        if not self._root.is_dir():
            return []
        keys = sorted(
            p.name for p in self._root.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )
        return [self.inspect(k) for k in keys]

    @staticmethod
    def _is_complete(path: Path, key: str) -> bool:
        marker = read_marker(path)
        if marker is None or marker.key != key:
            return False
        return (path / EXPECTED_SUBPATH).is_dir()

    def _staging_dirs(self, key: str) -> list[Path]:
        staging_root = self._root / STAGING_DIR
        if not staging_root.is_dir():
            return []
        return [p for p in staging_root.iterdir() if p.name.startswith(f"{key}.")]

    # ------------------------------------------------------------------
    # Staging and publish
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Hold the per-key advisory lock when locking is enabled."""
        if not self._use_lock:
            yield
            return
        lock_dir = self._root / LOCKS_DIR
        lock_dir.mkdir(parents=True, exist_ok=True)
        file_lock = FileLock(str(lock_dir / f"{key}.lock"), timeout=self._lock_timeout)
        try:
            with file_lock:
                yield
        except Timeout as exc:
            raise StorageError(
                f"Timed out after {self._lock_timeout}s waiting for cache lock on {key}"
            ) from exc

    def begin_staging(self, key: str) -> StagingHandle:
        """Allocate a fresh staging directory private to this process."""
        path = self._root / STAGING_DIR / f"{key}.{_unique_suffix()}"
        try:
            path.mkdir(parents=True)
        except OSError as exc:
            raise StorageError(f"Cannot create staging directory {path}: {exc}") from exc
        logger.debug("Staging %s in %s", key, path)
        return StagingHandle(key=key, path=path)

    def publish(self, handle: StagingHandle) -> CacheEntry:
        """Atomically move a sealed staging tree into its final location.

        If another process already published a complete entry for the key,
        this one is discarded and the existing entry returned.  A corrupt
        entry in the way is invalidated and the rename retried once.
        """
        tree = handle.tree_dir
        if not tree.is_dir():
            raise StorageError(f"Nothing staged to publish for {handle.key}: {tree}")

        final = self.entry_path(handle.key)
        for attempt in (1, 2):
            try:
                os.rename(tree, final)
            except OSError as exc:
                if not final.exists():
                    self.discard(handle)
                    raise StorageError(
                        f"Could not publish {handle.key} to {final}: {exc}"
                    ) from exc
                existing = self.inspect(handle.key)
                if existing.state == EntryState.COMPLETE:
                    logger.info(
                        "Another build already published %s; discarding local copy",
                        handle.key,
                    )
                    self.discard(handle)
                    return existing
                if attempt == 2:
                    self.discard(handle)
                    raise StorageError(
                        f"Could not replace corrupt entry {final}: {exc}"
                    ) from exc
                logger.warning("Replacing corrupt cache entry %s", final)
                self.invalidate(handle.key)
            else:
                self.discard(handle)
                logger.info("Published %s to %s", handle.key, final)
                return CacheEntry(key=handle.key, root_dir=final, state=EntryState.COMPLETE)

        raise StorageError(f"Could not publish {handle.key}")  # pragma: no cover

    def discard(self, handle: StagingHandle) -> None:
        """Remove a staging directory and everything in it."""
        self._remove_tree(handle.path)

    # ------------------------------------------------------------------
    # Invalidation and housekeeping
    # ------------------------------------------------------------------

    def invalidate(self, key: str, *, force: bool = False) -> bool:
        """Remove the entry for *key* so the next lookup sees it as empty.

        A complete entry is left untouched unless *force* is set.  Anything
        else is first renamed aside, so no reader ever sees a half-deleted
        tree at the final path; if it turns out to be complete by then
        (another build finished it in the meantime) it is put back.  Returns
        True if something was removed.
        """
        final = self.entry_path(key)
        if not final.exists():
            return False
        if not force and self._is_complete(final, key):
            logger.debug("Cache entry %s is complete; not invalidating", key)
            return False

        trash = self._root / TRASH_DIR / f"{key}.{_unique_suffix()}"
        try:
            trash.parent.mkdir(parents=True, exist_ok=True)
            os.rename(final, trash)
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Cannot invalidate cache entry {final}: {exc}") from exc

        if not force and self._is_complete(trash, key):
            with contextlib.suppress(OSError):
                os.rename(trash, final)
                logger.info("Cache entry %s was completed concurrently; kept", key)
                return False

        self._remove_tree(trash)
        logger.info("Invalidated cache entry %s", key)
        return True

    def sweep_stale_staging(self, max_age_seconds: float) -> int:
        """Delete staging directories older than *max_age_seconds*.

        These are left behind by builds that were killed mid-fetch.
        Returns the number of directories removed.
        """
        removed = 0
        cutoff = time.time() - max_age_seconds
        for parent in (self._root / STAGING_DIR, self._root / TRASH_DIR):
            if not parent.is_dir():
                continue
            for path in parent.iterdir():
                try:
                    if path.stat().st_mtime >= cutoff:
                        continue
                except FileNotFoundError:
                    continue
                self._remove_tree(path)
                removed += 1
        if removed:
            logger.info("Swept %d stale staging directories", removed)
        return removed

    @staticmethod
    def _remove_tree(path: Path) -> None:
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning("Could not remove %s: %s", path, exc)
