"""HTTPS archive transport: downloads the release tarball and unpacks it."""

from __future__ import annotations

import gzip
import logging
import tarfile
import time
import zlib
from collections.abc import Callable
from pathlib import Path

import httpx

from cutlassfetch.errors import (
    ExtractionError,
    IntegrityError,
    NetworkError,
    NotFoundError,
    StorageError,
)
from cutlassfetch.models.artifacts import TransportKind
from cutlassfetch.models.version import VersionSpec
from cutlassfetch.transport.base import private_workdir, promote_tree

logger = logging.getLogger(__name__)

# Statuses worth another attempt; every other 4xx is permanent.
RETRYABLE_STATUSES: frozenset[int] = frozenset({408, 425, 429, 500, 502, 503, 504})

USER_AGENT = "cutlassfetch"


class HttpTransport:
    """Fetches ``spec.archive_url`` over HTTPS and extracts it into ``dest``.

    Parameters
    ----------
    client:
        An ``httpx.Client`` to use.  When omitted, a short-lived client is
        created per fetch.  Tests pass one built on ``httpx.MockTransport``.
    chunk_size:
        Streaming chunk size in bytes.
    clock:
        Monotonic clock bounding each download to its timeout.
    """

    kind = TransportKind.HTTP

    def __init__(
        self,
        client: httpx.Client | None = None,
        *,
        chunk_size: int = 1 << 20,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._chunk_size = chunk_size
        self._clock = clock

    def fetch(self, spec: VersionSpec, dest: Path, *, timeout: float) -> None:
        """Download, verify and extract the archive for *spec* into *dest*."""
        with private_workdir(dest, "http") as work:
            archive = work / "archive.tar.gz"
            if self._client is not None:
                self._download(self._client, spec.archive_url, archive, timeout)
            else:
                with httpx.Client(
                    follow_redirects=True, headers={"User-Agent": USER_AGENT}
                ) as client:
                    self._download(client, spec.archive_url, archive, timeout)

            extract_dir = work / "extract"
            self._extract(archive, extract_dir)
            promote_tree(extract_dir, dest)
        logger.info("Extracted %s into %s", spec.archive_url, dest)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    def _download(self, client: httpx.Client, url: str, archive: Path, timeout: float) -> None:
        logger.info("Downloading %s", url)
        deadline = self._clock() + timeout
        try:
            with client.stream("GET", url, timeout=timeout, follow_redirects=True) as response:
                self._check_status(url, response)
                expected = _content_length(response)
                try:
                    with archive.open("wb") as fh:
                        for chunk in response.iter_bytes(self._chunk_size):
                            fh.write(chunk)
                            if self._clock() > deadline:
                                raise NetworkError(
                                    f"Download of {url} exceeded {timeout}s"
                                )
                except OSError as exc:
                    raise StorageError(f"Cannot write download to {archive}: {exc}") from exc
                received = response.num_bytes_downloaded
        except httpx.TimeoutException as exc:
            raise NetworkError(f"Timed out fetching {url}: {exc}") from exc
        except httpx.RemoteProtocolError as exc:
            raise IntegrityError(f"Connection dropped mid-download of {url}: {exc}") from exc
        except httpx.UnsupportedProtocol as exc:
            raise NotFoundError(f"Unsupported archive URL {url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"Network failure fetching {url}: {exc}") from exc
        except httpx.InvalidURL as exc:
            raise NotFoundError(f"Invalid archive URL {url}: {exc}") from exc
        except httpx.TooManyRedirects as exc:
            raise NotFoundError(f"Redirect loop fetching {url}: {exc}") from exc
        except httpx.DecodingError as exc:
            raise IntegrityError(f"Undecodable body from {url}: {exc}") from exc
        except (httpx.HTTPError, httpx.StreamError) as exc:
            raise NetworkError(f"Failed fetching {url}: {exc}") from exc

        if received == 0 or archive.stat().st_size == 0:
            raise IntegrityError(f"Empty payload from {url}")
        if expected is not None and received != expected:
            raise IntegrityError(
                f"Truncated download from {url}: got {received} of {expected} bytes"
            )
        logger.debug("Downloaded %d bytes from %s", received, url)

    @staticmethod
    def _check_status(url: str, response: httpx.Response) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        if status in RETRYABLE_STATUSES or status >= 500:
            raise NetworkError(f"HTTP {status} fetching {url}")
        if 400 <= status < 500:
            raise NotFoundError(f"HTTP {status} fetching {url}")
        raise NetworkError(f"Unexpected HTTP {status} fetching {url}")

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    @staticmethod
    def _extract(archive: Path, extract_dir: Path) -> None:
        extract_dir.mkdir()
        try:
            with tarfile.open(archive, "r:*") as tar:
                tar.extractall(extract_dir, filter="data")
        except (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile) as exc:
            raise ExtractionError(f"Malformed archive {archive.name}: {exc}") from exc


def _content_length(response: httpx.Response) -> int | None:
    # Content-Length counts encoded bytes; num_bytes_downloaded does too.
    raw = response.headers.get("Content-Length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
