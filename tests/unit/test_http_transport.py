"""Tests for HttpTransport against an in-memory httpx.MockTransport."""

from __future__ import annotations

import itertools
from collections.abc import Callable

import httpx
import pytest

from cutlassfetch.errors import ExtractionError, IntegrityError, NetworkError, NotFoundError
from cutlassfetch.models.artifacts import TransportKind
from cutlassfetch.transport import Transport
from cutlassfetch.transport.http import HttpTransport


def _transport(handler: Callable[[httpx.Request], httpx.Response]) -> HttpTransport:
    return HttpTransport(httpx.Client(transport=httpx.MockTransport(handler)))


@pytest.fixture
def dest(tmp_path):
    staging = tmp_path / "staging"
    staging.mkdir()
    return staging / "tree"


def _siblings(dest) -> list[str]:
    return sorted(p.name for p in dest.parent.iterdir())


class TestHttpTransport:
    def test_satisfies_protocol(self):
        transport = HttpTransport()
        assert isinstance(transport, Transport)
        assert transport.kind == TransportKind.HTTP

    def test_downloads_and_strips_top_level_dir(self, dest, spec, cutlass_tarball):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, content=cutlass_tarball)

        _transport(handler).fetch(spec, dest, timeout=5)

        assert seen == ["https://archive.test/cutlass/v3.5.1.tar.gz"]
        assert (dest / "include" / "cutlass" / "cutlass.h").read_bytes() == b"#pragma once\n"
        assert (dest / "README.md").is_file()
        assert _siblings(dest) == ["tree"]

    def test_follows_redirects(self, dest, spec, cutlass_tarball):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "archive.test":
                return httpx.Response(302, headers={"Location": "https://codeload.test/v3.5.1"})
            return httpx.Response(200, content=cutlass_tarball)

        _transport(handler).fetch(spec, dest, timeout=5)
        assert (dest / "include").is_dir()

    @pytest.mark.parametrize("status", [404, 410, 403])
    def test_client_errors_are_not_found(self, dest, spec, status):
        with pytest.raises(NotFoundError, match=str(status)):
            _transport(lambda r: httpx.Response(status)).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    @pytest.mark.parametrize("status", [408, 429, 500, 503])
    def test_transient_statuses_are_network_errors(self, dest, spec, status):
        with pytest.raises(NetworkError):
            _transport(lambda r: httpx.Response(status)).fetch(spec, dest, timeout=5)
        assert not dest.exists()

    def test_connect_failure_is_network_error(self, dest, spec):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError, match="Network failure"):
            _transport(handler).fetch(spec, dest, timeout=5)

    def test_timeout_is_network_error(self, dest, spec):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(NetworkError, match="Timed out"):
            _transport(handler).fetch(spec, dest, timeout=5)

    def test_empty_payload_is_integrity_error(self, dest, spec):
        with pytest.raises(IntegrityError, match="Empty payload"):
            _transport(lambda r: httpx.Response(200, content=b"")).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    def test_short_read_is_integrity_error(self, dest, spec, cutlass_tarball):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                content=cutlass_tarball[:20],
                headers={"Content-Length": str(len(cutlass_tarball))},
            )

        with pytest.raises(IntegrityError, match="Truncated"):
            _transport(handler).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    def test_garbage_is_extraction_error(self, dest, spec):
        payload = b"<html>rate limited</html>"
        with pytest.raises(ExtractionError, match="Malformed archive"):
            _transport(lambda r: httpx.Response(200, content=payload)).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    def test_flat_archive_is_used_as_is(self, dest, spec, make_tarball):
        payload = make_tarball({"include/cutlass/cutlass.h": b"", "LICENSE.txt": b""}, top="")
        _transport(lambda r: httpx.Response(200, content=payload)).fetch(spec, dest, timeout=5)
        assert (dest / "include" / "cutlass" / "cutlass.h").is_file()
        assert (dest / "LICENSE.txt").is_file()

    def test_empty_archive_is_extraction_error(self, dest, spec, make_tarball):
        payload = make_tarball({})
        with pytest.raises(ExtractionError, match="empty"):
            _transport(lambda r: httpx.Response(200, content=payload)).fetch(
                spec, dest, timeout=5
            )

    def test_undecodable_body_is_integrity_error(self, dest, spec):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"not gzip at all"
            )

        with pytest.raises(IntegrityError, match="Undecodable"):
            _transport(handler).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    def test_redirect_loop_is_not_found(self, dest, spec):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(302, headers={"Location": str(request.url)})

        with pytest.raises(NotFoundError, match="Redirect loop"):
            _transport(handler).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    def test_stream_error_is_network_error(self, dest, spec):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.StreamClosed()

        with pytest.raises(NetworkError, match="Failed fetching"):
            _transport(handler).fetch(spec, dest, timeout=5)
        assert _siblings(dest) == []

    def test_slow_download_hits_overall_deadline(self, dest, spec, cutlass_tarball):
        ticks = itertools.count(0, 10)
        client = httpx.Client(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, content=cutlass_tarball))
        )
        transport = HttpTransport(client, chunk_size=4, clock=lambda: next(ticks))

        with pytest.raises(NetworkError, match="exceeded 5s"):
            transport.fetch(spec, dest, timeout=5)
        assert not dest.exists()
        assert _siblings(dest) == []
