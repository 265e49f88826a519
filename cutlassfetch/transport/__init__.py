"""Transports that retrieve the CUTLASS tree.

Modules
-------
base
    ``Transport`` protocol and the private-workdir / promote helpers.
http
    ``HttpTransport``: HTTPS release tarball via httpx.
git
    ``GitTransport``: shallow clone of the release tag.

The orchestrator tries transports in list order: HTTP first, git second.
"""

from cutlassfetch.transport.base import Transport
from cutlassfetch.transport.git import GitTransport
from cutlassfetch.transport.http import HttpTransport


def default_transports() -> list[Transport]:
    """The standard fallback order: archive download, then git clone."""
    return [HttpTransport(), GitTransport()]


__all__ = ["Transport", "HttpTransport", "GitTransport", "default_transports"]
