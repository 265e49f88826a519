"""Error taxonomy for the acquisition pipeline.

Only the terminal error of a failed resolution crosses the orchestrator
boundary.  Everything below it (transport errors, exhausted retry budgets)
is recovered locally by retrying or by falling back to the next transport.

Hierarchy
---------
CutlassFetchError
    ConfigError          bad override path or version string (fatal)
    TransportError
        NetworkError     connect/timeout/DNS failure (retryable)
        IntegrityError   empty, truncated or undecodable payload (retryable)
        NotFoundError    404, redirect loop or unknown ref (permanent for that transport)
        ExtractionError  malformed archive or tree (permanent for that transport)
    FetchExhausted       every transport failed (fatal)
    StorageError         cache filesystem failure (fatal)
"""

from __future__ import annotations

from typing import ClassVar


class CutlassFetchError(RuntimeError):
    """Base class for every error raised by cutlassfetch.

    ``stage`` is filled in by the orchestrator with the name of the state
    the pipeline was in when the error became terminal.
    """

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage

    def describe(self) -> str:
        """Return the message prefixed with the failing stage, if known."""
        if self.stage:
            return f"[{self.stage}] {self}"
        return str(self)


class ConfigError(CutlassFetchError):
    """Raised for invalid configuration: a bad override path or version."""


class StorageError(CutlassFetchError):
    """Raised when the cache filesystem itself fails."""


class TransportError(CutlassFetchError):
    """Raised by a transport when a single fetch attempt fails."""

    kind: ClassVar[str] = "transport"
    retryable: ClassVar[bool] = False


class NetworkError(TransportError):
    """Connection, DNS or timeout failure.  Retried."""

    kind: ClassVar[str] = "network"
    retryable: ClassVar[bool] = True


class IntegrityError(TransportError):
    """Empty or truncated payload.  Retried."""

    kind: ClassVar[str] = "integrity"
    retryable: ClassVar[bool] = True


class NotFoundError(TransportError):
    """The requested version does not exist upstream for this transport."""

    kind: ClassVar[str] = "not_found"


class ExtractionError(TransportError):
    """The retrieved archive or tree is malformed."""

    kind: ClassVar[str] = "extraction"


class FetchExhausted(CutlassFetchError):
    """Raised when a transport (or every transport) has run out of attempts.

    Parameters
    ----------
    message:
        Human readable summary.
    last_error:
        The final underlying transport error.
    attempts:
        Number of attempts consumed before giving up.
    causes:
        For the orchestrator-level failure, the terminal error of each
        transport in the order they were tried.
    """

    def __init__(
        self,
        message: str,
        *,
        last_error: BaseException | None = None,
        attempts: int = 0,
        causes: list[BaseException] | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.last_error = last_error
        self.attempts = attempts
        self.causes = list(causes or [])
