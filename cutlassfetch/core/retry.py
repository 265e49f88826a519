"""Bounded retry with exponential backoff around a single transport.

Attempt 1 runs immediately; attempt *n* waits ``base_delay * 2**(n-2)``
first.  Only retryable transport errors (network, integrity) consume
further attempts; permanent ones propagate at once so the orchestrator can
move on to the next transport.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path

from tenacity import (
    RetryError,
    Retrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from cutlassfetch.config import Settings
from cutlassfetch.errors import FetchExhausted, TransportError
from cutlassfetch.models.stages import FetchAttempt
from cutlassfetch.models.version import VersionSpec
from cutlassfetch.transport.base import Transport

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, TransportError) and exc.retryable


class RetryPolicy:
    """Runs ``transport.fetch`` up to ``max_attempts`` times.

    Parameters
    ----------
    max_attempts:
        Total attempts, including the first.
    base_delay:
        Wait before the second attempt, in seconds; doubles each time.
    timeout_per_attempt:
        Passed to the transport as its per-attempt timeout.
    sleep:
        Replacement for ``time.sleep``; tests inject a recorder.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        timeout_per_attempt: float = 120.0,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.timeout_per_attempt = timeout_per_attempt
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls, settings: Settings, *, sleep: Callable[[float], None] = time.sleep
    ) -> RetryPolicy:
        return cls(
            max_attempts=settings.fetch_retries,
            base_delay=settings.retry_base_delay,
            timeout_per_attempt=settings.download_timeout,
            sleep=sleep,
        )

    def backoff_delays(self) -> list[float]:
        """The waits that precede attempts 2..max_attempts."""
        return [self.base_delay * 2 ** (n - 2) for n in range(2, self.max_attempts + 1)]

    def run(
        self,
        transport: Transport,
        spec: VersionSpec,
        dest: Path,
        attempts: list[FetchAttempt] | None = None,
    ) -> list[FetchAttempt]:
        """Fetch *spec* into *dest* through *transport*, retrying as configured.

        Every attempt is appended to *attempts* (a fresh list if omitted),
        which is also returned.  Raises ``FetchExhausted`` when every
        attempt failed with a retryable error, or the permanent
        ``TransportError`` that stopped the loop early.
        """
        attempts = attempts if attempts is not None else []
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, exp_base=2),
            retry=retry_if_exception(_is_retryable),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=False,
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._attempt(
                        transport, spec, dest, attempt.retry_state.attempt_number, attempts
                    )
        except RetryError as exc:
            last = exc.last_attempt.exception()
            used = exc.last_attempt.attempt_number
            raise FetchExhausted(
                f"{transport.kind.value} transport gave up after "
                f"{used} attempts: {last}",
                last_error=last,
                attempts=used,
            ) from last
        return attempts

    def _attempt(
        self,
        transport: Transport,
        spec: VersionSpec,
        dest: Path,
        number: int,
        attempts: list[FetchAttempt],
    ) -> None:
        started = time.monotonic()
        try:
            transport.fetch(spec, dest, timeout=self.timeout_per_attempt)
        except TransportError as exc:
            attempts.append(
                FetchAttempt(
                    transport=transport.kind,
                    attempt_number=number,
                    elapsed=time.monotonic() - started,
                    outcome=exc.kind,
                    error=str(exc),
                )
            )
            logger.info(
                "%s attempt %d/%d failed (%s): %s",
                transport.kind.value, number, self.max_attempts, exc.kind, exc,
            )
            raise
        attempts.append(
            FetchAttempt(
                transport=transport.kind,
                attempt_number=number,
                elapsed=time.monotonic() - started,
                outcome="ok",
            )
        )
        logger.debug("%s attempt %d succeeded", transport.kind.value, number)
