"""Fetch state machine models: stages, allowed transitions, attempts."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from cutlassfetch.models.artifacts import TransportKind


class FetchStage(str, Enum):
    """States of one resolution."""

    CHECK_OVERRIDE = "check_override"
    CHECK_CACHE = "check_cache"
    FETCH_HTTP = "fetch_http"
    FETCH_GIT = "fetch_git"
    PUBLISH = "publish"
    DONE = "done"
    FAILED = "failed"


# Valid state transitions, enforced by FetchMachine.
# DONE and FAILED are terminal.  CHECK_CACHE may go straight to FETCH_GIT
# when git is the only configured transport.
VALID_TRANSITIONS: dict[FetchStage, set[FetchStage]] = {
    FetchStage.CHECK_OVERRIDE: {FetchStage.DONE, FetchStage.CHECK_CACHE, FetchStage.FAILED},
    FetchStage.CHECK_CACHE: {
        FetchStage.DONE, FetchStage.FETCH_HTTP, FetchStage.FETCH_GIT, FetchStage.FAILED,
    },
    FetchStage.FETCH_HTTP: {FetchStage.PUBLISH, FetchStage.FETCH_GIT, FetchStage.FAILED},
    FetchStage.FETCH_GIT: {FetchStage.PUBLISH, FetchStage.FAILED},
    FetchStage.PUBLISH: {FetchStage.DONE, FetchStage.FAILED},
    FetchStage.DONE: set(),
    FetchStage.FAILED: set(),
}

# Which fetch stage drives which transport.
TRANSPORT_STAGES: dict[TransportKind, FetchStage] = {
    TransportKind.HTTP: FetchStage.FETCH_HTTP,
    TransportKind.GIT: FetchStage.FETCH_GIT,
}


class StageTransition(BaseModel):
    """Records a single state transition."""

    model_config = ConfigDict(frozen=True)

    from_stage: FetchStage
    to_stage: FetchStage
    reason: str = ""


class FetchAttempt(BaseModel):
    """One call into a transport.  Logged, never persisted."""

    model_config = ConfigDict(frozen=True)

    transport: TransportKind
    attempt_number: int
    elapsed: float
    outcome: str  # "ok" or the TransportError kind
    error: str | None = None
