"""Deterministic state machine for one resolution.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- DONE and FAILED are terminal
- Every transition recorded in ``history``
- A terminal error is tagged with the stage it was raised in
"""

from __future__ import annotations

import logging

from cutlassfetch.errors import CutlassFetchError
from cutlassfetch.models.stages import VALID_TRANSITIONS, FetchStage, StageTransition

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class FetchMachine:
    """Tracks the current stage of a resolution and its transition history."""

    def __init__(self) -> None:
        self._stage = FetchStage.CHECK_OVERRIDE
        self._history: list[StageTransition] = []
        self._error: CutlassFetchError | None = None

    @property
    def stage(self) -> FetchStage:
        return self._stage

    @property
    def history(self) -> list[StageTransition]:
        return list(self._history)

    @property
    def error(self) -> CutlassFetchError | None:
        return self._error

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self._stage]

    def transition(self, target: FetchStage, reason: str = "") -> StageTransition:
        """Move to *target*, recording the transition.

        Raises ``InvalidTransitionError`` if the table does not allow it.
        """
        allowed = VALID_TRANSITIONS.get(self._stage, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self._stage.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        record = StageTransition(from_stage=self._stage, to_stage=target, reason=reason)
        self._history.append(record)
        logger.debug("%s -> %s %s", self._stage.value, target.value, reason)
        self._stage = target
        return record

    def fail(self, error: CutlassFetchError) -> CutlassFetchError:
        """Enter FAILED from the current stage and tag *error* with it.

        Returns the error so callers can ``raise machine.fail(exc)``.
        """
        if error.stage is None:
            error.stage = self._stage.value
        self.transition(FetchStage.FAILED, reason=type(error).__name__)
        self._error = error
        return error

    def available_transitions(self) -> set[FetchStage]:
        """Return the set of valid target stages from the current one."""
        return set(VALID_TRANSITIONS.get(self._stage, set()))
