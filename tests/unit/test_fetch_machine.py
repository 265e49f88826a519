"""Tests for the FetchMachine: transition enforcement and failure tagging."""

from __future__ import annotations

import pytest

from cutlassfetch.core.fetch_machine import FetchMachine, InvalidTransitionError
from cutlassfetch.errors import FetchExhausted, StorageError
from cutlassfetch.models.stages import VALID_TRANSITIONS, FetchStage


class TestTransitions:
    def test_starts_at_check_override(self):
        machine = FetchMachine()
        assert machine.stage == FetchStage.CHECK_OVERRIDE
        assert machine.history == []
        assert machine.is_terminal is False

    def test_full_fetch_path(self):
        machine = FetchMachine()
        for stage in (
            FetchStage.CHECK_CACHE,
            FetchStage.FETCH_HTTP,
            FetchStage.FETCH_GIT,
            FetchStage.PUBLISH,
            FetchStage.DONE,
        ):
            machine.transition(stage)
        assert machine.is_terminal
        assert [t.to_stage for t in machine.history][-1] == FetchStage.DONE
        assert len(machine.history) == 5

    def test_cannot_skip_cache_check(self):
        machine = FetchMachine()
        with pytest.raises(InvalidTransitionError, match="check_override to fetch_http"):
            machine.transition(FetchStage.FETCH_HTTP)

    def test_git_cannot_fall_back_to_http(self):
        machine = FetchMachine()
        machine.transition(FetchStage.CHECK_CACHE)
        machine.transition(FetchStage.FETCH_GIT)
        with pytest.raises(InvalidTransitionError):
            machine.transition(FetchStage.FETCH_HTTP)

    @pytest.mark.parametrize("terminal", [FetchStage.DONE, FetchStage.FAILED])
    def test_terminal_stages_have_no_exits(self, terminal):
        assert VALID_TRANSITIONS[terminal] == set()

    def test_available_transitions_is_a_copy(self):
        machine = FetchMachine()
        machine.available_transitions().clear()
        assert FetchStage.CHECK_CACHE in machine.available_transitions()


class TestFail:
    def test_fail_tags_error_with_current_stage(self):
        machine = FetchMachine()
        machine.transition(FetchStage.CHECK_CACHE)
        machine.transition(FetchStage.FETCH_HTTP)
        error = machine.fail(FetchExhausted("all down"))

        assert machine.stage == FetchStage.FAILED
        assert machine.error is error
        assert error.stage == "fetch_http"
        assert error.describe() == "[fetch_http] all down"
        assert machine.history[-1].reason == "FetchExhausted"

    def test_existing_stage_tag_is_kept(self):
        machine = FetchMachine()
        error = machine.fail(StorageError("disk full", stage="publish"))
        assert error.stage == "publish"

    def test_cannot_fail_twice(self):
        machine = FetchMachine()
        machine.fail(StorageError("disk full"))
        with pytest.raises(InvalidTransitionError):
            machine.fail(StorageError("again"))
