"""Unit tests for the review state machine.

Tests cover:
- The VALID_TRANSITIONS table
- start / advance / complete / reset transitions
- The prepare callback leaving the cursor alone when it fails
- Operations addressed to an absent review
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from pr_reviewer.errors import AlreadyInProgressError
from pr_reviewer.review.state_machine import (
    VALID_TRANSITIONS,
    InvalidTransitionError,
    ReviewState,
    ReviewStateMachine,
    validate_transition,
)
from pr_reviewer.store import MemoryReviewStore, NextFile, ReviewStore


class TestValidTransitions:
    """Test the VALID_TRANSITIONS mapping and validation."""

    def test_valid_transitions_definition(self):
        """Every ReviewState has an entry."""
        assert set(VALID_TRANSITIONS) == set(ReviewState)

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            (ReviewState.absent, ReviewState.in_progress, True),
            (ReviewState.in_progress, ReviewState.in_progress, True),
            (ReviewState.in_progress, ReviewState.completed, True),
            (ReviewState.in_progress, ReviewState.absent, True),
            (ReviewState.completed, ReviewState.absent, True),
            (ReviewState.completed, ReviewState.in_progress, True),
            (ReviewState.absent, ReviewState.completed, False),
            (ReviewState.absent, ReviewState.absent, False),
            (ReviewState.completed, ReviewState.completed, False),
        ],
    )
    def test_validate_transition(self, current, target, expected):
        assert validate_transition(current, target) == expected


class TestInvalidTransitionError:
    def test_message_includes_states_and_pr(self):
        error = InvalidTransitionError(ReviewState.absent, ReviewState.completed, "42")
        assert "absent" in str(error)
        assert "completed" in str(error)
        assert "42" in str(error)
        assert error.code == "INVALID_TRANSITION"


class TestReviewStateMachine:
    """Test the ReviewStateMachine over the memory store."""

    @pytest.fixture
    def machine(self, memory_store: MemoryReviewStore) -> ReviewStateMachine:
        return ReviewStateMachine(memory_store)

    @pytest.mark.asyncio
    async def test_state_of_unknown_review_is_absent(self, machine):
        assert await machine.state("1") is ReviewState.absent

    @pytest.mark.asyncio
    async def test_start_moves_to_in_progress(self, machine):
        await machine.start("1", ["a.py", "b.py"])

        assert await machine.state("1") is ReviewState.in_progress
        assert await machine.is_in_progress("1") is True

    @pytest.mark.asyncio
    async def test_second_start_is_rejected_and_keeps_order(self, machine, memory_store):
        await machine.start("1", ["a.py", "b.py"])

        with pytest.raises(AlreadyInProgressError) as exc_info:
            await machine.start("1", ["z.py"])

        assert exc_info.value.code == "REVIEW_IN_PROGRESS"
        snapshot = await memory_store.get_session("1")
        assert [f.file_path for f in snapshot.files] == ["a.py", "b.py"]

    @pytest.mark.asyncio
    async def test_start_after_completion_restarts(self, machine):
        await machine.start("1", ["a.py"])
        await machine.advance("1")
        await machine.advance("1")
        assert await machine.state("1") is ReviewState.completed

        await machine.start("1", ["b.py"])

        assert await machine.state("1") is ReviewState.in_progress

    @pytest.mark.asyncio
    async def test_advance_serves_files_then_completes(self, machine):
        await machine.start("1", ["a.py", "b.py"])

        first = await machine.advance("1")
        second = await machine.advance("1")
        done = await machine.advance("1")

        assert first.next_file == NextFile(file_path="a.py", current=1, total=2)
        assert second.next_file == NextFile(file_path="b.py", current=2, total=2)
        assert done.exhausted is True
        assert await machine.state("1") is ReviewState.completed

    @pytest.mark.asyncio
    async def test_advance_returns_prepared_value(self, machine):
        await machine.start("1", ["a.py"])

        async def prepare(next_file: NextFile) -> str:
            return f"diff of {next_file.file_path}"

        result = await machine.advance("1", prepare=prepare)

        assert result.prepared == "diff of a.py"

    @pytest.mark.asyncio
    async def test_failed_prepare_leaves_cursor(self, machine):
        await machine.start("1", ["a.py", "b.py"])
        prepare = AsyncMock(side_effect=RuntimeError("diff unavailable"))

        with pytest.raises(RuntimeError):
            await machine.advance("1", prepare=prepare)

        retry = await machine.advance("1")
        assert retry.next_file.file_path == "a.py"

    @pytest.mark.asyncio
    async def test_advance_on_absent_review_reports_exhaustion(self, machine):
        result = await machine.advance("nothing")

        assert result.exhausted is True
        assert await machine.state("nothing") is ReviewState.absent

    @pytest.mark.asyncio
    async def test_complete_is_idempotent(self, machine):
        await machine.start("1", ["a.py"])

        await machine.complete("1")
        await machine.complete("1")

        assert await machine.state("1") is ReviewState.completed

    @pytest.mark.asyncio
    async def test_reset_returns_to_absent_from_any_state(self, machine):
        await machine.start("1", ["a.py"])
        await machine.reset("1")
        assert await machine.state("1") is ReviewState.absent

        await machine.start("2", ["a.py"])
        await machine.complete("2")
        await machine.reset("2")
        assert await machine.state("2") is ReviewState.absent

    @pytest.mark.asyncio
    async def test_reset_of_absent_review_is_noop(self, machine):
        await machine.reset("never")
        assert await machine.is_in_progress("never") is False

    @pytest.mark.asyncio
    async def test_start_checks_before_writing(self):
        store = AsyncMock(spec=ReviewStore)
        store.is_in_progress.return_value = True
        machine = ReviewStateMachine(store)

        with pytest.raises(AlreadyInProgressError):
            await machine.start("1", ["a.py"])

        store.start_review.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_logs_stored_file_count(self, machine, memory_store):
        machine.logger = MagicMock()

        await machine.start("1", ["a.py", "b.py", "a.py"])

        snapshot = await memory_store.get_session("1")
        machine.logger.info.assert_any_call(
            "review_started", pr_id="1", total_files=snapshot.total_files
        )
        assert snapshot.total_files == 2
