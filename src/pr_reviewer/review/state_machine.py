"""Review lifecycle state machine for pr-reviewer.

A review for one pull request moves through three states:

    absent --start--> in_progress --advance--> in_progress | completed
    in_progress | completed --reset--> absent

The state machine owns every write to the review store. It is stateless
itself; all state lives in the store, so instances are cheap to rebuild.

Concurrency: ``start`` checks ``is_in_progress`` and then writes. Two
concurrent starts for the same pull request can both pass the check; the
store replaces the session and file list atomically, so the later write wins
and no mixed file list can result. This best-effort exclusivity is intended
for a single operator driving one review at a time and is not safe under
high concurrency.
"""

from __future__ import annotations

import enum
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog

from pr_reviewer.errors import AlreadyInProgressError, ReviewError
from pr_reviewer.store.base import NextFile, ReviewStatus, ReviewStore, unique_in_order

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ReviewState(enum.Enum):
    """Lifecycle state of a review, derived from the store."""

    absent = "absent"
    in_progress = "in_progress"
    completed = "completed"


class InvalidTransitionError(ReviewError):
    """Raised when a transition not in VALID_TRANSITIONS is attempted.

    Attributes:
        current: The current review state.
        target: The attempted target state.
        pr_id: The pull request whose review failed to transition.
    """

    code = "INVALID_TRANSITION"

    def __init__(self, current: ReviewState, target: ReviewState, pr_id: str | None = None):
        self.current = current
        self.target = target
        self.pr_id = pr_id
        msg = f"Invalid transition from {current.value} to {target.value}"
        if pr_id:
            msg += f" for PR {pr_id}"
        super().__init__(msg)


# Authoritative state machine definition
VALID_TRANSITIONS: dict[ReviewState, set[ReviewState]] = {
    ReviewState.absent: {ReviewState.in_progress},
    ReviewState.in_progress: {
        ReviewState.in_progress,
        ReviewState.completed,
        ReviewState.absent,
    },
    ReviewState.completed: {ReviewState.in_progress, ReviewState.absent},
}


def validate_transition(current: ReviewState, target: ReviewState) -> bool:
    """Return True if moving from current to target is allowed."""
    return target in VALID_TRANSITIONS.get(current, set())


@dataclass(frozen=True)
class Advance(Generic[T]):
    """Outcome of one advance.

    Attributes:
        next_file: The file that was served, or None when the review is over.
        prepared: Whatever the prepare callback returned for that file.
    """

    next_file: NextFile | None
    prepared: T | None = None

    @property
    def exhausted(self) -> bool:
        return self.next_file is None


class ReviewStateMachine:
    """Drives review sessions through their lifecycle on top of a ReviewStore."""

    def __init__(self, store: ReviewStore):
        self.store = store
        self.logger = logger.bind(component="ReviewStateMachine")

    async def state(self, pr_id: str) -> ReviewState:
        """Return the current lifecycle state of a review."""
        snapshot = await self.store.get_session(pr_id)
        if snapshot is None:
            return ReviewState.absent
        if snapshot.status is ReviewStatus.completed:
            return ReviewState.completed
        return ReviewState.in_progress

    async def is_in_progress(self, pr_id: str) -> bool:
        return await self.store.is_in_progress(pr_id)

    def _check(self, pr_id: str, current: ReviewState, target: ReviewState) -> None:
        if not validate_transition(current, target):
            raise InvalidTransitionError(current, target, pr_id)
        self.logger.info(
            "review_transition",
            pr_id=pr_id,
            from_state=current.value,
            to_state=target.value,
        )

    async def start(self, pr_id: str, files: Sequence[str]) -> None:
        """Begin a review over files, in the given order.

        Raises:
            AlreadyInProgressError: If a review for pr_id is in progress.
        """
        if await self.store.is_in_progress(pr_id):
            raise AlreadyInProgressError(pr_id)

        current = await self.state(pr_id)
        self._check(pr_id, current, ReviewState.in_progress)
        await self.store.start_review(pr_id, files)
        self.logger.info("review_started", pr_id=pr_id, total_files=len(unique_in_order(files)))

    async def advance(
        self,
        pr_id: str,
        prepare: Callable[[NextFile], Awaitable[T]] | None = None,
    ) -> Advance[T]:
        """Serve the file at the cursor and move the cursor past it.

        ``prepare`` is awaited with the file before the cursor moves. If it
        raises, nothing is written and the same file is served on the next
        call. When no file remains the review is completed; addressed to an
        absent review this is a no-op that still reports exhaustion.
        """
        next_file = await self.store.get_next_file(pr_id)
        if next_file is None:
            await self.complete(pr_id)
            return Advance(next_file=None)

        prepared = await prepare(next_file) if prepare is not None else None
        await self.store.mark_reviewed(pr_id, next_file.file_path)

        self.logger.info(
            "file_advanced",
            pr_id=pr_id,
            file_path=next_file.file_path,
            current=next_file.current,
            total=next_file.total,
        )
        return Advance(next_file=next_file, prepared=prepared)

    async def complete(self, pr_id: str) -> None:
        """Mark an in-progress review completed. Idempotent."""
        current = await self.state(pr_id)
        if current is not ReviewState.in_progress:
            return

        self._check(pr_id, current, ReviewState.completed)
        await self.store.complete_review(pr_id)
        self.logger.info("review_completed", pr_id=pr_id)

    async def reset(self, pr_id: str) -> None:
        """Discard all review state, returning to absent. Always succeeds."""
        current = await self.state(pr_id)
        if current is not ReviewState.absent:
            self._check(pr_id, current, ReviewState.absent)
        await self.store.reset_review(pr_id)
        self.logger.info("review_reset", pr_id=pr_id, previous_state=current.value)
