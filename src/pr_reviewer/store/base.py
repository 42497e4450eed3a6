"""Review store interface.

Any storage backend for review progress implements the ReviewStore protocol.
The review state machine depends on the protocol, never on a concrete
backend, so the durable SQL store and the volatile memory store are
interchangeable. Conformance is structural; there is no shared base class.

Every backend must give startReview, markReviewed and resetReview
all-or-nothing semantics: either every row change in the call is applied or
none is.
"""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable


class ReviewStatus(enum.Enum):
    """Persisted status of a review session.

    States:
        in_progress: Files remain to be served.
        completed: The cursor ran past the last file.
    """

    in_progress = "in_progress"
    completed = "completed"


@dataclass(frozen=True)
class NextFile:
    """The file at the review cursor.

    Attributes:
        file_path: Path of the file to review next.
        current: 1-based position for display (cursor + 1).
        total: Number of files in the review.
    """

    file_path: str
    current: int
    total: int


@dataclass(frozen=True)
class FileSnapshot:
    """Read-only view of one file row."""

    file_path: str
    reviewed: bool
    review_order: int


@dataclass(frozen=True)
class ReviewSnapshot:
    """Read-only view of a review session and its files in review order."""

    pr_id: str
    status: ReviewStatus
    current_index: int
    total_files: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    files: list[FileSnapshot] = field(default_factory=list)

    @property
    def remaining(self) -> list[str]:
        """Paths not yet served, in review order."""
        return [f.file_path for f in self.files if not f.reviewed]


@runtime_checkable
class ReviewStore(Protocol):
    """Persistence contract for review progress, keyed by pull request id."""

    async def initialize(self) -> None:
        """Prepare the store for use. Calling it twice is harmless."""
        ...

    async def is_in_progress(self, pr_id: str) -> bool:
        """Return True iff a session exists with status in_progress."""
        ...

    async def start_review(self, pr_id: str, files: Sequence[str]) -> None:
        """Replace the session and file list for pr_id in one atomic unit."""
        ...

    async def get_next_file(self, pr_id: str) -> NextFile | None:
        """Return the unreviewed file at the cursor of an in-progress review.

        Returns None when there is no in-progress session or the cursor has
        run past the last file.
        """
        ...

    async def mark_reviewed(self, pr_id: str, file_path: str) -> None:
        """Flag file_path reviewed and advance the cursor by one, atomically."""
        ...

    async def complete_review(self, pr_id: str) -> None:
        """Set the session status to completed. No-op if there is no session."""
        ...

    async def reset_review(self, pr_id: str) -> None:
        """Delete the session and its files atomically. No-op if absent."""
        ...

    async def get_session(self, pr_id: str) -> ReviewSnapshot | None:
        """Return a snapshot of the session, or None if none exists."""
        ...

    async def close(self) -> None:
        """Release held resources. Safe to call more than once."""
        ...


def unique_in_order(files: Sequence[str]) -> list[str]:
    """Drop repeated paths, keeping the first occurrence of each.

    A (pull request, path) pair is unique in storage, so a repeated path in
    an upstream listing would otherwise leave a gap in review_order.
    """
    seen: set[str] = set()
    ordered: list[str] = []
    for path in files:
        if path not in seen:
            seen.add(path)
            ordered.append(path)
    return ordered
