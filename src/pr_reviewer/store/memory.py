"""MemoryReviewStore - volatile review progress held in dictionaries.

Useful for tests and for short-lived sessions where nothing needs to survive
a restart. It honours the same all-or-nothing contract as the SQL store:
mutations are applied to staged copies of a pull request's rows and swapped
in only once every step has succeeded.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

import structlog

from pr_reviewer.errors import InternalError, NotInitializedError
from pr_reviewer.store.base import (
    FileSnapshot,
    NextFile,
    ReviewSnapshot,
    ReviewStatus,
    unique_in_order,
)

logger = structlog.get_logger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _SessionRow:
    status: ReviewStatus
    current_index: int
    total_files: int
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class _FileRow:
    file_path: str
    review_order: int
    reviewed: bool = False


@dataclass
class _Staged:
    """Working copy of one pull request's rows inside a transaction."""

    session: _SessionRow | None
    files: dict[str, _FileRow]


class MemoryReviewStore:
    """Keeps review sessions and files in process memory."""

    def __init__(self) -> None:
        self._initialized = False
        self._sessions: dict[str, _SessionRow] = {}
        self._files: dict[str, dict[str, _FileRow]] = {}

    async def initialize(self) -> None:
        if not self._initialized:
            self._initialized = True
            logger.info("review_store_initialized", backend="memory")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError(type(self).__name__)

    @contextmanager
    def _transaction(self, pr_id: str) -> Iterator[_Staged]:
        self._require_initialized()
        current = self._sessions.get(pr_id)
        staged = _Staged(
            session=replace(current) if current is not None else None,
            files={path: replace(row) for path, row in self._files.get(pr_id, {}).items()},
        )

        yield staged

        # Only reached when the body raised nothing
        if staged.session is None:
            self._sessions.pop(pr_id, None)
            self._files.pop(pr_id, None)
        else:
            self._sessions[pr_id] = staged.session
            self._files[pr_id] = staged.files

    async def is_in_progress(self, pr_id: str) -> bool:
        self._require_initialized()
        review = self._sessions.get(pr_id)
        return review is not None and review.status is ReviewStatus.in_progress

    async def start_review(self, pr_id: str, files: Sequence[str]) -> None:
        ordered = unique_in_order(files)

        with self._transaction(pr_id) as staged:
            if staged.session is None:
                staged.session = _SessionRow(
                    status=ReviewStatus.in_progress,
                    current_index=0,
                    total_files=len(ordered),
                )
            else:
                staged.session.status = ReviewStatus.in_progress
                staged.session.current_index = 0
                staged.session.total_files = len(ordered)
                staged.session.updated_at = _now()

            staged.files = {}
            await self._insert_files(staged, ordered)

        logger.info("review_rows_replaced", pr_id=pr_id, total_files=len(ordered))

    async def _insert_files(self, staged: _Staged, ordered: list[str]) -> None:
        for index, path in enumerate(ordered):
            staged.files[path] = _FileRow(file_path=path, review_order=index)

    async def get_next_file(self, pr_id: str) -> NextFile | None:
        self._require_initialized()
        review = self._sessions.get(pr_id)
        if review is None or review.status is not ReviewStatus.in_progress:
            return None

        for row in self._files.get(pr_id, {}).values():
            if row.review_order == review.current_index and not row.reviewed:
                return NextFile(
                    file_path=row.file_path,
                    current=review.current_index + 1,
                    total=review.total_files,
                )
        return None

    async def mark_reviewed(self, pr_id: str, file_path: str) -> None:
        with self._transaction(pr_id) as staged:
            await self._flag_reviewed(staged, pr_id, file_path)
            await self._advance_cursor(staged, pr_id)

        logger.debug("file_marked_reviewed", pr_id=pr_id, file_path=file_path)

    async def _flag_reviewed(self, staged: _Staged, pr_id: str, file_path: str) -> None:
        row = staged.files.get(file_path)
        if row is None or row.reviewed:
            raise InternalError(
                f"File {file_path} is not awaiting review in PR {pr_id}",
                details={"prNumber": pr_id, "filePath": file_path},
            )
        row.reviewed = True

    async def _advance_cursor(self, staged: _Staged, pr_id: str) -> None:
        if staged.session is None:
            raise InternalError(f"No review session for PR {pr_id}")
        staged.session.current_index += 1
        staged.session.updated_at = _now()

    async def complete_review(self, pr_id: str) -> None:
        with self._transaction(pr_id) as staged:
            if staged.session is not None:
                staged.session.status = ReviewStatus.completed
                staged.session.updated_at = _now()

    async def reset_review(self, pr_id: str) -> None:
        with self._transaction(pr_id) as staged:
            await self._delete_files(staged)
            await self._delete_session(staged)

    async def _delete_files(self, staged: _Staged) -> None:
        staged.files = {}

    async def _delete_session(self, staged: _Staged) -> None:
        staged.session = None

    async def get_session(self, pr_id: str) -> ReviewSnapshot | None:
        self._require_initialized()
        review = self._sessions.get(pr_id)
        if review is None:
            return None

        rows = sorted(self._files.get(pr_id, {}).values(), key=lambda r: r.review_order)
        return ReviewSnapshot(
            pr_id=pr_id,
            status=review.status,
            current_index=review.current_index,
            total_files=review.total_files,
            created_at=review.created_at,
            updated_at=review.updated_at,
            files=[
                FileSnapshot(
                    file_path=row.file_path,
                    reviewed=row.reviewed,
                    review_order=row.review_order,
                )
                for row in rows
            ],
        )

    async def close(self) -> None:
        self._sessions.clear()
        self._files.clear()
        if self._initialized:
            logger.info("review_store_closed", backend="memory")
        self._initialized = False
