"""Review orchestrator for pr-reviewer.

Composes the review state machine with the Bitbucket client to implement
the externally visible operations: start a review, fetch the next file and
reset. Diffs are fetched one file at a time, immediately before that file
is returned, and never ahead of need.
"""

from __future__ import annotations

from typing import Any

import structlog

from pr_reviewer.bitbucket.client import BitbucketClient
from pr_reviewer.config import ReviewConfig
from pr_reviewer.errors import (
    AlreadyInProgressError,
    ConfigurationError,
    NoFilesToReviewError,
)
from pr_reviewer.review.filters import ExclusionFilter
from pr_reviewer.review.models import ReviewItem
from pr_reviewer.review.state_machine import ReviewState, ReviewStateMachine
from pr_reviewer.store.base import NextFile, ReviewStore

logger = structlog.get_logger(__name__)


class ReviewOrchestrator:
    """Runs file-by-file reviews of pull requests.

    Args:
        store: Initialized review store; the orchestrator does not own it.
        bitbucket: Client for the repository, or None when only operations
            that never reach Bitbucket (reset, status) will be used.
        config: Exclusion patterns and the prompt returned with each diff.
    """

    def __init__(
        self,
        store: ReviewStore,
        bitbucket: BitbucketClient | None,
        config: ReviewConfig | None = None,
    ):
        config = config or ReviewConfig()
        self.state_machine = ReviewStateMachine(store)
        self.bitbucket = bitbucket
        self.exclusions = ExclusionFilter(config.exclude_patterns)
        self.custom_prompt = config.custom_prompt

    def _require_bitbucket(self) -> BitbucketClient:
        if self.bitbucket is None:
            raise ConfigurationError("Bitbucket client is not configured")
        return self.bitbucket

    async def start_review(self, pr_id: str) -> ReviewItem:
        """Snapshot the PR's reviewable files and return the first one.

        Raises:
            AlreadyInProgressError: A review for pr_id is already running.
            NoFilesToReviewError: Every changed file matched an exclusion.
            UpstreamError: Bitbucket could not list files or fetch the diff.
        """
        if await self.state_machine.is_in_progress(pr_id):
            raise AlreadyInProgressError(pr_id)

        changed = await self._require_bitbucket().list_changed_files(pr_id)
        files = self.exclusions.apply(changed)
        logger.info(
            "changed_files_filtered",
            pr_id=pr_id,
            changed=len(changed),
            reviewable=len(files),
        )
        if not files:
            raise NoFilesToReviewError(pr_id, len(changed))

        await self.state_machine.start(pr_id, [f.path for f in files])
        return await self._advance(pr_id)

    async def next_review_item(self, pr_id: str) -> ReviewItem:
        """Return the next file, or the completion sentinel once none remain."""
        return await self._advance(pr_id)

    async def reset_review(self, pr_id: str) -> None:
        await self.state_machine.reset(pr_id)

    async def review_status(self, pr_id: str) -> dict[str, Any]:
        """Describe where a review stands without changing it."""
        snapshot = await self.state_machine.store.get_session(pr_id)
        if snapshot is None:
            return {
                "prNumber": pr_id,
                "state": ReviewState.absent.value,
                "current": 0,
                "total": 0,
                "reviewed": [],
                "remaining": [],
            }
        return {
            "prNumber": pr_id,
            "state": snapshot.status.value,
            "current": snapshot.current_index,
            "total": snapshot.total_files,
            "reviewed": [f.file_path for f in snapshot.files if f.reviewed],
            "remaining": snapshot.remaining,
        }

    async def post_comment(self, pr_id: str, file_path: str, line: int, text: str) -> dict[str, Any]:
        return await self._require_bitbucket().post_comment(pr_id, file_path, line, text)

    async def _advance(self, pr_id: str) -> ReviewItem:
        async def fetch_diff(next_file: NextFile) -> str:
            return await self._require_bitbucket().fetch_file_diff(pr_id, next_file.file_path)

        result = await self.state_machine.advance(pr_id, prepare=fetch_diff)
        if result.next_file is None:
            return ReviewItem.completed()

        return ReviewItem(
            file_path=result.next_file.file_path,
            diff=result.prepared or "",
            current=result.next_file.current,
            total=result.next_file.total,
            custom_prompt=self.custom_prompt,
        )
