"""Shared pytest fixtures for pr-reviewer tests.

Stores are provided for both backends. The SQL store runs against an
in-memory SQLite database through aiosqlite, which exercises the same
transactional code paths as a file or PostgreSQL database.
"""

from __future__ import annotations

from typing import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from pr_reviewer.bitbucket.client import BitbucketClient, ChangedFile
from pr_reviewer.config import DatabaseConfig, ReviewConfig
from pr_reviewer.review.orchestrator import ReviewOrchestrator
from pr_reviewer.router import RequestRouter
from pr_reviewer.store import MemoryReviewStore, ReviewStore, SQLReviewStore

IN_MEMORY_SQLITE = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def memory_store() -> AsyncGenerator[MemoryReviewStore, None]:
    """Initialized volatile store."""
    store = MemoryReviewStore()
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sql_store() -> AsyncGenerator[SQLReviewStore, None]:
    """Initialized durable store on an in-memory SQLite database."""
    store = SQLReviewStore(DatabaseConfig(backend="sql", url=IN_MEMORY_SQLITE))
    await store.initialize()
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["memory", "sql"])
async def store(request: pytest.FixtureRequest) -> AsyncGenerator[ReviewStore, None]:
    """Each test using this fixture runs once per backend."""
    if request.param == "memory":
        backend: ReviewStore = MemoryReviewStore()
    else:
        backend = SQLReviewStore(DatabaseConfig(backend="sql", url=IN_MEMORY_SQLITE))
    await backend.initialize()
    yield backend
    await backend.close()


@pytest.fixture
def review_config() -> ReviewConfig:
    """Review settings excluding markdown files."""
    return ReviewConfig(exclude_patterns=[r"\.md$"], custom_prompt="Review carefully.")


@pytest.fixture
def bitbucket() -> AsyncMock:
    """Bitbucket client double listing a.ts, b.md and c.ts."""
    client = AsyncMock(spec=BitbucketClient)
    client.list_changed_files.return_value = [
        ChangedFile(path="a.ts"),
        ChangedFile(path="b.md"),
        ChangedFile(path="c.ts"),
    ]
    client.fetch_file_diff.side_effect = lambda pr_id, path: f"diff --git a/{path} b/{path}"
    client.post_comment.return_value = {"id": 7}
    return client


@pytest.fixture
def orchestrator(
    store: ReviewStore, bitbucket: AsyncMock, review_config: ReviewConfig
) -> ReviewOrchestrator:
    """Orchestrator over the parametrized store and the Bitbucket double."""
    return ReviewOrchestrator(store, bitbucket, review_config)


@pytest.fixture
def router(orchestrator: ReviewOrchestrator) -> RequestRouter:
    return RequestRouter(orchestrator)
