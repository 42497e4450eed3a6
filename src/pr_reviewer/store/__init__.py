"""Review progress storage for pr-reviewer.

Public API:
    ReviewStore: Protocol every backend satisfies.
    SQLReviewStore: Durable store over async SQLAlchemy.
    MemoryReviewStore: Volatile in-process store.
    create_store: Build the backend named in DatabaseConfig.
"""

from __future__ import annotations

from pr_reviewer.config import DatabaseConfig
from pr_reviewer.store.base import (
    FileSnapshot,
    NextFile,
    ReviewSnapshot,
    ReviewStatus,
    ReviewStore,
)
from pr_reviewer.store.memory import MemoryReviewStore
from pr_reviewer.store.sql import SQLReviewStore


def create_store(config: DatabaseConfig) -> ReviewStore:
    """Construct the configured store backend. The caller must initialize it.

    Args:
        config: Database configuration; ``backend`` selects the implementation.

    Returns:
        An uninitialized ReviewStore.
    """
    if config.backend == "memory":
        return MemoryReviewStore()
    return SQLReviewStore(config)


__all__ = [
    "create_store",
    "FileSnapshot",
    "MemoryReviewStore",
    "NextFile",
    "ReviewSnapshot",
    "ReviewStatus",
    "ReviewStore",
    "SQLReviewStore",
]
