"""Application wiring for pr-reviewer.

Builds the store, the Bitbucket client, the orchestrator and the router from
configuration, and owns their lifecycle. Nothing is held in module globals;
callers open an AppContext, pass it by reference and let it close on exit.

Example usage:
    >>> async with open_app(load_config()) as ctx:
    ...     envelope = await ctx.router.next_review_item("42")
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from pr_reviewer.bitbucket.client import BitbucketClient
from pr_reviewer.config import PRReviewerConfig
from pr_reviewer.logging import get_logger
from pr_reviewer.review.orchestrator import ReviewOrchestrator
from pr_reviewer.router import RequestRouter
from pr_reviewer.store import ReviewStore, create_store

logger = get_logger(__name__)


@dataclass
class AppContext:
    """Live components shared by one process.

    Attributes:
        config: Loaded configuration
        store: Initialized review store
        bitbucket: Bitbucket client, None when opened without one
        orchestrator: Review orchestrator over store and client
        router: Request router in front of the orchestrator
    """

    config: PRReviewerConfig
    store: ReviewStore
    bitbucket: BitbucketClient | None
    orchestrator: ReviewOrchestrator
    router: RequestRouter


@asynccontextmanager
async def open_app(
    config: PRReviewerConfig,
    with_bitbucket: bool = True,
    store: ReviewStore | None = None,
) -> AsyncIterator[AppContext]:
    """Initialize every component, yield them, and release them afterwards.

    Args:
        config: Loaded configuration
        with_bitbucket: Build a Bitbucket client. Operations that never reach
            Bitbucket (reset, status) can skip it and need no credentials.
        store: Use this store instead of building one from config

    Raises:
        ConfigurationError: If with_bitbucket is set and no credentials exist.
        Exception: Whatever the store raises when it fails to initialize.
    """
    bitbucket = BitbucketClient(config.bitbucket) if with_bitbucket else None
    store = store or create_store(config.database)

    try:
        await store.initialize()
        orchestrator = ReviewOrchestrator(store, bitbucket, config.review)
        yield AppContext(
            config=config,
            store=store,
            bitbucket=bitbucket,
            orchestrator=orchestrator,
            router=RequestRouter(orchestrator),
        )
    finally:
        if bitbucket is not None:
            await bitbucket.close()
        await store.close()
        logger.debug("app_closed")
