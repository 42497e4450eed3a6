"""Database connection management for the durable review store.

This module provides factory functions for creating SQLAlchemy async engines
and session factories from DatabaseConfig. SQLite engines get foreign key
enforcement switched on for every new connection so that ON DELETE CASCADE
from pr_status to pr_files holds.

Example usage:
    >>> from pr_reviewer.config import DatabaseConfig
    >>> from pr_reviewer.store.connection import get_engine, get_session_factory
    >>>
    >>> engine = get_engine(DatabaseConfig(url="sqlite+aiosqlite:///reviews.db"))
    >>> SessionFactory = get_session_factory(engine)
    >>>
    >>> async with SessionFactory() as session:
    ...     result = await session.execute(select(PRStatus))
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pr_reviewer.config import DatabaseConfig


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine from database configuration.

    Args:
        config: Database configuration containing URL and SQL echo preference.

    Returns:
        Configured AsyncEngine instance.
    """
    engine = create_async_engine(config.url, echo=config.echo)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the given engine.

    Sessions use expire_on_commit=False so attributes stay readable after
    commit without triggering lazy loads in async code.

    Args:
        engine: AsyncEngine to bind sessions to.

    Returns:
        Configured async_sessionmaker that produces AsyncSession instances.
    """
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
