"""SQLReviewStore - durable review progress over async SQLAlchemy.

Runs against SQLite (aiosqlite) by default and PostgreSQL (asyncpg) when the
configured URL says so. Each multi-row mutation runs inside a single
``session.begin()`` block, so a failure at any step rolls the whole call
back and no half-applied review is ever committed.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from pr_reviewer.config import DatabaseConfig
from pr_reviewer.errors import ConfigurationError, InternalError, NotInitializedError
from pr_reviewer.store.base import (
    FileSnapshot,
    NextFile,
    ReviewSnapshot,
    ReviewStatus,
    unique_in_order,
)
from pr_reviewer.store.connection import get_engine, get_session_factory
from pr_reviewer.store.models import Base, PRFile, PRStatus

logger = structlog.get_logger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


class SQLReviewStore:
    """Stores review progress in the pr_status and pr_files tables.

    The schema is created on initialize() when missing, so a fresh SQLite
    file works without running migrations.
    """

    def __init__(self, config: DatabaseConfig | None = None):
        self._config = config or DatabaseConfig()
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._upsert = None

    async def initialize(self) -> None:
        if self._session_factory is not None:
            return

        engine = get_engine(self._config)
        if engine.dialect.name not in _UPSERT_DIALECTS:
            await engine.dispose()
            raise ConfigurationError(
                f"Unsupported database dialect: {engine.dialect.name}",
                details={"supported": sorted(_UPSERT_DIALECTS)},
            )

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        self._engine = engine
        self._upsert = _UPSERT_DIALECTS[engine.dialect.name]
        self._session_factory = get_session_factory(engine)
        logger.info("review_store_initialized", backend="sql", dialect=engine.dialect.name)

    def _factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise NotInitializedError(type(self).__name__)
        return self._session_factory

    async def is_in_progress(self, pr_id: str) -> bool:
        stmt = select(func.count()).select_from(PRStatus).where(
            PRStatus.pr_number == pr_id,
            PRStatus.status == ReviewStatus.in_progress,
        )
        async with self._factory()() as session:
            count = (await session.execute(stmt)).scalar_one()
        return count > 0

    async def start_review(self, pr_id: str, files: Sequence[str]) -> None:
        ordered = unique_in_order(files)

        async with self._factory()() as session:
            async with session.begin():
                await self._upsert_session(session, pr_id, len(ordered))
                await session.execute(delete(PRFile).where(PRFile.pr_number == pr_id))
                await self._insert_files(session, pr_id, ordered)

        logger.info("review_rows_replaced", pr_id=pr_id, total_files=len(ordered))

    async def _upsert_session(self, session: AsyncSession, pr_id: str, total_files: int) -> None:
        # Concurrent starts for one pull request: the last writer wins
        stmt = self._upsert(PRStatus.__table__).values(
            pr_number=pr_id,
            status=ReviewStatus.in_progress,
            current_index=0,
            total_files=total_files,
        )
        await session.execute(
            stmt.on_conflict_do_update(
                index_elements=["pr_number"],
                set_={
                    "status": stmt.excluded.status,
                    "current_index": stmt.excluded.current_index,
                    "total_files": stmt.excluded.total_files,
                    "updated_at": func.now(),
                },
            )
        )

    async def _insert_files(
        self, session: AsyncSession, pr_id: str, ordered: list[str]
    ) -> None:
        session.add_all(
            PRFile(pr_number=pr_id, file_path=path, reviewed=False, review_order=index)
            for index, path in enumerate(ordered)
        )
        await session.flush()

    async def get_next_file(self, pr_id: str) -> NextFile | None:
        stmt = (
            select(PRFile.file_path, PRStatus.current_index, PRStatus.total_files)
            .join(
                PRFile,
                and_(
                    PRFile.pr_number == PRStatus.pr_number,
                    PRFile.review_order == PRStatus.current_index,
                ),
            )
            .where(
                PRStatus.pr_number == pr_id,
                PRStatus.status == ReviewStatus.in_progress,
                PRFile.reviewed.is_(False),
            )
        )
        async with self._factory()() as session:
            row = (await session.execute(stmt)).first()

        if row is None:
            return None
        return NextFile(
            file_path=row.file_path,
            current=row.current_index + 1,
            total=row.total_files,
        )

    async def mark_reviewed(self, pr_id: str, file_path: str) -> None:
        async with self._factory()() as session:
            async with session.begin():
                await self._flag_reviewed(session, pr_id, file_path)
                await self._advance_cursor(session, pr_id)

        logger.debug("file_marked_reviewed", pr_id=pr_id, file_path=file_path)

    async def _flag_reviewed(self, session: AsyncSession, pr_id: str, file_path: str) -> None:
        result = await session.execute(
            update(PRFile)
            .where(
                PRFile.pr_number == pr_id,
                PRFile.file_path == file_path,
                PRFile.reviewed.is_(False),
            )
            .values(reviewed=True)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InternalError(
                f"File {file_path} is not awaiting review in PR {pr_id}",
                details={"prNumber": pr_id, "filePath": file_path},
            )

    async def _advance_cursor(self, session: AsyncSession, pr_id: str) -> None:
        await session.execute(
            update(PRStatus)
            .where(PRStatus.pr_number == pr_id)
            .values(current_index=PRStatus.current_index + 1)
        )

    async def complete_review(self, pr_id: str) -> None:
        async with self._factory()() as session:
            async with session.begin():
                await session.execute(
                    update(PRStatus)
                    .where(PRStatus.pr_number == pr_id)
                    .values(status=ReviewStatus.completed)
                )

    async def reset_review(self, pr_id: str) -> None:
        async with self._factory()() as session:
            async with session.begin():
                await self._delete_files(session, pr_id)
                await self._delete_session(session, pr_id)

    async def _delete_files(self, session: AsyncSession, pr_id: str) -> None:
        await session.execute(delete(PRFile).where(PRFile.pr_number == pr_id))

    async def _delete_session(self, session: AsyncSession, pr_id: str) -> None:
        await session.execute(delete(PRStatus).where(PRStatus.pr_number == pr_id))

    async def get_session(self, pr_id: str) -> ReviewSnapshot | None:
        async with self._factory()() as session:
            review = await session.get(PRStatus, pr_id)
            if review is None:
                return None
            rows = (
                await session.execute(
                    select(PRFile)
                    .where(PRFile.pr_number == pr_id)
                    .order_by(PRFile.review_order)
                )
            ).scalars().all()

        return ReviewSnapshot(
            pr_id=review.pr_number,
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
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("review_store_closed", backend="sql")
        self._engine = None
        self._session_factory = None
