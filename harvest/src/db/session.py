"""
Async database engine and session factory.

Uses SQLAlchemy 2.x async engine with the asyncpg driver for PostgreSQL, or
aiosqlite for local development. The engine and session factory are built
once by the application lifespan and passed down explicitly to the poller
and the query routes; nothing here holds module-level state.

CHANGELOG:
- 2026-10-19: Drop module-level engine singletons; callers own the handles
- 2026-10-19: Initial creation (STORY-007)
"""

from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from harvest.src.db.models import Base


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy async database URL.

    Returns:
        AsyncEngine: Configured async engine.
    """
    return create_async_engine(database_url, echo=False)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*.

    Args:
        engine: The async engine sessions should use.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables directly from the ORM metadata.

    Used for SQLite development databases and tests. PostgreSQL deployments
    use the alembic migrations, which also create the hypertable.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime.

    SQLite hands back naive datetimes for ``DateTime(timezone=True)``
    columns; every timestamp written by the harvester is UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
