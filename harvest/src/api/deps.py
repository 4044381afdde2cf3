"""
FastAPI dependency injection providers.

Every handle a route needs (settings, session factory, clock) lives on
``app.state``, placed there by the application lifespan. Tests swap any of
them through ``app.dependency_overrides``.

CHANGELOG:
- 2026-10-19: Read handles from app.state instead of module singletons
- 2026-10-19: Initial creation (STORY-007)
"""

from collections.abc import AsyncGenerator, Callable
from datetime import datetime
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harvest.src.config import HarvestSettings
from harvest.src.session_cache import utcnow


def get_settings(request: Request) -> HarvestSettings:
    """Return the settings loaded at startup."""
    return request.app.state.settings


def get_session_factory(request: Request) -> async_sessionmaker[AsyncSession]:
    """Return the session factory built at startup."""
    return request.app.state.session_factory


async def get_db(
    session_factory: Annotated[
        async_sessionmaker[AsyncSession], Depends(get_session_factory)
    ],
) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session for the duration of the request.

    Yields:
        AsyncSession: An async SQLAlchemy session.
    """
    async with session_factory() as session:
        yield session


def get_clock() -> Callable[[], datetime]:
    """Return the clock used to resolve "now" for a query."""
    return utcnow


# Type aliases for injecting dependencies via FastAPI Depends().
# Usage in route handlers:
#   async def my_route(db: DbSession, settings: Settings):
#       result = await db.execute(...)
DbSession = Annotated[AsyncSession, Depends(get_db)]
SessionFactory = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]
Settings = Annotated[HarvestSettings, Depends(get_settings)]
Clock = Annotated[Callable[[], datetime], Depends(get_clock)]
