"""
Ingestion service for persisting fused readings.

Inserts exactly one row per call into the ``readings`` hypertable (no
updates, no deletes) and invalidates the Redis current-snapshot cache after a
successful commit.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

import logging

from sqlalchemy import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from harvest.src.cache.redis_client import invalidate_current_cache
from harvest.src.db.models import SolarReading
from harvest.src.db.session import as_utc
from harvest.src.errors import StoreError
from harvest.src.models import Reading

logger = logging.getLogger(__name__)


async def ingest_reading(
    db: AsyncSession,
    reading: Reading,
    *,
    redis_url: str | None = None,
) -> None:
    """Insert a single fused reading.

    After the insert commits, the cached current snapshot is invalidated
    (best-effort) when a Redis URL is configured.

    Args:
        db: Async SQLAlchemy session.
        reading: The reading to persist.
        redis_url: Redis URL of the current-snapshot cache, or None.

    Raises:
        StoreError: If the insert or commit fails. The reading is not
            retried or buffered.
    """
    stmt = insert(SolarReading).values(
        observed_at=as_utc(reading.observed_at),
        current_power_w=reading.current_power_w,
        raw_payload=reading.raw_payload,
        uv_index=reading.uv_index,
        temperature=reading.temperature,
    )
    try:
        await db.execute(stmt)
        await db.commit()
    except (SQLAlchemyError, OSError) as exc:
        await db.rollback()
        raise StoreError("Failed to insert reading") from exc

    logger.info(
        "Ingested reading observed_at=%s power_w=%s uv=%s temp=%s",
        reading.observed_at.isoformat(),
        reading.current_power_w,
        reading.uv_index,
        reading.temperature,
    )

    if redis_url is not None:
        await invalidate_current_cache(redis_url)
