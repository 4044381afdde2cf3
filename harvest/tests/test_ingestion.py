"""
Tests for the ingestion service.

Tests verify:
- ingest_reading() inserts exactly one row with every field.
- Store failures roll back and raise StoreError.
- A duplicate capture time is rejected without touching the stored row.
- The Redis current-snapshot cache is invalidated only when configured.

CHANGELOG:
- 2026-10-19: Cover duplicate capture times
- 2026-10-19: Initial creation (STORY-010)

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harvest.src.db.models import SolarReading
from harvest.src.db.session import as_utc
from harvest.src.errors import StoreError
from harvest.src.models import Reading
from harvest.src.services.ingestion import ingest_reading

TS = datetime(2026, 10, 19, 4, 0, tzinfo=UTC)


def _make_reading(**overrides: object) -> Reading:
    defaults: dict[str, object] = {
        "current_power_w": 2450.0,
        "raw_payload": {"data": {"kpi": {"pac": 2450.0, "power": 12.3}}},
        "uv_index": 3.2,
        "temperature": 24.6,
        "observed_at": TS,
    }
    defaults.update(overrides)
    return Reading(**defaults)  # type: ignore[arg-type]


class TestIngestReading:
    """Single-row inserts into the readings table."""

    @pytest.mark.asyncio
    async def test_inserts_one_row(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_factory() as db:
            await ingest_reading(db, _make_reading())

        async with session_factory() as db:
            rows = (await db.execute(select(SolarReading))).scalars().all()

        assert len(rows) == 1
        row = rows[0]
        assert as_utc(row.observed_at) == TS
        assert row.current_power_w == 2450.0
        assert row.raw_payload == {"data": {"kpi": {"pac": 2450.0, "power": 12.3}}}
        assert row.uv_index == 3.2
        assert row.temperature == 24.6

    @pytest.mark.asyncio
    async def test_missing_enrichments_stored_as_null(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        async with session_factory() as db:
            await ingest_reading(db, _make_reading(uv_index=None, temperature=None))

        async with session_factory() as db:
            row = (await db.execute(select(SolarReading))).scalar_one()

        assert row.uv_index is None
        assert row.temperature is None

    @pytest.mark.asyncio
    async def test_duplicate_capture_time_raises_store_error(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        """observed_at is the primary key; the first row is kept untouched."""
        async with session_factory() as db:
            await ingest_reading(db, _make_reading())

        async with session_factory() as db:
            with pytest.raises(StoreError):
                await ingest_reading(db, _make_reading(current_power_w=999.0))

        async with session_factory() as db:
            rows = (await db.execute(select(SolarReading))).scalars().all()

        assert len(rows) == 1
        assert rows[0].current_power_w == 2450.0

    @pytest.mark.asyncio
    async def test_store_failure_raises_store_error(self) -> None:
        db = AsyncMock()
        db.execute = AsyncMock(
            side_effect=OperationalError("INSERT", {}, Exception("disk full"))
        )

        with pytest.raises(StoreError):
            await ingest_reading(db, _make_reading())

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()


class TestCacheInvalidation:
    """The current-snapshot cache is dropped after each committed insert."""

    @pytest.mark.asyncio
    async def test_invalidates_when_redis_configured(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        with patch(
            "harvest.src.services.ingestion.invalidate_current_cache",
            new_callable=AsyncMock,
        ) as mock_invalidate:
            async with session_factory() as db:
                await ingest_reading(
                    db, _make_reading(), redis_url="redis://localhost:6379/0"
                )

        mock_invalidate.assert_awaited_once_with("redis://localhost:6379/0")

    @pytest.mark.asyncio
    async def test_skips_cache_without_redis(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        with patch(
            "harvest.src.services.ingestion.invalidate_current_cache",
            new_callable=AsyncMock,
        ) as mock_invalidate:
            async with session_factory() as db:
                await ingest_reading(db, _make_reading())

        mock_invalidate.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_no_invalidation_when_insert_fails(self) -> None:
        db = AsyncMock()
        db.commit = AsyncMock(
            side_effect=OperationalError("COMMIT", {}, Exception("locked"))
        )

        with patch(
            "harvest.src.services.ingestion.invalidate_current_cache",
            new_callable=AsyncMock,
        ) as mock_invalidate:
            with pytest.raises(StoreError):
                await ingest_reading(
                    db, _make_reading(), redis_url="redis://localhost:6379/0"
                )

        mock_invalidate.assert_not_awaited()
