"""
Aggregation service for rolling averages and bucketed history.

Rolling averages are computed on demand over trailing windows
``(now - window, now]``; the standard 15/60/180 minute windows run
concurrently, each on its own session. History is downsampled into sparse
5-minute buckets with TimescaleDB ``time_bucket()`` on PostgreSQL, or by
the equivalent epoch-aligned truncation in Python on other dialects.

Values are never rounded here; rounding to two decimals happens only in the
API response models.

CHANGELOG:
- 2026-10-19: Add yesterday total and current snapshot (STORY-011)
- 2026-10-19: Add today/yesterday partition (STORY-012)
- 2026-10-19: Initial creation (STORY-009)

TODO:
- None
"""

import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, time, timedelta

from sqlalchemy import Select, TextClause, func, select, text
from sqlalchemy.engine import Result
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harvest.src.clients.sems import parse_plant_kpi
from harvest.src.db.models import SolarReading
from harvest.src.db.session import as_utc
from harvest.src.errors import StoreError, UpstreamError
from harvest.src.models import (
    CurrentSnapshot,
    HistoryBucket,
    Reading,
    RollingAverage,
)

logger = logging.getLogger(__name__)

STANDARD_WINDOWS: tuple[int, ...] = (15, 60, 180)
"""Rolling-average windows in minutes served by the API and the forwarder."""

BUCKET_WIDTH = timedelta(minutes=5)
"""Default history bucket width."""

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_US = timedelta(microseconds=1)


async def _execute(
    db: AsyncSession,
    stmt: Select | TextClause,
    params: dict | None = None,
) -> Result:
    """Execute *stmt*, converting driver and SQLAlchemy failures to StoreError."""
    try:
        return await db.execute(stmt, params or {})
    except (SQLAlchemyError, OSError) as exc:
        raise StoreError("Failed to query readings") from exc


def _to_reading(row: SolarReading) -> Reading:
    """Convert an ORM row into a Reading model."""
    return Reading(
        current_power_w=row.current_power_w,
        raw_payload=row.raw_payload,
        uv_index=row.uv_index,
        temperature=row.temperature,
        observed_at=as_utc(row.observed_at),
    )


def _mean(values: Iterable[float | None]) -> float | None:
    """Mean of the non-missing values, None when there are none (SQL AVG)."""
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


# ---------------------------------------------------------------------------
# Rolling averages
# ---------------------------------------------------------------------------


async def rolling_average(
    db: AsyncSession,
    window_minutes: int,
    *,
    now: datetime,
) -> float | None:
    """Average power over readings observed in ``(now - window, now]``.

    Args:
        db: Async database session.
        window_minutes: Trailing window length in minutes.
        now: End of the window (inclusive).

    Returns:
        The mean ``current_power_w``, or None when no reading falls in the
        window. Never coerced to zero.

    Raises:
        StoreError: If the query fails.
    """
    now = as_utc(now)
    stmt = select(func.avg(SolarReading.current_power_w)).where(
        SolarReading.observed_at > now - timedelta(minutes=window_minutes),
        SolarReading.observed_at <= now,
    )
    result = await _execute(db, stmt)
    value = result.scalar_one_or_none()
    return None if value is None else float(value)


async def rolling_averages(
    session_factory: async_sessionmaker[AsyncSession],
    windows: Sequence[int] = STANDARD_WINDOWS,
    *,
    now: datetime,
) -> dict[int, float | None]:
    """Compute several rolling averages concurrently.

    Each window is an independent read on its own session, so the queries
    share nothing but read access to the store.

    Returns:
        Mapping of window minutes to average (or None), in *windows* order.
    """

    async def _one(window: int) -> float | None:
        async with session_factory() as db:
            return await rolling_average(db, window, now=now)

    values = await asyncio.gather(*(_one(w) for w in windows))
    return dict(zip(windows, values, strict=True))


# ---------------------------------------------------------------------------
# Bucketed history
# ---------------------------------------------------------------------------


def bucket_start(ts: datetime, width: timedelta = BUCKET_WIDTH) -> datetime:
    """Truncate *ts* to the start of its epoch-aligned bucket.

    Matches TimescaleDB ``time_bucket()`` for widths that divide a day, and
    depends only on the timestamp and the width.
    """
    width_us = width // _ONE_US
    offset_us = (as_utc(ts) - _EPOCH) // _ONE_US
    return _EPOCH + timedelta(microseconds=offset_us - offset_us % width_us)


def bucket_readings(
    rows: Iterable[tuple[datetime, float, float | None, float | None]],
    width: timedelta = BUCKET_WIDTH,
) -> list[HistoryBucket]:
    """Group ``(observed_at, power, uv, temp)`` rows into sparse buckets.

    Returns:
        One HistoryBucket per non-empty bucket, ascending by bucket start.
    """
    grouped: dict[datetime, list[tuple[float, float | None, float | None]]] = {}
    for observed_at, power, uv, temp in rows:
        grouped.setdefault(bucket_start(observed_at, width), []).append(
            (power, uv, temp)
        )

    return [
        HistoryBucket(
            bucket_start=start,
            avg_power_w=_mean(p for p, _, _ in members),  # type: ignore[arg-type]
            avg_uv=_mean(u for _, u, _ in members),
            avg_temp=_mean(t for _, _, t in members),
        )
        for start, members in sorted(grouped.items())
    ]


async def query_history(
    db: AsyncSession,
    start: datetime,
    end: datetime | None = None,
    *,
    bucket_width: timedelta = BUCKET_WIDTH,
) -> list[HistoryBucket]:
    """Return bucketed averages for readings in ``[start, end)``.

    Args:
        db: Async database session.
        start: Inclusive lower bound.
        end: Exclusive upper bound, or None for no upper bound.
        bucket_width: Bucket width (default 5 minutes).

    Returns:
        Sparse list of HistoryBucket ordered by bucket start; empty buckets
        are omitted, not zero-filled.

    Raises:
        StoreError: If the query fails.
    """
    if db.get_bind().dialect.name == "postgresql":
        return await _query_time_bucket(db, start, end, bucket_width)
    return await _query_raw_buckets(db, start, end, bucket_width)


async def _query_time_bucket(
    db: AsyncSession,
    start: datetime,
    end: datetime | None,
    bucket_width: timedelta,
) -> list[HistoryBucket]:
    """Bucket readings server-side with TimescaleDB ``time_bucket()``."""
    width_s = int(bucket_width.total_seconds())
    sql = (
        f"SELECT time_bucket(INTERVAL '{width_s} seconds', observed_at) AS bucket, "
        f"AVG(current_power_w) AS avg_power_w, "
        f"AVG(uv_index) AS avg_uv, "
        f"AVG(temperature) AS avg_temp "
        f"FROM readings "
        f"WHERE observed_at >= :start"
    )
    params: dict = {"start": as_utc(start)}
    if end is not None:
        sql += " AND observed_at < :end"
        params["end"] = as_utc(end)
    sql += " GROUP BY bucket ORDER BY bucket ASC"

    result = await _execute(db, text(sql), params)
    return [
        HistoryBucket(
            bucket_start=as_utc(row["bucket"]),
            avg_power_w=float(row["avg_power_w"]),
            avg_uv=None if row["avg_uv"] is None else float(row["avg_uv"]),
            avg_temp=None if row["avg_temp"] is None else float(row["avg_temp"]),
        )
        for row in result.mappings().all()
    ]


async def _query_raw_buckets(
    db: AsyncSession,
    start: datetime,
    end: datetime | None,
    bucket_width: timedelta,
) -> list[HistoryBucket]:
    """Select raw readings and bucket them in Python (no time_bucket())."""
    stmt = select(
        SolarReading.observed_at,
        SolarReading.current_power_w,
        SolarReading.uv_index,
        SolarReading.temperature,
    ).where(SolarReading.observed_at >= as_utc(start))
    if end is not None:
        stmt = stmt.where(SolarReading.observed_at < as_utc(end))
    stmt = stmt.order_by(SolarReading.observed_at.asc())

    result = await _execute(db, stmt)
    return bucket_readings(
        ((as_utc(r[0]), r[1], r[2], r[3]) for r in result.all()),
        bucket_width,
    )


def partition_today_yesterday(
    buckets: Iterable[HistoryBucket],
    utc_offset: timedelta,
    *,
    now: datetime,
) -> tuple[list[HistoryBucket], list[HistoryBucket]]:
    """Split buckets into "today" and "yesterday" at a fixed UTC offset.

    A bucket belongs to today when the civil date of its start (shifted by
    *utc_offset*) equals the civil date of *now* under the same offset.
    Every other bucket is labelled yesterday, including ones older than
    yesterday; callers query a 48 hour range to keep this accurate.

    Returns:
        ``(today, yesterday)``, each preserving the input order.
    """
    today_date = (as_utc(now) + utc_offset).date()
    today: list[HistoryBucket] = []
    yesterday: list[HistoryBucket] = []
    for bucket in buckets:
        if (as_utc(bucket.bucket_start) + utc_offset).date() == today_date:
            today.append(bucket)
        else:
            yesterday.append(bucket)
    return today, yesterday


# ---------------------------------------------------------------------------
# Latest reading and day totals
# ---------------------------------------------------------------------------


def civil_day_start(now: datetime, utc_offset: timedelta) -> datetime:
    """UTC instant of local midnight starting the civil day containing *now*."""
    local_date = (as_utc(now) + utc_offset).date()
    return datetime.combine(local_date, time.min, tzinfo=UTC) - utc_offset


async def latest_reading(db: AsyncSession) -> Reading | None:
    """Return the most recent reading, or None when the store is empty."""
    stmt = select(SolarReading).order_by(SolarReading.observed_at.desc()).limit(1)
    result = await _execute(db, stmt)
    row = result.scalar_one_or_none()
    return None if row is None else _to_reading(row)


async def yesterday_total_kwh(
    db: AsyncSession,
    utc_offset: timedelta,
    *,
    now: datetime,
) -> float | None:
    """Generation of the previous civil day in kWh.

    Uses the daily counter re-derived from the raw payload of the last
    reading captured before local midnight.

    Returns:
        The counter value, or None when no reading exists for yesterday or
        its payload has no usable counter.
    """
    today_start = civil_day_start(now, utc_offset)
    stmt = (
        select(SolarReading)
        .where(
            SolarReading.observed_at >= today_start - timedelta(days=1),
            SolarReading.observed_at < today_start,
        )
        .order_by(SolarReading.observed_at.desc())
        .limit(1)
    )
    result = await _execute(db, stmt)
    row = result.scalar_one_or_none()
    if row is None:
        return None
    try:
        return parse_plant_kpi(row.raw_payload).today_kwh
    except UpstreamError:
        logger.warning(
            "Stored payload at %s has no KPI block", row.observed_at, exc_info=True
        )
        return None


async def build_current(
    session_factory: async_sessionmaker[AsyncSession],
    utc_offset: timedelta,
    *,
    now: datetime,
) -> CurrentSnapshot | None:
    """Assemble the latest reading with rolling averages and yesterday's total.

    Returns:
        CurrentSnapshot, or None when no reading has been stored yet.

    Raises:
        StoreError: If any underlying query fails.
    """
    async with session_factory() as db:
        reading = await latest_reading(db)
        if reading is None:
            return None
        yesterday_kwh = await yesterday_total_kwh(db, utc_offset, now=now)

    averages = await rolling_averages(session_factory, now=now)
    return CurrentSnapshot(
        reading=reading,
        averages=[
            RollingAverage(window_minutes=w, value=v) for w, v in averages.items()
        ],
        yesterday_kwh=yesterday_kwh,
    )
