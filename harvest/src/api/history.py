"""
GET /v1/history endpoints for 5-minute bucketed history.

``/v1/history`` returns the last 48 hours split into today and yesterday at
the configured fixed UTC offset. ``/v1/history/since`` returns a flat list
of buckets from a caller-supplied timestamp up to now. Buckets are sparse:
intervals without readings are omitted. Averages are rounded to two
decimals.

CHANGELOG:
- 2026-10-19: Add /v1/history/since (STORY-012)
- 2026-10-19: Initial creation (STORY-012)

TODO:
- None
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Query
from pydantic import BaseModel, field_validator

from harvest.src.api.deps import Clock, DbSession, Settings
from harvest.src.models import HistoryBucket
from harvest.src.services.aggregation import partition_today_yesterday, query_history

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["history"])

HISTORY_WINDOW = timedelta(hours=48)


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class BucketOut(BaseModel):
    """Averages over one 5-minute bucket.

    Attributes:
        bucket_start: Start timestamp of the bucket (UTC).
        avg_power_w: Average solar output in watts.
        avg_uv: Average UV index, null when no reading had one.
        avg_temp: Average temperature, null when no reading had one.
    """

    bucket_start: datetime
    avg_power_w: float
    avg_uv: float | None = None
    avg_temp: float | None = None

    @field_validator("avg_power_w", "avg_uv", "avg_temp")
    @classmethod
    def round_to_cents(cls, v: float | None) -> float | None:
        """Round bucket averages to two decimals, keeping missing values as None."""
        return None if v is None else round(v, 2)


class HistoryResponse(BaseModel):
    """Buckets of the last 48 hours split by civil day."""

    today: list[BucketOut]
    yesterday: list[BucketOut]


def _to_out(buckets: Iterable[HistoryBucket]) -> list[BucketOut]:
    return [BucketOut(**b.model_dump()) for b in buckets]


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/history", response_model=HistoryResponse)
async def history(db: DbSession, settings: Settings, clock: Clock) -> HistoryResponse:
    """Return the last 48 hours of buckets partitioned into today/yesterday.

    Every bucket whose local civil date differs from today's is labelled
    yesterday.
    """
    now = clock()
    buckets = await query_history(db, now - HISTORY_WINDOW)
    today, yesterday = partition_today_yesterday(
        buckets, settings.utc_offset, now=now
    )
    logger.debug(
        "History query: today=%d yesterday=%d", len(today), len(yesterday)
    )
    return HistoryResponse(today=_to_out(today), yesterday=_to_out(yesterday))


@router.get("/history/since", response_model=list[BucketOut])
async def history_since(
    db: DbSession,
    ts: Annotated[
        datetime,
        Query(description="ISO 8601 start timestamp; naive values are UTC."),
    ],
) -> list[BucketOut]:
    """Return buckets for readings observed from *ts* up to now."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    buckets = await query_history(db, ts)
    return _to_out(buckets)
