"""
GET /v1/current endpoint for the latest reading and its statistics.

Returns the most recent reading together with the kWh counters re-derived
from its raw payload, the previous day's total, and the 15/60/180 minute
rolling averages rounded to two decimals. When REDIS_URL is configured the
response is cached for CACHE_TTL_S seconds; the cache is invalidated after
every insert and any Redis failure falls back to the database.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-011)

TODO:
- None
"""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, field_validator

from harvest.src.api.deps import Clock, SessionFactory, Settings
from harvest.src.cache.redis_client import get_cached_current, set_cached_current
from harvest.src.clients.sems import parse_plant_kpi
from harvest.src.errors import UpstreamError
from harvest.src.models import CurrentSnapshot
from harvest.src.services.aggregation import build_current

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["current"])


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class AveragesOut(BaseModel):
    """Rolling averages of the current power, null for empty windows."""

    mins_15: float | None = None
    mins_60: float | None = None
    mins_180: float | None = None

    @field_validator("mins_15", "mins_60", "mins_180")
    @classmethod
    def round_to_cents(cls, v: float | None) -> float | None:
        """Round averages to two decimals, keeping missing values as None."""
        return None if v is None else round(v, 2)


class CurrentResponse(BaseModel):
    """Response model for the current endpoint.

    Attributes:
        observed_at: Capture time of the latest reading (UTC).
        current_power_w: Instantaneous solar output in watts.
        uv_index: UV index at capture time, if known.
        temperature: Air temperature in Celsius, if known.
        today_kwh: Generation so far today.
        month_kwh: Generation so far this month.
        lifetime_kwh: Lifetime generation.
        yesterday_kwh: Total generation of the previous civil day.
        averages: 15/60/180 minute rolling averages.
    """

    observed_at: datetime
    current_power_w: float
    uv_index: float | None = None
    temperature: float | None = None
    today_kwh: float | None = None
    month_kwh: float | None = None
    lifetime_kwh: float | None = None
    yesterday_kwh: float | None = None
    averages: AveragesOut


def _to_response(snapshot: CurrentSnapshot) -> CurrentResponse:
    """Flatten a CurrentSnapshot into the response shape."""
    reading = snapshot.reading
    try:
        kpi = parse_plant_kpi(reading.raw_payload)
        today_kwh, month_kwh, lifetime_kwh = (
            kpi.today_kwh,
            kpi.month_kwh,
            kpi.lifetime_kwh,
        )
    except UpstreamError:
        logger.warning("Latest reading has no KPI block in its payload")
        today_kwh = month_kwh = lifetime_kwh = None

    averages = {avg.window_minutes: avg.value for avg in snapshot.averages}
    return CurrentResponse(
        observed_at=reading.observed_at,
        current_power_w=reading.current_power_w,
        uv_index=reading.uv_index,
        temperature=reading.temperature,
        today_kwh=today_kwh,
        month_kwh=month_kwh,
        lifetime_kwh=lifetime_kwh,
        yesterday_kwh=snapshot.yesterday_kwh,
        averages=AveragesOut(
            mins_15=averages.get(15),
            mins_60=averages.get(60),
            mins_180=averages.get(180),
        ),
    )


# ---------------------------------------------------------------------------
# Route
# ---------------------------------------------------------------------------


@router.get("/current", response_model=CurrentResponse)
async def current(
    settings: Settings,
    session_factory: SessionFactory,
    clock: Clock,
) -> CurrentResponse:
    """Return the latest reading with rolling averages and day totals.

    Raises:
        HTTPException: 404 if no reading has been stored yet.
        StoreError: Mapped to 500 by the application exception handler.
    """
    if settings.redis_url is not None:
        cached = await get_cached_current(settings.redis_url)
        if cached is not None:
            return CurrentResponse.model_validate_json(cached)

    snapshot = await build_current(
        session_factory, settings.utc_offset, now=clock()
    )
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No readings stored yet.")

    response = _to_response(snapshot)

    if settings.redis_url is not None:
        await set_cached_current(
            settings.redis_url, response.model_dump_json(), settings.cache_ttl_s
        )

    return response
