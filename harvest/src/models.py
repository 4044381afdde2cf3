"""
Pydantic models for credentials, fused readings, and derived statistics.

Credential and Reading are immutable once created. RollingAverage,
HistoryBucket and CurrentSnapshot are derived on demand from stored
readings and are never persisted.

CHANGELOG:
- 2026-10-19: Add CurrentSnapshot for the current query (STORY-011)
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class Credential(BaseModel):
    """Opaque SEMS session credential with its issue time.

    Superseded by a newer credential, never mutated.

    Attributes:
        token_blob: The ``data`` object returned by the SEMS login call.
        issued_at: UTC time the credential was obtained.
    """

    model_config = ConfigDict(frozen=True)

    token_blob: dict[str, Any]
    issued_at: datetime


class SolarPartial(BaseModel):
    """Result of a single plant-details fetch.

    Attributes:
        current_power_w: Instantaneous AC output in watts (``kpi.pac``).
        today_kwh: Energy generated today in kWh (``kpi.power``).
        month_kwh: Energy generated this month in kWh.
        lifetime_kwh: Lifetime energy in kWh (``kpi.total_power``).
        raw_payload: The complete upstream response body.
    """

    model_config = ConfigDict(frozen=True)

    current_power_w: float
    today_kwh: float | None = None
    month_kwh: float | None = None
    lifetime_kwh: float | None = None
    raw_payload: dict[str, Any]


class Reading(BaseModel):
    """One fused, timestamped observation.

    Attributes:
        current_power_w: Instantaneous solar output in watts.
        raw_payload: Full upstream plant-details response, kept so fields not
            surfaced here can be re-derived later.
        uv_index: UV index at capture time, if the UV feed answered.
        temperature: Air temperature in Celsius, if the weather feed answered.
        observed_at: UTC capture timestamp.
    """

    model_config = ConfigDict(frozen=True)

    current_power_w: float
    raw_payload: dict[str, Any]
    uv_index: float | None = None
    temperature: float | None = None
    observed_at: datetime


class RollingAverage(BaseModel):
    """Mean power over a trailing window; None when the window is empty."""

    window_minutes: int
    value: float | None


class HistoryBucket(BaseModel):
    """Per-bucket averages over a fixed-width time interval."""

    bucket_start: datetime
    avg_power_w: float
    avg_uv: float | None = None
    avg_temp: float | None = None


class CurrentSnapshot(BaseModel):
    """Latest reading plus the statistics served alongside it.

    Attributes:
        reading: The most recent stored reading.
        averages: Rolling averages for the standard windows.
        yesterday_kwh: Total generation of the previous civil day, if known.
    """

    reading: Reading
    averages: list[RollingAverage]
    yesterday_kwh: float | None = None
