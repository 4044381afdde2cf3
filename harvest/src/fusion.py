"""
Pure fusion of one solar fetch with the optional UV and weather enrichments.

Takes the SolarPartial returned by the SEMS client, the best-effort UV index
and temperature (either may be None), and the capture timestamp, and
returns a single immutable Reading.

This is a pure function: no side effects, no I/O, no clock. The timestamp
is accepted as a parameter so it can be injected by the caller.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-004)

TODO:
- None
"""

from __future__ import annotations

from datetime import UTC, datetime

from harvest.src.models import Reading, SolarPartial


def fuse(
    solar: SolarPartial,
    *,
    uv_index: float | None,
    temperature: float | None,
    observed_at: datetime,
) -> Reading:
    """Combine one solar partial and optional enrichments into a Reading.

    Args:
        solar: Result of the plant-details fetch.
        uv_index: UV index, or None when the UV feed failed.
        temperature: Air temperature, or None when the weather feed failed.
        observed_at: Capture timestamp. Naive values are taken as UTC.

    Returns:
        The fused Reading. The raw upstream payload is carried through
        unchanged.
    """
    if observed_at.tzinfo is None:
        observed_at = observed_at.replace(tzinfo=UTC)
    else:
        observed_at = observed_at.astimezone(UTC)

    return Reading(
        current_power_w=solar.current_power_w,
        raw_payload=solar.raw_payload,
        uv_index=uv_index,
        temperature=temperature,
        observed_at=observed_at,
    )
