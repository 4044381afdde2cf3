"""
Unit tests for the downstream forwarder.

Tests verify:
- POST to {base_url}/v1/ingest/solar with the X-Api-Key header (AC1).
- Payload shape, with missing averages sent as null (AC2).
- Transport errors and non-2xx responses raise ForwardError (AC3).

CHANGELOG:
- 2026-10-19: Initial creation (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime

import httpx
import pytest

from harvest.src.config import ForwardTarget
from harvest.src.errors import ForwardError
from harvest.src.forwarder import Forwarder, build_payload
from harvest.src.models import Reading

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

TARGET = ForwardTarget(base_url="https://gateway.test", api_key="sink-secret")

READING = Reading(
    current_power_w=2450.0,
    raw_payload={"data": {"kpi": {"pac": 2450.0}}},
    uv_index=3.2,
    temperature=24.6,
    observed_at=datetime(2026, 10, 19, 4, 0, tzinfo=UTC),
)

AVERAGES = {15: 2400.5, 60: 2210.25, 180: None}


def _make_forwarder(
    handler: Callable[[httpx.Request], httpx.Response],
) -> Forwarder:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return Forwarder(http, TARGET)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBuildPayload:
    """AC2: the JSON body the sink expects."""

    def test_payload_shape(self) -> None:
        assert build_payload(READING, AVERAGES) == {
            "current_kwh": 2450.0,
            "average_kwh": {"mins_15": 2400.5, "mins_60": 2210.25, "mins_180": None},
            "uv_level": 3.2,
        }

    def test_missing_uv_and_windows_are_null(self) -> None:
        reading = READING.model_copy(update={"uv_index": None})

        payload = build_payload(reading, {})

        assert payload["uv_level"] is None
        assert payload["average_kwh"] == {
            "mins_15": None,
            "mins_60": None,
            "mins_180": None,
        }


class TestForward:
    """AC1/AC3: the HTTP exchange."""

    @pytest.mark.asyncio
    async def test_posts_payload_with_api_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"ok": True})

        forwarder = _make_forwarder(handler)
        await forwarder.forward(READING, AVERAGES)

        assert forwarder.url == "https://gateway.test/v1/ingest/solar"
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "https://gateway.test/v1/ingest/solar"
        assert request.headers["X-Api-Key"] == "sink-secret"
        assert json.loads(request.content) == build_payload(READING, AVERAGES)

    @pytest.mark.asyncio
    async def test_non_2xx_raises_forward_error(self) -> None:
        forwarder = _make_forwarder(lambda request: httpx.Response(502))

        with pytest.raises(ForwardError, match="502"):
            await forwarder.forward(READING, AVERAGES)

    @pytest.mark.asyncio
    async def test_connect_error_raises_forward_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ForwardError):
            await _make_forwarder(handler).forward(READING, AVERAGES)

    @pytest.mark.asyncio
    async def test_single_attempt_no_retry(self) -> None:
        calls = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal calls
            calls += 1
            return httpx.Response(500)

        with pytest.raises(ForwardError):
            await _make_forwarder(handler).forward(READING, AVERAGES)
        assert calls == 1
