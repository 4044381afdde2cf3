"""
Downstream forwarder pushing the latest reading to an external ingest sink.

POSTs the latest power reading, the 15/60/180 minute rolling averages and
the UV index to ``{base_url}/v1/ingest/solar`` with the shared secret in the
``X-Api-Key`` header. Forwarding happens after the reading is committed, so
a failure here is reported as ForwardError for the poller to log and never
affects the stored data. There is no retry and no delivery guarantee.

Operations:
- forward(reading, averages): POST the payload, raise ForwardError on failure.
- build_payload(reading, averages): the JSON body the sink expects.

CHANGELOG:
- 2026-10-19: Initial creation (STORY-013)

TODO:
- None
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from harvest.src.config import ForwardTarget
from harvest.src.errors import ForwardError
from harvest.src.models import Reading

logger = logging.getLogger(__name__)

INGEST_PATH = "/v1/ingest/solar"


def build_payload(
    reading: Reading,
    averages: Mapping[int, float | None],
) -> dict[str, Any]:
    """Serialise a reading and its rolling averages for the sink.

    Missing averages are sent as null, never as zero.
    """
    return {
        "current_kwh": reading.current_power_w,
        "average_kwh": {
            "mins_15": averages.get(15),
            "mins_60": averages.get(60),
            "mins_180": averages.get(180),
        },
        "uv_level": reading.uv_index,
    }


class Forwarder:
    """HTTP forwarder for the optional downstream sink.

    Args:
        http: Shared async HTTP client owned by the caller.
        target: Destination URL and shared secret.

    Usage::

        forwarder = Forwarder(http, ForwardTarget("https://gw.example.com", "key"))
        await forwarder.forward(reading, {15: 812.5, 60: 790.0, 180: None})
    """

    def __init__(self, http: httpx.AsyncClient, target: ForwardTarget) -> None:
        self._http = http
        self._target = target

    @property
    def url(self) -> str:
        """Full ingest URL of the sink."""
        return f"{self._target.base_url}{INGEST_PATH}"

    async def forward(
        self,
        reading: Reading,
        averages: Mapping[int, float | None],
    ) -> None:
        """POST the reading and averages to the sink.

        Raises:
            ForwardError: On transport errors or any non-2xx response.
        """
        try:
            response = await self._http.post(
                self.url,
                json=build_payload(reading, averages),
                headers={"X-Api-Key": self._target.api_key},
            )
        except httpx.HTTPError as exc:
            raise ForwardError(f"Forward request failed: {exc!r}") from exc

        if not response.is_success:
            raise ForwardError(f"Forward failed (HTTP {response.status_code})")

        logger.info("Forwarded reading, sink response: %d", response.status_code)
