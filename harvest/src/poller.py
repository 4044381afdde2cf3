"""
Fault-isolated polling loop fusing SEMS, UV and weather data.

Each cycle walks ``IDLE -> FETCHING -> PERSISTING -> (FORWARDING) ->
SLEEPING``:

- FETCHING: ensure a fresh SEMS credential, then fetch solar, UV and
  weather concurrently and wait for all three before fusing them.
- PERSISTING: insert the fused reading (one row per cycle).
- FORWARDING: only when a forward target is configured; failures are
  logged and never fail the committed cycle.

The cycle body runs as its own asyncio task and every exception it raises,
typed or not, is caught at that boundary, logged, and counted as a failed
cycle. The loop sleeps the fixed interval only after a cycle fully
completes, so cycles never overlap. There is no backoff beyond that fixed
interval.

CHANGELOG:
- 2026-10-19: Run the cycle body as a supervised task
- 2026-10-19: Initial creation (STORY-014)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from harvest.src.errors import ForwardError, HarvestError
from harvest.src.fusion import fuse
from harvest.src.services.aggregation import rolling_averages
from harvest.src.services.ingestion import ingest_reading
from harvest.src.session_cache import utcnow

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from harvest.src.clients.sems import SemsClient
    from harvest.src.clients.weather import WeatherClient
    from harvest.src.forwarder import Forwarder
    from harvest.src.health import PollerHealth
    from harvest.src.models import Credential, Reading, SolarPartial
    from harvest.src.session_cache import SessionCache

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S: float = 60.0
"""Fixed delay between the end of one cycle and the start of the next."""


class PollerState(str, Enum):
    """Phases of a poll cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    PERSISTING = "persisting"
    FORWARDING = "forwarding"
    SLEEPING = "sleeping"


class Poller:
    """Periodic harvester owning one cycle at a time.

    Args:
        session_cache: Provides a fresh SEMS credential.
        sems: Authenticated solar adapter.
        weather: Best-effort UV/weather adapter.
        session_factory: Factory for database sessions.
        uv_station_name: Station name to read from the UV document.
        weather_geocode: BOM location for temperature observations.
        forwarder: Downstream forwarder, or None to skip forwarding.
        health: Health tracker updated after every cycle, or None.
        redis_url: Redis URL of the current-snapshot cache, or None.
        poll_interval_s: Fixed sleep between cycles.
        clock: Callable returning the current aware UTC time.
    """

    def __init__(
        self,
        *,
        session_cache: SessionCache,
        sems: SemsClient,
        weather: WeatherClient,
        session_factory: async_sessionmaker[AsyncSession],
        uv_station_name: str,
        weather_geocode: str,
        forwarder: Forwarder | None = None,
        health: PollerHealth | None = None,
        redis_url: str | None = None,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_cache = session_cache
        self._sems = sems
        self._weather = weather
        self._session_factory = session_factory
        self._uv_station_name = uv_station_name
        self._weather_geocode = weather_geocode
        self._forwarder = forwarder
        self._health = health
        self._redis_url = redis_url
        self._poll_interval_s = poll_interval_s
        self._clock = clock
        self._state = PollerState.IDLE

    @property
    def state(self) -> PollerState:
        """Current phase of the poll loop."""
        return self._state

    # ------------------------------------------------------------------
    # Cycle body
    # ------------------------------------------------------------------

    async def run_cycle(self) -> Reading:
        """Execute one fetch-fuse-persist-forward cycle.

        Returns:
            The persisted reading.

        Raises:
            AuthError, UpstreamError, StoreError: From the fetch and persist
                phases. Forwarding failures are logged, not raised.
        """
        self._state = PollerState.FETCHING
        logger.info("Fetching data")
        credential = await self._session_cache.ensure_credential()
        solar, uv_index, temperature = await self._fetch_all(credential)

        reading = fuse(
            solar,
            uv_index=uv_index,
            temperature=temperature,
            observed_at=self._clock(),
        )

        self._state = PollerState.PERSISTING
        async with self._session_factory() as db:
            await ingest_reading(db, reading, redis_url=self._redis_url)

        if self._forwarder is not None:
            self._state = PollerState.FORWARDING
            await self._forward(reading)

        return reading

    async def _fetch_all(
        self,
        credential: Credential,
    ) -> tuple[SolarPartial, float | None, float | None]:
        """Fetch solar, UV and weather concurrently and join all three.

        Raises:
            UpstreamError: If the solar fetch failed. The enrichment fetches
                are always awaited first and their failures become None.
        """
        solar, uv_index, temperature = await asyncio.gather(
            self._sems.fetch_solar(credential),
            self._weather.fetch_uv(self._uv_station_name),
            self._weather.fetch_weather(self._weather_geocode),
            return_exceptions=True,
        )

        if isinstance(uv_index, BaseException):
            logger.warning("UV fetch raised, continuing without UV", exc_info=uv_index)
            uv_index = None
        if isinstance(temperature, BaseException):
            logger.warning(
                "Weather fetch raised, continuing without temperature",
                exc_info=temperature,
            )
            temperature = None
        if isinstance(solar, BaseException):
            raise solar

        return solar, uv_index, temperature

    async def _forward(self, reading: Reading) -> None:
        """Forward *reading* with its rolling averages, logging any failure."""
        assert self._forwarder is not None
        try:
            averages = await rolling_averages(
                self._session_factory, now=reading.observed_at
            )
            await self._forwarder.forward(reading, averages)
        except ForwardError:
            logger.warning("Forwarding failed", exc_info=True)
        except Exception:
            logger.error("Unexpected error while forwarding", exc_info=True)

    # ------------------------------------------------------------------
    # Supervised cycle boundary
    # ------------------------------------------------------------------

    async def run_once(self) -> bool:
        """Run one cycle as an isolated task and contain any failure.

        Returns:
            True if the reading was persisted, False if the cycle failed.
            Never raises, except when the caller itself is cancelled.
        """
        task = asyncio.create_task(self.run_cycle(), name="harvest-cycle")
        success = False
        try:
            await task
            success = True
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.error("Poll cycle was cancelled unexpectedly")
        except HarvestError as exc:
            logger.error("Error fetching data: %s", exc, exc_info=True)
        except Exception:
            logger.error("Poll cycle crashed with an unexpected fault", exc_info=True)
        finally:
            self._state = PollerState.SLEEPING

        if self._health is not None:
            self._health.record_cycle(success=success)
        return success

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Run cycles until *shutdown_event* is set.

        Each iteration runs one supervised cycle, then waits the fixed poll
        interval (or until shutdown) before the next.
        """
        logger.info("Poll loop started (interval=%ss)", self._poll_interval_s)
        while not shutdown_event.is_set():
            await self.run_once()
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(
                    shutdown_event.wait(),
                    timeout=self._poll_interval_s,
                )
            self._state = PollerState.IDLE
        logger.info("Poll loop stopped")
