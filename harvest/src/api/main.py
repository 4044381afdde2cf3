"""
FastAPI application factory for the solar harvester.

The lifespan owns every long-lived resource: it loads settings, builds the
database engine and session factory, one shared httpx.AsyncClient, the
source adapters and the poller, and starts the poll loop as a background
task. On shutdown it signals the loop, waits for the current cycle to end,
then closes the HTTP client and disposes the engine. Route handlers reach
these handles through ``app.state`` via the dependencies in ``deps``.

CHANGELOG:
- 2026-10-19: Release the engine and HTTP client when startup fails
- 2026-10-19: Map StoreError to a generic 500 response
- 2026-10-19: Run the poll loop under the application lifespan (STORY-014)
- 2026-10-19: Initial creation (STORY-007)
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from harvest.src.api.current import router as current_router
from harvest.src.api.health import router as health_router
from harvest.src.api.history import router as history_router
from harvest.src.clients.sems import SemsClient
from harvest.src.clients.weather import WeatherClient
from harvest.src.config import HarvestSettings
from harvest.src.db.session import create_engine, create_schema, create_session_factory
from harvest.src.errors import StoreError
from harvest.src.forwarder import Forwarder
from harvest.src.health import PollerHealth
from harvest.src.poller import Poller
from harvest.src.session_cache import SessionCache

logger = logging.getLogger(__name__)


def build_poller(
    settings: HarvestSettings,
    *,
    http: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
    health: PollerHealth | None = None,
) -> Poller:
    """Wire the adapters, session cache and forwarder into a Poller."""
    sems = SemsClient(
        http,
        account=settings.sems_account,
        password=settings.sems_password,
        station_id=settings.sems_station_id,
        login_url=settings.sems_login_url,
        plant_details_url=settings.sems_plant_details_url,
    )
    weather = WeatherClient(
        http,
        uv_url=settings.uv_url,
        weather_url_template=settings.weather_url_template,
    )
    target = settings.forward_target
    return Poller(
        session_cache=SessionCache(
            sems, session_factory, ttl_s=settings.credential_ttl_s
        ),
        sems=sems,
        weather=weather,
        session_factory=session_factory,
        uv_station_name=settings.uv_station_name,
        weather_geocode=settings.weather_geocode,
        forwarder=Forwarder(http, target) if target is not None else None,
        health=health,
        redis_url=settings.redis_url,
        poll_interval_s=settings.poll_interval_s,
    )


async def _stop_poll_loop(
    poll_task: asyncio.Task[None], shutdown_event: asyncio.Event
) -> None:
    """Signal the poll loop and wait for its current cycle to finish."""
    shutdown_event.set()
    try:
        await poll_task
    except Exception:
        logger.error("Poll loop terminated with an error", exc_info=True)


def create_app(settings: HarvestSettings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Explicit settings, or None to load them from the
            environment.

    Usage::

        uvicorn harvest.src.api.main:create_app --factory
    """
    if settings is None:
        settings = HarvestSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        app.state.settings = settings

        # Cleanups run in reverse order, also when a later startup step fails.
        async with AsyncExitStack() as stack:
            engine = create_engine(settings.database_url)
            stack.push_async_callback(engine.dispose)
            if engine.dialect.name == "sqlite":
                await create_schema(engine)
            session_factory = create_session_factory(engine)
            app.state.session_factory = session_factory

            http = httpx.AsyncClient(timeout=settings.http_timeout_s)
            stack.push_async_callback(http.aclose)
            health = PollerHealth(settings.health_file)
            app.state.poller_health = health

            shutdown_event = asyncio.Event()
            poll_task: asyncio.Task[None] | None = None
            if settings.poller_enabled:
                poller = build_poller(
                    settings, http=http, session_factory=session_factory, health=health
                )
                app.state.poller = poller
                poll_task = asyncio.create_task(
                    poller.run(shutdown_event), name="harvest-poll-loop"
                )
                stack.push_async_callback(_stop_poll_loop, poll_task, shutdown_event)
            else:
                logger.info("Poller disabled, serving queries only")
            app.state.poll_task = poll_task

            logger.info("Solar harvester API ready")
            try:
                yield
            finally:
                logger.info("Solar harvester API shutting down")

    app = FastAPI(
        title="Solar Harvester API",
        description="Solar, UV and weather telemetry for one SEMS power station.",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("Store failure serving %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500, content={"detail": "Failed to query readings."}
        )

    app.include_router(health_router)
    app.include_router(current_router)
    app.include_router(history_router)

    @app.get("/")
    async def root() -> dict:
        """Root liveness endpoint.

        Returns:
            dict: JSON object with application status.
        """
        return {"status": "ok"}

    return app
