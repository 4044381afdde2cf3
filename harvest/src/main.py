"""
Harvester entrypoint: structured logging, config summary, and the server.

Starts uvicorn serving the FastAPI application from ``harvest.src.api.main``.
The application lifespan owns the poll loop, so the HTTP surface and the
harvester share one event loop and shut down together. uvicorn installs its
own SIGTERM/SIGINT handlers; the lifespan shutdown stops the poll loop after
the current cycle.

Structured JSON logging is used for all events, including uvicorn's own
loggers (``log_config=None`` keeps them on the root handler).

CHANGELOG:
- 2026-10-19: Serve the API and run the poll loop under one lifespan
- 2026-10-19: Initial creation (STORY-014)

TODO:
- None
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from harvest.src.config import HarvestSettings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: int = logging.INFO) -> None:
    """Install the JSON formatter on the root logger, writing to stderr."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def _masked_token(value: str | None) -> str:
    """Return a short non-reversible fingerprint of a secret for diagnostics."""
    if not value:
        return "empty"
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:10]
    return f"len={len(value)} sha256={digest}"


# ---------------------------------------------------------------------------
# Startup config logging
# ---------------------------------------------------------------------------


def log_config_summary(settings: HarvestSettings) -> None:
    """Log a config summary at startup with secrets masked.

    The SEMS password and the forwarder API key are logged only as
    fingerprints; the database and Redis URLs are omitted because they can
    embed credentials.
    """
    target = settings.forward_target
    logger.info(
        "Harvester starting with config: "
        "sems_account=%s, sems_station_id=%s, sems_password_masked=%s, "
        "uv_station_name=%s, weather_geocode=%s, "
        "poll_interval_s=%s, credential_ttl_s=%s, http_timeout_s=%s, "
        "utc_offset_minutes=%s, forward_base_url=%s, forward_api_key_masked=%s, "
        "redis_enabled=%s, poller_enabled=%s, host=%s, port=%s",
        settings.sems_account,
        settings.sems_station_id,
        _masked_token(settings.sems_password),
        settings.uv_station_name,
        settings.weather_geocode,
        settings.poll_interval_s,
        settings.credential_ttl_s,
        settings.http_timeout_s,
        settings.utc_offset_minutes,
        target.base_url if target is not None else None,
        _masked_token(target.api_key if target is not None else None),
        settings.redis_url is not None,
        settings.poller_enabled,
        settings.host,
        settings.port,
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


async def async_main() -> None:
    """Async entrypoint: load config, build the app, serve until stopped."""
    configure_logging()

    import uvicorn

    from harvest.src.api.main import create_app
    from harvest.src.config import HarvestSettings

    settings = HarvestSettings()
    log_config_summary(settings)

    app = create_app(settings)
    server = uvicorn.Server(
        uvicorn.Config(app, host=settings.host, port=settings.port, log_config=None)
    )
    await server.serve()
    logger.info("Shutdown complete")


def main() -> None:
    """Synchronous entrypoint for the harvester."""
    asyncio.run(async_main())


if __name__ == "__main__":
    main()
