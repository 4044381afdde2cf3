"""
Health check endpoint for the harvester API.

GET /health answers 200 when the database responds to ``SELECT 1`` and the
background poll task is still running (or the poller is disabled), and 503
otherwise. The body carries the poll-cycle counters from PollerHealth. No
authentication is required; this is intended for Docker HEALTHCHECK and
internal monitoring only.

CHANGELOG:
- 2026-10-19: Check the database and poll task liveness
- 2026-10-19: Initial creation (STORY-015)

TODO:
- None
"""

import logging
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from harvest.src.api.deps import DbSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request, db: DbSession) -> JSONResponse:
    """Report database reachability and poll-loop liveness.

    Returns:
        JSONResponse: 200 with ``{"status": "ok", ...}`` when healthy,
        503 with ``{"status": "degraded", ...}`` otherwise.
    """
    database_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.warning("Health check could not reach the database", exc_info=True)
        database_ok = False

    poll_task = getattr(request.app.state, "poll_task", None)
    poller_running = poll_task is None or not poll_task.done()

    poller: dict[str, Any] = {
        "enabled": poll_task is not None,
        "running": poll_task is not None and poller_running,
    }
    poller_health = getattr(request.app.state, "poller_health", None)
    if poller_health is not None:
        poller.update(poller_health.snapshot())

    healthy = database_ok and poller_running
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "database": "ok" if database_ok else "unreachable",
            "poller": poller,
        },
    )
