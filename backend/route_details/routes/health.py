"""
Route Details Backend: Health Check Route
===========================================

What:  Health check endpoint for container and load balancer probes.
How:   Runs SELECT 1 against the database and reads the message server state
       from app.state.
Who:   Docker health checks, load balancers, monitoring.

Status levels:
    healthy:   database reachable, message transport listening or disabled
    degraded:  database reachable, message transport enabled but not listening
    unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from route_details import __version__
from route_details.config import settings
from route_details.database import engine
from route_details.schemas.envelope import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


def _transport_status(request: Request) -> str:
    if not settings.message_transport_enabled:
        return "disabled"
    server = getattr(request.app.state, "message_server", None)
    if server is not None and server.is_serving:
        return "listening"
    return "stopped"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
)
async def health_check(request: Request) -> JSONResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    transport = _transport_status(request)
    if transport == "stopped" and overall == "healthy":
        overall = "degraded"

    body = HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        message_transport=transport,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content=body.model_dump(mode="json"),
    )
