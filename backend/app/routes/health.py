"""
XFound Backend — Health Check Route
=====================================

What:  GET /health for Docker health checks and load balancer probes.
How:   SELECT 1 against the database plus the size of the presence directory.

Status levels:
    - healthy:   database reachable (HTTP 200)
    - unhealthy: database unreachable (HTTP 503, stop routing traffic)

The chat socket needs no probe: it lives in this process, so if /health
answers, the socket endpoint is up too. online_users is informational.
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text

from app import __version__
from app.database import engine
from app.dependencies import get_presence
from app.schemas.common import HealthResponse
from app.services.presence import PresenceDirectory

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    presence: PresenceDirectory = Depends(get_presence),
) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        online_users=len(presence),
        uptime_seconds=round(time.time() - _start_time, 2),
    )
