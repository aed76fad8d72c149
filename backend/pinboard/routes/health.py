"""
Pinboard Backend — Health Check Route
=======================================

What:  GET /health for container health checks and load balancer probes.
How:   SELECT 1 against the database; the image service is judged from its
       configuration and circuit breaker state (ImageKit has no free ping
       endpoint, and a probe every few seconds should not cost API quota).

Status levels:
    healthy    database up, image service usable               (200)
    degraded   database up, image service unconfigured/open   (200)
    unhealthy  database unreachable                           (503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text

from pinboard import __version__
from pinboard.schemas.common import HealthResponse
from pinboard.services.imagekit_service import CircuitBreaker

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    image_status = "available"
    overall = "healthy"

    try:
        async with request.app.state.db.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    image_service = request.app.state.image_service
    if not image_service.is_configured:
        image_status = "not_configured"
    elif image_service.circuit_breaker.state == CircuitBreaker.OPEN:
        image_status = "circuit_open"

    if image_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        image_service=image_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
