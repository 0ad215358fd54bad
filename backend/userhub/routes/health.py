"""
Userhub Backend — Health Check Route
======================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Checks the database (SELECT 1) and the blob store (health_check()).

Status levels:
    - healthy:   database and blob store reachable (HTTP 200)
    - degraded:  blob store unreachable; logins and reads still work (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request, Response

from userhub import __version__
from userhub.schemas.user import HealthResponse

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
    storage_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        await request.app.state.database.ping()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Blob Store ──────────────────────────────────────────────────
    blob_store = request.app.state.blob_store
    try:
        reachable = await blob_store.health_check()
    except Exception as e:
        logger.warning("Health check: blob store failed: %s", str(e))
        reachable = False
    if not reachable:
        storage_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        storage=storage_status,
        storage_backend=blob_store.backend_name,
        uptime_seconds=round(time.time() - _start_time, 2),
        checked_at=datetime.now(timezone.utc),
    )
