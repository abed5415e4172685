"""
NoteKeeper Backend — Health Check Route
=========================================

What:  GET /health for load balancers and container probes.
How:   Asks the active StorageProvider for a cheap reachability check
       (SELECT 1, or a writable data directory) and reports which backend
       is running.

Status levels:
    healthy    storage reachable             (HTTP 200)
    unhealthy  storage unreachable           (HTTP 503)

The admin router reuses `build_health()` for /api/admin/system/health.
"""

import logging
import time

from fastapi import APIRouter, Depends, Response, status

from notekeeper import __version__
from notekeeper.dependencies import get_storage
from notekeeper.schemas.api import HealthResponse
from notekeeper.schemas.domain import utc_now
from notekeeper.storage.base import StorageProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Process start, for uptime reporting.
_start_time = time.time()


async def build_health(storage: StorageProvider) -> HealthResponse:
    reachable = await storage.health_check()
    return HealthResponse(
        status="healthy" if reachable else "unhealthy",
        version=__version__,
        storage=storage.kind,
        storage_status="connected" if reachable else "disconnected",
        uptime_seconds=round(time.time() - _start_time, 2),
        timestamp=utc_now(),
    )


@router.get("/health", response_model=HealthResponse, summary="Service health check")
async def health_check(
    response: Response,
    storage: StorageProvider = Depends(get_storage),
) -> HealthResponse:
    health = await build_health(storage)
    if health.status == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return health
