"""
Health check endpoint.
"""

import time

import structlog
from fastapi import APIRouter, Depends

from spot_tracker.api.dependencies import get_database
from spot_tracker.api.models import ComponentHealth, HealthResponse
from spot_tracker.spots.repository import SpotRepository
from spot_tracker.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> ComponentHealth:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    healthy = await db.health_check()
    latency_ms = (time.perf_counter() - start) * 1000
    return ComponentHealth(
        status="healthy" if healthy else "unhealthy",
        latency_ms=round(latency_ms, 2),
    )


async def _active_spot_details(db: Database) -> dict | None:
    """Live spot count, or None when the spots table cannot be read."""
    try:
        return {"active_spots": await SpotRepository(db).count_active()}
    except Exception as e:
        logger.warning("Active spot count unavailable", error=str(e))
        return None


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the service and its database connection, and count live spots.",
)
async def health_check(db: Database = Depends(get_database)) -> HealthResponse:
    """Report unhealthy when the database does not answer."""
    db_health = await _check_database(db)
    if db_health.status != "healthy":
        logger.warning("Health check failed", component="database")
    else:
        db_health.details = await _active_spot_details(db)

    return HealthResponse(
        status=db_health.status,
        components={"database": db_health},
    )
