"""Health check endpoint."""

import asyncio
import time

import structlog
from fastapi import APIRouter

from acc_admin import __version__
from acc_admin.core import lifespan
from acc_admin.routers.metrics import set_service_health
from acc_admin.schemas import DependencyHealth, HealthResponse

router = APIRouter()
logger = structlog.get_logger(__name__)


async def check_pool_health(pool, name: str) -> DependencyHealth:
    """Run a trivial query against a pool."""
    if pool is None:
        set_service_health(name, False)
        return DependencyHealth(status="error", error="Pool not initialized")

    start = time.perf_counter()
    try:
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
    except Exception as e:
        latency = (time.perf_counter() - start) * 1000
        set_service_health(name, False)
        return DependencyHealth(status="error", latency_ms=latency, error=str(e))

    latency = (time.perf_counter() - start) * 1000
    set_service_health(name, True)
    return DependencyHealth(status="ok", latency_ms=latency)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Check health of the service and its databases.

    Returns "degraded" when either database is unreachable.
    """
    database, notifications = await asyncio.gather(
        check_pool_health(lifespan.get_db_pool(), "database"),
        check_pool_health(lifespan.get_notifications_pool(), "notifications_database"),
    )

    overall_status = (
        "ok" if database.status == "ok" and notifications.status == "ok" else "degraded"
    )
    logger.info(
        "health_check_completed",
        status=overall_status,
        database=database.status,
        notifications_database=notifications.status,
    )
    return HealthResponse(
        status=overall_status,
        database=database,
        notifications_database=notifications,
        version=__version__,
    )
