"""Application lifespan management - startup and shutdown logic."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import asyncpg
import structlog
from fastapi import FastAPI

from acc_admin import __version__
from acc_admin.admin import set_db_pool as set_admin_db_pool
from acc_admin.config import Settings, get_settings
from acc_admin.routers.metrics import set_service_health

logger = structlog.get_logger(__name__)

# Global pools - accessed by other modules
_db_pool: Optional[asyncpg.Pool] = None
_notifications_pool: Optional[asyncpg.Pool] = None


def get_db_pool() -> Optional[asyncpg.Pool]:
    """Get the primary database connection pool."""
    return _db_pool


def get_notifications_pool() -> Optional[asyncpg.Pool]:
    """Get the notification database connection pool."""
    return _notifications_pool


async def _create_pool(url: str, settings: Settings, name: str) -> Optional[asyncpg.Pool]:
    """
    Create an asyncpg pool without blocking startup.

    Returns None if the database is unreachable; the service then runs
    degraded and DB-backed endpoints answer 503.
    """
    try:
        pool = await asyncpg.create_pool(
            url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            ssl=settings.db_ssl,
            timeout=10,
            command_timeout=30,
        )
    except Exception as e:
        logger.error("database_pool_init_failed", pool=name, error=str(e))
        set_service_health(name, False)
        return None

    logger.info(
        "database_pool_initialized",
        pool=name,
        min_size=settings.db_pool_min_size,
        max_size=settings.db_pool_max_size,
    )
    set_service_health(name, True)
    return pool


async def _init_databases(settings: Settings) -> None:
    global _db_pool, _notifications_pool

    _db_pool = await _create_pool(settings.database_url, settings, "database")

    notifications_url = settings.effective_notifications_database_url
    if notifications_url == settings.database_url:
        _notifications_pool = _db_pool
    else:
        _notifications_pool = await _create_pool(
            notifications_url, settings, "notifications_database"
        )

    set_admin_db_pool(_db_pool, _notifications_pool)


async def _close_databases() -> None:
    global _db_pool, _notifications_pool

    set_admin_db_pool(None, None)
    if _notifications_pool is not None and _notifications_pool is not _db_pool:
        await _notifications_pool.close()
        logger.info("database_pool_closed", pool="notifications_database")
    if _db_pool is not None:
        await _db_pool.close()
        logger.info("database_pool_closed", pool="database")
    _db_pool = None
    _notifications_pool = None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "service_starting",
        version=__version__,
        host=settings.service_host,
        port=settings.service_port,
        instance=settings.irc_instance_name,
    )

    await _init_databases(settings)

    yield

    logger.info("service_stopping")
    await _close_databases()
