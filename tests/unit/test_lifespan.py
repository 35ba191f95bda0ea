"""Tests for database pool startup and shutdown."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from acc_admin.core import lifespan


@pytest.fixture(autouse=True)
def reset_pools():
    yield
    lifespan._db_pool = None
    lifespan._notifications_pool = None


@pytest.mark.asyncio
async def test_shared_pool_when_urls_match(settings):
    pool = MagicMock()
    with (
        patch("acc_admin.core.lifespan.asyncpg.create_pool", AsyncMock(return_value=pool)) as create,
        patch("acc_admin.core.lifespan.set_admin_db_pool") as set_admin,
    ):
        await lifespan._init_databases(settings)

    create.assert_awaited_once()
    assert lifespan.get_db_pool() is pool
    assert lifespan.get_notifications_pool() is pool
    set_admin.assert_called_once_with(pool, pool)


@pytest.mark.asyncio
async def test_separate_notifications_pool(settings):
    settings = settings.model_copy(
        update={"notifications_database_url": "postgresql://localhost/notifications"}
    )
    main_pool, notify_pool = MagicMock(), MagicMock()
    with (
        patch(
            "acc_admin.core.lifespan.asyncpg.create_pool",
            AsyncMock(side_effect=[main_pool, notify_pool]),
        ),
        patch("acc_admin.core.lifespan.set_admin_db_pool"),
    ):
        await lifespan._init_databases(settings)

    assert lifespan.get_db_pool() is main_pool
    assert lifespan.get_notifications_pool() is notify_pool


@pytest.mark.asyncio
async def test_unreachable_database_runs_degraded(settings):
    with (
        patch(
            "acc_admin.core.lifespan.asyncpg.create_pool",
            AsyncMock(side_effect=OSError("connection refused")),
        ),
        patch("acc_admin.core.lifespan.set_admin_db_pool") as set_admin,
    ):
        await lifespan._init_databases(settings)

    assert lifespan.get_db_pool() is None
    set_admin.assert_called_once_with(None, None)


@pytest.mark.asyncio
async def test_close_closes_shared_pool_once():
    pool = MagicMock()
    pool.close = AsyncMock()
    lifespan._db_pool = pool
    lifespan._notifications_pool = pool

    with patch("acc_admin.core.lifespan.set_admin_db_pool"):
        await lifespan._close_databases()

    pool.close.assert_awaited_once()
    assert lifespan.get_db_pool() is None
