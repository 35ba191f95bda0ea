"""Admin router: job queue, ban management and address lookups."""

from fastapi import APIRouter

from acc_admin.admin import addresses, bans, jobs

router = APIRouter(prefix="/admin", tags=["admin"])
router.include_router(jobs.router)
router.include_router(bans.router)
router.include_router(addresses.router)


def set_db_pool(pool, notifications_pool=None):
    """Set the database pools for all admin routes."""
    jobs.set_db_pool(pool, notifications_pool)
    bans.set_db_pool(pool, notifications_pool)
    addresses.set_db_pool(pool)
