"""Admin package."""

from acc_admin.admin.router import router, set_db_pool

__all__ = ["router", "set_db_pool"]
