"""Shared utilities for admin modules.

Consolidates common patterns used across admin endpoints:
- JSON serialization for API responses
- Database pool access helpers
- Pagination constants
- Per-request operator context and notifier
"""

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

import structlog
from fastapi import HTTPException, status

from acc_admin.config import Settings
from acc_admin.core.context import RequestContext
from acc_admin.repositories.notifications import NotificationRepository
from acc_admin.repositories.users import UserRepository
from acc_admin.services.notifications import IrcNotificationHelper

logger = structlog.get_logger(__name__)


# =============================================================================
# Pagination Constants
# =============================================================================


class PaginationDefaults:
    """Standard pagination limits for admin endpoints."""

    # List endpoints
    DEFAULT_LIMIT = 20
    MAX_LIMIT = 100

    # Detail endpoints (e.g., log entries for one job)
    DETAIL_DEFAULT_LIMIT = 50
    DETAIL_MAX_LIMIT = 200


# =============================================================================
# JSON Serialization
# =============================================================================


def json_serializable(obj: Any) -> Any:
    """Convert objects to JSON-serializable format.

    Handles types that json.dumps() can't serialize:
    - datetime/date -> ISO format string
    - Enum -> its value
    - dataclasses -> dict
    - dict/list -> recursive conversion
    """
    if obj is None:
        return None
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (str, int, float, bool)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, bytes):
        return obj.decode("utf-8", errors="replace")
    if isinstance(obj, dict):
        return {k: json_serializable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [json_serializable(item) for item in obj]
    if is_dataclass(obj):
        return json_serializable(asdict(obj))
    return str(obj)


# =============================================================================
# Database Pool Helpers
# =============================================================================


def require_db_pool(pool: Any, service_name: str = "Database") -> Any:
    """Validate that database pool is available.

    Raises:
        HTTPException: 503 if pool is None
    """
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{service_name} connection not available",
        )
    return pool


# =============================================================================
# Request Context
# =============================================================================


async def get_request_context(pool, username: str, settings: Settings) -> RequestContext:
    """Resolve the operator's tool account.

    Raises:
        HTTPException: 403 if the username has no tool account
    """
    user = await UserRepository(pool).get_by_username(username)
    if user is None:
        logger.warning("unknown_admin_user", username=username)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"No tool account for user '{username}'",
        )
    return RequestContext(user_id=user.id, username=user.username, settings=settings)


def build_notifier(ctx: RequestContext, notifications_pool: Optional[Any]) -> IrcNotificationHelper:
    """Create the request-scoped IRC notifier."""
    repo = NotificationRepository(notifications_pool) if notifications_pool is not None else None
    return IrcNotificationHelper(ctx.settings, repo, ctx.username)


__all__ = [
    "PaginationDefaults",
    "json_serializable",
    "require_db_pool",
    "get_request_context",
    "build_notifier",
]
