"""Ban admin endpoints."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Form, Query, status
from fastapi.responses import RedirectResponse

from acc_admin.admin.utils import (
    build_notifier,
    get_request_context,
    json_serializable,
    require_db_pool,
)
from acc_admin.config import Settings, get_settings
from acc_admin.deps.security import require_admin_token, require_admin_user
from acc_admin.repositories.bans import Ban
from acc_admin.services.bans import BanService

router = APIRouter(tags=["admin"])
logger = structlog.get_logger(__name__)

# Global connection pools (set during app startup)
_db_pool = None
_notifications_pool = None


def set_db_pool(pool, notifications_pool=None):
    """Set the database pools for ban routes."""
    global _db_pool, _notifications_pool
    _db_pool = pool
    _notifications_pool = notifications_pool


def _get_db_pool():
    return require_db_pool(_db_pool, "Database")


def _ban_to_dict(ban: Ban) -> dict[str, Any]:
    return json_serializable(
        {
            "id": ban.id,
            "type": ban.type,
            "target": ban.target,
            "user_id": ban.user_id,
            "reason": ban.reason,
            "date": ban.date,
            "duration": ban.duration,
            "indefinite": ban.is_indefinite,
            "active": ban.active,
            "update_version": ban.update_version,
        }
    )


def _redirect_to_list() -> RedirectResponse:
    return RedirectResponse(url="/admin/bans", status_code=status.HTTP_303_SEE_OTHER)


@router.get("/bans")
async def list_bans(_: bool = Depends(require_admin_token)):
    """Active, unexpired bans."""
    service = BanService.from_pool(_get_db_pool())
    bans = await service.list_active()
    return {"bans": [_ban_to_dict(b) for b in bans], "count": len(bans)}


@router.get("/bans/set")
async def ban_form_defaults(
    type: Optional[str] = Query(None, description="Ban type: IP, Name or EMail"),
    request: Optional[int] = Query(None, description="Request to take the target from"),
    _: bool = Depends(require_admin_token),
    settings: Settings = Depends(get_settings),
):
    """
    Pre-filled values for the set-ban form.

    With a ban type and request id, the target is the request's email,
    name or trusted client IP. Anything else gives empty values.
    """
    service = BanService.from_pool(_get_db_pool())
    defaults = await service.resolve_target(type, request, settings)
    return {"type": defaults.ban_type, "target": defaults.target}


@router.post("/bans")
async def set_ban(
    type: Optional[str] = Form(None),
    target: Optional[str] = Form(None),
    reason: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    other_duration: Optional[str] = Form(None),
    _: bool = Depends(require_admin_token),
    username: str = Depends(require_admin_user),
    settings: Settings = Depends(get_settings),
):
    """
    Ban an IP, requested name or email address.

    ``duration`` is -1 (indefinite), a number of seconds, or "other" with
    an ISO date in ``other_duration``.
    """
    pool = _get_db_pool()
    ctx = await get_request_context(pool, username, settings)
    service = BanService.from_pool(pool)
    await service.set_ban(
        ctx,
        ban_type=type,
        target=target,
        reason=reason,
        duration=duration,
        other_duration=other_duration,
        notifier=build_notifier(ctx, _notifications_pool),
    )
    return _redirect_to_list()


@router.post("/bans/{ban_id}/remove")
async def remove_ban(
    ban_id: int,
    reason: Optional[str] = Form(None),
    update_version: Optional[int] = Form(None),
    _: bool = Depends(require_admin_token),
    username: str = Depends(require_admin_user),
    settings: Settings = Depends(get_settings),
):
    """Lift an active ban. Requires a reason and the ban's update version."""
    pool = _get_db_pool()
    ctx = await get_request_context(pool, username, settings)
    service = BanService.from_pool(pool)
    await service.remove_ban(
        ctx,
        ban_id,
        reason,
        update_version,
        notifier=build_notifier(ctx, _notifications_pool),
    )
    return _redirect_to_list()
