"""Job queue admin endpoints (dashboard, search, view, acknowledge, requeue)."""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Form, Query, status
from fastapi.responses import RedirectResponse

from acc_admin.admin.utils import (
    PaginationDefaults,
    build_notifier,
    get_request_context,
    json_serializable,
    require_db_pool,
)
from acc_admin.config import Settings, get_settings
from acc_admin.core.errors import error_response
from acc_admin.deps.security import require_admin_token, require_admin_user
from acc_admin.jobs.models import Job
from acc_admin.jobs.types import STATUS_DESCRIPTIONS, TASK_DESCRIPTIONS
from acc_admin.schemas import ErrorResponse
from acc_admin.services.jobs import (
    ActionResult,
    JobLifecycleService,
    JobListing,
    JobView,
    can_acknowledge,
    can_requeue,
)

router = APIRouter(tags=["admin"])
logger = structlog.get_logger(__name__)

# Global connection pools (set during app startup)
_db_pool = None
_notifications_pool = None

# Error bodies returned by acknowledge and requeue
ACTION_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def set_db_pool(pool, notifications_pool=None):
    """Set the database pools for job queue routes."""
    global _db_pool, _notifications_pool
    _db_pool = pool
    _notifications_pool = notifications_pool


def _get_db_pool():
    """Get the database pool, raising 503 if not available."""
    return require_db_pool(_db_pool, "Database")


# =============================================================================
# Serialization Helpers
# =============================================================================


def _job_to_dict(job: Job, listing: Optional[JobListing] = None) -> dict[str, Any]:
    data = {
        "id": job.id,
        "task": job.task,
        "task_description": TASK_DESCRIPTIONS.get(job.task, job.task),
        "status": job.status.value,
        "status_description": STATUS_DESCRIPTIONS[job.status],
        "user_id": job.trigger_user_id,
        "request_id": job.request_id,
        "email_template_id": job.email_template_id,
        "parent_id": job.parent_id,
        "parameters": job.parameters,
        "error": job.error,
        "acknowledged": job.acknowledged,
        "enqueue": job.enqueue,
        "update_version": job.update_version,
        "can_acknowledge": can_acknowledge(job),
        "can_requeue": can_requeue(job),
    }
    if listing is not None:
        data["username"] = listing.usernames.get(job.trigger_user_id)
        data["request_name"] = listing.request_names.get(job.request_id)
    return json_serializable(data)


def _listing_to_dict(listing: JobListing) -> dict[str, Any]:
    return {
        "jobs": [_job_to_dict(job, listing) for job in listing.jobs],
        "count": len(listing.jobs),
        "total": listing.total,
        "limit": listing.limit,
        "offset": listing.offset,
        "filters": listing.filters,
        "status_counts": listing.status_counts,
    }


def _view_to_dict(view: JobView) -> dict[str, Any]:
    return json_serializable(
        {
            "job": _job_to_dict(view.job),
            "user": view.user,
            "request": view.request,
            "email_template": view.email_template,
            "parent": _job_to_dict(view.parent) if view.parent else None,
            "children": [_job_to_dict(child) for child in view.children],
            "log": {
                "entries": view.log_entries,
                "total": view.log_total,
            },
        }
    )


def _action_response(result: ActionResult):
    if result.ok:
        return RedirectResponse(url=result.redirect_to, status_code=status.HTTP_303_SEE_OTHER)
    return error_response(result.error)


# ===========================================
# Job Queue Endpoints
# ===========================================


@router.get("/jobs/queue")
async def job_queue_dashboard(
    limit: int = Query(
        PaginationDefaults.DEFAULT_LIMIT,
        ge=1,
        le=PaginationDefaults.MAX_LIMIT,
        description="Max results",
    ),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    _: bool = Depends(require_admin_token),
):
    """
    Jobs still needing attention.

    Ready, waiting, running and failed jobs nobody has acknowledged yet,
    newest first.
    """
    service = JobLifecycleService.from_pool(_get_db_pool())
    listing = await service.dashboard(limit=limit, offset=offset)
    return _listing_to_dict(listing)


@router.get("/jobs/queue/all")
async def list_all_jobs(
    user: Optional[str] = Query(None, description="Filter by triggering username"),
    task: Optional[str] = Query(None, description="Filter by task type"),
    status_filter: Optional[str] = Query(
        None, alias="status", description="Filter by status"
    ),
    request: Optional[int] = Query(None, description="Filter by request id"),
    order: Optional[str] = Query(None, description="Order by column (default newest first)"),
    desc: bool = Query(False, description="Descending order for 'order'"),
    limit: int = Query(
        PaginationDefaults.DEFAULT_LIMIT,
        ge=1,
        le=PaginationDefaults.MAX_LIMIT,
        description="Max results",
    ),
    offset: int = Query(0, ge=0, description="Pagination offset"),
    _: bool = Depends(require_admin_token),
):
    """
    Search all jobs with filters and pagination.

    Filters combine with AND. The total is counted independently of the
    page window.
    """
    service = JobLifecycleService.from_pool(_get_db_pool())
    listing = await service.all_jobs(
        filter_user=user,
        filter_task=task,
        filter_status=status_filter,
        filter_request=request,
        order=order,
        descending=desc,
        limit=limit,
        offset=offset,
    )
    result = _listing_to_dict(listing)
    result["task_descriptions"] = TASK_DESCRIPTIONS
    result["status_descriptions"] = {s.value: d for s, d in STATUS_DESCRIPTIONS.items()}
    return result


@router.get("/jobs/queue/{job_id}")
async def view_job(
    job_id: int,
    log_limit: int = Query(
        PaginationDefaults.DETAIL_DEFAULT_LIMIT,
        ge=1,
        le=PaginationDefaults.DETAIL_MAX_LIMIT,
    ),
    log_offset: int = Query(0, ge=0),
    _: bool = Depends(require_admin_token),
):
    """Job detail with related records and audit history."""
    service = JobLifecycleService.from_pool(_get_db_pool())
    view = await service.view(job_id, log_limit=log_limit, log_offset=log_offset)
    return _view_to_dict(view)


@router.post("/jobs/queue/acknowledge", responses=ACTION_ERROR_RESPONSES)
async def acknowledge_job(
    job: Optional[int] = Form(None),
    update_version: Optional[int] = Form(None),
    _: bool = Depends(require_admin_token),
    username: str = Depends(require_admin_user),
    settings: Settings = Depends(get_settings),
):
    """
    Acknowledge a failed job.

    Returns:
        303: Redirect to the job view
        404: Job missing
        409: Job changed since the operator loaded it
        400: Job is not in an acknowledgeable status
    """
    pool = _get_db_pool()
    ctx = await get_request_context(pool, username, settings)
    service = JobLifecycleService.from_pool(pool)
    result = await service.acknowledge(
        ctx, job, update_version, notifier=build_notifier(ctx, _notifications_pool)
    )
    return _action_response(result)


@router.post("/jobs/queue/requeue", responses=ACTION_ERROR_RESPONSES)
async def requeue_job(
    job: Optional[int] = Form(None),
    update_version: Optional[int] = Form(None),
    _: bool = Depends(require_admin_token),
    username: str = Depends(require_admin_user),
    settings: Settings = Depends(get_settings),
):
    """
    Requeue a failed, held or cancelled job.

    Returns:
        303: Redirect to the job view
        404: Job or its request missing
        409: Job or request changed since the operator loaded it
        400: Job is not in a requeueable status
    """
    pool = _get_db_pool()
    ctx = await get_request_context(pool, username, settings)
    service = JobLifecycleService.from_pool(pool)
    result = await service.requeue(
        ctx, job, update_version, notifier=build_notifier(ctx, _notifications_pool)
    )
    return _action_response(result)
