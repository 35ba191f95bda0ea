"""Operator actions on background jobs: view, acknowledge, requeue.

Mutations carry the update version the operator last saw. The job row is
written with a compare-and-swap on (id, update_version), so a stale page
produces an optimistic-lock conflict instead of overwriting someone
else's change. Conflicts are reported back and never retried here.

Acknowledge and requeue return an ActionResult rather than raising, so
the admin layer has to branch on the outcome explicitly.
"""

from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Optional

import structlog

from acc_admin.core.context import RequestContext
from acc_admin.core.errors import (
    AppError,
    ErrorKind,
    InvalidTransitionError,
    NotFoundError,
    OptimisticLockConflictError,
    ValidationError,
)
from acc_admin.jobs.models import Job
from acc_admin.jobs.types import (
    ATTENTION_STATUSES,
    STATUS_DESCRIPTIONS,
    TASK_DESCRIPTIONS,
    JobStatus,
)
from acc_admin.repositories.audit_log import AuditLogEntry, AuditLogRepository
from acc_admin.repositories.email_templates import EmailTemplate, EmailTemplateRepository
from acc_admin.repositories.job_search import JobSearch
from acc_admin.repositories.jobs import JobRepository
from acc_admin.repositories.requests import (
    AccountRequest,
    RequestRepository,
    RequestStatus,
)
from acc_admin.repositories.users import User, UserRepository
from acc_admin.routers.metrics import record_job_action
from acc_admin.services.audit import OBJECT_JOB, AuditLogger
from acc_admin.services.notifications import IrcNotificationHelper

logger = structlog.get_logger(__name__)

ACKNOWLEDGEABLE_STATUSES = frozenset({JobStatus.FAILED})
REQUEUEABLE_STATUSES = frozenset({JobStatus.FAILED, JobStatus.HELD, JobStatus.CANCELLED})


def can_acknowledge(job: Job) -> bool:
    return job.status in ACKNOWLEDGEABLE_STATUSES


def can_requeue(job: Job) -> bool:
    return job.status in REQUEUEABLE_STATUSES


def view_url(job_id: int) -> str:
    return f"/admin/jobs/queue/{job_id}"


@dataclass
class ActionResult:
    """Outcome of a mutating job action.

    Exactly one of ``redirect_to`` and ``error`` is set.
    """

    redirect_to: Optional[str] = None
    error: Optional[AppError] = None
    job: Optional[Job] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error is not None else None

    @classmethod
    def success(cls, job: Job) -> "ActionResult":
        return cls(redirect_to=view_url(job.id), job=job)

    @classmethod
    def failure(cls, error: AppError) -> "ActionResult":
        return cls(error=error)


@dataclass
class JobView:
    """Everything shown on a single job's page."""

    job: Job
    user: Optional[User]
    request: Optional[AccountRequest]
    email_template: Optional[EmailTemplate]
    parent: Optional[Job]
    children: list[Job] = field(default_factory=list)
    log_entries: list[AuditLogEntry] = field(default_factory=list)
    log_total: int = 0

    @property
    def task_description(self) -> str:
        return TASK_DESCRIPTIONS.get(self.job.task, self.job.task)

    @property
    def status_description(self) -> str:
        return STATUS_DESCRIPTIONS[self.job.status]

    @property
    def can_acknowledge(self) -> bool:
        return can_acknowledge(self.job)

    @property
    def can_requeue(self) -> bool:
        return can_requeue(self.job)


@dataclass
class JobListing:
    """A page of jobs plus lookup maps for rendering them."""

    jobs: list[Job]
    total: int
    limit: int
    offset: int
    usernames: dict[int, str] = field(default_factory=dict)
    request_names: dict[int, str] = field(default_factory=dict)
    filters: dict[str, Any] = field(default_factory=dict)
    status_counts: dict[str, int] = field(default_factory=dict)


class JobLifecycleService:
    """Job queue workflows for operators."""

    def __init__(
        self,
        pool,
        jobs: JobRepository,
        requests: RequestRepository,
        users: UserRepository,
        email_templates: EmailTemplateRepository,
        audit_log: AuditLogRepository,
        search_factory: Optional[Callable[[], JobSearch]] = None,
    ):
        self._pool = pool
        self._jobs = jobs
        self._requests = requests
        self._users = users
        self._email_templates = email_templates
        self._audit_log = audit_log
        self._audit = AuditLogger(audit_log)
        self._search_factory = search_factory or (lambda: JobSearch(pool))

    @classmethod
    def from_pool(cls, pool) -> "JobLifecycleService":
        return cls(
            pool,
            jobs=JobRepository(pool),
            requests=RequestRepository(pool),
            users=UserRepository(pool),
            email_templates=EmailTemplateRepository(pool),
            audit_log=AuditLogRepository(pool),
        )

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Any]:
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    # =========================================================================
    # Read-only
    # =========================================================================

    async def view(
        self, job_id: Optional[int], log_limit: int = 50, log_offset: int = 0
    ) -> JobView:
        """
        Load a job with its related records and audit history.

        Related records that no longer exist are returned as None.

        Raises:
            NotFoundError: If the job does not exist
        """
        job = await self._jobs.get(job_id)
        if job is None:
            logger.info("job_not_found", job_id=job_id)
            raise NotFoundError(f"Job {job_id} not found")

        entries, total = await self._audit_log.list_for_object(
            OBJECT_JOB, job.id, limit=log_limit, offset=log_offset
        )
        return JobView(
            job=job,
            user=await self._users.get(job.trigger_user_id),
            request=await self._requests.get(job.request_id),
            email_template=await self._email_templates.get(job.email_template_id),
            parent=await self._jobs.get(job.parent_id),
            children=await self._jobs.list_children(job.id),
            log_entries=entries,
            log_total=total,
        )

    async def dashboard(self, limit: int = 20, offset: int = 0) -> JobListing:
        """Jobs still needing operator attention, newest first."""
        jobs, total = await (
            self._search_factory()
            .status_in(ATTENTION_STATUSES)
            .not_acknowledged()
            .newest_first()
            .limit(limit, offset=offset)
            .fetch_page()
        )
        listing = await self._listing(jobs, total, limit, offset, {})
        listing.status_counts = await self._jobs.count_by_status()
        return listing

    async def all_jobs(
        self,
        filter_user: Optional[str] = None,
        filter_task: Optional[str] = None,
        filter_status: Optional[str] = None,
        filter_request: Optional[int] = None,
        order: Optional[str] = None,
        descending: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> JobListing:
        """
        Search all jobs. Filters combine with AND; newest first by default.

        Raises:
            NotFoundError: If ``filter_user`` names no known user
            ValidationError: If the status or order column is invalid
        """
        search = self._search_factory()
        filters: dict[str, Any] = {}

        if filter_user:
            user = await self._users.get_by_username(filter_user)
            if user is None:
                raise NotFoundError(f"User '{filter_user}' not found")
            search.by_user(user.id)
            filters["user"] = filter_user

        if filter_task:
            search.by_task(filter_task)
            filters["task"] = filter_task

        if filter_status:
            try:
                status = JobStatus(filter_status)
            except ValueError:
                raise ValidationError(f"Unknown job status '{filter_status}'")
            search.by_status(status)
            filters["status"] = status.value

        if filter_request is not None:
            search.by_request(filter_request)
            filters["request"] = filter_request

        if order:
            try:
                search.order_by(order, descending=descending)
            except ValueError as e:
                raise ValidationError(str(e))
            filters["order"] = order
        else:
            search.newest_first()

        jobs, total = await search.limit(limit, offset=offset).fetch_page()
        return await self._listing(jobs, total, limit, offset, filters)

    async def _listing(
        self,
        jobs: list[Job],
        total: int,
        limit: int,
        offset: int,
        filters: dict[str, Any],
    ) -> JobListing:
        return JobListing(
            jobs=jobs,
            total=total,
            limit=limit,
            offset=offset,
            usernames=await self._users.usernames_for_ids(j.trigger_user_id for j in jobs),
            request_names=await self._requests.names_for_ids(j.request_id for j in jobs),
            filters=filters,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    async def acknowledge(
        self,
        ctx: RequestContext,
        job_id: Optional[int],
        update_version: Optional[int],
        notifier: Optional[IrcNotificationHelper] = None,
    ) -> ActionResult:
        """Mark a failed job as dealt with."""
        try:
            async with self._transaction() as conn:
                job = await self._load_for_update(job_id, update_version, "acknowledge", conn)
                job.acknowledged = True
                await self._jobs.save(job, expected_version=update_version, conn=conn)
                await self._audit.background_job_acknowledged(job, ctx.user_id, conn=conn)
        except AppError as e:
            return self._failed("acknowledge", job_id, update_version, e)

        logger.info(
            "job_acknowledged",
            job_id=job.id,
            update_version=job.update_version,
            user_id=ctx.user_id,
        )
        record_job_action("acknowledge", "ok")
        if notifier is not None:
            await notifier.job_acknowledged(job)
        return ActionResult.success(job)

    async def requeue(
        self,
        ctx: RequestContext,
        job_id: Optional[int],
        update_version: Optional[int],
        notifier: Optional[IrcNotificationHelper] = None,
    ) -> ActionResult:
        """
        Put a job back in the queue.

        The job is reset to READY with acknowledgement and error cleared,
        and its request goes back to the JobQueue status. Both writes and
        both audit entries commit together or not at all.
        """
        try:
            async with self._transaction() as conn:
                job = await self._load_for_update(job_id, update_version, "requeue", conn)
                job.status = JobStatus.READY
                job.acknowledged = None
                job.error = None
                await self._jobs.save(job, expected_version=update_version, conn=conn)

                request = await self._requests.get(job.request_id, conn=conn)
                if request is None:
                    raise NotFoundError(
                        f"Request {job.request_id} for job {job.id} not found"
                    )
                await self._requests.set_status(request, RequestStatus.JOBQUEUE, conn=conn)

                await self._audit.enqueued_job_queue(request, ctx.user_id, conn=conn)
                await self._audit.background_job_requeued(job, ctx.user_id, conn=conn)
        except AppError as e:
            return self._failed("requeue", job_id, update_version, e)

        logger.info(
            "job_requeued",
            job_id=job.id,
            request_id=request.id,
            update_version=job.update_version,
            user_id=ctx.user_id,
        )
        record_job_action("requeue", "ok")
        if notifier is not None:
            await notifier.job_requeued(job)
        return ActionResult.success(job)

    async def _load_for_update(
        self,
        job_id: Optional[int],
        update_version: Optional[int],
        action: str,
        conn,
    ) -> Job:
        if job_id is None:
            raise NotFoundError("Job id is required")
        if update_version is None:
            raise ValidationError("update_version is required")

        job = await self._jobs.get(job_id, conn=conn)
        if job is None:
            raise NotFoundError(f"Job {job_id} not found")
        if job.update_version != update_version:
            raise OptimisticLockConflictError("Job", job_id, update_version)

        allowed = can_acknowledge(job) if action == "acknowledge" else can_requeue(job)
        if not allowed:
            raise InvalidTransitionError(job.status.value, action)
        return job

    def _failed(
        self,
        action: str,
        job_id: Optional[int],
        update_version: Optional[int],
        error: AppError,
    ) -> ActionResult:
        log = logger.info if error.kind == ErrorKind.NOT_FOUND else logger.warning
        log(
            f"job_{action}_failed",
            job_id=job_id,
            update_version=update_version,
            error_kind=error.kind.value,
            detail=error.message,
        )
        record_job_action(action, error.kind.value)
        return ActionResult.failure(error)
