"""Named audit events written to the audit log."""

from typing import Optional

import structlog

from acc_admin.jobs.models import Job
from acc_admin.repositories.audit_log import AuditLogRepository
from acc_admin.repositories.bans import Ban
from acc_admin.repositories.requests import AccountRequest

logger = structlog.get_logger(__name__)

OBJECT_JOB = "JobQueue"
OBJECT_REQUEST = "Request"
OBJECT_BAN = "Ban"


class AuditLogger:
    """Writes domain events to the audit log.

    Failures propagate: an operation whose audit entry cannot be written
    is not considered complete.
    """

    def __init__(self, repo: AuditLogRepository):
        self._repo = repo

    async def background_job_acknowledged(self, job: Job, user_id: int, conn=None) -> None:
        await self._repo.write(OBJECT_JOB, job.id, user_id, "BackgroundJobAcknowledged", conn=conn)
        logger.info("audit_job_acknowledged", job_id=job.id, user_id=user_id)

    async def background_job_requeued(self, job: Job, user_id: int, conn=None) -> None:
        await self._repo.write(OBJECT_JOB, job.id, user_id, "BackgroundJobRequeued", conn=conn)
        logger.info("audit_job_requeued", job_id=job.id, user_id=user_id)

    async def enqueued_job_queue(
        self, request: AccountRequest, user_id: int, conn=None
    ) -> None:
        await self._repo.write(OBJECT_REQUEST, request.id, user_id, "EnqueuedJobQueue", conn=conn)
        logger.info("audit_request_enqueued", request_id=request.id, user_id=user_id)

    async def banned(self, ban: Ban, reason: str, user_id: int, conn=None) -> None:
        await self._repo.write(OBJECT_BAN, ban.id, user_id, "Banned", reason, conn=conn)
        logger.info("audit_banned", ban_id=ban.id, user_id=user_id)

    async def unbanned(
        self, ban: Ban, reason: Optional[str], user_id: int, conn=None
    ) -> None:
        await self._repo.write(OBJECT_BAN, ban.id, user_id, "Unbanned", reason, conn=conn)
        logger.info("audit_unbanned", ban_id=ban.id, user_id=user_id)
