"""Repository for the background job queue."""

import json
from typing import Any, Optional

import structlog

from acc_admin.core.errors import OptimisticLockConflictError
from acc_admin.jobs.models import Job
from acc_admin.jobs.types import JobStatus
from acc_admin.repositories.utils import acquire, parse_jsonb_fields, rows_affected

logger = structlog.get_logger(__name__)


class JobRepository:
    """Repository for job queue records.

    Updates are a compare-and-swap on (id, update_version): the statement
    only matches when the stored version equals the one the caller read.
    """

    def __init__(self, pool):
        self._pool = pool

    async def get(self, job_id: Optional[int], conn=None) -> Optional[Job]:
        """Get a job by ID. Returns None for a missing or null id."""
        if job_id is None:
            return None
        query = "SELECT * FROM jobqueue WHERE id = $1"
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(query, job_id)
        return self._row_to_job(row) if row else None

    async def create(
        self,
        task: str,
        trigger_user_id: int,
        request_id: int,
        email_template_id: Optional[int] = None,
        parent_id: Optional[int] = None,
        parameters: Optional[dict[str, Any]] = None,
        conn=None,
    ) -> Job:
        """Enqueue a new job in READY status."""
        job = Job(
            task=task,
            trigger_user_id=trigger_user_id,
            request_id=request_id,
            email_template_id=email_template_id,
            parent_id=parent_id,
            parameters=parameters,
        )
        await self.save(job, conn=conn)
        return job

    async def save(
        self,
        job: Job,
        expected_version: Optional[int] = None,
        conn=None,
    ) -> Job:
        """
        Insert a new job or update an existing one under optimistic lock.

        Args:
            job: The job to persist (mutated in place with id/version)
            expected_version: Version the caller last observed. Defaults to
                the version carried by ``job``.
            conn: Optional connection to join a caller-owned transaction

        Raises:
            OptimisticLockConflictError: If no row matched (id, expected_version)
        """
        if job.is_new:
            return await self._insert(job, conn)
        return await self._update(job, expected_version, conn)

    async def _insert(self, job: Job, conn=None) -> Job:
        query = """
            INSERT INTO jobqueue (task, user_id, request_id, email_template_id,
                                  parent_id, parameters, status, error, acknowledged)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
            RETURNING id, enqueue, update_version
        """
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(
                query,
                job.task,
                job.trigger_user_id,
                job.request_id,
                job.email_template_id,
                job.parent_id,
                json.dumps(job.parameters) if job.parameters is not None else None,
                job.status.value,
                job.error,
                job.acknowledged,
            )
        job.id = row["id"]
        job.enqueue = row["enqueue"]
        job.update_version = row["update_version"]
        logger.info("job_enqueued", job_id=job.id, task=job.task)
        return job

    async def _update(
        self, job: Job, expected_version: Optional[int], conn=None
    ) -> Job:
        version = job.update_version if expected_version is None else expected_version
        query = """
            UPDATE jobqueue SET
                task = $3,
                user_id = $4,
                request_id = $5,
                email_template_id = $6,
                parent_id = $7,
                parameters = $8,
                status = $9,
                error = $10,
                acknowledged = $11,
                update_version = update_version + 1
            WHERE id = $1 AND update_version = $2
        """
        async with acquire(self._pool, conn) as c:
            result = await c.execute(
                query,
                job.id,
                version,
                job.task,
                job.trigger_user_id,
                job.request_id,
                job.email_template_id,
                job.parent_id,
                json.dumps(job.parameters) if job.parameters is not None else None,
                job.status.value,
                job.error,
                job.acknowledged,
            )

        if rows_affected(result) != 1:
            logger.warning(
                "job_optimistic_lock_conflict",
                job_id=job.id,
                expected_version=version,
            )
            raise OptimisticLockConflictError("Job", job.id, version)

        job.update_version = version + 1
        return job

    async def list_children(self, parent_id: int) -> list[Job]:
        """List sub-jobs spawned by a parent job."""
        query = """
            SELECT * FROM jobqueue
            WHERE parent_id = $1
            ORDER BY id
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, parent_id)
        return [self._row_to_job(row) for row in rows]

    async def count_by_status(self) -> dict[str, int]:
        """Get job counts grouped by status."""
        query = "SELECT status, COUNT(*) AS cnt FROM jobqueue GROUP BY status"
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query)
        counts = {s.value: 0 for s in JobStatus}
        for row in rows:
            counts[row["status"]] = row["cnt"]
        return counts

    @staticmethod
    def _row_to_job(row) -> Job:
        """Convert a database row to a Job model."""
        return Job.from_row(parse_jsonb_fields(dict(row), ["parameters"]))
