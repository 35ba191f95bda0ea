"""Filtered, paginated queries over the job queue."""

from typing import Any, Iterable, Optional, Union

import structlog

from acc_admin.jobs.models import Job
from acc_admin.jobs.types import JobStatus
from acc_admin.repositories.jobs import JobRepository

logger = structlog.get_logger(__name__)

# Columns callers may order by
ORDERABLE_COLUMNS = {"id", "enqueue", "status", "task", "user_id", "request_id"}

# Newest first unless the caller asks otherwise
DEFAULT_ORDER = "id DESC"

StatusLike = Union[JobStatus, str]


class JobSearch:
    """
    Fluent query builder for jobs.

    Filters combine with AND. Each ``fetch``/``count`` call re-queries the
    database; the builder holds no results.

    Usage:
        jobs, total = await (
            JobSearch(pool)
            .by_status(JobStatus.FAILED)
            .by_user(7)
            .newest_first()
            .limit(20, offset=40)
            .fetch_page()
        )
    """

    def __init__(self, pool):
        self._pool = pool
        self._conditions: list[str] = []
        self._params: list[Any] = []
        self._order: Optional[str] = None
        self._limit: Optional[int] = None
        self._offset: int = 0

    def _add(self, template: str, value: Any) -> "JobSearch":
        """Append a condition whose single placeholder is ``{}``."""
        self._params.append(value)
        self._conditions.append(template.format(f"${len(self._params)}"))
        return self

    def status_in(self, statuses: Iterable[StatusLike]) -> "JobSearch":
        values = [JobStatus(s).value for s in statuses]
        return self._add("status = ANY({}::text[])", values)

    def by_status(self, status: StatusLike) -> "JobSearch":
        return self._add("status = {}", JobStatus(status).value)

    def not_acknowledged(self) -> "JobSearch":
        self._conditions.append("(acknowledged IS NULL OR acknowledged = FALSE)")
        return self

    def by_user(self, user_id: int) -> "JobSearch":
        return self._add("user_id = {}", user_id)

    def by_task(self, task: str) -> "JobSearch":
        return self._add("task = {}", task)

    def by_request(self, request_id: int) -> "JobSearch":
        return self._add("request_id = {}", request_id)

    def newest_first(self) -> "JobSearch":
        self._order = "id DESC"
        return self

    def order_by(self, column: str, descending: bool = False) -> "JobSearch":
        """Order by a whitelisted column.

        Raises:
            ValueError: If the column is not orderable
        """
        if column not in ORDERABLE_COLUMNS:
            raise ValueError(f"Cannot order jobs by '{column}'")
        self._order = f"{column} {'DESC' if descending else 'ASC'}"
        return self

    def limit(self, limit: int, offset: int = 0) -> "JobSearch":
        self._limit = limit
        self._offset = offset
        return self

    def _where_clause(self) -> str:
        if not self._conditions:
            return ""
        return "WHERE " + " AND ".join(self._conditions)

    def build_query(self) -> tuple[str, list[Any]]:
        """Build the data query and its parameters."""
        params = list(self._params)
        query = f"SELECT * FROM jobqueue {self._where_clause()}"
        query += f" ORDER BY {self._order or DEFAULT_ORDER}"
        if self._limit is not None:
            params.extend([self._limit, self._offset])
            query += f" LIMIT ${len(params) - 1} OFFSET ${len(params)}"
        return query, params

    def build_count_query(self) -> tuple[str, list[Any]]:
        """Build the count query; ignores ordering and pagination."""
        query = f"SELECT COUNT(*) AS total FROM jobqueue {self._where_clause()}"
        return query, list(self._params)

    async def fetch(self) -> list[Job]:
        """Run the query and return matching jobs in order."""
        query, params = self.build_query()
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, *params)
        return [JobRepository._row_to_job(row) for row in rows]

    async def count(self) -> int:
        """Count all matching jobs regardless of limit/offset."""
        query, params = self.build_count_query()
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, *params)
        return row["total"] if row else 0

    async def fetch_page(self) -> tuple[list[Job], int]:
        """Return (page of jobs, total matching count)."""
        jobs = await self.fetch()
        total = await self.count()
        logger.debug(
            "job_search",
            filters=len(self._conditions),
            returned=len(jobs),
            total=total,
        )
        return jobs, total
