"""Repository for account-creation requests (status field only)."""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

from acc_admin.core.errors import OptimisticLockConflictError
from acc_admin.repositories.utils import acquire, rows_affected

logger = structlog.get_logger(__name__)


class RequestStatus:
    """Well-known request status values."""

    OPEN = "Open"
    JOBQUEUE = "JobQueue"
    CLOSED = "Closed"
    HOSPITAL = "Hospital"


@dataclass
class AccountRequest:
    """An account-creation request, as far as this service touches it."""

    id: int
    name: str
    email: Optional[str]
    ip: Optional[str]
    forwarded_ip: Optional[str]
    status: str
    update_version: int = 0

    @classmethod
    def from_row(cls, row) -> "AccountRequest":
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            ip=row["ip"],
            forwarded_ip=row["forwarded_ip"],
            status=row["status"],
            update_version=row["update_version"],
        )


class RequestRepository:
    """Reads requests and updates their status under optimistic lock."""

    def __init__(self, pool):
        self._pool = pool

    async def get(self, request_id: Optional[int], conn=None) -> Optional[AccountRequest]:
        """Get a request by ID. Returns None for a missing or null id."""
        if request_id is None:
            return None
        query = "SELECT * FROM request WHERE id = $1"
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(query, request_id)
        return AccountRequest.from_row(row) if row else None

    async def set_status(
        self,
        request: AccountRequest,
        status: str,
        expected_version: Optional[int] = None,
        conn=None,
    ) -> AccountRequest:
        """
        Change a request's status.

        Raises:
            OptimisticLockConflictError: If the stored version moved on
        """
        version = request.update_version if expected_version is None else expected_version
        query = """
            UPDATE request
            SET status = $3, update_version = update_version + 1
            WHERE id = $1 AND update_version = $2
        """
        async with acquire(self._pool, conn) as c:
            result = await c.execute(query, request.id, version, status)

        if rows_affected(result) != 1:
            logger.warning(
                "request_optimistic_lock_conflict",
                request_id=request.id,
                expected_version=version,
            )
            raise OptimisticLockConflictError("Request", request.id, version)

        request.status = status
        request.update_version = version + 1
        return request

    async def names_for_ids(self, request_ids: Iterable[Optional[int]]) -> dict[int, str]:
        """Map request id -> requested account name for the given ids."""
        ids = sorted({i for i in request_ids if i is not None})
        if not ids:
            return {}
        query = "SELECT id, name FROM request WHERE id = ANY($1::bigint[])"
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, ids)
        return {row["id"]: row["name"] for row in rows}
