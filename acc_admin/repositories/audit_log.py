"""Repository for the audit log."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from acc_admin.repositories.utils import acquire

logger = structlog.get_logger(__name__)


@dataclass
class AuditLogEntry:
    """One audit event against a domain object."""

    object_type: str
    object_id: int
    user_id: Optional[int]
    action: str
    comment: Optional[str] = None
    timestamp: Optional[datetime] = None
    id: Optional[int] = None

    @classmethod
    def from_row(cls, row) -> "AuditLogEntry":
        return cls(
            id=row["id"],
            object_type=row["object_type"],
            object_id=row["object_id"],
            user_id=row["user_id"],
            action=row["action"],
            comment=row["comment"],
            timestamp=row["timestamp"],
        )


class AuditLogRepository:
    """Append-only audit log store."""

    def __init__(self, pool):
        self._pool = pool

    async def write(
        self,
        object_type: str,
        object_id: int,
        user_id: Optional[int],
        action: str,
        comment: Optional[str] = None,
        conn=None,
    ) -> AuditLogEntry:
        """Append an audit entry."""
        query = """
            INSERT INTO log (object_type, object_id, user_id, action, comment)
            VALUES ($1, $2, $3, $4, $5)
            RETURNING *
        """
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(query, object_type, object_id, user_id, action, comment)
        return AuditLogEntry.from_row(row)

    async def list_for_object(
        self,
        object_type: str,
        object_id: int,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[list[AuditLogEntry], int]:
        """List entries for one object, newest first, with total count."""
        query = """
            SELECT * FROM log
            WHERE object_type = $1 AND object_id = $2
            ORDER BY timestamp DESC, id DESC
            LIMIT $3 OFFSET $4
        """
        count_query = """
            SELECT COUNT(*) AS total FROM log
            WHERE object_type = $1 AND object_id = $2
        """
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, object_type, object_id, limit, offset)
            count_row = await conn.fetchrow(count_query, object_type, object_id)

        entries = [AuditLogEntry.from_row(row) for row in rows]
        total = count_row["total"] if count_row else 0
        return entries, total
