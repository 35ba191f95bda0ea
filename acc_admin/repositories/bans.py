"""Repository for bans."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import structlog

from acc_admin.core.errors import OptimisticLockConflictError
from acc_admin.repositories.utils import acquire, rows_affected

logger = structlog.get_logger(__name__)

# Duration value for bans that never expire
INDEFINITE = -1


@dataclass
class Ban:
    """A ban against an IP, requested name, or email address."""

    type: str
    target: str
    user_id: int
    reason: str
    duration: int
    active: bool = True
    date: Optional[datetime] = None
    update_version: int = 0
    id: Optional[int] = None

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def is_indefinite(self) -> bool:
        return self.duration == INDEFINITE

    @classmethod
    def from_row(cls, row) -> "Ban":
        return cls(
            id=row["id"],
            type=row["type"],
            target=row["target"],
            user_id=row["user_id"],
            reason=row["reason"],
            duration=row["duration"],
            active=row["active"],
            date=row["date"],
            update_version=row["update_version"],
        )


class BanRepository:
    """Ban persistence. Deactivation is guarded by the update version."""

    def __init__(self, pool):
        self._pool = pool

    async def get(self, ban_id: Optional[int]) -> Optional[Ban]:
        if ban_id is None:
            return None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM ban WHERE id = $1", ban_id)
        return Ban.from_row(row) if row else None

    async def list_active(
        self, target: Optional[str] = None, conn=None
    ) -> list[Ban]:
        """Active, unexpired bans, optionally for a single target."""
        conditions = [
            "active = TRUE",
            "(duration = -1 OR duration > EXTRACT(EPOCH FROM now())::bigint)",
        ]
        params = []
        if target is not None:
            params.append(target)
            conditions.append(f"target = ${len(params)}")

        query = f"""
            SELECT * FROM ban
            WHERE {' AND '.join(conditions)}
            ORDER BY date DESC, id DESC
        """
        async with acquire(self._pool, conn) as c:
            rows = await c.fetch(query, *params)
        return [Ban.from_row(row) for row in rows]

    async def lock_target(self, target: str, conn) -> None:
        """Serialize ban writes for one target until the transaction ends."""
        await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", target)

    async def insert(self, ban: Ban, conn=None) -> Ban:
        query = """
            INSERT INTO ban (type, target, user_id, reason, duration, active)
            VALUES ($1, $2, $3, $4, $5, $6)
            RETURNING id, date, update_version
        """
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(
                query,
                ban.type,
                ban.target,
                ban.user_id,
                ban.reason,
                ban.duration,
                ban.active,
            )
        ban.id = row["id"]
        ban.date = row["date"]
        ban.update_version = row["update_version"]
        return ban

    async def deactivate(
        self, ban: Ban, expected_version: Optional[int] = None, conn=None
    ) -> Ban:
        """
        Mark a ban inactive.

        Raises:
            OptimisticLockConflictError: If the stored version moved on
        """
        version = ban.update_version if expected_version is None else expected_version
        query = """
            UPDATE ban
            SET active = FALSE, update_version = update_version + 1
            WHERE id = $1 AND update_version = $2
        """
        async with acquire(self._pool, conn) as c:
            result = await c.execute(query, ban.id, version)

        if rows_affected(result) != 1:
            logger.warning(
                "ban_optimistic_lock_conflict", ban_id=ban.id, expected_version=version
            )
            raise OptimisticLockConflictError("Ban", ban.id, version)

        ban.active = False
        ban.update_version = version + 1
        return ban
