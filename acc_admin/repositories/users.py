"""Repository for tool user identities (read-only)."""

from dataclasses import dataclass
from typing import Iterable, Optional

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class User:
    """A tool user."""

    id: int
    username: str
    status: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "User":
        return cls(id=row["id"], username=row["username"], status=row["status"])


class UserRepository:
    """Read access to tool users."""

    def __init__(self, pool):
        self._pool = pool

    async def get(self, user_id: Optional[int]) -> Optional[User]:
        if user_id is None:
            return None
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        return User.from_row(row) if row else None

    async def get_by_username(self, username: str) -> Optional[User]:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                "SELECT * FROM users WHERE username = $1", username
            )
        return User.from_row(row) if row else None

    async def usernames_for_ids(self, user_ids: Iterable[Optional[int]]) -> dict[int, str]:
        """Map user id -> username for the given ids."""
        ids = sorted({i for i in user_ids if i is not None})
        if not ids:
            return {}
        query = "SELECT id, username FROM users WHERE id = ANY($1::bigint[])"
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(query, ids)
        return {row["id"]: row["username"] for row in rows}
