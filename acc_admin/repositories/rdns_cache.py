"""Repository for the reverse-DNS cache."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog

from acc_admin.core.errors import UnsupportedOperationError
from acc_admin.repositories.utils import acquire

logger = structlog.get_logger(__name__)


@dataclass
class RDnsCacheEntry:
    """A cached reverse-DNS result keyed by address."""

    address: str
    payload: Optional[str] = None
    creation: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def data(self) -> Any:
        """Deserialized payload (the resolved hostname)."""
        return json.loads(self.payload) if self.payload is not None else None

    @data.setter
    def data(self, value: Any) -> None:
        self.payload = json.dumps(value)

    @classmethod
    def from_row(cls, row) -> "RDnsCacheEntry":
        return cls(
            id=row["id"],
            address=row["address"],
            payload=row["data"],
            creation=row["creation"],
        )


class RDnsCacheRepository:
    """Insert-only cache store. Entries are never refreshed or expired."""

    def __init__(self, pool):
        self._pool = pool

    async def get_by_address(self, address: str) -> Optional[RDnsCacheEntry]:
        """Exact-match lookup on the trimmed address. Never creates."""
        query = "SELECT * FROM rdnscache WHERE address = $1 LIMIT 1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, address.strip())
        return RDnsCacheEntry.from_row(row) if row else None

    async def save(self, entry: RDnsCacheEntry, conn=None) -> RDnsCacheEntry:
        """
        Insert a new entry.

        Raises:
            UnsupportedOperationError: If the entry already exists
        """
        if not entry.is_new:
            logger.error("rdns_cache_update_attempted", address=entry.address)
            raise UnsupportedOperationError("Updating rDNS cache entries is not supported")

        entry.address = entry.address.strip()
        query = """
            INSERT INTO rdnscache (address, data)
            VALUES ($1, $2)
            RETURNING id, creation
        """
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(query, entry.address, entry.payload)
        entry.id = row["id"]
        entry.creation = row["creation"]
        logger.debug("rdns_cached", address=entry.address)
        return entry
