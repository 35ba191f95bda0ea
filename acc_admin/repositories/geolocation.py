"""Repository for the IP geolocation cache."""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import structlog

from acc_admin.core.errors import OptimisticLockConflictError
from acc_admin.repositories.utils import acquire

logger = structlog.get_logger(__name__)


@dataclass
class GeoLocation:
    """A cached geolocation lookup keyed by address.

    ``payload`` is the serialized blob exactly as stored; the repository
    never looks inside it.
    """

    address: str
    payload: Optional[str] = None
    creation: Optional[datetime] = None
    last_update: Optional[datetime] = None
    update_version: int = 0
    id: Optional[int] = None

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def data(self) -> Any:
        """Deserialized payload."""
        return json.loads(self.payload) if self.payload is not None else None

    @data.setter
    def data(self, value: Any) -> None:
        self.payload = json.dumps(value)

    @classmethod
    def from_row(cls, row) -> "GeoLocation":
        return cls(
            id=row["id"],
            address=row["address"],
            payload=row["data"],
            creation=row["creation"],
            last_update=row["last_update"],
            update_version=row["update_version"],
        )


class GeoLocationRepository:
    """Key-addressed cache store with version-guarded updates."""

    def __init__(self, pool):
        self._pool = pool

    async def get_by_address(self, address: str) -> Optional[GeoLocation]:
        """Exact-match lookup on the trimmed address. Never creates."""
        query = "SELECT * FROM geolocation WHERE address = $1 LIMIT 1"
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(query, address.strip())
        return GeoLocation.from_row(row) if row else None

    async def save(self, entry: GeoLocation, conn=None) -> GeoLocation:
        """
        Insert a new entry or refresh an existing one.

        Raises:
            OptimisticLockConflictError: If the stored version moved on
        """
        entry.address = entry.address.strip()
        if entry.is_new:
            query = """
                INSERT INTO geolocation (address, data)
                VALUES ($1, $2)
                RETURNING id, creation, last_update, update_version
            """
            async with acquire(self._pool, conn) as c:
                row = await c.fetchrow(query, entry.address, entry.payload)
            entry.id = row["id"]
            entry.creation = row["creation"]
            entry.last_update = row["last_update"]
            entry.update_version = row["update_version"]
            logger.debug("geolocation_cached", address=entry.address)
            return entry

        query = """
            UPDATE geolocation
            SET address = $3, data = $4, last_update = now(),
                update_version = update_version + 1
            WHERE id = $1 AND update_version = $2
            RETURNING last_update
        """
        async with acquire(self._pool, conn) as c:
            row = await c.fetchrow(
                query, entry.id, entry.update_version, entry.address, entry.payload
            )

        if row is None:
            logger.warning(
                "geolocation_optimistic_lock_conflict",
                address=entry.address,
                expected_version=entry.update_version,
            )
            raise OptimisticLockConflictError(
                "GeoLocation", entry.id, entry.update_version
            )

        entry.last_update = row["last_update"]
        entry.update_version += 1
        return entry
