"""IP geolocation lookups cached in the geolocation table.

Lookups go to an IPInfoDB-compatible HTTP API. Cached entries older than
``geolocation_cache_max_age_days`` are re-fetched and refreshed in place
under the entry's update version.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import asyncpg
import httpx
import structlog

from acc_admin.config import Settings
from acc_admin.core.errors import OptimisticLockConflictError
from acc_admin.repositories.geolocation import GeoLocation, GeoLocationRepository
from acc_admin.routers.metrics import record_cache_lookup

logger = structlog.get_logger(__name__)

# API response field -> cached payload field
FIELD_MAP = {
    "countryCode": "country_code",
    "countryName": "country_name",
    "regionName": "region",
    "cityName": "city",
    "zipCode": "zip_code",
    "latitude": "latitude",
    "longitude": "longitude",
    "timeZone": "time_zone",
}


class CachedGeoLocationProvider:
    """Read-through geolocation provider."""

    def __init__(
        self,
        repo: GeoLocationRepository,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._repo = repo
        self.api_url = settings.geolocation_api_url
        self.api_key = settings.geolocation_api_key
        self.timeout = settings.geolocation_timeout
        self.max_age = timedelta(days=settings.geolocation_cache_max_age_days)
        self._transport = transport

    def is_stale(self, entry: GeoLocation, now: Optional[datetime] = None) -> bool:
        stamp = entry.last_update or entry.creation
        if stamp is None:
            return True
        now = now or datetime.now(timezone.utc)
        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return now - stamp > self.max_age

    async def get_location(self, address: str) -> Optional[dict[str, Any]]:
        """
        Get geolocation data for an address.

        Returns:
            The location payload, or None if nothing is cached and the
            lookup API failed
        """
        address = address.strip()
        if not address:
            return None

        entry = await self._repo.get_by_address(address)
        if entry is not None and not self.is_stale(entry):
            record_cache_lookup("geolocation", "hit")
            return entry.data

        record_cache_lookup("geolocation", "stale" if entry else "miss")
        data = await self.fetch(address)
        if data is None:
            # Serve the stale copy rather than nothing
            return entry.data if entry is not None else None

        if entry is None:
            entry = GeoLocation(address=address)
            entry.data = data
            try:
                await self._repo.save(entry)
            except asyncpg.UniqueViolationError:
                logger.info("geolocation_cache_insert_raced", address=address)
            return data

        entry.data = data
        try:
            await self._repo.save(entry)
        except OptimisticLockConflictError:
            logger.warning(
                "geolocation_refresh_conflict",
                address=address,
                update_version=entry.update_version,
            )
        return data

    async def fetch(self, address: str) -> Optional[dict[str, Any]]:
        """Query the lookup API. Returns None on any failure."""
        if not self.api_key:
            logger.debug("geolocation_api_not_configured")
            return None

        params = {"key": self.api_key, "ip": address, "format": "json"}
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                resp = await client.get(self.api_url, params=params)
                resp.raise_for_status()
                body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("geolocation_lookup_failed", address=address, error=str(e))
            return None

        if body.get("statusCode") != "OK":
            logger.warning(
                "geolocation_lookup_rejected",
                address=address,
                status=body.get("statusCode"),
                message=body.get("statusMessage"),
            )
            return None

        return {dest: body.get(src) for src, dest in FIELD_MAP.items()}
