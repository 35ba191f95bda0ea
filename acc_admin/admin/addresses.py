"""Address lookup endpoints backed by the rDNS and geolocation caches."""

import ipaddress

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from acc_admin.admin.utils import require_db_pool
from acc_admin.config import Settings, get_settings
from acc_admin.deps.security import require_admin_token
from acc_admin.repositories.geolocation import GeoLocationRepository
from acc_admin.repositories.rdns_cache import RDnsCacheRepository
from acc_admin.services.providers.geolocation import CachedGeoLocationProvider
from acc_admin.services.providers.rdns import CachedRDnsLookupProvider

router = APIRouter(tags=["admin"])
logger = structlog.get_logger(__name__)

# Global connection pool (set during app startup)
_db_pool = None


def set_db_pool(pool):
    """Set the database pool for address routes."""
    global _db_pool
    _db_pool = pool


def _get_db_pool():
    return require_db_pool(_db_pool, "Database")


def get_rdns_provider() -> CachedRDnsLookupProvider:
    return CachedRDnsLookupProvider(RDnsCacheRepository(_get_db_pool()))


def get_geolocation_provider(
    settings: Settings = Depends(get_settings),
) -> CachedGeoLocationProvider:
    return CachedGeoLocationProvider(GeoLocationRepository(_get_db_pool()), settings)


@router.get("/addresses/{address}")
async def lookup_address(
    address: str,
    _: bool = Depends(require_admin_token),
    rdns: CachedRDnsLookupProvider = Depends(get_rdns_provider),
    geolocation: CachedGeoLocationProvider = Depends(get_geolocation_provider),
):
    """Reverse DNS and location for an address, served from cache where possible."""
    try:
        address = str(ipaddress.ip_address(address.strip()))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="IP address expected"
        )

    hostname = await rdns.get_reverse_dns(address)
    location = await geolocation.get_location(address)
    logger.debug("address_lookup", address=address, rdns_found=hostname is not None)
    return {"address": address, "rdns": hostname, "location": location}
