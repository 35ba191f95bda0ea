"""Reverse-DNS lookups cached in the rdnscache table."""

import asyncio
import socket
from typing import Awaitable, Callable, Optional

import asyncpg
import structlog

from acc_admin.repositories.rdns_cache import RDnsCacheEntry, RDnsCacheRepository
from acc_admin.routers.metrics import record_cache_lookup

logger = structlog.get_logger(__name__)

Resolver = Callable[[str], Awaitable[Optional[str]]]


async def system_reverse_lookup(address: str) -> Optional[str]:
    """Resolve an address with the OS resolver. Returns None on any failure."""
    try:
        hostname, _aliases, _addresses = await asyncio.to_thread(
            socket.gethostbyaddr, address
        )
    except (socket.herror, socket.gaierror, OSError, ValueError) as e:
        logger.debug("rdns_lookup_failed", address=address, error=str(e))
        return None
    return hostname


class CachedRDnsLookupProvider:
    """
    Read-through reverse-DNS provider.

    Hits are returned as stored. Entries are never refreshed, and failed
    lookups are not cached so they are retried on the next request.
    """

    def __init__(
        self,
        repo: RDnsCacheRepository,
        resolver: Resolver = system_reverse_lookup,
    ):
        self._repo = repo
        self._resolver = resolver

    async def get_reverse_dns(self, address: str) -> Optional[str]:
        address = address.strip()
        if not address:
            return None

        cached = await self._repo.get_by_address(address)
        if cached is not None:
            record_cache_lookup("rdns", "hit")
            return cached.data

        record_cache_lookup("rdns", "miss")
        hostname = await self._resolver(address)
        if hostname is None:
            return None

        entry = RDnsCacheEntry(address=address)
        entry.data = hostname
        try:
            await self._repo.save(entry)
        except asyncpg.UniqueViolationError:
            # Another request cached the same address first
            logger.info("rdns_cache_insert_raced", address=address)
        return hostname
