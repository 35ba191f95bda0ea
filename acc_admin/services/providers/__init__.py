"""Read-through lookup providers backed by the address caches."""

from acc_admin.services.providers.geolocation import CachedGeoLocationProvider
from acc_admin.services.providers.rdns import CachedRDnsLookupProvider

__all__ = ["CachedGeoLocationProvider", "CachedRDnsLookupProvider"]
