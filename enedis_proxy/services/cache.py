"""TTL cache for customer information lookups."""

import time
from typing import Callable

from cachetools import TTLCache

from enedis_proxy.config import get_settings
from enedis_proxy.models import CustomerInfo


class CustomerCache:
    """Customer information keyed by usage point, expiring after a TTL."""

    def __init__(
        self,
        maxsize: int = 256,
        ttl_minutes: int | None = None,
        timer: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache with optional custom TTL.

        Args:
            maxsize: Maximum number of usage points kept.
            ttl_minutes: Time-to-live in minutes. Defaults to config value.
            timer: Clock used for expiry, replaceable in tests.
        """
        if ttl_minutes is None:
            ttl_minutes = get_settings().cache_ttl_minutes

        ttl_seconds = ttl_minutes * 60
        self._cache: TTLCache[str, CustomerInfo] = TTLCache(
            maxsize=maxsize, ttl=ttl_seconds, timer=timer
        )

    def get(self, usage_point_id: str) -> CustomerInfo | None:
        """Get the cached information for a usage point."""
        return self._cache.get(usage_point_id)

    def set(self, info: CustomerInfo) -> None:
        """Cache information under its usage point."""
        self._cache[info.usage_point_id] = info

    def clear(self) -> None:
        """Clear all cached values."""
        self._cache.clear()

    def __contains__(self, usage_point_id: str) -> bool:
        return usage_point_id in self._cache


# Global cache instance
_cache: CustomerCache | None = None


def get_customer_cache() -> CustomerCache:
    """Get the global customer cache instance."""
    global _cache
    if _cache is None:
        _cache = CustomerCache()
    return _cache


def clear_cache() -> None:
    """Clear the global cache."""
    global _cache
    if _cache is not None:
        _cache.clear()
