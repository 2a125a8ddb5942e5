"""
In-memory cache with TTL.

Used for values that are expensive to fetch but may change between ticks:
the credentials row and the "sheet exists / headers match" check before sheet writes.
Entries are invalidated when they expire or explicitly when the underlying
value is known to have changed.
"""

import threading
from datetime import datetime, timedelta
from typing import Generic, Hashable, TypeVar

from sync_leads.utils.datetime import utc_now

T = TypeVar("T")


class TTLCache(Generic[T]):
    """
    In-memory key/value cache with time-to-live (TTL) expiration.

    Attributes:
        ttl: Time-to-live for cached entries
        _cache: Internal storage mapping key to (value, expires_at) tuples

    Example:
        >>> cache = TTLCache[bool](ttl_seconds=300)
        >>> cache.set("Client", True)
        >>> cache.get("Client")
        True
        >>> cache.invalidate("Client")
    """

    def __init__(self, ttl_seconds: float = 300):
        """
        Initialize cache with specified TTL.

        Args:
            ttl_seconds: Time-to-live in seconds for cached entries (default: 300 = 5 minutes)
        """
        self.ttl = timedelta(seconds=ttl_seconds)
        self._cache: dict[Hashable, tuple[T, datetime]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> T | None:
        """
        Get cached value if not expired.

        Returns:
            Cached value if found and not expired, None otherwise
        """
        with self._lock:
            if key in self._cache:
                value, expires_at = self._cache[key]
                if utc_now() < expires_at:
                    return value
                # Expired - remove from cache
                del self._cache[key]
            return None

    def set(self, key: Hashable, value: T) -> None:
        """Cache value with TTL."""
        with self._lock:
            self._cache[key] = (value, utc_now() + self.ttl)

    def invalidate(self, key: Hashable) -> None:
        """Remove a single entry from the cache."""
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        """
        Clear all cached entries.

        Called when the sheet id or credentials change.
        """
        with self._lock:
            self._cache.clear()

    def size(self) -> int:
        """Number of entries currently in cache (expired entries included until read)."""
        with self._lock:
            return len(self._cache)
