"""
Result Cache - Short-lived cache of successful extraction results.

Entries are keyed by module, operation and query and expire after a fixed
TTL. Writes are last-write-wins; the cache is only touched from the event
loop thread, so it needs no locking.
"""

import logging
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, Hashable]


class ResultCache:
    """TTL cache of (value, timestamp) pairs."""

    def __init__(self, ttl: float = 300.0, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            ttl: Entry lifetime in seconds; 0 disables caching
            clock: Time source
        """
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[CacheKey, Tuple[Any, float]] = {}
        self._hits = 0
        self._misses = 0

    @staticmethod
    def make_key(module_id: str, operation: str, query: Hashable) -> CacheKey:
        return (module_id, operation, query)

    def get(self, key: CacheKey) -> Optional[Any]:
        """Return a live entry or None, dropping it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        value, timestamp = entry
        if self._clock() - timestamp >= self.ttl:
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        logger.debug(f"Cache hit for {key[0]}:{key[1]}")
        return value

    def set(self, key: CacheKey, value: Any) -> None:
        if self.ttl <= 0:
            return
        self._entries[key] = (value, self._clock())

    def invalidate(self, module_id: Optional[str] = None) -> int:
        """
        Drop entries for one module, or everything.

        Returns:
            Number of entries removed
        """
        if module_id is None:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        keys = [key for key in self._entries if key[0] == module_id]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def purge_expired(self) -> int:
        """Remove expired entries and return how many were dropped."""
        now = self._clock()
        expired = [key for key, (_, timestamp) in self._entries.items() if now - timestamp >= self.ttl]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "ttl": self.ttl,
        }

    def __len__(self) -> int:
        return len(self._entries)


# Export cache
__all__ = ["ResultCache"]
