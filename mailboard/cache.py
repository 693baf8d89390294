"""
Cache - in-memory TTL cache with LRU eviction.

Used for short-lived Google access tokens. Contents are process-local:
they vanish on restart and are not shared between instances of the
service.
"""

import threading
import time
from dataclasses import dataclass
from typing import Any, Callable


@dataclass
class CacheEntry:
    key: str
    value: Any
    created_at: float
    expires_at: float | None


class MemoryCache:
    """Fast in-memory cache with LRU eviction."""

    def __init__(self, max_size: int = 1024, clock: Callable[[], float] = time.time):
        self.max_size = max_size
        self._clock = clock
        self._cache: dict[str, CacheEntry] = {}
        self._access_order: list[str] = []  # Track access order for LRU
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss. Expired entries are evicted."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                return None

            if entry.expires_at is not None and entry.expires_at < self._clock():
                self._delete(key)
                return None

            # Update access order (move to end for LRU)
            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """Set a value with optional TTL in seconds."""
        with self._lock:
            # Evict if at capacity
            while len(self._cache) >= self.max_size and key not in self._cache:
                self._evict_oldest()

            now = self._clock()
            self._cache[key] = CacheEntry(
                key=key,
                value=value,
                created_at=now,
                expires_at=now + ttl if ttl is not None else None,
            )

            if key in self._access_order:
                self._access_order.remove(key)
            self._access_order.append(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._delete(key)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._access_order.clear()

    def cleanup_expired(self) -> int:
        """Remove expired entries. Returns count of removed entries."""
        with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._cache.items()
                if entry.expires_at is not None and entry.expires_at < now
            ]
            for key in expired:
                self._delete(key)
            return len(expired)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._cache

    def _delete(self, key: str) -> None:
        self._cache.pop(key, None)
        if key in self._access_order:
            self._access_order.remove(key)

    def _evict_oldest(self):
        """Evict least recently used entry."""
        if self._access_order:
            oldest_key = self._access_order.pop(0)
            self._cache.pop(oldest_key, None)

    @property
    def size(self) -> int:
        return len(self._cache)
