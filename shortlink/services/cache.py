"""
Read-through Cache

Redirect traffic vastly outnumbers creation traffic, so lookups go through a
cache before reaching the database.

Design:
- CacheBackend interface: get / set / invalidate / clear with a TTL, so a
  shared cache (e.g. Redis) can replace the in-process one
- InMemoryCache: bounded LRU (OrderedDict) where every entry also expires
  after its TTL; the TTL bounds how long a deleted link can keep resolving
  in another process
"""

import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Generic, Hashable, Optional, TypeVar

V = TypeVar("V")


class CacheBackend(ABC, Generic[V]):
    """Interface for code-keyed caches."""

    @abstractmethod
    def get(self, key: Hashable) -> Optional[V]:
        """Return the cached value, or None on miss or expiry."""
        pass

    @abstractmethod
    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        """Store a value; ttl overrides the default lifetime."""
        pass

    @abstractmethod
    def invalidate(self, key: Hashable) -> bool:
        """Drop one entry. Returns True if it was present."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class InMemoryCache(CacheBackend[V]):
    """
    Process-local LRU cache with per-entry expiry.

    All operations are O(1). Safe for use from a single event loop; no
    awaits happen while the OrderedDict is being mutated.
    """

    def __init__(
        self,
        maxsize: int = 10000,
        ttl: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self.maxsize = maxsize
        self.ttl = ttl
        self._clock = clock
        self._entries: OrderedDict[Hashable, tuple[float, Any]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        expires_at, value = entry
        if expires_at <= self._clock():
            del self._entries[key]
            self.misses += 1
            return None

        self._entries.move_to_end(key)
        self.hits += 1
        return value

    def set(self, key: Hashable, value: V, ttl: Optional[float] = None) -> None:
        lifetime = self.ttl if ttl is None else ttl
        self._entries[key] = (self._clock() + lifetime, value)
        self._entries.move_to_end(key)

        while len(self._entries) > self.maxsize:
            self._entries.popitem(last=False)

    def invalidate(self, key: Hashable) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict:
        """
        Get cache statistics for monitoring.

        Returns:
            Dictionary with cache metrics
        """
        return {
            "size": len(self._entries),
            "maxsize": self.maxsize,
            "ttl": self.ttl,
            "hits": self.hits,
            "misses": self.misses,
        }
