"""In-memory TTL cache for mapped search results.

Thread-safe and bounded; the interface is small enough to swap for Redis
without touching the orchestrator.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from hashlib import sha256
from typing import Callable

from booru_proxy.schemas.posts import CanonicalResult
from booru_proxy.schemas.query import CanonicalQuery

logger = logging.getLogger(__name__)

CACHE_KEY_VERSION = "v1"


@dataclass(frozen=True)
class CacheEntry:
    """A stored result and the moment it was stored."""

    key: str
    value: CanonicalResult
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class SimpleTTLCache:
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Expired entries are treated as absent on read and removed when touched;
    ``put`` additionally sweeps expired entries before inserting.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: float = 120,
        max_entries: int | None = 1024,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1")

        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"SimpleTTLCache(ttl_seconds={self._ttl}, max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, misses={self._misses}, "
            f"evictions={self._evictions})"
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> CanonicalResult | None:
        """Return the cached result for ``key``, or None if missing or expired."""

        now = self._clock()
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                self._misses += 1
                reason = "not_found"
            elif entry.is_expired(now):
                self._evict_single(key)
                self._misses += 1
                reason = "expired"
            else:
                self._hits += 1
                self._store.move_to_end(key)
                logger.debug("cache.hit", extra={"cache_key": key[:16]})
                return entry.value

        logger.debug("cache.miss", extra={"cache_key": key[:16], "reason": reason})
        return None

    def put(self, key: str, value: CanonicalResult) -> None:
        """Store ``value`` under ``key``, replacing any entry and restarting its TTL."""

        now = self._clock()
        with self._lock:
            self._evict_expired_locked(now)
            self._store.pop(key, None)
            self._store[key] = CacheEntry(key=key, value=value, stored_at=now, ttl=self._ttl)
            self._evict_if_over_capacity_locked()
            size = len(self._store)

        logger.debug(
            "cache.set",
            extra={"cache_key": key[:16], "size": size, "ttl_s": self._ttl},
        )

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | float | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1

    def _evict_expired_locked(self, now: float) -> None:
        expired = [k for k, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            self._evict_single(key)

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1


def build_cache_key(query: CanonicalQuery) -> str:
    """Build a stable cache key from every normalized query field.

    Two requests that normalize to the same query against the same source share
    a key, whatever the formatting of their raw parameters.

    Args:
        query: Normalized query (includes the source).

    Returns:
        Hex-encoded SHA-256 digest string.
    """

    payload = json.dumps(
        {
            "v": CACHE_KEY_VERSION,
            "source": query.source,
            "tags": list(query.tags),
            "page": query.page,
            "limit": query.limit,
            "sort": query.sort,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return sha256(payload.encode()).hexdigest()
