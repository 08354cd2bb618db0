"""In-memory namespaced cache with lazy TTL expiry and pattern invalidation.

Entries live in a plain dict keyed by ``"{namespace}:{key}"``. Expiry is
checked when an entry is read; there is no background sweep, although
``purge_expired()`` can be called to drop stale entries eagerly.

Usage:
    store = MemoryCacheStore("notion-workspace-manager", default_ttl=TTL.FIVE_MINUTES)
    store.set('page:id="abc"', {"object": "page"}, ttl=TTL.FIFTEEN_MINUTES)
    store.get('page:id="abc"')
    store.invalidate_pattern(r"database_query.*abc")
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from notion_workspace_manager.cache.keys import TTL

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    key: str
    value: Any
    expires_at: float


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time snapshot of a store's counters."""

    namespace: str
    enabled: bool
    size: int
    hits: int
    misses: int
    sets: int
    evictions: int
    invalidations: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "namespace": self.namespace,
            "enabled": self.enabled,
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 4),
            "sets": self.sets,
            "evictions": self.evictions,
            "invalidations": self.invalidations,
        }


def _as_predicate(pattern: str | re.Pattern[str] | Callable[[str], bool]) -> Callable[[str], bool]:
    if isinstance(pattern, str):
        pattern = re.compile(pattern)
    if isinstance(pattern, re.Pattern):
        compiled = pattern
        return lambda key: compiled.search(key) is not None
    return pattern


class MemoryCacheStore:
    def __init__(
        self,
        namespace: str,
        default_ttl: float = TTL.FIVE_MINUTES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._namespace = namespace
        self._default_ttl = default_ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._enabled = True
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._evictions = 0
        self._invalidations = 0

    @property
    def namespace(self) -> str:
        return self._namespace

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    @property
    def enabled(self) -> bool:
        return self._enabled

    def full_key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value for *key*, or *default* on a miss.

        An entry found past its expiry is removed and counted as a miss.
        """
        full_key = self.full_key(key)
        with self._lock:
            entry = self._entries.get(full_key)
            if entry is None:
                self._misses += 1
                return default
            if self._clock() > entry.expires_at:
                del self._entries[full_key]
                self._evictions += 1
                self._misses += 1
                return default
            self._hits += 1
            return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        full_key = self.full_key(key)
        ttl_seconds = self._default_ttl if ttl is None else ttl
        with self._lock:
            self._entries[full_key] = CacheEntry(full_key, value, self._clock() + ttl_seconds)
            self._sets += 1

    def invalidate(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(self.full_key(key), None) is not None
            if removed:
                self._invalidations += 1
        if removed:
            logger.debug("Invalidated %s", self.full_key(key))
        return removed

    def invalidate_matching(self, predicate: Callable[[str], bool]) -> int:
        """Remove every entry whose full (namespaced) key satisfies *predicate*."""
        with self._lock:
            doomed = [full_key for full_key in self._entries if predicate(full_key)]
            for full_key in doomed:
                del self._entries[full_key]
            self._invalidations += len(doomed)
        if doomed:
            logger.debug("Invalidated %d %s entries", len(doomed), self._namespace)
        return len(doomed)

    def invalidate_pattern(self, pattern: str | re.Pattern[str] | Callable[[str], bool]) -> int:
        """Remove every entry whose full key matches *pattern*.

        Strings and compiled patterns use ``re.search`` against the key
        including its namespace prefix. Any other callable is used as-is.
        """
        return self.invalidate_matching(_as_predicate(pattern))

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [full_key for full_key, entry in self._entries.items() if now > entry.expires_at]
            for full_key in expired:
                del self._entries[full_key]
            self._evictions += len(expired)
        return len(expired)

    def clear(self) -> int:
        """Drop every entry and reset the counters. Returns the number of entries dropped."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._reset_counters()
        logger.debug("Cleared %d %s entries", count, self._namespace)
        return count

    def reset_stats(self) -> None:
        with self._lock:
            self._reset_counters()

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                namespace=self._namespace,
                enabled=self._enabled,
                size=len(self._entries),
                hits=self._hits,
                misses=self._misses,
                sets=self._sets,
                evictions=self._evictions,
                invalidations=self._invalidations,
            )

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        # Entries are kept so they can be served again after enable().
        self._enabled = False

    def _reset_counters(self) -> None:
        self._hits = 0
        self._misses = 0
        self._sets = 0
        self._evictions = 0
        self._invalidations = 0
