"""Get-or-fetch coordination on top of a CacheStore.

``CachedFetcher.get_or_fetch`` returns a fresh cached value when one exists
and otherwise awaits the caller's producer, storing what it returns. Failed
producers leave nothing behind, so the next call simply tries again.

Concurrent misses on the same key each run their own producer unless the
fetcher is built with ``single_flight=True``, in which case later callers
wait on the first caller's in-flight fetch. If that first caller is cancelled,
the waiters are not: they fetch again themselves.

Usage:
    fetcher = CachedFetcher(MemoryCacheStore("notion"))
    page = await fetcher.get_or_fetch(
        create_cache_key("page", {"id": page_id}),
        lambda: client.request("GET", f"/pages/{page_id}"),
        ttl=TTL.FIFTEEN_MINUTES,
    )
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from notion_workspace_manager.cache.protocol import CacheStore

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_MISSING = object()


class CachedFetcher:
    def __init__(self, store: CacheStore, *, single_flight: bool = False) -> None:
        self._store = store
        self._single_flight = single_flight
        self._in_flight: dict[str, asyncio.Future[Any]] = {}

    @property
    def store(self) -> CacheStore:
        return self._store

    @property
    def single_flight(self) -> bool:
        return self._single_flight

    async def get_or_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[_T]],
        *,
        ttl: float | None = None,
        bypass_cache: bool = False,
    ) -> _T:
        """Return the cached value for *key* or the result of awaiting *producer*.

        Args:
            key: Namespace-relative cache key, usually from ``create_cache_key``.
            producer: Zero-argument coroutine function doing the real work.
            ttl: Seconds to keep a fetched value. ``None`` uses the store default.
            bypass_cache: Skip the store entirely for this call.

        Returns:
            The cached or freshly produced value.

        Raises:
            Whatever *producer* raises. Failures are never cached.
        """
        if bypass_cache or not self._store.enabled:
            logger.debug("Cache bypassed for %s", key)
            return await producer()

        cached = self._store.get(key, _MISSING)
        if cached is not _MISSING:
            logger.debug("Cache hit for %s", key)
            return cached

        if not self._single_flight:
            logger.debug("Cache miss for %s, fetching from source", key)
            return await self._fetch_and_store(key, producer, ttl)

        pending = self._in_flight.get(key)
        if pending is not None:
            logger.debug("Cache miss for %s, joining in-flight fetch", key)
            try:
                return await asyncio.shield(pending)
            except asyncio.CancelledError:
                current = asyncio.current_task()
                if current is None or current.cancelling():
                    raise
                # The leader was cancelled, this caller was not. Its slot is gone, so start over.
                logger.debug("In-flight fetch for %s was cancelled, fetching again", key)
                return await self.get_or_fetch(key, producer, ttl=ttl)

        logger.debug("Cache miss for %s, fetching from source", key)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._in_flight[key] = future
        try:
            value = await self._fetch_and_store(key, producer, ttl)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark the exception retrieved so an unjoined failure is not logged by asyncio.
            future.exception()
            raise
        else:
            future.set_result(value)
            return value
        finally:
            self._in_flight.pop(key, None)

    async def _fetch_and_store(self, key: str, producer: Callable[[], Awaitable[_T]], ttl: float | None) -> _T:
        value = await producer()
        self._store.set(key, value, ttl)
        logger.debug("Cached %s [ttl=%s]", key, ttl if ttl is not None else "default")
        return value
