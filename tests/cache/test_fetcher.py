from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from notion_workspace_manager.cache.fetcher import CachedFetcher

if TYPE_CHECKING:
    from notion_workspace_manager.cache.memory_store import MemoryCacheStore
    from tests.conftest import FakeClock


class CountingProducer:
    def __init__(self, value: Any = "value") -> None:
        self.value = value
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        return self.value


class FailingProducer:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        raise RuntimeError("remote down")


class TestGetOrFetch:
    async def test_miss_invokes_producer_and_stores(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        producer = CountingProducer({"id": "p1"})

        result = await fetcher.get_or_fetch("page:id=p1", producer, ttl=60)

        assert result == {"id": "p1"}
        assert producer.calls == 1
        assert store.get("page:id=p1") == {"id": "p1"}

    async def test_second_call_within_ttl_is_a_hit(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        producer = CountingProducer()

        first = await fetcher.get_or_fetch("k", producer, ttl=60)
        second = await fetcher.get_or_fetch("k", producer, ttl=60)

        assert first == second == "value"
        assert producer.calls == 1
        stats = store.get_stats()
        assert (stats.hits, stats.misses) == (1, 1)

    async def test_refetches_after_ttl(self, store: MemoryCacheStore, clock: FakeClock) -> None:
        fetcher = CachedFetcher(store)
        producer = CountingProducer()

        await fetcher.get_or_fetch("k", producer, ttl=60)
        clock.advance(61)
        await fetcher.get_or_fetch("k", producer, ttl=60)

        assert producer.calls == 2

    async def test_cached_none_is_not_refetched(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        producer = CountingProducer(None)

        assert await fetcher.get_or_fetch("k", producer) is None
        assert await fetcher.get_or_fetch("k", producer) is None
        assert producer.calls == 1

    async def test_failure_is_not_cached(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        failing = FailingProducer()

        with pytest.raises(RuntimeError, match="remote down"):
            await fetcher.get_or_fetch("k", failing, ttl=60)

        assert store.get_stats().size == 0
        producer = CountingProducer()
        assert await fetcher.get_or_fetch("k", producer, ttl=60) == "value"
        assert producer.calls == 1

    async def test_cancellation_propagates_without_caching(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)

        async def cancelled() -> Any:
            raise asyncio.CancelledError

        with pytest.raises(asyncio.CancelledError):
            await fetcher.get_or_fetch("k", cancelled)
        assert store.get_stats().size == 0


class TestBypass:
    async def test_bypass_always_invokes_producer(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        store.set("k", "stale", ttl=60)
        producer = CountingProducer("fresh")

        assert await fetcher.get_or_fetch("k", producer, bypass_cache=True) == "fresh"
        assert await fetcher.get_or_fetch("k", producer, bypass_cache=True) == "fresh"

        assert producer.calls == 2
        assert store.get("k") == "stale"

    async def test_bypass_does_not_touch_counters(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        await fetcher.get_or_fetch("k", CountingProducer(), bypass_cache=True)
        stats = store.get_stats()
        assert (stats.hits, stats.misses, stats.sets) == (0, 0, 0)

    async def test_disabled_store_round_trip(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        producer = CountingProducer()
        await fetcher.get_or_fetch("k", producer, ttl=60)

        store.disable()
        for i in range(3):
            await fetcher.get_or_fetch(f"other-{i}", producer, ttl=60)
            await fetcher.get_or_fetch("k", producer, ttl=60)
        assert producer.calls == 7
        assert store.get_stats().size == 1

        store.enable()
        await fetcher.get_or_fetch("k", producer, ttl=60)
        assert producer.calls == 7
        assert store.get_stats().hits == 1


class TestConcurrentMisses:
    async def test_without_single_flight_each_caller_fetches(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store)
        release = asyncio.Event()
        calls = 0

        async def slow() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        tasks = [asyncio.create_task(fetcher.get_or_fetch("k", slow)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()

        assert await asyncio.gather(*tasks) == ["value"] * 3
        assert calls == 3

    async def test_single_flight_shares_one_fetch(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store, single_flight=True)
        release = asyncio.Event()
        calls = 0

        async def slow() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        tasks = [asyncio.create_task(fetcher.get_or_fetch("k", slow)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()

        assert await asyncio.gather(*tasks) == ["value"] * 3
        assert calls == 1
        assert store.get("k") == "value"

    async def test_single_flight_shares_failure_then_retries(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store, single_flight=True)
        release = asyncio.Event()
        calls = 0

        async def slow_failure() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            raise RuntimeError("remote down")

        tasks = [asyncio.create_task(fetcher.get_or_fetch("k", slow_failure)) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert calls == 1
        assert all(isinstance(r, RuntimeError) for r in results)
        assert store.get_stats().size == 0

        producer = CountingProducer()
        assert await fetcher.get_or_fetch("k", producer) == "value"
        assert producer.calls == 1

    async def test_single_flight_leader_cancelled_follower_fetches_again(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store, single_flight=True)
        release = asyncio.Event()
        calls = 0

        async def slow() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        leader = asyncio.create_task(fetcher.get_or_fetch("k", slow))
        await asyncio.sleep(0)
        follower = asyncio.create_task(fetcher.get_or_fetch("k", slow))
        await asyncio.sleep(0)

        leader.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leader
        release.set()

        assert await follower == "value"
        assert calls == 2
        assert store.get("k") == "value"

    async def test_single_flight_cancelled_follower_leaves_leader_running(self, store: MemoryCacheStore) -> None:
        fetcher = CachedFetcher(store, single_flight=True)
        release = asyncio.Event()
        calls = 0

        async def slow() -> str:
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        leader = asyncio.create_task(fetcher.get_or_fetch("k", slow))
        await asyncio.sleep(0)
        follower = asyncio.create_task(fetcher.get_or_fetch("k", slow))
        await asyncio.sleep(0)

        follower.cancel()
        with pytest.raises(asyncio.CancelledError):
            await follower
        release.set()

        assert await leader == "value"
        assert calls == 1
