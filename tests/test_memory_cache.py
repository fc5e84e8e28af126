"""
Unit tests for the in-memory fetch-coalescing cache.

Run with:
    pytest tests/test_memory_cache.py -v
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from fineer.cache import MemoryCache
from fineer.errors import FetchError


@pytest.fixture
def cache(clock):
    return MemoryCache(log_prefix="TEST_CACHE", clock=clock)


class TestCoalescing:
    """Concurrent callers for one key share a single fetch."""

    @pytest.mark.asyncio
    async def test_ten_concurrent_callers_trigger_one_fetch(self):
        cache = MemoryCache()
        calls = 0

        async def fetch_employees():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return [{"nama": "Budi"}, {"nama": "Sari"}]

        results = await asyncio.gather(
            *(cache.get_data("employees", fetch_employees) for _ in range(10))
        )

        assert calls == 1
        assert all(result is results[0] for result in results)
        assert results[0] == [{"nama": "Budi"}, {"nama": "Sari"}]
        stats = cache.stats()
        assert stats["misses"] == 1
        assert stats["coalesced"] == 9
        assert stats["in_flight"] == 0

    @pytest.mark.asyncio
    async def test_waiter_does_not_call_its_own_fetch(self, cache, gate):
        async def slow_fetch():
            await gate.wait()
            return "fresh"

        second_fetch = AsyncMock(return_value="unused")

        first = asyncio.create_task(cache.get_data("attendance", slow_fetch))
        await asyncio.sleep(0)
        assert cache.is_loading("attendance")

        second = asyncio.create_task(cache.get_data("attendance", second_fetch))
        await asyncio.sleep(0)
        gate.set()

        assert await first == "fresh"
        assert await second == "fresh"
        second_fetch.assert_not_called()
        assert not cache.is_loading("attendance")

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, cache, gate):
        async def blocked():
            await gate.wait()
            return "a"

        slow = asyncio.create_task(cache.get_data("a", blocked))
        await asyncio.sleep(0)

        # "b" completes while "a" is still in flight
        assert await cache.get_data("b", AsyncMock(return_value="b")) == "b"
        assert not slow.done()

        gate.set()
        assert await slow == "a"


class TestFreshness:
    """TTL handling, evaluated per call against the entry timestamp."""

    @pytest.mark.asyncio
    async def test_fresh_entry_served_stale_entry_refetched(self, cache, clock):
        first = AsyncMock(return_value="v1")
        second = AsyncMock(return_value="v2")

        assert await cache.get_data("k", first, ttl_seconds=0.1) == "v1"

        clock.advance(0.05)
        assert await cache.get_data("k", second, ttl_seconds=0.1) == "v1"
        second.assert_not_called()

        clock.advance(0.1)
        assert await cache.get_data("k", second, ttl_seconds=0.1) == "v2"
        second.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_ttl_is_per_call(self, cache, clock):
        await cache.get_data("k", AsyncMock(return_value="v1"))
        clock.advance(1.0)

        refetch = AsyncMock(return_value="v2")
        assert await cache.get_data("k", refetch, ttl_seconds=5) == "v1"
        refetch.assert_not_called()

        assert await cache.get_data("k", refetch, ttl_seconds=0.5) == "v2"
        refetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_default_ttl_is_two_minutes(self, cache, clock):
        await cache.get_data("k", AsyncMock(return_value="v1"))

        clock.advance(119)
        assert cache.is_valid("k")
        clock.advance(1)
        assert not cache.is_valid("k")

    def test_is_valid_without_entry(self, cache):
        assert cache.is_valid("missing") is False


class TestInvalidation:

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, cache):
        await cache.get_data("k", AsyncMock(return_value="v1"))
        cache.invalidate("k")

        refetch = AsyncMock(return_value="v2")
        assert await cache.get_data("k", refetch) == "v2"
        refetch.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_clear_all_drops_every_entry(self, cache):
        await cache.get_data("a", AsyncMock(return_value=1))
        await cache.get_data("b", AsyncMock(return_value=2))

        cache.clear_all()

        assert not cache.is_valid("a")
        assert not cache.is_valid("b")
        assert cache.stats()["entries"] == 0

    @pytest.mark.asyncio
    async def test_invalidate_does_not_stop_inflight_fetch(self, cache, gate):
        async def slow():
            await gate.wait()
            return "late"

        task = asyncio.create_task(cache.get_data("k", slow))
        await asyncio.sleep(0)
        cache.invalidate("k")
        gate.set()

        assert await task == "late"
        assert cache.is_valid("k")


class TestFailures:
    """Failed fetches are never cached; waiters get None, not the error."""

    @pytest.mark.asyncio
    async def test_failure_is_raised_and_not_cached(self, cache):
        with pytest.raises(FetchError) as exc_info:
            await cache.get_data("k", AsyncMock(side_effect=RuntimeError("firestore down")))

        assert exc_info.value.key == "k"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert not cache.is_valid("k")
        assert not cache.is_loading("k")

        retry = AsyncMock(return_value="ok")
        assert await cache.get_data("k", retry) == "ok"
        retry.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_coalesced_waiter_gets_none_on_failure(self, cache, gate):
        async def failing():
            await gate.wait()
            raise RuntimeError("boom")

        initiator = asyncio.create_task(cache.get_data("k", failing))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_data("k", AsyncMock(return_value="unused")))
        await asyncio.sleep(0)
        gate.set()

        with pytest.raises(FetchError):
            await initiator
        assert await waiter is None
        assert cache.stats()["failures"] == 1

    @pytest.mark.asyncio
    async def test_cancelled_initiator_releases_waiters(self, cache, gate):
        async def never_finishes():
            await gate.wait()
            return "never"

        initiator = asyncio.create_task(cache.get_data("k", never_finishes))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_data("k", AsyncMock()))
        await asyncio.sleep(0)

        initiator.cancel()
        with pytest.raises(asyncio.CancelledError):
            await initiator

        assert await waiter is None
        assert not cache.is_loading("k")
