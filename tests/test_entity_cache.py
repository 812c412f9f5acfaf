"""
Tests for the entity cache: TTL, in-flight deduplication, partial seeding,
prefetch and cancellation.
"""

import asyncio

import pytest

from storefront.cache.entity_cache import CacheState, EntityCache
from storefront.core.errors import AuthExpiredError, NetworkTransientError


def _run(coro):
    return asyncio.run(coro)


class CountingFetcher:
    """Fetcher that records calls and can be held open with a gate."""

    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result
        self.error = error
        self.gate = None

    async def __call__(self, key):
        self.calls.append(key)
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return self.result if self.result is not None else {"id": key, "full": True}


class TestGetOrFetch:
    def test_concurrent_calls_issue_one_fetch(self, clock):
        fetcher = CountingFetcher()

        async def scenario():
            cache = EntityCache(fetcher, ttl_seconds=60, clock=clock)
            results = await asyncio.gather(*(cache.get_or_fetch("p1") for _ in range(5)))
            return cache, results

        cache, results = _run(scenario())
        assert fetcher.calls == ["p1"]
        assert all(r == {"id": "p1", "full": True} for r in results)
        assert cache.stats["dedup_waits"] == 4
        assert not cache.is_in_flight("p1")

    def test_different_keys_fetch_independently(self, clock):
        fetcher = CountingFetcher()

        async def scenario():
            cache = EntityCache(fetcher, clock=clock)
            await asyncio.gather(cache.get_or_fetch("p1"), cache.get_or_fetch("p2"))

        _run(scenario())
        assert sorted(fetcher.calls) == ["p1", "p2"]

    def test_fresh_entry_served_until_ttl(self, clock):
        fetcher = CountingFetcher()
        cache = EntityCache(fetcher, ttl_seconds=60, clock=clock)

        _run(cache.get_or_fetch("p1"))
        clock.advance(30)
        _run(cache.get_or_fetch("p1"))
        assert len(fetcher.calls) == 1
        assert cache.state("p1") == CacheState.FULL

        clock.advance(31)
        assert cache.state("p1") == CacheState.ABSENT
        _run(cache.get_or_fetch("p1"))
        assert len(fetcher.calls) == 2
        assert cache.stats["hits"] == 1

    def test_failure_resolves_to_none_and_is_not_stored(self, clock):
        fetcher = CountingFetcher(error=NetworkTransientError("boom", attempts=3))
        cache = EntityCache(fetcher, clock=clock)

        assert _run(cache.get_or_fetch("p1")) is None
        assert cache.state("p1") == CacheState.ABSENT
        assert not cache.is_in_flight("p1")
        assert cache.stats["errors"] == 1

        # next read tries again
        fetcher.error = None
        assert _run(cache.get_or_fetch("p1")) == {"id": "p1", "full": True}
        assert len(fetcher.calls) == 2

    def test_failure_keeps_previous_entry(self, clock):
        fetcher = CountingFetcher()
        cache = EntityCache(fetcher, ttl_seconds=60, clock=clock)
        _run(cache.get_or_fetch("p1"))

        clock.advance(61)
        fetcher.error = NetworkTransientError("down")
        assert _run(cache.get_or_fetch("p1")) is None
        assert cache.peek("p1").data == {"id": "p1", "full": True}

    def test_not_found_returns_none(self, clock):
        async def fetcher(key):
            return None

        cache = EntityCache(fetcher, clock=clock)
        assert _run(cache.get_or_fetch("gone")) is None
        assert cache.peek("gone") is None

    def test_auth_expired_reaches_every_waiter(self, clock):
        fetcher = CountingFetcher(error=AuthExpiredError("expired"))

        async def scenario():
            cache = EntityCache(fetcher, clock=clock)
            return await asyncio.gather(
                cache.get_or_fetch("p1"), cache.get_or_fetch("p1"), return_exceptions=True,
            )

        results = _run(scenario())
        assert len(fetcher.calls) == 1
        assert all(isinstance(r, AuthExpiredError) for r in results)

    def test_empty_key_raises(self, clock):
        cache = EntityCache(CountingFetcher(), clock=clock)
        with pytest.raises(ValueError):
            _run(cache.get_or_fetch(""))


class TestSeedPartial:
    def test_partial_then_full_then_partial_keeps_full(self, clock):
        fetcher = CountingFetcher(result={"id": "p1", "description": "full detail"})
        cache = EntityCache(fetcher, clock=clock)

        assert cache.seed_partial("p1", {"id": "p1"}) is True
        assert cache.state("p1") == CacheState.PARTIAL

        full = _run(cache.get_or_fetch("p1"))
        assert full == {"id": "p1", "description": "full detail"}
        assert cache.state("p1") == CacheState.FULL

        assert cache.seed_partial("p1", {"id": "p1", "name": "older"}) is False
        assert cache.state("p1") == CacheState.FULL
        assert cache.peek("p1").data == full

    def test_partial_never_served_as_fresh(self, clock):
        fetcher = CountingFetcher()
        cache = EntityCache(fetcher, clock=clock)
        cache.seed_partial("p1", {"id": "p1"})
        assert cache.is_fresh("p1") is False
        _run(cache.get_or_fetch("p1"))
        assert fetcher.calls == ["p1"]

    def test_partial_does_not_expire(self, clock):
        cache = EntityCache(CountingFetcher(), ttl_seconds=60, clock=clock)
        cache.seed_partial("p1", {"id": "p1"})
        clock.advance(3600)
        assert cache.state("p1") == CacheState.PARTIAL

    def test_partial_replaces_partial(self, clock):
        cache = EntityCache(CountingFetcher(), clock=clock)
        cache.seed_partial("p1", {"v": 1})
        assert cache.seed_partial("p1", {"v": 2}) is True
        assert cache.peek("p1").data == {"v": 2}

    def test_stale_full_not_downgraded(self, clock):
        cache = EntityCache(CountingFetcher(), ttl_seconds=60, clock=clock)
        _run(cache.get_or_fetch("p1"))
        clock.advance(120)
        assert cache.seed_partial("p1", {"id": "p1"}) is False
        assert cache.peek("p1").partial is False


class TestPrefetch:
    def test_prefetch_warms_cache(self, clock):
        fetcher = CountingFetcher()

        async def scenario():
            cache = EntityCache(fetcher, clock=clock)
            task = cache.prefetch("p1")
            assert task is not None
            await task
            # fresh now: no-op
            assert cache.prefetch("p1") is None
            return cache

        cache = _run(scenario())
        assert cache.state("p1") == CacheState.FULL
        assert fetcher.calls == ["p1"]

    def test_prefetch_noop_while_in_flight(self, clock):
        fetcher = CountingFetcher()

        async def scenario():
            fetcher.gate = asyncio.Event()
            cache = EntityCache(fetcher, clock=clock)
            reader = asyncio.ensure_future(cache.get_or_fetch("p1"))
            await asyncio.sleep(0)
            assert cache.prefetch("p1") is None
            fetcher.gate.set()
            await reader

        _run(scenario())
        assert fetcher.calls == ["p1"]

    def test_prefetch_never_raises(self, clock):
        fetcher = CountingFetcher(error=AuthExpiredError("expired"))

        async def scenario():
            cache = EntityCache(fetcher, clock=clock)
            await cache.prefetch("p1")

        _run(scenario())
        assert fetcher.calls == ["p1"]

    def test_prefetch_without_loop_is_noop(self, clock):
        cache = EntityCache(CountingFetcher(), clock=clock)
        assert cache.prefetch("p1") is None
        assert cache.prefetch("") is None


class TestCancellationAndInvalidation:
    def test_cancelled_caller_does_not_cancel_fetch(self, clock):
        fetcher = CountingFetcher()

        async def scenario():
            fetcher.gate = asyncio.Event()
            cache = EntityCache(fetcher, clock=clock)
            abandoned = asyncio.ensure_future(cache.get_or_fetch("p1"))
            await asyncio.sleep(0)
            abandoned.cancel()
            with pytest.raises(asyncio.CancelledError):
                await abandoned

            assert cache.is_in_flight("p1")
            fetcher.gate.set()
            result = await cache.get_or_fetch("p1")
            return cache, result

        cache, result = _run(scenario())
        assert result == {"id": "p1", "full": True}
        assert fetcher.calls == ["p1"]
        assert cache.state("p1") == CacheState.FULL

    def test_invalidate_forces_refetch(self, clock):
        fetcher = CountingFetcher()
        cache = EntityCache(fetcher, clock=clock)
        _run(cache.get_or_fetch("p1"))
        assert cache.invalidate("p1") is True
        assert cache.invalidate("p1") is False
        _run(cache.get_or_fetch("p1"))
        assert len(fetcher.calls) == 2

    def test_clear_during_fetch_still_stores_result(self, clock):
        fetcher = CountingFetcher()

        async def scenario():
            fetcher.gate = asyncio.Event()
            cache = EntityCache(fetcher, clock=clock)
            cache.seed_partial("p2", {"id": "p2"})
            reader = asyncio.ensure_future(cache.get_or_fetch("p1"))
            await asyncio.sleep(0)
            cache.clear()
            assert not cache.is_in_flight("p1")
            assert cache.peek("p2") is None
            fetcher.gate.set()
            return cache, await reader

        cache, result = _run(scenario())
        assert result["id"] == "p1"
        assert cache.state("p1") == CacheState.FULL

    def test_stats(self, clock):
        cache = EntityCache(CountingFetcher(), clock=clock)
        _run(cache.get_or_fetch("p1"))
        _run(cache.get_or_fetch("p1"))
        stats = cache.get_stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["fetches"] == 1
        assert stats["entries"] == 1
        assert stats["hit_rate_percent"] == 50.0
