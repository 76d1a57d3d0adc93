"""
Unit tests for the result cache.

Tests cover:
- Canonical fingerprints
- First-writer-wins storage
- Per-source TTL expiry and LRU bound
- Single-flight computation, failures and cancellation
- Maintenance operations and statistics
"""
import asyncio

import pytest

from carbono.infrastructure.result_cache import CacheSource, ResultCache


# ============================================================
# Fingerprint Tests
# ============================================================

class TestFingerprint:
    """Tests for cache keys."""

    def test_key_order_does_not_matter(self):
        a = ResultCache.fingerprint(CacheSource.GEE_FOREST_MASK, {"threshold": 70, "simplify": 50})
        b = ResultCache.fingerprint(CacheSource.GEE_FOREST_MASK, {"simplify": 50, "threshold": 70})

        assert a == b

    def test_source_prefix(self):
        key = ResultCache.fingerprint(CacheSource.NASA_FIRMS, {"dayRange": 1})

        assert key.startswith("NASA_FIRMS:")
        assert len(key.split(":", 1)[1]) == 64

    def test_different_sources_differ(self):
        payload = {"geometry": [1, 2, 3]}

        assert ResultCache.fingerprint("GEE_ANALYZE_AREA", payload) != ResultCache.fingerprint(
            "GEE_FOREST_MASK", payload
        )

    def test_different_payloads_differ(self):
        assert ResultCache.fingerprint("NASA_FIRMS", {"dayRange": 1}) != ResultCache.fingerprint(
            "NASA_FIRMS", {"dayRange": 2}
        )


# ============================================================
# Storage Tests
# ============================================================

class TestStorage:
    """Tests for get/set, expiry and eviction."""

    def test_get_missing_returns_default(self, cache):
        assert cache.get(CacheSource.NASA_FIRMS, {"x": 1}) is None
        assert cache.get(CacheSource.NASA_FIRMS, {"x": 1}, default="none") == "none"

    def test_first_writer_wins(self, cache):
        cache.set(CacheSource.GEE_FOREST_MASK, {"x": 1}, "first")
        kept = cache.set(CacheSource.GEE_FOREST_MASK, {"x": 1}, "second")

        assert kept == "first"
        assert cache.get(CacheSource.GEE_FOREST_MASK, {"x": 1}) == "first"

    def test_entry_expires_after_source_ttl(self, cache, clock):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "fires")

        clock.advance(9)
        assert cache.get(CacheSource.NASA_FIRMS, {"x": 1}) == "fires"

        clock.advance(2)
        assert cache.get(CacheSource.NASA_FIRMS, {"x": 1}) is None

    def test_ttls_are_per_source(self, cache, clock):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "fires")
        cache.set(CacheSource.GEE_FOREST_MASK, {"x": 1}, "mask")

        clock.advance(50)

        assert cache.get(CacheSource.NASA_FIRMS, {"x": 1}) is None
        assert cache.get(CacheSource.GEE_FOREST_MASK, {"x": 1}) == "mask"

    def test_expired_entry_can_be_replaced(self, cache, clock):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "old")
        clock.advance(11)

        assert cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "new") == "new"

    def test_bounded_size(self, cache):
        for i in range(20):
            cache.set(CacheSource.GEE_FOREST_MASK, {"i": i}, i)

        assert cache.stats()["entries"] == 8
        assert cache.get(CacheSource.GEE_FOREST_MASK, {"i": 0}) is None
        assert cache.get(CacheSource.GEE_FOREST_MASK, {"i": 19}) == 19


# ============================================================
# Single-Flight Tests
# ============================================================

class TestGetOrCompute:
    """Tests for memoized computation."""

    async def test_second_call_is_a_hit(self, cache):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            return {"forest": 42}

        first = await cache.get_or_compute(CacheSource.GEE_ANALYZE_AREA, {"p": 1}, compute)
        second = await cache.get_or_compute(CacheSource.GEE_ANALYZE_AREA, {"p": 1}, compute)

        assert first == second == {"forest": 42}
        assert calls == 1
        stats = cache.stats()
        assert stats["hits"] == 1
        assert stats["misses"] == 1

    async def test_recomputes_after_ttl_expiry(self, cache, clock):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            return calls

        first = await cache.get_or_compute(CacheSource.NASA_FIRMS, {"day": 1}, compute)
        clock.advance(11)
        second = await cache.get_or_compute(CacheSource.NASA_FIRMS, {"day": 1}, compute)

        assert (first, second) == (1, 2)
        assert calls == 2
        stats = cache.stats()
        assert stats["misses"] == 2
        assert stats["hits"] == 0

    async def test_concurrent_callers_share_one_computation(self, cache):
        release = asyncio.Event()
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            await release.wait()
            return "mask"

        first = asyncio.create_task(cache.get_or_compute("GEE_FOREST_MASK", {"a": 1}, compute))
        second = asyncio.create_task(cache.get_or_compute("GEE_FOREST_MASK", {"a": 1}, compute))
        await asyncio.sleep(0)
        release.set()

        assert await first == "mask"
        assert await second == "mask"
        assert calls == 1
        assert cache.stats()["misses"] == 1

    async def test_failures_are_not_cached(self, cache):
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("upstream down")
            return "ok"

        with pytest.raises(RuntimeError, match="upstream down"):
            await cache.get_or_compute(CacheSource.NASA_FIRMS, {"d": 1}, compute)

        assert await cache.get_or_compute(CacheSource.NASA_FIRMS, {"d": 1}, compute) == "ok"
        assert calls == 2

    async def test_cancelled_waiter_does_not_cancel_computation(self, cache):
        release = asyncio.Event()

        async def compute():
            await release.wait()
            return "trends"

        payload = {"range": "2022-2023"}
        cancelled = asyncio.create_task(
            cache.get_or_compute(CacheSource.GEE_HISTORICAL_TRENDS, payload, compute)
        )
        waiting = asyncio.create_task(
            cache.get_or_compute(CacheSource.GEE_HISTORICAL_TRENDS, payload, compute)
        )
        await asyncio.sleep(0)

        cancelled.cancel()
        release.set()

        assert await waiting == "trends"
        with pytest.raises(asyncio.CancelledError):
            await cancelled
        await asyncio.sleep(0)

        assert cache.get(CacheSource.GEE_HISTORICAL_TRENDS, payload) == "trends"
        assert cache.stats()["in_flight"] == 0

    async def test_with_cache_alias(self, cache):
        async def compute():
            return 1

        assert await cache.with_cache(CacheSource.NASA_FIRMS, {}, compute) == 1


# ============================================================
# Maintenance Tests
# ============================================================

class TestMaintenance:
    """Tests for invalidation and statistics."""

    def test_invalidate(self, cache):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "fires")

        assert cache.invalidate(CacheSource.NASA_FIRMS, {"x": 1}) is True
        assert cache.invalidate(CacheSource.NASA_FIRMS, {"x": 1}) is False
        assert cache.get(CacheSource.NASA_FIRMS, {"x": 1}) is None

    def test_clear_source(self, cache):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "a")
        cache.set(CacheSource.NASA_FIRMS, {"x": 2}, "b")
        cache.set(CacheSource.GEE_FOREST_MASK, {"x": 1}, "c")

        assert cache.clear_source(CacheSource.NASA_FIRMS) == 2
        assert cache.get(CacheSource.GEE_FOREST_MASK, {"x": 1}) == "c"

    def test_clear_expired(self, cache, clock):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "a")
        cache.set(CacheSource.GEE_FOREST_MASK, {"x": 1}, "b")
        clock.advance(20)

        assert cache.clear_expired() == 1

    def test_stats_by_source(self, cache):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "a")
        cache.set(CacheSource.GEE_FOREST_MASK, {"x": 1}, "b")
        cache.set(CacheSource.GEE_FOREST_MASK, {"x": 2}, "c")

        stats = cache.stats()

        assert stats["entries"] == 3
        assert stats["max_entries"] == 8
        assert stats["by_source"] == {"NASA_FIRMS": 1, "GEE_FOREST_MASK": 2}

    def test_clear(self, cache):
        cache.set(CacheSource.NASA_FIRMS, {"x": 1}, "a")
        cache.clear()

        assert cache.stats()["entries"] == 0
