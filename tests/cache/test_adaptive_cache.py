"""
Tests for the sharded ARC alignment cache.
"""

import asyncio

import pytest

from panesync.cache import AdaptiveAlignmentCache, CacheConfig, CacheEntry, language_pair_tag
from panesync.cache.adaptive_cache import _ArcShard, _split_budget


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_entry(key: str, size: int = 10) -> CacheEntry:
    return CacheEntry(key=key, payload=b"", checksum="", compressed=False, size_bytes=size, created_at=0.0)


def big_config(**overrides) -> CacheConfig:
    params = dict(max_entries=100, max_memory_bytes=10 * 1024 * 1024, shard_count=4)
    params.update(overrides)
    return CacheConfig(**params)


class TestBasicOperations:
    """get / set / invalidate"""

    def test_set_and_get(self):
        """Test basic set and get operations"""
        cache = AdaptiveAlignmentCache(big_config())
        assert cache.set("k1", {"entries": [1, 2, 3]})
        assert cache.get("k1") == {"entries": [1, 2, 3]}
        assert cache.get("missing") is None

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == pytest.approx(0.5)
        assert stats.size == 1

    def test_none_is_never_cached(self):
        """None values are not stored"""
        cache = AdaptiveAlignmentCache(big_config())
        assert not cache.set("k", None)
        assert len(cache) == 0

    def test_overwrite(self):
        """Setting an existing key replaces its value"""
        cache = AdaptiveAlignmentCache(big_config())
        cache.set("k", "old")
        cache.set("k", "new")
        assert cache.get("k") == "new"
        assert len(cache) == 1

    def test_contains_does_not_count(self):
        """contains does not touch hit statistics"""
        cache = AdaptiveAlignmentCache(big_config())
        cache.set("k", 1)
        assert cache.contains("k")
        assert not cache.contains("other")
        stats = cache.stats()
        assert stats.hits == 0 and stats.misses == 0

    def test_invalidate(self):
        """Invalidated keys are gone"""
        cache = AdaptiveAlignmentCache(big_config())
        cache.set("k", 1)
        assert cache.invalidate("k")
        assert not cache.invalidate("k")
        assert cache.get("k") is None

    def test_invalidate_language_pair(self):
        """Language pair invalidation drops only tagged entries"""
        cache = AdaptiveAlignmentCache(big_config())
        cache.set("k1", 1, tags=[language_pair_tag("en", "es")])
        cache.set("k2", 2, tags=[language_pair_tag("en", "fr")])
        assert cache.invalidate_language_pair("EN", "es") == 1
        assert not cache.contains("k1")
        assert cache.contains("k2")

    def test_clear(self):
        """clear removes every entry and frees memory"""
        cache = AdaptiveAlignmentCache(big_config())
        for i in range(5):
            cache.set(f"k{i}", i)
        assert cache.clear() == 5
        assert len(cache) == 0
        assert cache.memory_bytes == 0

    def test_config_validation(self):
        """Invalid cache configs are rejected"""
        with pytest.raises(ValueError):
            CacheConfig(max_entries=0)
        with pytest.raises(ValueError):
            CacheConfig(shard_count=0)
        with pytest.raises(ValueError):
            CacheConfig(memory_alert_percent=120.0)


class TestBudgets:
    """Entry count and memory limits"""

    def test_split_budget_is_exact(self):
        """Shard budgets add up to the total"""
        assert _split_budget(10, 4) == [3, 3, 2, 2]
        assert sum(_split_budget(1001, 8)) == 1001

    def test_shard_count_never_exceeds_entries(self):
        """Shard count is capped by max entries"""
        cache = AdaptiveAlignmentCache(CacheConfig(max_entries=3, shard_count=8))
        assert cache.shard_count == 3
        assert cache.stats().max_size == 3

    def test_entry_bound(self):
        """Entry count never exceeds max_entries"""
        cache = AdaptiveAlignmentCache(big_config(max_entries=10, shard_count=4))
        for i in range(50):
            cache.set(f"key-{i}", i)
        assert len(cache) <= 10
        stats = cache.stats()
        assert stats.max_size == 10
        assert stats.evictions == 50 - len(cache)

    def test_memory_bound(self):
        """Memory use never exceeds the budget"""
        cache = AdaptiveAlignmentCache(CacheConfig(max_entries=100, max_memory_bytes=4000, shard_count=1))
        for i in range(20):
            assert cache.set(f"key-{i}", "x" * 500)
            assert cache.memory_bytes <= 4000
        assert len(cache) < 20

    def test_oversize_entry_rejected(self):
        """Entries larger than a shard budget are rejected"""
        cache = AdaptiveAlignmentCache(CacheConfig(max_entries=10, max_memory_bytes=1000, shard_count=1))
        assert not cache.set("big", "x" * 5000)
        assert cache.stats().rejected == 1
        assert len(cache) == 0

    def test_resize(self):
        """Resizing evicts down to the new limits"""
        cache = AdaptiveAlignmentCache(big_config(max_entries=20, shard_count=2))
        for i in range(20):
            cache.set(f"key-{i}", i)
        before = len(cache)

        evicted = cache.resize(max_entries=4)

        assert len(cache) <= 4
        assert evicted == before - len(cache)
        assert cache.config.max_entries == 4
        assert cache.stats().max_size == 4


class TestArcShard:
    """Adaptive replacement within one shard"""

    def test_ghost_hits_adapt_target_size(self):
        """Ghost hits move the recency target"""
        shard = _ArcShard(capacity=2, memory_budget=10_000)
        shard.store(make_entry("a"))
        shard.lookup("a", now=0.0)            # a -> T2
        shard.store(make_entry("b"))
        shard.store(make_entry("c"))           # evicts b from T1 into B1
        assert list(shard.b1) == ["b"]

        shard.store(make_entry("b"))           # B1 hit grows p, evicts a from T2
        assert shard.p == 1.0
        assert list(shard.t2) == ["b"]
        assert list(shard.t1) == ["c"]
        assert list(shard.b2) == ["a"]

        shard.store(make_entry("a"))           # B2 hit shrinks p, evicts c from T1
        assert shard.p == 0.0
        assert list(shard.t2) == ["b", "a"]
        assert list(shard.b1) == ["c"]
        assert shard.memory_bytes == 20

    def test_second_reference_promotes(self):
        """A second reference moves an entry to the frequency list"""
        shard = _ArcShard(capacity=4, memory_budget=10_000)
        shard.store(make_entry("a"))
        assert "a" in shard.t1
        shard.lookup("a", now=0.0)
        assert "a" in shard.t2 and "a" not in shard.t1

    def test_directory_bounds(self):
        """Resident and ghost lists stay within capacity"""
        shard = _ArcShard(capacity=3, memory_budget=10_000)
        for i in range(30):
            shard.store(make_entry(f"k{i % 7}"))
            if i % 3 == 0:
                shard.lookup(f"k{i % 5}", now=0.0)
            assert len(shard) <= 3
            assert len(shard.t1) + len(shard.b1) <= 3
            assert len(shard) + len(shard.b1) + len(shard.b2) <= 6
            assert 0.0 <= shard.p <= 3.0


class TestExpiryAndIntegrity:
    """TTL, compression and checksum verification"""

    def test_ttl_expiry(self):
        """Entries expire after the TTL"""
        clock = FakeClock()
        cache = AdaptiveAlignmentCache(big_config(ttl_seconds=60), clock=clock)
        cache.set("short", 1, ttl=10)
        cache.set("default", 2)

        clock.now += 11
        assert cache.get("short") is None
        assert cache.get("default") == 2
        assert cache.stats().expirations == 1

        clock.now += 60
        assert not cache.contains("default")

    def test_zero_ttl_never_expires(self):
        """A zero TTL disables expiry"""
        clock = FakeClock()
        cache = AdaptiveAlignmentCache(big_config(), clock=clock)
        cache.set("k", 1, ttl=0)
        clock.now += 10 ** 9
        assert cache.get("k") == 1

    def test_purge_expired(self):
        """purge_expired drops expired entries"""
        clock = FakeClock()
        cache = AdaptiveAlignmentCache(big_config(), clock=clock)
        for i in range(4):
            cache.set(f"k{i}", i, ttl=5)
        cache.set("keep", "x", ttl=100)
        clock.now += 10
        assert cache.purge_expired() == 4
        assert len(cache) == 1

    def test_large_payload_compressed(self):
        """Large payloads are stored compressed"""
        cache = AdaptiveAlignmentCache(big_config(compression_threshold_bytes=100))
        value = "alignment " * 1000
        cache.set("big", value)
        assert cache.get("big") == value
        assert cache.stats().compressions == 1
        assert cache.memory_bytes < len(value)

    def test_corrupted_entry_is_dropped(self):
        """Checksum mismatches are treated as misses"""
        cache = AdaptiveAlignmentCache(big_config())
        cache.set("k", {"a": 1})
        entry = cache._shard_for("k").peek("k")
        entry.payload = b"tampered"

        assert cache.get("k") is None
        stats = cache.stats()
        assert stats.corruptions == 1
        assert stats.misses == 1
        assert len(cache) == 0


class TestSingleFlight:
    """get_or_compute"""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_computation(self):
        """Concurrent callers wait on one computation"""
        cache = AdaptiveAlignmentCache(big_config())
        calls = 0

        async def compute():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return "result"

        results = await asyncio.gather(*(cache.get_or_compute("k", compute) for _ in range(5)))

        assert results == ["result"] * 5
        assert calls == 1
        stats = cache.stats()
        assert stats.computations == 1
        assert stats.shared_waits == 4
        assert cache.inflight_count() == 0
        assert cache.get("k") == "result"

    @pytest.mark.asyncio
    async def test_cached_value_skips_computation(self):
        """Cached values skip the compute function"""
        cache = AdaptiveAlignmentCache(big_config())
        cache.set("k", "cached")

        async def compute():
            raise AssertionError("should not run")

        assert await cache.get_or_compute("k", compute) == "cached"

    @pytest.mark.asyncio
    async def test_exception_reaches_every_waiter(self):
        """A failed computation raises for every waiter"""
        cache = AdaptiveAlignmentCache(big_config())

        async def compute():
            await asyncio.sleep(0.01)
            raise ValueError("boom")

        results = await asyncio.gather(
            *(cache.get_or_compute("k", compute) for _ in range(3)),
            return_exceptions=True,
        )
        assert all(isinstance(r, ValueError) for r in results)
        assert not cache.contains("k")
        assert cache.inflight_count() == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_computation(self):
        """Cancelling one waiter leaves the computation running"""
        cache = AdaptiveAlignmentCache(big_config())

        async def compute():
            await asyncio.sleep(0.05)
            return 42

        first = asyncio.ensure_future(cache.get_or_compute("k", compute))
        second = asyncio.ensure_future(cache.get_or_compute("k", compute))
        await asyncio.sleep(0.01)
        first.cancel()

        assert await second == 42
        assert first.cancelled()
        assert cache.get("k") == 42

    @pytest.mark.asyncio
    async def test_none_result_recomputed(self):
        """None results are not cached"""
        cache = AdaptiveAlignmentCache(big_config())

        async def compute():
            return None

        assert await cache.get_or_compute("k", compute) is None
        assert await cache.get_or_compute("k", compute) is None
        assert cache.stats().computations == 2


class TestMaintenance:
    """Periodic maintenance and memory alerts"""

    def test_memory_alert(self):
        """Memory use above the alert threshold emits an alert"""
        cache = AdaptiveAlignmentCache(
            CacheConfig(max_entries=10, max_memory_bytes=2000, shard_count=1, memory_alert_percent=10.0))
        alerts = []

        def broken_listener(alert):
            raise RuntimeError("listener failure")

        cache.add_alert_listener(broken_listener)
        cache.add_alert_listener(alerts.append)
        cache.set("k", "x" * 100)

        summary = cache.run_maintenance()

        assert summary["alert"] is True
        assert len(alerts) == 1
        assert alerts[0]["reason"] == "cache_memory_pressure"
        assert alerts[0]["entries"] == 1
        assert alerts[0]["process_rss_bytes"] > 0

    def test_no_alert_below_threshold(self):
        """No alert below the threshold"""
        cache = AdaptiveAlignmentCache(big_config())
        alerts = []
        cache.add_alert_listener(alerts.append)
        cache.set("k", 1)
        assert cache.run_maintenance()["alert"] is False
        cache.remove_alert_listener(alerts.append)
        assert alerts == []

    @pytest.mark.asyncio
    async def test_background_loop_purges(self):
        """The maintenance loop purges expired entries"""
        clock = FakeClock()
        cache = AdaptiveAlignmentCache(big_config(cleanup_interval_seconds=0.01), clock=clock)
        cache.set("k", 1, ttl=1)
        task = cache.start_maintenance()
        assert cache.start_maintenance() is task

        clock.now += 5
        await asyncio.sleep(0.1)
        assert len(cache) == 0

        await cache.stop_maintenance()
        assert task.done()
