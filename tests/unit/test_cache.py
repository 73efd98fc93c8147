#!/usr/bin/env python3
"""
Unit tests for the command response cache
Covers get/put round-trip, lazy expiry, sweep, FIFO eviction, memory budget
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from command_cache import CacheStore, MultiStepResponse, SingleResponse, Step, StepKind
from command_cache.store import BYTES_PER_CHAR, estimate_size
from command_cache.responses import serialize_response


def single(text):
    return SingleResponse(payload={"content": text})


class TestCacheStore:
    """Test in-memory cache CRUD operations."""

    @pytest.fixture
    def cache(self, clock):
        return CacheStore(max_entries=3, max_memory_bytes=10_000, default_ttl_sec=60, clock=clock)

    def test_cache_write_and_read(self, cache):
        value = single("Pong! 10ms")
        assert cache.put("ping:", value, 5) is True
        assert cache.get("ping:") == value

    def test_missing_key(self, cache):
        assert cache.get("nope:") is None
        assert cache.stats()["misses"] == 1

    def test_lazy_expiry_without_sweep(self, cache, clock):
        cache.put("ping:", single("a"), 5)
        clock.advance(4.5)
        assert cache.get("ping:") is not None

        clock.advance(0.5)  # now == expires_at
        assert cache.get("ping:") is None
        assert "ping:" not in cache
        assert cache.stats()["memory_usage_bytes"] == 0

    def test_sweep_removes_expired_without_get(self, cache, clock):
        cache.put("a:", single("a"), 5)
        cache.put("b:", single("b"), 120)

        clock.advance(60)
        assert cache.sweep() == 1

        stats = cache.stats()
        assert stats["size"] == 1
        assert "b:" in cache
        assert stats["expirations"] == 1

    def test_sweep_includes_entries_expiring_exactly_now(self, cache, clock):
        cache.put("a:", single("a"), 5)
        clock.advance(5)
        assert cache.sweep() == 1

    def test_fifo_eviction_ignores_reads(self, cache):
        for key in ("a:", "b:", "c:"):
            cache.put(key, single(key), 60)

        # Reading "a:" does not protect it
        for _ in range(5):
            assert cache.get("a:") is not None

        assert cache.put("d:", single("d"), 60) is True
        assert len(cache) == 3
        assert "a:" not in cache
        assert all(key in cache for key in ("b:", "c:", "d:"))
        assert cache.stats()["evictions"] == 1

    def test_exactly_one_eviction_per_overflowing_put(self, clock):
        cache = CacheStore(max_entries=10, max_memory_bytes=1_000_000, default_ttl_sec=60, clock=clock)
        for i in range(11):
            cache.put(f"k{i}:", single(str(i)))
        assert cache.stats()["evictions"] == 1
        assert "k0:" not in cache
        assert "k1:" in cache

    def test_memory_budget_rejects_without_evicting(self, clock):
        value = single("x" * 100)
        size = estimate_size(value)
        cache = CacheStore(max_entries=10, max_memory_bytes=size * 2 + 1, default_ttl_sec=60, clock=clock)

        assert cache.put("a:", value) is True
        assert cache.put("b:", value) is True
        before = cache.stats()

        assert cache.put("c:", value) is False

        after = cache.stats()
        assert after["memory_usage_bytes"] == before["memory_usage_bytes"]
        assert after["size"] == 2
        assert after["rejections"] == 1
        assert "a:" in cache and "b:" in cache

    def test_size_is_two_bytes_per_character(self):
        value = single("héllo")
        assert estimate_size(value) == len(serialize_response(value)) * BYTES_PER_CHAR

    def test_memory_usage_tracks_entries(self, cache):
        a, b = single("a"), single("bbbb")
        cache.put("a:", a)
        cache.put("b:", b)
        assert cache.stats()["memory_usage_bytes"] == estimate_size(a) + estimate_size(b)

    def test_overwrite_keeps_position_and_does_not_evict(self, cache):
        for key in ("a:", "b:", "c:"):
            cache.put(key, single(key))

        assert cache.put("a:", single("newer")) is True
        assert len(cache) == 3
        assert cache.stats()["evictions"] == 0
        assert cache.get("a:") == single("newer")

        # "a:" is still the oldest insertion
        cache.put("d:", single("d"))
        assert "a:" not in cache

    def test_overwrite_memory_check_excludes_old_entry(self, clock):
        value = single("x" * 50)
        cache = CacheStore(max_entries=5, max_memory_bytes=estimate_size(value), default_ttl_sec=60, clock=clock)
        assert cache.put("a:", value) is True
        assert cache.put("a:", single("y" * 50)) is True
        assert cache.stats()["memory_usage_bytes"] == estimate_size(value)

    def test_multi_step_values_round_trip(self, cache):
        value = MultiStepResponse(steps=(
            Step(StepKind.INITIAL, {"content": "one"}),
            Step(StepKind.EDIT, {"content": "two"}),
        ))
        cache.put("status:", value)
        assert cache.get("status:") == value

    @pytest.mark.parametrize("ttl", [0, -1, float("inf"), float("nan")])
    def test_ttl_must_be_finite_positive(self, cache, ttl):
        with pytest.raises(ValueError):
            cache.put("a:", single("a"), ttl)

    def test_stats_shape(self, cache):
        stats = cache.stats()
        assert stats["size"] == 0
        assert stats["max_size"] == 3
        assert stats["memory_usage_bytes"] == 0
        assert stats["memory_budget_bytes"] == 10_000


class TestTTLResolution:

    def test_default_ttl(self):
        cache = CacheStore(default_ttl_sec=120)
        assert cache.resolve_ttl("ping") == 120

    def test_configured_override(self):
        cache = CacheStore(default_ttl_sec=120, command_ttls={"status": 30})
        assert cache.resolve_ttl("status") == 30
        assert cache.resolve_ttl("ping") == 120

    def test_set_command_ttl(self):
        cache = CacheStore(default_ttl_sec=120)
        cache.set_command_ttl("ping", 5)
        assert cache.has_command_ttl("ping")
        assert cache.resolve_ttl("ping") == 5


class TestSweeper:

    def test_sweeper_runs_on_interval(self, clock):
        cache = CacheStore(default_ttl_sec=1, sweep_interval_sec=0.01, clock=clock)

        async def scenario():
            cache.start()
            assert cache.running
            cache.put("a:", single("a"))
            clock.advance(2)
            await asyncio.sleep(0.05)
            size = cache.stats()["size"]
            await cache.close()
            return size

        assert asyncio.run(scenario()) == 0
        assert not cache.running

    def test_close_without_start(self):
        cache = CacheStore()
        asyncio.run(cache.close())
        assert not cache.running


class TestThreadSafety:
    """Worker threads share one store; accounting must stay consistent."""

    def test_concurrent_put_get_sweep(self, clock):
        cache = CacheStore(max_entries=8, max_memory_bytes=1_000_000, default_ttl_sec=60, clock=clock)
        keys = [f"k{i}:" for i in range(20)]

        def worker(seed):
            for round_ in range(200):
                key = keys[(seed + round_) % len(keys)]
                cache.put(key, single("x" * ((seed + round_) % 13)))
                cache.get(keys[(seed * 7 + round_) % len(keys)])
                if round_ % 25 == 0:
                    cache.sweep()

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(worker, range(8)))

        stats = cache.stats()
        assert stats["size"] <= 8
        assert stats["writes"] == 8 * 200
        assert stats["size"] == len([key for key in keys if key in cache])

        live = [cache.get(key) for key in keys]
        assert stats["memory_usage_bytes"] == sum(estimate_size(value) for value in live if value is not None)

        clock.advance(60)
        cache.sweep()
        assert cache.stats()["size"] == 0
        assert cache.stats()["memory_usage_bytes"] == 0
