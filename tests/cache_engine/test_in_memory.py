"""
Tests for InMemoryCacheProvider implementation.

Tests cover:
- Basic get/set/delete/has operations
- TTL expiration (lazy and swept)
- Background sweep lifecycle
- Pattern invalidation
- Statistics accuracy
- Thread-safety
"""

import pytest
import asyncio
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

from cache_engine.in_memory import InMemoryCacheProvider
from cache_engine.interface import CacheOptions, CacheStats


@pytest.fixture
def clock():
    """Patch the provider's clock with a controllable value."""
    with patch("cache_engine.in_memory.time") as mock_time:
        mock_time.time.return_value = 1_000.0
        yield mock_time


# ============================================================================
# BASIC OPERATIONS TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_set_and_get():
    """Test basic set and get operations."""
    cache = InMemoryCacheProvider()

    await cache.set("key1", "value1")
    result = await cache.get("key1")

    assert result == "value1"


@pytest.mark.asyncio
async def test_get_missing_key():
    """Test get returns None for missing key."""
    cache = InMemoryCacheProvider()

    assert await cache.get("nonexistent") is None


@pytest.mark.asyncio
async def test_set_overwrites_existing():
    """Test set fully replaces value and expiry."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value1", CacheOptions(ttl=1))
    await cache.set("key", "value2")

    assert await cache.get("key") == "value2"
    assert cache._store["key"].expires_at is None


@pytest.mark.asyncio
async def test_set_complex_values():
    """Test caching complex data types."""
    cache = InMemoryCacheProvider()

    await cache.set("dict", {"nested": {"data": [1, 2, 3]}})
    assert await cache.get("dict") == {"nested": {"data": [1, 2, 3]}}

    await cache.set("list", [1, "two", 3.0])
    assert await cache.get("list") == [1, "two", 3.0]


@pytest.mark.asyncio
async def test_delete():
    """Test deleting a cache entry."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value")
    await cache.delete("key")

    assert await cache.get("key") is None


@pytest.mark.asyncio
async def test_delete_missing_key_is_noop():
    """Test deleting an absent key does not raise."""
    cache = InMemoryCacheProvider()

    await cache.delete("missing")


@pytest.mark.asyncio
async def test_has():
    """Test has reflects presence."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value")

    assert await cache.has("key") is True
    assert await cache.has("other") is False


# ============================================================================
# TTL TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_ttl_expiration():
    """Test entries expire after TTL."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value", CacheOptions(ttl=1))
    assert await cache.get("key") == "value"

    await asyncio.sleep(1.1)

    assert await cache.get("key") is None


@pytest.mark.asyncio
async def test_entry_readable_until_expiry(clock):
    """Test entry is a hit before its expiry instant and a miss after."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value", CacheOptions(ttl=60))

    clock.time.return_value = 1_059.0
    assert await cache.get("key") == "value"

    clock.time.return_value = 1_061.0
    assert await cache.get("key") is None


@pytest.mark.asyncio
async def test_lazy_expiry_removes_entry(clock):
    """Test an expired entry is deleted on read even without a sweep."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value", CacheOptions(ttl=5))
    clock.time.return_value = 1_010.0

    assert await cache.get("key") is None
    assert "key" not in cache._store

    stats = await cache.get_stats()
    assert stats.misses == 1
    assert stats.keys == 0


@pytest.mark.asyncio
async def test_no_ttl_never_expires(clock):
    """Test entries without TTL persist."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value")
    clock.time.return_value = 10_000_000.0

    assert await cache.get("key") == "value"


@pytest.mark.asyncio
async def test_zero_ttl_means_no_expiry(clock):
    """Test a falsy TTL stores without expiry."""
    cache = InMemoryCacheProvider()

    await cache.set("key", "value", CacheOptions(ttl=0))
    clock.time.return_value = 5_000.0

    assert await cache.get("key") == "value"


@pytest.mark.asyncio
async def test_cleanup_expired(clock):
    """Test cleanup removes only expired entries."""
    cache = InMemoryCacheProvider()

    await cache.set("short", 1, CacheOptions(ttl=1))
    await cache.set("long", 2, CacheOptions(ttl=100))
    await cache.set("forever", 3)

    clock.time.return_value = 1_050.0
    removed = cache.cleanup_expired()

    assert removed == 1
    assert set(cache._store) == {"long", "forever"}


# ============================================================================
# SWEEP LIFECYCLE TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_initialize_starts_sweep_and_disconnect_stops_it():
    """Test the background sweep task lifecycle."""
    cache = InMemoryCacheProvider(sweep_interval=60)

    assert cache.sweeping is False
    await cache.initialize()
    assert cache.sweeping is True

    await cache.disconnect()
    assert cache.sweeping is False


@pytest.mark.asyncio
async def test_initialize_is_idempotent():
    """Test repeated initialize keeps a single sweep task."""
    cache = InMemoryCacheProvider(sweep_interval=60)

    await cache.initialize()
    task = cache._sweep_task
    await cache.initialize()

    assert cache._sweep_task is task
    await cache.disconnect()


@pytest.mark.asyncio
async def test_disconnect_clears_store_and_is_idempotent():
    """Test disconnect empties the store and can be called twice."""
    cache = InMemoryCacheProvider()
    await cache.initialize()
    await cache.set("key", "value")

    await cache.disconnect()
    await cache.disconnect()

    assert (await cache.get_stats()).keys == 0


@pytest.mark.asyncio
async def test_sweep_removes_expired_entries():
    """Test the sweep runs without any reads."""
    cache = InMemoryCacheProvider(sweep_interval=0.05)
    await cache.set("key", "value", CacheOptions(ttl=1))
    cache._store["key"].expires_at = 0.0

    await cache.initialize()
    await asyncio.sleep(0.2)

    assert "key" not in cache._store
    await cache.disconnect()


@pytest.mark.asyncio
async def test_sweep_survives_cleanup_error():
    """Test a failing cleanup does not stop the sweep task."""
    cache = InMemoryCacheProvider(sweep_interval=0.02)
    cache.cleanup_expired = MagicMock(side_effect=RuntimeError("boom"))

    await cache.initialize()
    await asyncio.sleep(0.1)

    assert cache.cleanup_expired.call_count >= 2
    assert cache.sweeping is True
    await cache.disconnect()


# ============================================================================
# PATTERN INVALIDATION TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_invalidate_pattern():
    """Test pattern removes matching keys only."""
    cache = InMemoryCacheProvider()

    await cache.set("user:1", "a")
    await cache.set("user:2", "b")
    await cache.set("org:1", "c")

    removed = await cache.invalidate_pattern("user:*")

    assert removed == 2
    assert await cache.get("user:1") is None
    assert await cache.get("org:1") == "c"


@pytest.mark.asyncio
async def test_invalidate_pattern_no_match():
    """Test pattern without matches returns zero."""
    cache = InMemoryCacheProvider()
    await cache.set("org:1", "c")

    assert await cache.invalidate_pattern("user:*") == 0


@pytest.mark.asyncio
async def test_invalidate_pattern_treats_dot_literally():
    """Test regex metacharacters in patterns are not wildcards."""
    cache = InMemoryCacheProvider()

    await cache.set("email:a.b", 1)
    await cache.set("email:axb", 2)

    removed = await cache.invalidate_pattern("email:a.b")

    assert removed == 1
    assert await cache.get("email:axb") == 2


# ============================================================================
# STATISTICS TESTS
# ============================================================================


@pytest.mark.asyncio
async def test_stats_tracking():
    """Test hits, misses, keys and hit rate."""
    cache = InMemoryCacheProvider()

    await cache.set("key1", "value1")
    await cache.get("key1")
    await cache.get("missing")

    stats = await cache.get_stats()

    assert isinstance(stats, CacheStats)
    assert stats.hits == 1
    assert stats.misses == 1
    assert stats.keys == 1
    assert stats.hit_rate == 0.5


@pytest.mark.asyncio
async def test_stats_empty_cache():
    """Test hit rate is zero before any read."""
    cache = InMemoryCacheProvider()

    stats = await cache.get_stats()

    assert stats.hit_rate == 0.0
    assert stats.to_dict() == {"hits": 0, "misses": 0, "keys": 0, "hit_rate": 0.0}


@pytest.mark.asyncio
async def test_clear_resets_entries_and_stats():
    """Test clear removes everything and zeroes counters."""
    cache = InMemoryCacheProvider()

    await cache.set("key1", "value1")
    await cache.get("key1")
    await cache.get("missing")
    await cache.clear()

    stats = await cache.get_stats()
    assert stats.hits == 0
    assert stats.misses == 0
    assert stats.keys == 0


@pytest.mark.asyncio
async def test_metrics_emitted_on_hit_and_miss():
    """Test provider reports hits and misses to a metrics sink."""
    sink = MagicMock()
    cache = InMemoryCacheProvider(metrics_sink=sink)

    await cache.set("key", "value")
    await cache.get("key")
    await cache.get("missing")

    counter_names = [c.args[0] for c in sink.emit_counter.call_args_list]
    assert counter_names == ["cache_hits_total", "cache_misses_total"]
    assert sink.emit_histogram.call_count == 2


@pytest.mark.asyncio
async def test_broken_metrics_sink_does_not_affect_reads():
    """Test a raising sink never turns a hit into an error."""
    sink = MagicMock()
    sink.emit_counter.side_effect = RuntimeError("exporter down")
    cache = InMemoryCacheProvider(metrics_sink=sink)

    await cache.set("key", "value")

    assert await cache.get("key") == "value"


# ============================================================================
# THREAD-SAFETY TESTS
# ============================================================================


def test_thread_safety():
    """Test concurrent access from multiple threads."""
    cache = InMemoryCacheProvider()

    def worker(n):
        async def run():
            for i in range(100):
                key = f"key{n}_{i}"
                await cache.set(key, i)
                await cache.get(key)
        asyncio.run(run())

    with ThreadPoolExecutor(max_workers=4) as executor:
        list(executor.map(worker, range(4)))

    stats = asyncio.run(cache.get_stats())
    assert stats.keys == 400
    assert stats.hits == 400
