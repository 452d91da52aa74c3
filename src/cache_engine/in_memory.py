"""
In-Memory Cache Provider

Process-local cache with absolute TTL expiry for development, tests and as
the emergency fallback of the CacheService. Entries are not shared between
processes, so this provider is unsuitable for multi-instance production
deployments.

Expired entries are removed lazily on ``get`` and actively by a background
sweep task started in ``initialize()``.
"""

import asyncio
import logging
import threading
import time
from typing import Any, Dict, Optional

from cache_engine.interface import CacheEntry, CacheOptions, CacheProvider, CacheStats
from cache_engine.patterns import compile_pattern

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 60.0


class InMemoryCacheProvider(CacheProvider):
    """Thread-safe dict-backed cache with TTL support.

    Features:
    - Lazy expiry on read plus a periodic background sweep
    - Pattern invalidation in a single pass over the store
    - Hit/miss statistics, reset by clear()
    - Optional metrics emission via MetricsSink

    Example:
        provider = InMemoryCacheProvider(sweep_interval=60)
        await provider.initialize()
        await provider.set("key", "value", CacheOptions(ttl=30))
        result = await provider.get("key")
    """

    name = "in-memory"

    def __init__(self, sweep_interval: float = DEFAULT_SWEEP_INTERVAL, metrics_sink=None):
        """Initialize provider.

        Args:
            sweep_interval: Seconds between background expiry sweeps
            metrics_sink: Optional MetricsSink for cache metrics
        """
        self._sweep_interval = sweep_interval
        self._metrics_sink = metrics_sink

        self._store: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

        # Statistics
        self._hits = 0
        self._misses = 0

    @property
    def sweeping(self) -> bool:
        """Whether the background sweep task is running."""
        return self._sweep_task is not None and not self._sweep_task.done()

    async def initialize(self) -> None:
        if self.sweeping:
            return

        logger.info("Initializing in-memory cache provider")
        self._sweep_task = asyncio.create_task(self._sweep_loop())
        logger.info(f"In-memory cache provider initialized (sweep every {self._sweep_interval}s)")

    async def get(self, key: str) -> Optional[Any]:
        """Retrieve value by key.

        An entry whose expiry has passed is deleted and reported as a miss,
        even if the sweep has not run yet.
        """
        start_time = time.time()

        with self._lock:
            entry = self._store.get(key)

            if entry is None:
                self._misses += 1
                hit = False
            elif entry.is_expired(start_time):
                del self._store[key]
                self._misses += 1
                hit = False
                logger.debug(f"Cache EXPIRED: {key}")
            else:
                self._hits += 1
                hit = True

        if hit:
            logger.debug(f"Cache HIT: {key}")
            self._emit("hit", start_time)
            return entry.value

        logger.debug(f"Cache MISS: {key}")
        self._emit("miss", start_time)
        return None

    async def set(self, key: str, value: Any, options: Optional[CacheOptions] = None) -> None:
        ttl = options.ttl if options is not None else None
        now = time.time()
        entry = CacheEntry(
            value=value,
            created_at=now,
            expires_at=now + ttl if ttl else None,
        )

        with self._lock:
            self._store[key] = entry

        if ttl:
            logger.debug(f"Cache SET: {key} (TTL: {ttl}s)")
        else:
            logger.debug(f"Cache SET: {key}")

    async def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)
        logger.debug(f"Cache DELETE: {key}")

    async def has(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        with self._lock:
            size = len(self._store)
            self._store.clear()
            self._hits = 0
            self._misses = 0
        logger.warning(f"Cache CLEARED: {size} entries removed")

    async def invalidate_pattern(self, pattern: str) -> int:
        regex = compile_pattern(pattern)

        with self._lock:
            matched = [key for key in self._store if regex.match(key)]
            for key in matched:
                del self._store[key]

        logger.debug(f"Cache INVALIDATE PATTERN: {pattern} ({len(matched)} keys removed)")
        return len(matched)

    async def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats.from_counters(self._hits, self._misses, len(self._store))

    async def disconnect(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None

        with self._lock:
            self._store.clear()
        logger.info("In-memory cache provider disconnected")

    def cleanup_expired(self) -> int:
        """Remove all expired entries in one pass.

        Returns:
            Number of entries removed
        """
        now = time.time()
        with self._lock:
            expired_keys = [key for key, entry in self._store.items() if entry.is_expired(now)]
            for key in expired_keys:
                del self._store[key]

        if expired_keys:
            logger.debug(f"Cache cleanup: {len(expired_keys)} expired entries removed")
        return len(expired_keys)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                self.cleanup_expired()
            except Exception as e:
                logger.error(f"Cache cleanup failed: {e}", exc_info=True)

    # -------------------------------------------------------------------------
    # Metrics Emission Helpers
    # -------------------------------------------------------------------------

    def _emit(self, result: str, start_time: float) -> None:
        if self._metrics_sink is None:
            return

        latency_ms = (time.time() - start_time) * 1000
        try:
            self._metrics_sink.emit_counter(
                "cache_hits_total" if result == "hit" else "cache_misses_total",
                tags={"provider": self.name}
            )
            self._metrics_sink.emit_histogram(
                "cache_latency_ms",
                latency_ms,
                tags={"provider": self.name, "result": result}
            )
        except Exception as e:
            logger.debug(f"Metrics emission failed: {e}")
