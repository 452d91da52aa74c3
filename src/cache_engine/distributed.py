"""
Distributed Cache Provider

Cache backend for production, talking to a managed Redis-compatible store
over its REST interface (Upstash style). Every command is a stateless
``POST`` of the command array, so there is no connection pool to manage:

    POST {url}   ["SET", "user:1", "{...}", "EX", 3600]
    ->           {"result": "OK"}

TTL is enforced by the store via ``EX``. Network failures degrade to a
cache miss instead of failing the caller; only ``initialize()`` and
``clear()`` let errors through.
"""

import json
import logging
import time
from typing import Any, List, Optional

import httpx

from cache_engine.errors import (
    CacheBackendError,
    CacheConfigurationError,
    CacheInitializationError,
)
from cache_engine.interface import CacheOptions, CacheProvider, CacheStats
from cache_engine.patterns import to_store_glob

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 5.0


class UpstashRestClient:
    """Minimal async client for the REST command protocol.

    Transport errors, timeouts, HTTP error statuses, ``{"error": ...}``
    replies and malformed bodies are all raised as CacheBackendError.
    """

    def __init__(
        self,
        url: str,
        token: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._url = url.rstrip("/")
        self._http = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )
        self.closed = False

    async def command(self, *args: Any) -> Any:
        """Execute one command and return its ``result`` field."""
        name = str(args[0]) if args else ""
        try:
            response = await self._http.post(self._url, json=list(args))
        except httpx.TimeoutException as e:
            raise CacheBackendError(
                f"{name} timed out", component="distributed", context={"command": name}
            ) from e
        except httpx.HTTPError as e:
            raise CacheBackendError(
                f"{name} failed: {e}", component="distributed", context={"command": name}
            ) from e

        try:
            payload = response.json()
        except ValueError as e:
            raise CacheBackendError(
                f"{name} returned a non-JSON body (HTTP {response.status_code})",
                component="distributed",
                context={"command": name},
            ) from e

        if isinstance(payload, dict) and payload.get("error"):
            raise CacheBackendError(
                f"{name} rejected: {payload['error']}",
                component="distributed",
                context={"command": name, "status": response.status_code},
            )
        if response.status_code >= 400:
            raise CacheBackendError(
                f"{name} failed with HTTP {response.status_code}",
                component="distributed",
                context={"command": name, "status": response.status_code},
            )
        if not isinstance(payload, dict) or "result" not in payload:
            raise CacheBackendError(
                f"{name} returned a malformed reply",
                component="distributed",
                context={"command": name},
            )
        return payload["result"]

    async def aclose(self) -> None:
        if self.closed:
            return
        await self._http.aclose()
        self.closed = True


class DistributedCacheProvider(CacheProvider):
    """REST key-value store backed cache.

    Features:
    - JSON serialization for complex types
    - TTL via the store's native ``EX`` expiry
    - Pattern invalidation via ``KEYS`` + bulk ``DEL``
    - Local hit/miss counters, key count via ``DBSIZE``
    - Graceful degradation on network errors

    Example:
        provider = DistributedCacheProvider(
            url="https://eu1-example.upstash.io",
            token="...",
        )
        await provider.initialize()
        await provider.set("key", {"data": "value"}, CacheOptions(ttl=60))
    """

    name = "distributed"

    def __init__(
        self,
        url: Optional[str],
        token: Optional[str],
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        metrics_sink=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the provider.

        Args:
            url: Base REST endpoint of the store
            token: Bearer access token
            request_timeout: Per-request timeout in seconds
            metrics_sink: Optional MetricsSink for cache metrics
            transport: Optional httpx transport (used by tests)

        Raises:
            CacheConfigurationError: If url or token is missing
        """
        if not url or not token:
            raise CacheConfigurationError(
                "Distributed cache configuration missing. "
                "Set CACHE_DISTRIBUTED_URL and CACHE_DISTRIBUTED_TOKEN",
                component="distributed",
            )

        self._client = UpstashRestClient(url, token, timeout=request_timeout, transport=transport)
        self._metrics_sink = metrics_sink
        self._initialized = False

        self._hits = 0
        self._misses = 0

        logger.debug(f"DistributedCacheProvider created: url={url}, timeout={request_timeout}s")

    async def initialize(self) -> None:
        if self._initialized:
            return

        try:
            await self._client.command("PING")
        except CacheBackendError as e:
            logger.error(f"Failed to initialize distributed cache: {e}")
            raise CacheInitializationError(
                f"Distributed cache unreachable: {e.message}",
                component="distributed",
            ) from e

        self._initialized = True
        logger.info("Distributed cache provider initialized")

    async def get(self, key: str) -> Optional[Any]:
        start_time = time.time()

        try:
            raw = await self._client.command("GET", key)
        except CacheBackendError as e:
            logger.error(f"Cache GET error for key: {key}: {e}")
            self._record_miss(start_time)
            return None

        if raw is None:
            logger.debug(f"Cache MISS: {key}")
            self._record_miss(start_time)
            return None

        try:
            value = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Cache deserialization error for {key}: {e}")
            self._record_miss(start_time)
            return None

        self._hits += 1
        self._emit("hit", start_time)
        logger.debug(f"Cache HIT: {key}")
        return value

    async def set(self, key: str, value: Any, options: Optional[CacheOptions] = None) -> None:
        ttl = options.ttl if options is not None else None

        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.error(f"Cache serialization error for {key}: {e}")
            return

        command: List[Any] = ["SET", key, payload]
        if ttl:
            command.extend(["EX", int(ttl)])

        try:
            await self._client.command(*command)
        except CacheBackendError as e:
            logger.error(f"Cache SET error for key: {key}: {e}")
            return

        logger.debug(f"Cache SET: {key}" + (f" (TTL: {ttl}s)" if ttl else ""))

    async def delete(self, key: str) -> None:
        try:
            await self._client.command("DEL", key)
            logger.debug(f"Cache DELETE: {key}")
        except CacheBackendError as e:
            logger.error(f"Cache DELETE error for key: {key}: {e}")

    async def has(self, key: str) -> bool:
        try:
            return await self._client.command("EXISTS", key) == 1
        except CacheBackendError as e:
            logger.error(f"Cache HAS error for key: {key}: {e}")
            return False

    async def clear(self) -> None:
        await self._client.command("FLUSHDB")
        self._hits = 0
        self._misses = 0
        logger.warning("Cache CLEARED: All entries removed")

    async def invalidate_pattern(self, pattern: str) -> int:
        try:
            keys = await self._client.command("KEYS", to_store_glob(pattern))
            if not keys:
                return 0

            removed = int(await self._client.command("DEL", *keys))
        except (CacheBackendError, TypeError, ValueError) as e:
            logger.error(f"Cache INVALIDATE PATTERN error for pattern: {pattern}: {e}")
            return 0

        logger.debug(f"Cache INVALIDATE PATTERN: {pattern} ({removed} keys removed)")
        return removed

    async def get_stats(self) -> CacheStats:
        try:
            key_count = int(await self._client.command("DBSIZE"))
        except (CacheBackendError, TypeError, ValueError) as e:
            logger.error(f"Cache STATS error: {e}")
            key_count = 0
        return CacheStats.from_counters(self._hits, self._misses, key_count)

    async def disconnect(self) -> None:
        await self._client.aclose()
        self._initialized = False
        logger.info("Distributed cache provider disconnected")

    def _record_miss(self, start_time: float) -> None:
        self._misses += 1
        self._emit("miss", start_time)

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
