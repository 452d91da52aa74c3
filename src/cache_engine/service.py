"""
Cache Service

The single entry point application code uses for caching. Wraps one
CacheProvider with:
- default TTL injection
- the cache-aside ``get_or_set`` pattern with optional single-flight
- uniform error swallowing: cache failures degrade to a miss and never
  propagate to the caller
- production fallback to the in-memory provider when the configured
  backend cannot be initialized

One instance is constructed at process startup and passed explicitly to
the components that need it.

Example:
    service = CacheService.from_config(load_config())
    await service.initialize()

    org = await service.get_or_set(
        CacheKeys.organization(org_id),
        lambda: fetch_organization(org_id),
        CacheOptions(ttl=300),
    )
"""

import asyncio
import functools
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, Union

from cache_engine.config import CacheConfig, DEFAULT_TTL_SECONDS
from cache_engine.factory import create_provider
from cache_engine.in_memory import InMemoryCacheProvider
from cache_engine.interface import CacheOptions, CacheProvider, CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

Factory = Callable[[], Union[T, Awaitable[T]]]


class _AbandonedComputation(Exception):
    """Set on a shared future whose owning caller was cancelled."""


async def _call_factory(factory: Factory) -> Any:
    """Run a sync callable or coroutine function and return its value."""
    result = factory()
    if inspect.isawaitable(result):
        result = await result
    return result


class CacheService:
    """Failure-isolating facade over a CacheProvider."""

    def __init__(
        self,
        provider: CacheProvider,
        *,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        environment: str = "development",
        fallback_factory: Callable[[], CacheProvider] = InMemoryCacheProvider,
        single_flight: bool = True,
    ):
        """Initialize service.

        Args:
            provider: Backend used for the process lifetime
            default_ttl: TTL in seconds applied when options carry none
            environment: "production" enables fallback on init failure
            fallback_factory: Builds the provider used as production fallback
            single_flight: Share one factory call between concurrent misses
        """
        self._provider = provider
        self._default_ttl = default_ttl
        self._environment = environment
        self._fallback_factory = fallback_factory
        self._single_flight = single_flight

        self._initialized = False
        self._init_lock: Optional[asyncio.Lock] = None
        self._in_flight: Dict[str, "asyncio.Future[Any]"] = {}

    @classmethod
    def from_config(cls, config: CacheConfig, metrics_sink=None) -> "CacheService":
        """Build the service and its provider from configuration."""
        return cls(
            create_provider(config, metrics_sink=metrics_sink),
            default_ttl=config.default_ttl,
            environment=config.environment,
            fallback_factory=functools.partial(
                InMemoryCacheProvider,
                sweep_interval=config.sweep_interval,
                metrics_sink=metrics_sink,
            ),
            single_flight=config.single_flight,
        )

    @property
    def provider(self) -> CacheProvider:
        return self._provider

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Initialize the provider once (call on app startup).

        In production an unreachable backend is replaced by a fresh
        in-memory provider; anywhere else the error is re-raised so that
        misconfiguration surfaces early.
        """
        if self._init_lock is None:
            self._init_lock = asyncio.Lock()

        async with self._init_lock:
            if self._initialized:
                return

            try:
                await self._provider.initialize()
            except Exception as e:
                logger.error(f"Failed to initialize cache service: {e}", exc_info=True)

                if self._environment != "production":
                    raise

                logger.warning("Falling back to in-memory cache provider")
                self._provider = self._fallback_factory()
                try:
                    await self._provider.initialize()
                except Exception as fallback_error:
                    logger.error(
                        f"Failed to initialize fallback cache provider: {fallback_error}",
                        exc_info=True,
                    )
                    raise
                logger.info("In-memory cache provider initialized as fallback")

            self._initialized = True
            logger.info(f"Cache service initialized ({self._provider.name})")

    async def disconnect(self) -> None:
        """Disconnect from cache provider (call on app shutdown)."""
        try:
            await self._provider.disconnect()
            self._initialized = False
            logger.info("Cache service disconnected")
        except Exception as e:
            logger.error(f"Cache disconnect error: {e}", exc_info=True)

    # ------------------------------------------------------------------
    # Basic operations
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_key(key: str, namespace: Optional[str]) -> str:
        return f"{namespace}:{key}" if namespace else key

    async def get(self, key: str, namespace: Optional[str] = None) -> Optional[Any]:
        """Get value from cache, or None on miss or failure."""
        return await self._get(self._resolve_key(key, namespace))

    async def set(self, key: str, value: Any, options: Optional[CacheOptions] = None) -> None:
        """Set value in cache. Failures are logged, never raised."""
        options = options or CacheOptions()
        await self._set(self._resolve_key(key, options.namespace), value, options.ttl)

    async def delete(self, key: str, namespace: Optional[str] = None) -> None:
        full_key = self._resolve_key(key, namespace)
        try:
            await self._provider.delete(full_key)
        except Exception as e:
            logger.error(f"Cache delete error for key: {full_key}: {e}", exc_info=True)

    async def has(self, key: str, namespace: Optional[str] = None) -> bool:
        full_key = self._resolve_key(key, namespace)
        try:
            return await self._provider.has(full_key)
        except Exception as e:
            logger.error(f"Cache has error for key: {full_key}: {e}", exc_info=True)
            return False

    async def clear(self) -> None:
        """Clear all cache entries. Administrative use only."""
        try:
            await self._provider.clear()
        except Exception as e:
            logger.error(f"Cache clear error: {e}", exc_info=True)

    async def invalidate_pattern(self, pattern: str) -> int:
        """Invalidate cache keys matching a ``*`` glob pattern.

        Returns:
            Number of keys removed (0 on failure)
        """
        try:
            return await self._provider.invalidate_pattern(pattern)
        except Exception as e:
            logger.error(f"Cache invalidate pattern error for pattern: {pattern}: {e}", exc_info=True)
            return 0

    async def get_stats(self) -> CacheStats:
        try:
            return await self._provider.get_stats()
        except Exception as e:
            logger.error(f"Cache stats error: {e}", exc_info=True)
            return CacheStats()

    # ------------------------------------------------------------------
    # Cache-aside
    # ------------------------------------------------------------------

    async def get_or_set(
        self,
        key: str,
        factory: Factory,
        options: Optional[CacheOptions] = None,
    ) -> Any:
        """Get value from cache or compute and store it.

        Args:
            key: Cache key
            factory: Callable (sync or async) computing the value on a miss
            options: TTL, namespace and skip_cache

        Returns:
            Cached or computed value. A None result is returned but not
            cached, so the next call retries the factory.
        """
        options = options or CacheOptions()

        if options.skip_cache:
            return await _call_factory(factory)

        full_key = self._resolve_key(key, options.namespace)

        cached = await self._get(full_key)
        if cached is not None:
            return cached

        if not self._single_flight:
            return await self._compute_and_store(full_key, factory, options.ttl)

        while True:
            pending = self._in_flight.get(full_key)
            if pending is None:
                return await self._compute_shared(full_key, factory, options.ttl)

            logger.debug(f"Cache awaiting in-flight computation: {full_key}")
            try:
                # shield: cancelling this waiter must not cancel the shared future
                return await asyncio.shield(pending)
            except _AbandonedComputation:
                logger.debug(f"Cache in-flight owner cancelled, retrying: {full_key}")

    async def _compute_shared(self, full_key: str, factory: Factory, ttl: Optional[int]) -> Any:
        future: "asyncio.Future[Any]" = asyncio.get_running_loop().create_future()
        self._in_flight[full_key] = future
        try:
            value = await self._compute_and_store(full_key, factory, ttl)
        except asyncio.CancelledError:
            # Waiters retry instead of inheriting this caller's cancellation
            self._settle_with_error(future, _AbandonedComputation())
            raise
        except Exception as e:
            self._settle_with_error(future, e)
            raise
        else:
            future.set_result(value)
            return value
        finally:
            if self._in_flight.get(full_key) is future:
                del self._in_flight[full_key]

    @staticmethod
    def _settle_with_error(future: "asyncio.Future[Any]", error: BaseException) -> None:
        future.set_exception(error)
        # Mark retrieved so an unawaited future does not log a warning
        future.exception()

    async def _compute_and_store(self, full_key: str, factory: Factory, ttl: Optional[int]) -> Any:
        value = await _call_factory(factory)
        if value is not None:
            await self._set(full_key, value, ttl)
        return value

    async def _get(self, full_key: str) -> Optional[Any]:
        try:
            return await self._provider.get(full_key)
        except Exception as e:
            logger.error(f"Cache get error for key: {full_key}: {e}", exc_info=True)
            return None

    async def _set(self, full_key: str, value: Any, ttl: Optional[int]) -> None:
        effective_ttl = ttl if ttl is not None else self._default_ttl
        try:
            await self._provider.set(full_key, value, CacheOptions(ttl=effective_ttl))
        except Exception as e:
            logger.error(f"Cache set error for key: {full_key}: {e}", exc_info=True)
