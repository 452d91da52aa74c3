"""
Cache Decorators

Function-level caching on top of CacheService for easy integration with
existing data-access code.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Optional

from cache_engine.interface import CacheOptions

logger = logging.getLogger(__name__)


def cached(
    service,
    key_fn: Optional[Callable[..., str]] = None,
    ttl: Optional[int] = None,
    prefix: str = "fn"
):
    """Decorator to cache coroutine results through ``service.get_or_set``.

    Args:
        service: CacheService instance
        key_fn: Callable to generate the cache key from the call arguments.
                Signature: key_fn(*args, **kwargs) -> str. Its result is used
                verbatim, so pass a CacheKeys constructor here.
                If None, uses "{prefix}:{function}:{repr of args}".
        ttl: TTL in seconds for cached result. None uses service default.
        prefix: Key prefix for generated keys (default: "fn")

    Example:
        @cached(service, key_fn=CacheKeys.organization, ttl=300)
        async def get_organization(org_id: str) -> dict:
            return await db.fetch_organization(org_id)
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"@cached requires an async function, got {func.__name__}")

        options = CacheOptions(ttl=ttl)

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            cache_key = _generate_key(prefix, func, key_fn, args, kwargs)
            return await service.get_or_set(
                cache_key,
                lambda: func(*args, **kwargs),
                options,
            )

        return wrapper

    return decorator


def cache_invalidate(service, pattern_fn: Callable[..., str]):
    """Decorator to invalidate matching keys after a write succeeds.

    The pattern is only invalidated when the wrapped coroutine returns
    normally; an exception leaves the cache untouched. A failing
    ``pattern_fn`` is logged and the write's result is still returned.

    Args:
        service: CacheService instance
        pattern_fn: Callable producing the key or pattern to invalidate
                    from the call arguments

    Example:
        @cache_invalidate(service, lambda org_id, data: CacheKeys.organization_pattern(org_id))
        async def update_organization(org_id: str, data: dict) -> None:
            await db.update_organization(org_id, data)
    """
    def decorator(func: Callable) -> Callable:
        if not asyncio.iscoroutinefunction(func):
            raise TypeError(f"@cache_invalidate requires an async function, got {func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            result = await func(*args, **kwargs)

            try:
                pattern = pattern_fn(*args, **kwargs)
                removed = await service.invalidate_pattern(pattern)
                logger.debug(f"Cache invalidated for {func.__name__}: {pattern} ({removed} keys)")
            except Exception as e:
                logger.error(f"Cache invalidation failed for {func.__name__}: {e}", exc_info=True)

            return result

        return wrapper

    return decorator


def _generate_key(
    prefix: str,
    func: Callable,
    key_fn: Optional[Callable[..., str]],
    args: tuple,
    kwargs: dict,
) -> str:
    if key_fn is not None:
        try:
            return key_fn(*args, **kwargs)
        except Exception as e:
            logger.warning(f"key_fn error for {func.__name__}, using default key: {e}")

    # kwargs sorted by name
    parts = [prefix, func.__name__, ":".join(map(repr, args))]
    parts.extend(f"{name}={value!r}" for name, value in sorted(kwargs.items()))
    return ":".join(parts)
