"""
Cache Engine

Provider-agnostic cache-aside layer for expensive lookups:
- CacheService: the only interface application code calls
- InMemoryCacheProvider: process-local store for development/tests/fallback
- DistributedCacheProvider: REST key-value store for production
- CacheKeys: namespaced, deterministic key constructors

Example usage:
    from cache_engine import CacheService, CacheKeys, CacheOptions, load_config

    service = CacheService.from_config(load_config())
    await service.initialize()

    org = await service.get_or_set(
        CacheKeys.organization(org_id),
        lambda: fetch_organization(org_id),
        CacheOptions(ttl=300),
    )
"""

from cache_engine.config import CacheConfig, ProviderKind, load_config
from cache_engine.decorators import cache_invalidate, cached
from cache_engine.distributed import DistributedCacheProvider
from cache_engine.errors import (
    CacheBackendError,
    CacheConfigurationError,
    CacheEngineError,
    CacheInitializationError,
)
from cache_engine.factory import create_provider
from cache_engine.in_memory import InMemoryCacheProvider
from cache_engine.interface import CacheEntry, CacheOptions, CacheProvider, CacheStats
from cache_engine.keys import CacheKey, CacheKeys, hash_string
from cache_engine.service import CacheService

__all__ = [
    # Interface
    "CacheProvider",
    "CacheOptions",
    "CacheEntry",
    "CacheStats",
    # Implementations
    "InMemoryCacheProvider",
    "DistributedCacheProvider",
    # Orchestration
    "CacheService",
    "create_provider",
    # Keys
    "CacheKey",
    "CacheKeys",
    "hash_string",
    # Decorators
    "cached",
    "cache_invalidate",
    # Configuration
    "CacheConfig",
    "ProviderKind",
    "load_config",
    # Errors
    "CacheEngineError",
    "CacheConfigurationError",
    "CacheInitializationError",
    "CacheBackendError",
]
