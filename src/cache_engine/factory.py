"""
Cache Provider Factory

Selects the cache backend from configuration once, at process start.
"""

import logging
from typing import Optional

from cache_engine.config import CacheConfig, ProviderKind
from cache_engine.distributed import DistributedCacheProvider
from cache_engine.in_memory import InMemoryCacheProvider
from cache_engine.interface import CacheProvider

logger = logging.getLogger(__name__)


def create_provider(config: CacheConfig, metrics_sink=None) -> CacheProvider:
    """Create cache provider based on configuration.

    Unknown or missing provider names fall back to the in-memory provider so
    the application can always start.

    Args:
        config: CacheConfig to build from
        metrics_sink: Optional MetricsSink passed to the provider

    Returns:
        CacheProvider instance (not yet initialized)

    Raises:
        CacheConfigurationError: If the distributed provider is selected
            without endpoint URL and token
    """
    kind: Optional[ProviderKind] = config.provider_kind

    if kind is None:
        logger.warning(
            f"Unknown cache provider: {config.provider!r}, defaulting to in-memory"
        )
        kind = ProviderKind.IN_MEMORY

    logger.info(f"Creating cache provider: {kind.value}")

    if kind is ProviderKind.DISTRIBUTED:
        return DistributedCacheProvider(
            url=config.distributed_url,
            token=config.distributed_token,
            request_timeout=config.request_timeout,
            metrics_sink=metrics_sink,
        )

    return InMemoryCacheProvider(
        sweep_interval=config.sweep_interval,
        metrics_sink=metrics_sink,
    )
