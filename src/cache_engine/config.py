"""
Cache Configuration

Environment-based configuration for the caching layer. Values are read from
the process environment after loading an optional ``.env`` file.
"""

import logging
import os
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600
DEFAULT_REQUEST_TIMEOUT = 5.0
DEFAULT_SWEEP_INTERVAL = 60.0


class ProviderKind(str, Enum):
    """Supported cache backends."""
    IN_MEMORY = "in-memory"
    DISTRIBUTED = "distributed"


_PROVIDER_ALIASES = {
    "in-memory": ProviderKind.IN_MEMORY,
    "in_memory": ProviderKind.IN_MEMORY,
    "memory": ProviderKind.IN_MEMORY,
    "distributed": ProviderKind.DISTRIBUTED,
    "upstash": ProviderKind.DISTRIBUTED,
    "redis-rest": ProviderKind.DISTRIBUTED,
}


def parse_provider_kind(value: Optional[str]) -> Optional[ProviderKind]:
    """Map a configured provider name to a ProviderKind.

    Returns:
        ProviderKind, or None if the value is missing or unknown
    """
    if not value:
        return None
    return _PROVIDER_ALIASES.get(value.strip().lower())


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}={raw!r}, using default {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {name}={raw!r}, using default {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


class CacheConfig:
    """Cache configuration from environment variables.

    Environment Variables:
        CACHE_PROVIDER: "in-memory" or "distributed" (default: in-memory)
        CACHE_DEFAULT_TTL: Default TTL in seconds (default: 3600)
        CACHE_DISTRIBUTED_URL: REST endpoint (falls back to UPSTASH_REDIS_REST_URL)
        CACHE_DISTRIBUTED_TOKEN: Bearer token (falls back to UPSTASH_REDIS_REST_TOKEN)
        CACHE_REQUEST_TIMEOUT: Remote request timeout in seconds (default: 5.0)
        CACHE_SWEEP_INTERVAL: In-memory sweep interval in seconds (default: 60)
        CACHE_SINGLE_FLIGHT: Share concurrent get_or_set misses (default: true)
        ENVIRONMENT: Deployment environment (default: development)
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        default_ttl: int = DEFAULT_TTL_SECONDS,
        distributed_url: Optional[str] = None,
        distributed_token: Optional[str] = None,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
        single_flight: bool = True,
        environment: str = "development",
    ):
        self.provider = provider
        self.default_ttl = default_ttl
        self.distributed_url = distributed_url
        self.distributed_token = distributed_token
        self.request_timeout = request_timeout
        self.sweep_interval = sweep_interval
        self.single_flight = single_flight
        self.environment = environment

    @classmethod
    def from_env(cls) -> "CacheConfig":
        """Build configuration from the current process environment."""
        return cls(
            provider=os.getenv("CACHE_PROVIDER", ProviderKind.IN_MEMORY.value),
            default_ttl=_env_int("CACHE_DEFAULT_TTL", DEFAULT_TTL_SECONDS),
            distributed_url=os.getenv("CACHE_DISTRIBUTED_URL") or os.getenv("UPSTASH_REDIS_REST_URL"),
            distributed_token=os.getenv("CACHE_DISTRIBUTED_TOKEN") or os.getenv("UPSTASH_REDIS_REST_TOKEN"),
            request_timeout=_env_float("CACHE_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
            sweep_interval=_env_float("CACHE_SWEEP_INTERVAL", DEFAULT_SWEEP_INTERVAL),
            single_flight=_env_bool("CACHE_SINGLE_FLIGHT", True),
            environment=os.getenv("ENVIRONMENT", "development").strip().lower(),
        )

    @property
    def provider_kind(self) -> Optional[ProviderKind]:
        return parse_provider_kind(self.provider)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def __repr__(self) -> str:
        token = "****" if self.distributed_token else None
        return (
            f"CacheConfig(provider={self.provider}, default_ttl={self.default_ttl}, "
            f"distributed_url={self.distributed_url}, distributed_token={token}, "
            f"environment={self.environment})"
        )


def load_config(env_file: Optional[str] = None) -> CacheConfig:
    """Load cache configuration, reading a ``.env`` file first if present.

    Variables already set in the environment take precedence over the file.

    Args:
        env_file: Optional explicit path to a dotenv file

    Returns:
        CacheConfig instance with current settings
    """
    load_dotenv(dotenv_path=env_file, override=False)
    config = CacheConfig.from_env()
    logger.debug(f"Loaded {config!r}")
    return config
