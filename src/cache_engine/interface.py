"""
Cache Interface and Types

Defines the abstract CacheProvider contract and the value types shared by
every backend. All cache providers must conform to this interface; the
CacheService only ever talks to a provider through it.
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CacheOptions:
    """Per-call cache options. Never stored.

    Attributes:
        ttl: Time to live in seconds (None uses the service default)
        namespace: Optional key prefix applied by the service
        skip_cache: Bypass both read and write in get_or_set
    """
    ttl: Optional[int] = None
    namespace: Optional[str] = None
    skip_cache: bool = False


@dataclass
class CacheEntry:
    """Stored value with creation time and absolute expiry (epoch seconds)."""
    value: Any
    created_at: float = field(default_factory=time.time)
    expires_at: Optional[float] = None

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        if now is None:
            now = time.time()
        return self.expires_at < now


@dataclass
class CacheStats:
    """Statistics for cache performance monitoring.

    Attributes:
        hits: Number of successful cache retrievals
        misses: Number of cache misses (key not found or expired)
        keys: Current number of entries held by the backend
        hit_rate: hits / (hits + misses), 0.0 when nothing was read
    """
    hits: int = 0
    misses: int = 0
    keys: int = 0
    hit_rate: float = 0.0

    @classmethod
    def from_counters(cls, hits: int, misses: int, keys: int) -> "CacheStats":
        total = hits + misses
        hit_rate = hits / total if total > 0 else 0.0
        return cls(hits=hits, misses=misses, keys=keys, hit_rate=hit_rate)

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary for serialization."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "keys": self.keys,
            "hit_rate": self.hit_rate,
        }


class CacheProvider(ABC):
    """Abstract cache backend.

    Implementations:
    - InMemoryCacheProvider: process-local store for development, tests and
      as the emergency fallback
    - DistributedCacheProvider: REST key-value store for production
    """

    name: str = "abstract"

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend. Idempotent; failures propagate."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Retrieve value by key.

        Returns:
            Cached value or None if not found/expired
        """
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, options: Optional[CacheOptions] = None) -> None:
        """Store value, fully overwriting any existing entry.

        Args:
            key: Cache key
            value: Value to cache
            options: TTL is taken from options.ttl
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def has(self, key: str) -> bool:
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every entry. Administrative use only."""
        ...

    @abstractmethod
    async def invalidate_pattern(self, pattern: str) -> int:
        """Delete every key matching a ``*`` glob pattern.

        Returns:
            Number of keys removed
        """
        ...

    @abstractmethod
    async def get_stats(self) -> CacheStats:
        """Snapshot of running counters. Never fails."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release resources. Idempotent."""
        ...
