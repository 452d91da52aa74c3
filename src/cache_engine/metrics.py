"""
Cache Metrics

Providers report lookups through a small sink interface so the engine does
not depend on a particular metrics backend:

    sink.emit_counter("cache_hits_total", tags={"provider": "in-memory"})
    sink.emit_histogram("cache_latency_ms", 0.4, tags={"provider": "in-memory", "result": "hit"})

A sink must never raise into the cache path.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Tuple, Union

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

logger = logging.getLogger(__name__)

LATENCY_BUCKETS_MS = (0.1, 0.5, 1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000)

Tags = Optional[Dict[str, str]]


class MetricsSink(ABC):
    """Destination for cache counters and latency observations."""

    @abstractmethod
    def emit_counter(self, name: str, value: float = 1.0, tags: Tags = None) -> None:
        """Increment counter ``name`` by ``value``."""
        ...

    @abstractmethod
    def emit_histogram(self, name: str, value: float, tags: Tags = None) -> None:
        """Record one observation for histogram ``name``."""
        ...


class NoOpMetricsSink(MetricsSink):
    """Discards everything."""

    def emit_counter(self, name: str, value: float = 1.0, tags: Tags = None) -> None:
        return None

    def emit_histogram(self, name: str, value: float, tags: Tags = None) -> None:
        return None


class PrometheusMetricsSink(MetricsSink):
    """Prometheus-backed sink with the cache metric families pre-registered.

    Registered families:
        cache_hits_total{provider}
        cache_misses_total{provider}
        cache_latency_ms{provider, result}

    Names outside this set, or tags that do not fit a family's labels, are
    dropped with a debug log.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None, namespace: str = ""):
        """
        Args:
            registry: Registry to register on (a private one if None, so
                several sinks can coexist in one process)
            namespace: Optional metric name prefix
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self.namespace = namespace

        # prometheus_client appends _total to counters itself
        self._families: Dict[str, Union[Counter, Histogram]] = {
            "cache_hits_total": Counter(
                "cache_hits", "Cache lookups served from the backend",
                labelnames=("provider",), namespace=namespace, registry=self.registry,
            ),
            "cache_misses_total": Counter(
                "cache_misses", "Cache lookups that found nothing usable",
                labelnames=("provider",), namespace=namespace, registry=self.registry,
            ),
            "cache_latency_ms": Histogram(
                "cache_latency_ms", "Cache lookup latency in milliseconds",
                labelnames=("provider", "result"), namespace=namespace,
                buckets=LATENCY_BUCKETS_MS, registry=self.registry,
            ),
        }

    def _child(self, name: str, kind: type, tags: Tags):
        family = self._families.get(name)
        if not isinstance(family, kind):
            logger.debug(f"Dropping unknown {kind.__name__.lower()} metric: {name}")
            return None
        return family.labels(**(tags or {}))

    def emit_counter(self, name: str, value: float = 1.0, tags: Tags = None) -> None:
        try:
            child = self._child(name, Counter, tags)
            if child is not None:
                child.inc(value)
        except (ValueError, TypeError) as e:
            logger.debug(f"Failed to emit counter {name}: {e}")

    def emit_histogram(self, name: str, value: float, tags: Tags = None) -> None:
        try:
            child = self._child(name, Histogram, tags)
            if child is not None:
                child.observe(value)
        except (ValueError, TypeError) as e:
            logger.debug(f"Failed to emit histogram {name}: {e}")

    def render(self) -> Tuple[bytes, str]:
        """Exposition payload and its content type, for a /metrics route."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

    def sample(self, name: str, labels: Tags = None) -> Any:
        full_name = f"{self.namespace}_{name}" if self.namespace else name
        return self.registry.get_sample_value(full_name, labels or {})
