"""
Cache Administration API

FastAPI router exposing cache statistics and the destructive clear
operation to administrators, plus a lifespan helper that ties the
CacheService to application startup and shutdown.

Authorization is supplied by the host application as a FastAPI dependency;
the router applies it to every route.

Endpoints:
- GET    /api/cache/stats   - Retrieve cache statistics
- DELETE /api/cache/stats   - Clear all cache entries
- GET    /api/cache/metrics - Prometheus metrics (when a Prometheus sink is given)
"""

from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import APIRouter, Depends, FastAPI, Response
from pydantic import BaseModel, ConfigDict, Field

from cache_engine.logging_config import get_logger, log_cache_admin_action
from cache_engine.metrics import PrometheusMetricsSink
from cache_engine.service import CacheService

logger = get_logger(__name__)


class CacheStatsData(BaseModel):
    """Cache statistics payload."""
    model_config = ConfigDict(populate_by_name=True)

    hits: int = Field(..., ge=0)
    misses: int = Field(..., ge=0)
    keys: int = Field(..., ge=0)
    hit_rate: float = Field(..., ge=0.0, le=1.0, alias="hitRate")


class CacheStatsResponse(BaseModel):
    success: bool
    data: CacheStatsData


class SuccessResponse(BaseModel):
    success: bool
    message: str


def create_cache_admin_router(
    service: CacheService,
    authorize: Callable[..., Any],
    metrics_sink: Optional[PrometheusMetricsSink] = None,
) -> APIRouter:
    """Build the admin router.

    Args:
        service: CacheService to report on
        authorize: FastAPI dependency that rejects non-admin callers
        metrics_sink: Optional Prometheus sink to expose at /metrics

    Returns:
        APIRouter mounted at /api/cache
    """
    router = APIRouter(
        prefix="/api/cache",
        tags=["cache"],
        dependencies=[Depends(authorize)],
    )

    @router.get("/stats", response_model=CacheStatsResponse)
    async def get_cache_stats() -> CacheStatsResponse:
        stats = await service.get_stats()
        log_cache_admin_action(
            logger, "stats", service.provider.name,
            hits=stats.hits, misses=stats.misses, keys=stats.keys,
        )
        return CacheStatsResponse(
            success=True,
            data=CacheStatsData(
                hits=stats.hits,
                misses=stats.misses,
                keys=stats.keys,
                hit_rate=stats.hit_rate,
            ),
        )

    @router.delete("/stats", response_model=SuccessResponse)
    async def clear_cache() -> SuccessResponse:
        await service.clear()
        log_cache_admin_action(logger, "clear", service.provider.name)
        return SuccessResponse(success=True, message="Cache cleared successfully")

    if metrics_sink is not None:
        @router.get("/metrics")
        async def get_cache_metrics() -> Response:
            payload, content_type = metrics_sink.render()
            return Response(content=payload, media_type=content_type)

    return router


def cache_lifespan(service: CacheService):
    """Create a FastAPI lifespan that initializes and disconnects the cache.

    Example:
        app = FastAPI(lifespan=cache_lifespan(service))
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.initialize()
        logger.info("cache_lifespan_started", provider=service.provider.name)
        try:
            yield
        finally:
            await service.disconnect()
            logger.info("cache_lifespan_stopped")

    return lifespan
