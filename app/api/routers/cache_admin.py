"""
Query cache administration endpoints.
"""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends

from app.cache.query_cache import QueryCache, get_query_cache
from app.domain.query_cache import CacheEntryInfo, PerformanceCounters
from app.schemas.cache_admin import (
    CacheClearResponse,
    CacheEntryResponse,
    CacheHealthResponse,
    CacheStatsResponse,
    CacheWarmRequest,
    CacheWarmResponse,
    CacheWarmResultResponse,
)
from app.services.contract_query_service import ContractQueryService, get_contract_query_service

router = APIRouter(prefix="/cache", tags=["cache"])


def _stats_response(counters: PerformanceCounters) -> CacheStatsResponse:
    return CacheStatsResponse(
        hits=counters.hits,
        misses=counters.misses,
        total=counters.total,
        hit_ratio=counters.ratio,
        last_reset=counters.last_reset,
    )


def _entry_response(entry: CacheEntryInfo | None) -> CacheEntryResponse | None:
    if entry is None:
        return None
    return CacheEntryResponse(key=entry.key, created_at=entry.created_at, ttl_seconds=entry.ttl_seconds)


@router.post("/clear", response_model=CacheClearResponse)
def clear_cache(cache: QueryCache = Depends(get_query_cache)) -> CacheClearResponse:
    removed = cache.clear_all()
    return CacheClearResponse(removed_keys=removed, timestamp=datetime.now(timezone.utc))


@router.post("/warm", response_model=CacheWarmResponse)
def warm_cache(
    payload: CacheWarmRequest | None = Body(default=None),
    service: ContractQueryService = Depends(get_contract_query_service),
) -> CacheWarmResponse:
    results = service.warm(payload.queries if payload else None)
    return CacheWarmResponse(
        warmed=len(results),
        succeeded=sum(1 for result in results if result.success),
        results=[
            CacheWarmResultResponse(params=result.params, success=result.success, error=result.error)
            for result in results
        ],
        timestamp=datetime.now(timezone.utc),
    )


@router.get("/health", response_model=CacheHealthResponse)
def cache_health(cache: QueryCache = Depends(get_query_cache)) -> CacheHealthResponse:
    metrics = cache.health_metrics()
    return CacheHealthResponse(
        backend_available=metrics.backend_available,
        total_keys=metrics.total_keys,
        approximate_size_bytes=metrics.approximate_size_bytes,
        hit_ratio=metrics.hit_ratio,
        oldest_entry=_entry_response(metrics.oldest_entry),
        newest_entry=_entry_response(metrics.newest_entry),
    )


@router.get("/stats", response_model=CacheStatsResponse)
def cache_stats(cache: QueryCache = Depends(get_query_cache)) -> CacheStatsResponse:
    return _stats_response(cache.stats())


@router.post("/stats/reset", response_model=CacheStatsResponse)
def reset_cache_stats(cache: QueryCache = Depends(get_query_cache)) -> CacheStatsResponse:
    return _stats_response(cache.reset_stats())
