"""
Schemas for query cache administration endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CacheClearResponse(BaseModel):
    removed_keys: int
    timestamp: datetime


class CacheWarmRequest(BaseModel):
    queries: list[dict[str, Any]] = Field(
        default_factory=list,
        description="List query parameter sets; empty uses the common search shapes",
    )


class CacheWarmResultResponse(BaseModel):
    params: dict[str, Any]
    success: bool
    error: str | None = None


class CacheWarmResponse(BaseModel):
    warmed: int
    succeeded: int
    results: list[CacheWarmResultResponse] = Field(default_factory=list)
    timestamp: datetime


class CacheStatsResponse(BaseModel):
    hits: int
    misses: int
    total: int
    hit_ratio: float
    last_reset: datetime


class CacheEntryResponse(BaseModel):
    key: str
    created_at: datetime
    ttl_seconds: int | None = None


class CacheHealthResponse(BaseModel):
    backend_available: bool
    total_keys: int
    approximate_size_bytes: int
    hit_ratio: float
    oldest_entry: CacheEntryResponse | None = None
    newest_entry: CacheEntryResponse | None = None
