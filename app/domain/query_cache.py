"""
app/domain/query_cache.py

Value types exposed by the query cache.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


class CacheScope:
    CONTRACTS = "contracts"


class CacheKind:
    LIST = "list"
    DETAIL = "detail"
    STATS = "stats"


@dataclass(frozen=True)
class QueryFingerprint:
    """
    Canonical cache address of one query.
    """

    namespace: str
    scope: str
    kind: str
    digest: str

    @property
    def key(self) -> str:
        return f"{self.namespace}:{self.scope}:{self.kind}:{self.digest}"


@dataclass(frozen=True)
class CacheLookup:
    value: Any
    hit: bool


@dataclass(frozen=True)
class PerformanceCounters:
    hits: int
    misses: int
    last_reset: datetime

    @property
    def total(self) -> int:
        return self.hits + self.misses

    @property
    def ratio(self) -> float:
        return self.hits / self.total if self.total else 0.0


@dataclass(frozen=True)
class CacheEntryInfo:
    key: str
    created_at: datetime
    ttl_seconds: int | None


@dataclass(frozen=True)
class CacheHealthMetrics:
    total_keys: int
    approximate_size_bytes: int
    hit_ratio: float
    oldest_entry: CacheEntryInfo | None
    newest_entry: CacheEntryInfo | None
    backend_available: bool = True


@dataclass(frozen=True)
class WarmResult:
    params: dict[str, Any]
    success: bool
    error: str | None = None
