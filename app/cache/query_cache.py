"""
app/cache/query_cache.py

Read-through query cache shared by the read API and the sync pipeline.

The cache is fail-open: a backend outage turns reads into misses and writes
into logged no-ops, so callers always fall back to the store.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any

from app.cache.backends import KeyValueCache, PrefixDeletingCache, build_backend
from app.cache.fingerprint import fingerprint, scope_prefix
from app.config import get_cache_settings
from app.domain.errors import CacheError
from app.domain.query_cache import (
    CacheEntryInfo,
    CacheHealthMetrics,
    CacheLookup,
    PerformanceCounters,
    QueryFingerprint,
    WarmResult,
)

logger = logging.getLogger(__name__)

_MISS = CacheLookup(value=None, hit=False)


class QueryCache:
    def __init__(
        self,
        backend: KeyValueCache,
        *,
        namespace: str = "registry",
        default_ttl_seconds: int = 3600,
    ) -> None:
        self._backend = backend
        self._namespace = namespace
        self._default_ttl_seconds = default_ttl_seconds
        self._counter_lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._last_reset = datetime.now(timezone.utc)

    @property
    def namespace(self) -> str:
        return self._namespace

    def fingerprint(self, scope: str, kind: str, params: Mapping[str, Any] | None = None) -> QueryFingerprint:
        return fingerprint(scope, kind, params, namespace=self._namespace)

    # ------------------------------------------------------------------
    # Entry operations
    # ------------------------------------------------------------------

    def get(self, fp: QueryFingerprint) -> CacheLookup:
        try:
            raw = self._backend.get(fp.key)
        except CacheError as exc:
            logger.warning("Cache read failed key=%s error=%s", fp.key, exc)
            self._record(hit=False)
            return _MISS

        if raw is None:
            self._record(hit=False)
            return _MISS

        try:
            envelope = json.loads(raw)
            value = envelope["value"]
        except (ValueError, TypeError, KeyError):
            logger.warning("Discarding unreadable cache entry key=%s", fp.key)
            self._record(hit=False)
            return _MISS

        self._record(hit=True)
        return CacheLookup(value=value, hit=True)

    def set(self, fp: QueryFingerprint, value: Any, ttl_seconds: int | None = None) -> bool:
        envelope = {"created_at": datetime.now(timezone.utc).isoformat(), "value": value}
        try:
            payload = json.dumps(envelope, default=str, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            logger.warning("Cache value not serializable key=%s error=%s", fp.key, exc)
            return False
        try:
            self._backend.set(fp.key, payload, ttl_seconds or self._default_ttl_seconds)
        except CacheError as exc:
            logger.warning("Cache write failed key=%s error=%s", fp.key, exc)
            return False
        return True

    def invalidate_scope(self, scope: str) -> int:
        """
        Drop every entry under `scope`. Returns the number of keys removed,
        0 when the backend is unavailable.
        """

        prefix = scope_prefix(scope, namespace=self._namespace)
        try:
            removed = self._delete_prefix(prefix)
        except CacheError as exc:
            logger.warning("Cache invalidation failed scope=%s error=%s", scope, exc)
            return 0
        logger.info("Cache scope invalidated scope=%s removed=%s", scope, removed)
        return removed

    def clear_all(self) -> int:
        try:
            removed = self._delete_prefix(f"{self._namespace}:")
        except CacheError as exc:
            logger.warning("Cache clear failed namespace=%s error=%s", self._namespace, exc)
            return 0
        logger.info("Cache cleared namespace=%s removed=%s", self._namespace, removed)
        return removed

    def _delete_prefix(self, prefix: str) -> int:
        if isinstance(self._backend, PrefixDeletingCache):
            return self._backend.delete_prefix(prefix)
        doomed = [key for key in self._backend.scan("*") if key.startswith(prefix)]
        if not doomed:
            return 0
        return self._backend.delete(*doomed)

    # ------------------------------------------------------------------
    # Counters
    # ------------------------------------------------------------------

    def _record(self, *, hit: bool) -> None:
        with self._counter_lock:
            if hit:
                self._hits += 1
            else:
                self._misses += 1

    def stats(self) -> PerformanceCounters:
        with self._counter_lock:
            return PerformanceCounters(hits=self._hits, misses=self._misses, last_reset=self._last_reset)

    def reset_stats(self) -> PerformanceCounters:
        with self._counter_lock:
            self._hits = 0
            self._misses = 0
            self._last_reset = datetime.now(timezone.utc)
            return PerformanceCounters(hits=0, misses=0, last_reset=self._last_reset)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def warm_common_queries(
        self,
        shapes: Iterable[Mapping[str, Any]],
        *,
        scope: str,
        kind: str,
        loader: Callable[[Mapping[str, Any]], Any],
        ttl_seconds: int | None = None,
    ) -> list[WarmResult]:
        """
        Pre-populate entries for `shapes`. `loader` computes each value from
        the store; the cache itself never reads the store.
        """

        results: list[WarmResult] = []
        for params in shapes:
            try:
                value = loader(params)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Cache warm load failed params=%s error=%s", dict(params), exc)
                results.append(WarmResult(params=dict(params), success=False, error=str(exc)))
                continue
            stored = self.set(self.fingerprint(scope, kind, params), value, ttl_seconds)
            results.append(
                WarmResult(
                    params=dict(params),
                    success=stored,
                    error=None if stored else "cache backend unavailable",
                )
            )
        return results

    def health_metrics(self) -> CacheHealthMetrics:
        hit_ratio = self.stats().ratio
        total_keys = 0
        size_bytes = 0
        oldest: CacheEntryInfo | None = None
        newest: CacheEntryInfo | None = None
        try:
            for key in list(self._backend.scan(f"{self._namespace}:*")):
                raw = self._backend.get(key)
                if raw is None:
                    continue
                total_keys += 1
                size_bytes += len(key.encode("utf-8")) + len(raw.encode("utf-8"))
                created_at = _created_at(raw)
                if created_at is None:
                    continue
                info = CacheEntryInfo(key=key, created_at=created_at, ttl_seconds=self._backend.ttl(key))
                if oldest is None or created_at < oldest.created_at:
                    oldest = info
                if newest is None or created_at > newest.created_at:
                    newest = info
        except CacheError as exc:
            logger.warning("Cache health probe failed error=%s", exc)
            return CacheHealthMetrics(
                total_keys=0,
                approximate_size_bytes=0,
                hit_ratio=hit_ratio,
                oldest_entry=None,
                newest_entry=None,
                backend_available=False,
            )

        return CacheHealthMetrics(
            total_keys=total_keys,
            approximate_size_bytes=size_bytes,
            hit_ratio=hit_ratio,
            oldest_entry=oldest,
            newest_entry=newest,
        )


def _created_at(raw: str) -> datetime | None:
    try:
        return datetime.fromisoformat(json.loads(raw)["created_at"])
    except (ValueError, TypeError, KeyError):
        return None


@lru_cache(maxsize=1)
def get_query_cache() -> QueryCache:
    settings = get_cache_settings()
    return QueryCache(
        build_backend(settings),
        namespace=settings.namespace,
        default_ttl_seconds=settings.ttl_list_seconds,
    )
