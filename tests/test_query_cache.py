"""
tests/test_query_cache.py

Pytest unit tests for QueryCache over the in-memory backend.

Coverage
--------
- Hit / miss lookups and counters
- TTL expiry
- Scope invalidation (prefix-capable and enumerate-only backends)
- Fail-open behaviour with an unreachable backend
- Warm-up results and health metrics
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from app.cache.backends import InMemoryKeyValueCache, PrefixDeletingCache
from app.cache.query_cache import QueryCache
from app.domain.errors import CacheError
from app.domain.query_cache import CacheKind, CacheScope


class UnreachableBackend:
    """Backend whose every call fails the way a down Redis does."""

    def get(self, key: str) -> str | None:
        raise CacheError("connection refused")

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise CacheError("connection refused")

    def delete(self, *keys: str) -> int:
        raise CacheError("connection refused")

    def scan(self, pattern: str = "*") -> Iterator[str]:
        raise CacheError("connection refused")

    def ttl(self, key: str) -> int | None:
        raise CacheError("connection refused")


class EnumerateOnlyBackend:
    """Wraps the in-memory backend but hides its prefix deletion."""

    def __init__(self, inner: InMemoryKeyValueCache) -> None:
        self._inner = inner
        self.deleted: list[str] = []

    def get(self, key: str) -> str | None:
        return self._inner.get(key)

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self._inner.set(key, value, ttl_seconds)

    def delete(self, *keys: str) -> int:
        self.deleted.extend(keys)
        return self._inner.delete(*keys)

    def scan(self, pattern: str = "*") -> Iterator[str]:
        return self._inner.scan(pattern)

    def ttl(self, key: str) -> int | None:
        return self._inner.ttl(key)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_miss_then_hit(self, cache: QueryCache) -> None:
        fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1})
        assert cache.get(fp).hit is False

        assert cache.set(fp, {"items": [1, 2]}) is True
        lookup = cache.get(fp)
        assert lookup.hit is True
        assert lookup.value == {"items": [1, 2]}

    def test_counters_track_hits_and_misses(self, cache: QueryCache) -> None:
        fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.DETAIL, {"id": 1})
        cache.get(fp)
        cache.set(fp, {"id": 1})
        cache.get(fp)
        cache.get(fp)

        counters = cache.stats()
        assert counters.hits == 2
        assert counters.misses == 1
        assert counters.ratio == pytest.approx(2 / 3)

    def test_reset_stats_zeroes_counters(self, cache: QueryCache) -> None:
        fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.DETAIL, {"id": 1})
        cache.get(fp)
        before = cache.stats().last_reset

        counters = cache.reset_stats()
        assert (counters.hits, counters.misses) == (0, 0)
        assert counters.last_reset >= before
        assert cache.stats().total == 0

    def test_entry_expires_after_ttl(self, cache: QueryCache, clock) -> None:
        fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.STATS, {"stat": "categories"})
        cache.set(fp, {"items": []}, ttl_seconds=30)

        clock.advance(29)
        assert cache.get(fp).hit is True
        clock.advance(2)
        assert cache.get(fp).hit is False

    def test_unreadable_entry_is_a_miss(self, cache: QueryCache, memory_backend) -> None:
        fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 3})
        memory_backend.set(fp.key, "not json", 60)
        assert cache.get(fp).hit is False


# ---------------------------------------------------------------------------
# Invalidation
# ---------------------------------------------------------------------------


class TestInvalidation:
    def test_invalidate_scope_removes_only_that_scope(self, cache: QueryCache, memory_backend) -> None:
        list_fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1})
        detail_fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.DETAIL, {"id": 1})
        other_fp = cache.fingerprint("suppliers", CacheKind.LIST, {"page": 1})
        for fp in (list_fp, detail_fp, other_fp):
            cache.set(fp, {"v": fp.kind})

        removed = cache.invalidate_scope(CacheScope.CONTRACTS)

        assert removed == 2
        assert cache.get(list_fp).hit is False
        assert cache.get(detail_fp).hit is False
        assert cache.get(other_fp).hit is True

    def test_fallback_enumerates_when_prefix_delete_missing(self, memory_backend) -> None:
        backend = EnumerateOnlyBackend(memory_backend)
        assert not isinstance(backend, PrefixDeletingCache)
        cache = QueryCache(backend, namespace="test")
        keep = QueryCache(memory_backend, namespace="other")

        fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1})
        foreign = keep.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1})
        cache.set(fp, {"items": []})
        keep.set(foreign, {"items": []})

        assert cache.invalidate_scope(CacheScope.CONTRACTS) == 1
        assert backend.deleted == [fp.key]
        assert keep.get(foreign).hit is True

    def test_clear_all_keeps_other_namespaces(self, cache: QueryCache, memory_backend) -> None:
        other = QueryCache(memory_backend, namespace="other")
        cache.set(cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1}), 1)
        cache.set(cache.fingerprint("misc", CacheKind.STATS, None), 2)
        other_fp = other.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1})
        other.set(other_fp, 3)

        assert cache.clear_all() == 2
        assert other.get(other_fp).hit is True


# ---------------------------------------------------------------------------
# Fail-open
# ---------------------------------------------------------------------------


class TestFailOpen:
    @pytest.fixture()
    def down(self) -> QueryCache:
        return QueryCache(UnreachableBackend(), namespace="test")

    def test_get_is_a_miss(self, down: QueryCache) -> None:
        lookup = down.get(down.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1}))
        assert lookup.hit is False
        assert lookup.value is None
        assert down.stats().misses == 1

    def test_set_reports_failure_without_raising(self, down: QueryCache) -> None:
        assert down.set(down.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {}), {"a": 1}) is False

    def test_invalidate_returns_zero(self, down: QueryCache) -> None:
        assert down.invalidate_scope(CacheScope.CONTRACTS) == 0
        assert down.clear_all() == 0

    def test_health_reports_backend_unavailable(self, down: QueryCache) -> None:
        metrics = down.health_metrics()
        assert metrics.backend_available is False
        assert metrics.total_keys == 0


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


class TestMaintenance:
    def test_warm_populates_entries(self, cache: QueryCache) -> None:
        shapes = [{"query": "most", "page": 1}, {"query": "silnice", "page": 1}]
        results = cache.warm_common_queries(
            shapes,
            scope=CacheScope.CONTRACTS,
            kind=CacheKind.LIST,
            loader=lambda params: {"items": [params["query"]]},
        )

        assert [result.success for result in results] == [True, True]
        lookup = cache.get(cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, shapes[1]))
        assert lookup.value == {"items": ["silnice"]}

    def test_warm_reports_loader_errors(self, cache: QueryCache) -> None:
        def loader(params):
            raise RuntimeError("store offline")

        results = cache.warm_common_queries(
            [{"page": 1}],
            scope=CacheScope.CONTRACTS,
            kind=CacheKind.LIST,
            loader=loader,
        )
        assert results[0].success is False
        assert "store offline" in (results[0].error or "")

    def test_health_metrics_counts_entries(self, cache: QueryCache) -> None:
        cache.set(cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1}), {"items": []})
        cache.set(cache.fingerprint(CacheScope.CONTRACTS, CacheKind.DETAIL, {"id": 2}), {"id": 2})

        metrics = cache.health_metrics()
        assert metrics.backend_available is True
        assert metrics.total_keys == 2
        assert metrics.approximate_size_bytes > 0
        assert metrics.oldest_entry is not None
        assert metrics.newest_entry is not None
        assert metrics.oldest_entry.created_at <= metrics.newest_entry.created_at
