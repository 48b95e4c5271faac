"""
tests/test_contract_query_service.py

Pytest tests for the cached read path: read-through population, TTL choice
and visibility of sync writes after invalidation.
"""

from __future__ import annotations

import pytest

from app.cache.query_cache import QueryCache
from app.config import CacheSettings
from app.domain.registry import RawAmendment, RawRecord
from app.repositories.contract_query_repository import ContractFilters
from app.services.contract_query_service import DEFAULT_WARM_QUERIES, ContractQueryService
from app.services.reconciler import Reconciler


def _record(index: int, **overrides) -> RawRecord:
    values = {
        "index": index,
        "external_id": f"q-{index}",
        "title": f"Rekonstrukce mostu {index}",
        "amount_raw": f"{index * 100}",
        "date_raw": f"2024-01-{index:02d}",
        "category": "verejne-zakazky",
        "supplier_name": "Mosty a.s." if index % 2 else "Silnice s.r.o.",
        "supplier_tax_id": "11111111" if index % 2 else "22222222",
        "authority_name": "Kraj Vysočina",
    }
    values.update(overrides)
    return RawRecord(**values)


@pytest.fixture()
def settings() -> CacheSettings:
    return CacheSettings(backend="memory", ttl_list_seconds=100, ttl_search_seconds=10)


@pytest.fixture()
def service(cache: QueryCache, settings: CacheSettings, session_factory) -> ContractQueryService:
    return ContractQueryService(cache=cache, settings=settings, session_factory=session_factory)


@pytest.fixture()
def seeded(store, cache: QueryCache) -> None:
    Reconciler(store, cache).reconcile([_record(i) for i in range(1, 6)])
    cache.reset_stats()


class TestListContracts:
    def test_miss_then_hit(self, seeded, service: ContractQueryService, cache: QueryCache) -> None:
        filters = ContractFilters(page=1, limit=2)

        first = service.list_contracts(filters)
        second = service.list_contracts(filters)

        assert first == second
        assert first["total"] == 5
        assert [item["external_id"] for item in first["items"]] == ["q-5", "q-4"]
        assert cache.stats().hits == 1
        assert cache.stats().misses == 1

    def test_filters_apply(self, seeded, service: ContractQueryService) -> None:
        result = service.list_contracts(ContractFilters(supplier="mosty", limit=10))
        assert result["total"] == 3
        assert {item["supplier_name"] for item in result["items"]} == {"Mosty a.s."}

    def test_search_uses_search_ttl(self, seeded, service: ContractQueryService, cache: QueryCache, clock) -> None:
        filters = ContractFilters(query="mostu", limit=10)
        service.list_contracts(filters)

        clock.advance(11)
        service.list_contracts(filters)

        assert cache.stats().hits == 0

    def test_sync_write_becomes_visible(self, seeded, service: ContractQueryService, store, cache: QueryCache) -> None:
        filters = ContractFilters(limit=10)
        assert service.list_contracts(filters)["total"] == 5

        Reconciler(store, cache).reconcile([_record(6)])

        assert service.list_contracts(filters)["total"] == 6


class TestDetailAndStats:
    def test_detail_includes_amendments(self, store, cache: QueryCache, service: ContractQueryService) -> None:
        Reconciler(store, cache).reconcile([_record(1, amendments=(RawAmendment("50", "2024-02-01"),))])
        contract = store.find_contract_by_external_id("q-1")

        detail = service.get_contract(contract.id)

        assert detail["title"] == "Rekonstrukce mostu 1"
        assert detail["amount"] == "100.00"
        assert detail["amendments"][0]["amount"] == "50.00"

    def test_missing_detail_is_none_and_not_cached(self, service: ContractQueryService, memory_backend) -> None:
        assert service.get_contract(999) is None
        assert list(memory_backend.scan("*")) == []

    def test_top_suppliers_ranked_by_total(self, seeded, service: ContractQueryService) -> None:
        result = service.top_suppliers(limit=5)
        assert [item["name"] for item in result["items"]] == ["Mosty a.s.", "Silnice s.r.o."]
        assert result["items"][0]["contracts"] == 3
        assert result["items"][0]["total_amount"] == "900.00"

    def test_category_stats(self, seeded, service: ContractQueryService) -> None:
        (row,) = service.category_stats()["items"]
        assert row["category"] == "verejne-zakazky"
        assert row["contracts"] == 5
        assert row["average_amount"] == "300.00"


class TestWarm:
    def test_default_shapes_are_warmed(self, seeded, service: ContractQueryService, cache: QueryCache) -> None:
        results = service.warm()

        assert len(results) == len(DEFAULT_WARM_QUERIES)
        assert all(result.success for result in results)

        service.list_contracts(ContractFilters(query="rekonstrukce", category="dotace", page=1, limit=10))
        assert cache.stats().hits == 1
