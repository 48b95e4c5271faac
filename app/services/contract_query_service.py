"""
app/services/contract_query_service.py

Read-through cached contract queries.

On a miss the store is queried and the JSON-ready result is written back;
the cache never talks to the store itself.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date
from decimal import Decimal
from functools import lru_cache
from typing import Any

from sqlalchemy.orm import Session, sessionmaker

from app.cache.query_cache import QueryCache, get_query_cache
from app.config import CacheSettings, get_cache_settings
from app.domain.query_cache import CacheKind, CacheScope, WarmResult
from app.repositories.contract_query_repository import ContractFilters, ContractQueryRepository
from db.models.contract import Contract

logger = logging.getLogger(__name__)

COMMON_SEARCH_TERMS = ("rekonstrukce", "stavba", "oprava", "dodávka", "služby")
COMMON_CATEGORIES = ("verejne-zakazky", "dotace")

DEFAULT_WARM_QUERIES: tuple[dict[str, Any], ...] = tuple(
    {"query": term, "category": category, "page": 1, "limit": 10}
    for term in COMMON_SEARCH_TERMS
    for category in COMMON_CATEGORIES
)


def _money(value: Decimal | None) -> str:
    return format(Decimal(value or 0).quantize(Decimal("0.01")), "f")


def serialize_contract(contract: Contract, *, include_amendments: bool = False) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": contract.id,
        "external_id": contract.external_id,
        "title": contract.title,
        "amount": _money(contract.amount),
        "category": contract.category,
        "contract_date": contract.contract_date.isoformat(),
        "supplier_name": contract.supplier_name,
        "authority_name": contract.authority_name,
        "procurement_type": contract.procurement_type,
        "latitude": contract.latitude,
        "longitude": contract.longitude,
    }
    if include_amendments:
        payload["amendments"] = [
            {
                "id": amendment.id,
                "amount": _money(amendment.amount),
                "amendment_date": amendment.amendment_date.isoformat(),
            }
            for amendment in contract.amendments
        ]
    return payload


def filters_from_params(params: Mapping[str, Any]) -> ContractFilters:
    def _decimal(value: Any) -> Decimal | None:
        return None if value in (None, "") else Decimal(str(value))

    def _date(value: Any) -> date | None:
        if value in (None, ""):
            return None
        return value if isinstance(value, date) else date.fromisoformat(str(value))

    return ContractFilters(
        query=params.get("query") or None,
        supplier=params.get("supplier") or None,
        authority=params.get("authority") or None,
        category=params.get("category") or None,
        min_amount=_decimal(params.get("min_amount")),
        max_amount=_decimal(params.get("max_amount")),
        date_from=_date(params.get("date_from")),
        date_to=_date(params.get("date_to")),
        page=max(1, int(params.get("page") or 1)),
        limit=min(100, max(1, int(params.get("limit") or 10))),
    )


class ContractQueryService:
    def __init__(
        self,
        *,
        cache: QueryCache,
        settings: CacheSettings,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            session_factory = get_session_factory()
        self._cache = cache
        self._settings = settings
        self._session_factory = session_factory

    def list_contracts(self, filters: ContractFilters) -> dict[str, Any]:
        ttl = self._settings.ttl_search_seconds if filters.is_search else self._settings.ttl_list_seconds
        return self._cached(CacheKind.LIST, filters.as_params(), ttl, lambda db: self._load_list(db, filters))

    def get_contract(self, contract_id: int) -> dict[str, Any] | None:
        return self._cached(
            CacheKind.DETAIL,
            {"id": contract_id},
            self._settings.ttl_detail_seconds,
            lambda db: self._load_detail(db, contract_id),
        )

    def top_suppliers(self, limit: int = 10) -> dict[str, Any]:
        return self._cached(
            CacheKind.STATS,
            {"stat": "top_suppliers", "limit": limit},
            self._settings.ttl_stats_seconds,
            lambda db: {
                "items": [
                    {**row, "total_amount": _money(row["total_amount"])}
                    for row in ContractQueryRepository(db).top_suppliers(limit)
                ]
            },
        )

    def category_stats(self) -> dict[str, Any]:
        return self._cached(
            CacheKind.STATS,
            {"stat": "categories"},
            self._settings.ttl_stats_seconds,
            lambda db: {
                "items": [
                    {
                        **row,
                        "total_amount": _money(row["total_amount"]),
                        "average_amount": _money(row["average_amount"]),
                    }
                    for row in ContractQueryRepository(db).category_stats()
                ]
            },
        )

    def warm(self, shapes: list[Mapping[str, Any]] | None = None) -> list[WarmResult]:
        """
        Pre-load list queries, by default the common search shapes.
        """

        selected = list(shapes) if shapes else list(DEFAULT_WARM_QUERIES)

        def _load(params: Mapping[str, Any]) -> dict[str, Any]:
            filters = filters_from_params(params)
            with self._session_factory() as db:
                return self._load_list(db, filters)

        results: list[WarmResult] = []
        for params in selected:
            filters = filters_from_params(params)
            ttl = self._settings.ttl_search_seconds if filters.is_search else self._settings.ttl_list_seconds
            results.extend(
                self._cache.warm_common_queries(
                    [filters.as_params()],
                    scope=CacheScope.CONTRACTS,
                    kind=CacheKind.LIST,
                    loader=_load,
                    ttl_seconds=ttl,
                )
            )
        logger.info(
            "Cache warm finished shapes=%s succeeded=%s",
            len(results),
            sum(1 for result in results if result.success),
        )
        return results

    def _cached(
        self,
        kind: str,
        params: dict[str, Any],
        ttl_seconds: int,
        loader: Callable[[Session], Any],
    ) -> Any:
        fp = self._cache.fingerprint(CacheScope.CONTRACTS, kind, params)
        lookup = self._cache.get(fp)
        if lookup.hit:
            return lookup.value

        with self._session_factory() as db:
            value = loader(db)
        if value is not None:
            self._cache.set(fp, value, ttl_seconds)
        return value

    @staticmethod
    def _load_list(db: Session, filters: ContractFilters) -> dict[str, Any]:
        rows, total = ContractQueryRepository(db).list_contracts(filters)
        return {
            "items": [serialize_contract(row) for row in rows],
            "total": total,
            "page": filters.page,
            "limit": filters.limit,
        }

    @staticmethod
    def _load_detail(db: Session, contract_id: int) -> dict[str, Any] | None:
        contract = ContractQueryRepository(db).get_contract(contract_id)
        if contract is None:
            return None
        return serialize_contract(contract, include_amendments=True)


@lru_cache(maxsize=1)
def get_contract_query_service() -> ContractQueryService:
    return ContractQueryService(cache=get_query_cache(), settings=get_cache_settings())
