"""
app/repositories/contract_query_repository.py

Read-side queries behind the contract listing and statistics endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session, selectinload

from db.models.contract import Contract

_UNKNOWN_SUPPLIER_NAMES = ("", "Neuvedeno")


@dataclass(frozen=True)
class ContractFilters:
    query: str | None = None
    supplier: str | None = None
    authority: str | None = None
    category: str | None = None
    min_amount: Decimal | None = None
    max_amount: Decimal | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (max(1, self.page) - 1) * self.limit

    @property
    def is_search(self) -> bool:
        return bool(self.query or self.supplier or self.authority)

    def as_params(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "supplier": self.supplier,
            "authority": self.authority,
            "category": self.category,
            "min_amount": self.min_amount,
            "max_amount": self.max_amount,
            "date_from": self.date_from,
            "date_to": self.date_to,
            "page": self.page,
            "limit": self.limit,
        }


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"))


class ContractQueryRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def list_contracts(self, filters: ContractFilters) -> tuple[list[Contract], int]:
        """
        Return one page of contracts, newest first, and the total match count.
        """

        stmt = self._apply_filters(select(Contract), filters)
        count_stmt = self._apply_filters(select(func.count(Contract.id)), filters)
        total = int(self._session.execute(count_stmt).scalar_one())
        rows = (
            self._session.execute(
                stmt.order_by(Contract.contract_date.desc(), Contract.id.desc())
                .offset(filters.offset)
                .limit(filters.limit)
            )
            .scalars()
            .all()
        )
        return list(rows), total

    def get_contract(self, contract_id: int) -> Contract | None:
        stmt = (
            select(Contract)
            .options(selectinload(Contract.amendments))
            .where(Contract.id == contract_id)
        )
        return self._session.execute(stmt).scalars().first()

    def top_suppliers(self, limit: int = 10) -> list[dict[str, Any]]:
        total_amount = func.sum(Contract.amount)
        stmt = (
            select(
                Contract.supplier_name,
                func.count(Contract.id),
                total_amount,
            )
            .where(
                Contract.supplier_name.not_in(_UNKNOWN_SUPPLIER_NAMES),
                Contract.amount > 0,
            )
            .group_by(Contract.supplier_name)
            .order_by(total_amount.desc(), Contract.supplier_name.asc())
            .limit(max(1, limit))
        )
        return [
            {
                "name": name,
                "contracts": int(count),
                "total_amount": _to_decimal(total),
            }
            for name, count, total in self._session.execute(stmt).all()
        ]

    def category_stats(self) -> list[dict[str, Any]]:
        total_amount = func.sum(Contract.amount)
        stmt = (
            select(
                Contract.category,
                func.count(Contract.id),
                total_amount,
            )
            .group_by(Contract.category)
            .order_by(func.count(Contract.id).desc(), Contract.category.asc())
        )
        stats: list[dict[str, Any]] = []
        for category, count, total in self._session.execute(stmt).all():
            total_value = _to_decimal(total)
            stats.append(
                {
                    "category": category,
                    "contracts": int(count),
                    "total_amount": total_value,
                    "average_amount": (total_value / count).quantize(Decimal("0.01")) if count else Decimal("0.00"),
                }
            )
        return stats

    @staticmethod
    def _apply_filters(stmt: Select, filters: ContractFilters) -> Select:
        if filters.query:
            stmt = stmt.where(Contract.title.ilike(f"%{filters.query.strip()}%"))
        if filters.supplier:
            stmt = stmt.where(Contract.supplier_name.ilike(f"%{filters.supplier.strip()}%"))
        if filters.authority:
            stmt = stmt.where(Contract.authority_name.ilike(f"%{filters.authority.strip()}%"))
        if filters.category:
            stmt = stmt.where(Contract.category == filters.category)
        if filters.min_amount is not None:
            stmt = stmt.where(Contract.amount >= filters.min_amount)
        if filters.max_amount is not None:
            stmt = stmt.where(Contract.amount <= filters.max_amount)
        if filters.date_from is not None:
            stmt = stmt.where(Contract.contract_date >= filters.date_from)
        if filters.date_to is not None:
            stmt = stmt.where(Contract.contract_date <= filters.date_to)
        return stmt
