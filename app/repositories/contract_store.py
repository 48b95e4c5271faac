"""
app/repositories/contract_store.py

Store collaborator used by the reconciler.

`ContractStore` is the seam the reconciler depends on; the SQLAlchemy
implementation below is the one wired in production and in tests.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import date
from decimal import Decimal
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import StoreError
from app.domain.registry import NormalizedAmendment, NormalizedContract
from db.models.amendment import Amendment
from db.models.contract import Contract
from db.models.supplier import Supplier
from db.session import SessionLocal


class ContractStore(Protocol):
    def find_contract_by_external_id(self, external_id: str) -> Contract | None:
        ...

    def find_contract_by_natural_key(
        self,
        *,
        title: str,
        amount: Decimal,
        contract_date: date,
        supplier_name: str,
        authority_name: str,
    ) -> Contract | None:
        ...

    def find_supplier_by_tax_id(self, tax_id: str) -> Supplier | None:
        ...

    def find_supplier_by_name(self, name: str) -> Supplier | None:
        ...

    def amendment_exists(self, contract_id: int, amendment: NormalizedAmendment) -> bool:
        ...

    def create_contract(self, contract: NormalizedContract) -> Contract:
        ...

    def create_supplier(self, *, name: str, tax_id: str | None) -> Supplier:
        ...

    def create_amendment(self, contract_id: int, amendment: NormalizedAmendment) -> Amendment:
        ...

    def count_contracts(self) -> int:
        ...

    def count_amendments(self) -> int:
        ...

    def transaction(self) -> AbstractContextManager[None]:
        ...


class SqlAlchemyContractStore:
    """
    ContractStore backed by one SQLAlchemy session.

    Writes are flushed immediately so generated ids are available inside the
    surrounding `transaction()` block.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        return self._session

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Commit on success; roll back on any error.

        SQLAlchemy errors are re-raised as StoreError so the reconciler can
        report them per record.
        """

        try:
            yield
            self._session.commit()
        except SQLAlchemyError as exc:
            self._session.rollback()
            raise StoreError(_short_db_error(exc)) from exc
        except BaseException:
            self._session.rollback()
            raise

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def find_contract_by_external_id(self, external_id: str) -> Contract | None:
        stmt = select(Contract).where(Contract.external_id == external_id)
        return self._session.execute(stmt).scalars().first()

    def find_contract_by_natural_key(
        self,
        *,
        title: str,
        amount: Decimal,
        contract_date: date,
        supplier_name: str,
        authority_name: str,
    ) -> Contract | None:
        stmt = (
            select(Contract)
            .where(
                Contract.title == title,
                Contract.amount == amount,
                Contract.contract_date == contract_date,
                Contract.supplier_name == supplier_name,
                Contract.authority_name == authority_name,
            )
            .order_by(Contract.id.asc())
        )
        return self._session.execute(stmt).scalars().first()

    def find_supplier_by_tax_id(self, tax_id: str) -> Supplier | None:
        stmt = select(Supplier).where(Supplier.tax_id == tax_id)
        return self._session.execute(stmt).scalars().first()

    def find_supplier_by_name(self, name: str) -> Supplier | None:
        stmt = select(Supplier).where(Supplier.name == name)
        return self._session.execute(stmt).scalars().first()

    def amendment_exists(self, contract_id: int, amendment: NormalizedAmendment) -> bool:
        stmt = select(Amendment.id).where(
            Amendment.contract_id == contract_id,
            Amendment.amount == amendment.amount,
            Amendment.amendment_date == amendment.amendment_date,
        )
        return self._session.execute(stmt.limit(1)).first() is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_contract(self, contract: NormalizedContract) -> Contract:
        row = Contract(
            external_id=contract.external_id,
            title=contract.title,
            amount=contract.amount,
            category=contract.category,
            contract_date=contract.contract_date,
            supplier_name=contract.supplier_name,
            authority_name=contract.authority_name,
            procurement_type=contract.procurement_type,
            latitude=contract.latitude,
            longitude=contract.longitude,
        )
        self._session.add(row)
        self._session.flush()
        return row

    def create_supplier(self, *, name: str, tax_id: str | None) -> Supplier:
        row = Supplier(name=name, tax_id=tax_id)
        self._session.add(row)
        self._session.flush()
        return row

    def create_amendment(self, contract_id: int, amendment: NormalizedAmendment) -> Amendment:
        if self._session.get(Contract, contract_id) is None:
            raise StoreError(f"Contract {contract_id} does not exist.")
        row = Amendment(
            contract_id=contract_id,
            amount=amendment.amount,
            amendment_date=amendment.amendment_date,
        )
        self._session.add(row)
        self._session.flush()
        return row

    # ------------------------------------------------------------------
    # Counts
    # ------------------------------------------------------------------

    def count_contracts(self) -> int:
        return int(self._session.execute(select(func.count(Contract.id))).scalar_one())

    def count_amendments(self) -> int:
        return int(self._session.execute(select(func.count(Amendment.id))).scalar_one())

    def count_suppliers(self) -> int:
        return int(self._session.execute(select(func.count(Supplier.id))).scalar_one())


def _short_db_error(exc: SQLAlchemyError) -> str:
    message = str(getattr(exc, "orig", None) or exc)
    return message.splitlines()[0] if message else exc.__class__.__name__


@contextmanager
def open_contract_store(
    session_factory: Callable[[], Session] | None = None,
) -> Iterator[SqlAlchemyContractStore]:
    """Yield a store bound to a fresh session and close it on exit."""
    session = (session_factory or SessionLocal)()
    try:
        yield SqlAlchemyContractStore(session)
    finally:
        session.close()
