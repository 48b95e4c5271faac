"""
app/services/reconciler.py

Reconciles extracted dump records against the contract store.

Each record is processed in its own transaction, so one bad record never
rolls back its neighbours. The `contracts` cache scope is invalidated once,
after the last record, when anything was written.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

from app.cache.query_cache import QueryCache
from app.domain.errors import ConflictError, ParseError, RecordError, StoreError, ValidationError
from app.domain.query_cache import CacheScope
from app.domain.registry import (
    NormalizedContract,
    RawRecord,
    ReconcileOutcome,
    RecordConflict,
    RecordFailure,
    RecordType,
)
from app.repositories.contract_store import ContractStore
from app.services.normalization import collapse_whitespace, normalize_amendment, normalize_contract
from db.models.contract import Contract

logger = logging.getLogger(__name__)


@dataclass
class _RecordDelta:
    """Counters for one record, applied only after its transaction commits."""

    inserted: int = 0
    skipped_duplicates: int = 0
    amendments_inserted: int = 0
    suppliers_inserted: int = 0
    conflict: RecordConflict | None = None

    def apply(self, outcome: ReconcileOutcome) -> None:
        outcome.inserted += self.inserted
        outcome.skipped_duplicates += self.skipped_duplicates
        outcome.amendments_inserted += self.amendments_inserted
        outcome.suppliers_inserted += self.suppliers_inserted
        if self.conflict is not None:
            outcome.conflicts.append(self.conflict)


class Reconciler:
    def __init__(self, store: ContractStore, cache: QueryCache) -> None:
        self._store = store
        self._cache = cache

    def reconcile(
        self,
        records: Iterable[RawRecord],
        cancel_event: threading.Event | None = None,
    ) -> ReconcileOutcome:
        """
        Insert new contracts, suppliers and amendments from `records`.

        Existing contracts are skipped, never updated. Per-record errors are
        collected in the outcome; only exceptions from the record source
        itself (e.g. DumpFormatError) propagate.
        """

        outcome = ReconcileOutcome()
        try:
            for record in records:
                if cancel_event is not None and cancel_event.is_set():
                    outcome.cancelled = True
                    logger.info("Reconcile cancelled after records=%s", outcome.records_seen)
                    break
                outcome.records_seen += 1
                self._reconcile_record(record, outcome)
        finally:
            if outcome.writes > 0:
                self._cache.invalidate_scope(CacheScope.CONTRACTS)
                outcome.cache_invalidated = True

        logger.info(
            "Reconcile finished records=%s inserted=%s skipped=%s amendments=%s failed=%s conflicts=%s",
            outcome.records_seen,
            outcome.inserted,
            outcome.skipped_duplicates,
            outcome.amendments_inserted,
            outcome.failed,
            len(outcome.conflicts),
        )
        return outcome

    def _reconcile_record(self, record: RawRecord, outcome: ReconcileOutcome) -> None:
        try:
            if record.parse_error:
                raise ParseError(record.parse_error, external_id=record.external_id)
            if record.record_type == RecordType.AMENDMENT:
                delta = self._reconcile_amendment(record)
            else:
                delta = self._reconcile_contract(record)
        except RecordError as exc:
            failure = RecordFailure(
                index=record.index,
                kind=exc.kind,
                message=exc.message,
                external_id=exc.external_id or record.external_id,
            )
            outcome.failures.append(failure)
            logger.warning(
                "Record rejected index=%s kind=%s external_id=%s message=%s",
                failure.index,
                failure.kind,
                failure.external_id,
                failure.message,
            )
            return
        delta.apply(outcome)

    def _reconcile_contract(self, record: RawRecord) -> _RecordDelta:
        contract = normalize_contract(record)
        delta = _RecordDelta()
        with self._store.transaction():
            existing = self._find_existing(contract)
            if existing is None:
                delta.conflict = self._register_supplier(record.index, contract, delta)
                contract_id = self._store.create_contract(contract).id
                delta.inserted = 1
            else:
                contract_id = existing.id
                delta.skipped_duplicates = 1

            for amendment in contract.amendments:
                if self._store.amendment_exists(contract_id, amendment):
                    continue
                self._store.create_amendment(contract_id, amendment)
                delta.amendments_inserted += 1
        return delta

    def _reconcile_amendment(self, record: RawRecord) -> _RecordDelta:
        parent_id = collapse_whitespace(record.parent_external_id)
        if not parent_id:
            raise ValidationError("Amendment without parent contract id.", external_id=record.external_id)
        if not record.amendments:
            raise ValidationError("Amendment without amount or date.", external_id=record.external_id)
        try:
            amendment = normalize_amendment(record.amendments[0])
        except ValidationError as exc:
            raise ValidationError(exc.message, external_id=record.external_id) from exc

        delta = _RecordDelta()
        with self._store.transaction():
            parent = self._store.find_contract_by_external_id(parent_id)
            if parent is None:
                raise StoreError(
                    f"Orphan amendment: contract {parent_id} does not exist.",
                    external_id=record.external_id or parent_id,
                )
            if self._store.amendment_exists(parent.id, amendment):
                delta.skipped_duplicates = 1
            else:
                self._store.create_amendment(parent.id, amendment)
                delta.amendments_inserted = 1
        return delta

    def _find_existing(self, contract: NormalizedContract) -> Contract | None:
        if contract.external_id:
            return self._store.find_contract_by_external_id(contract.external_id)
        title, amount, contract_date, supplier_name, authority_name = contract.natural_key
        return self._store.find_contract_by_natural_key(
            title=title,
            amount=amount,
            contract_date=contract_date,
            supplier_name=supplier_name,
            authority_name=authority_name,
        )

    def _register_supplier(
        self,
        index: int,
        contract: NormalizedContract,
        delta: _RecordDelta,
    ) -> RecordConflict | None:
        """
        Create the supplier when unknown. Identity clashes are returned as a
        conflict and never merged; the stored supplier is left untouched.
        """

        name = contract.supplier_name
        tax_id = contract.supplier_tax_id
        if not name:
            return None

        if tax_id:
            by_tax_id = self._store.find_supplier_by_tax_id(tax_id)
            if by_tax_id is not None:
                if by_tax_id.name == name:
                    return None
                return self._conflict(
                    index,
                    ConflictError(f"Tax id {tax_id} is registered to {by_tax_id.name!r}, not {name!r}."),
                    supplier_name=name,
                    tax_id=tax_id,
                    existing_name=by_tax_id.name,
                )

        by_name = self._store.find_supplier_by_name(name)
        if by_name is None:
            self._store.create_supplier(name=name, tax_id=tax_id)
            delta.suppliers_inserted = 1
            return None
        if tax_id and by_name.tax_id and by_name.tax_id != tax_id:
            return self._conflict(
                index,
                ConflictError(f"Supplier {name!r} is registered with tax id {by_name.tax_id}, not {tax_id}."),
                supplier_name=name,
                tax_id=tax_id,
                existing_name=by_name.name,
            )
        return None

    @staticmethod
    def _conflict(
        index: int,
        error: ConflictError,
        *,
        supplier_name: str,
        tax_id: str | None,
        existing_name: str | None,
    ) -> RecordConflict:
        logger.warning("Supplier conflict index=%s %s", index, error.message)
        return RecordConflict(
            index=index,
            message=error.message,
            supplier_name=supplier_name,
            tax_id=tax_id,
            existing_name=existing_name,
        )
