"""
app/domain/registry.py

Domain models for dump extraction, reconciliation and sync reporting.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any


class RecordType:
    CONTRACT = "contract"
    AMENDMENT = "amendment"


class SyncState:
    IDLE = "idle"
    DOWNLOADING = "downloading"
    EXTRACTING = "extracting"
    RECONCILING = "reconciling"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class Period:
    """
    One monthly dump period.
    """

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Invalid month: {self.month}")

    @property
    def label(self) -> str:
        return f"{self.year}-{self.month:02d}"


@dataclass(frozen=True)
class RawAmendment:
    amount_raw: str | None
    date_raw: str | None


@dataclass(frozen=True)
class RawRecord:
    """
    One record as read from the dump, before type normalisation.

    `index` is the 1-based position of the record in the extracted stream.
    """

    index: int
    record_type: str = RecordType.CONTRACT
    external_id: str | None = None
    title: str | None = None
    amount_raw: str | None = None
    date_raw: str | None = None
    category: str | None = None
    procurement_type: str | None = None
    supplier_name: str = ""
    supplier_tax_id: str | None = None
    authority_name: str = ""
    latitude_raw: str | None = None
    longitude_raw: str | None = None
    party_shape: str | None = None
    supplier_missing: bool = False
    amendments: tuple[RawAmendment, ...] = ()
    parent_external_id: str | None = None
    parse_error: str | None = None


@dataclass(frozen=True)
class NormalizedAmendment:
    amount: Decimal
    amendment_date: date


@dataclass(frozen=True)
class NormalizedContract:
    """
    Typed contract values ready for the store.
    """

    external_id: str | None
    title: str
    amount: Decimal
    category: str
    contract_date: date
    supplier_name: str
    supplier_tax_id: str | None
    authority_name: str
    procurement_type: str
    latitude: float | None = None
    longitude: float | None = None
    amendments: tuple[NormalizedAmendment, ...] = ()

    @property
    def natural_key(self) -> tuple[str, Decimal, date, str, str]:
        return (
            self.title,
            self.amount,
            self.contract_date,
            self.supplier_name,
            self.authority_name,
        )


@dataclass(frozen=True)
class RecordFailure:
    index: int
    kind: str
    message: str
    external_id: str | None = None


@dataclass(frozen=True)
class RecordConflict:
    index: int
    message: str
    supplier_name: str
    tax_id: str | None
    existing_name: str | None = None


@dataclass
class ReconcileOutcome:
    """
    Mutable counters accumulated while reconciling one record stream.
    """

    records_seen: int = 0
    inserted: int = 0
    skipped_duplicates: int = 0
    amendments_inserted: int = 0
    suppliers_inserted: int = 0
    failures: list[RecordFailure] = field(default_factory=list)
    conflicts: list[RecordConflict] = field(default_factory=list)
    cancelled: bool = False
    cache_invalidated: bool = False

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def writes(self) -> int:
        return self.inserted + self.amendments_inserted + self.suppliers_inserted


@dataclass
class SyncReport:
    """
    End-of-run report returned by SyncRunner.run().
    """

    status: str
    periods: list[str] = field(default_factory=list)
    records_seen: int = 0
    inserted: int = 0
    skipped_duplicates: int = 0
    amendments_inserted: int = 0
    suppliers_inserted: int = 0
    failures: list[RecordFailure] = field(default_factory=list)
    conflicts: list[RecordConflict] = field(default_factory=list)
    error: str | None = None
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def duration_seconds(self) -> float:
        if self.started_at is None or self.finished_at is None:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def absorb(self, outcome: ReconcileOutcome) -> None:
        self.records_seen = outcome.records_seen
        self.inserted = outcome.inserted
        self.skipped_duplicates = outcome.skipped_duplicates
        self.amendments_inserted = outcome.amendments_inserted
        self.suppliers_inserted = outcome.suppliers_inserted
        self.failures = list(outcome.failures)
        self.conflicts = list(outcome.conflicts)
        self.cancelled = outcome.cancelled

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["failed"] = self.failed
        payload["duration_seconds"] = self.duration_seconds
        payload["started_at"] = self.started_at.isoformat() if self.started_at else None
        payload["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return payload
