"""
Schemas for sync trigger and run history endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SyncPeriodRequest(BaseModel):
    year: int = Field(ge=2016, le=2100)
    month: int = Field(ge=1, le=12)


class SyncRunRequest(BaseModel):
    periods: list[SyncPeriodRequest] = Field(default_factory=list)

    @field_validator("periods")
    @classmethod
    def _unique_periods(cls, periods: list[SyncPeriodRequest]) -> list[SyncPeriodRequest]:
        seen: set[tuple[int, int]] = set()
        unique: list[SyncPeriodRequest] = []
        for period in periods:
            key = (period.year, period.month)
            if key not in seen:
                seen.add(key)
                unique.append(period)
        return unique


class SyncFailureResponse(BaseModel):
    index: int
    kind: str
    message: str
    external_id: str | None = None


class SyncConflictResponse(BaseModel):
    index: int
    message: str
    supplier_name: str
    tax_id: str | None = None
    existing_name: str | None = None


class SyncReportResponse(BaseModel):
    run_id: int | None = None
    status: str
    periods: list[str] = Field(default_factory=list)
    records_seen: int = 0
    inserted: int = 0
    skipped_duplicates: int = 0
    amendments_inserted: int = 0
    suppliers_inserted: int = 0
    failed: int = 0
    failures: list[SyncFailureResponse] = Field(default_factory=list)
    conflicts: list[SyncConflictResponse] = Field(default_factory=list)
    error: str | None = None
    cancelled: bool = False
    started_at: datetime | None = None
    finished_at: datetime | None = None
    duration_seconds: float = 0.0


class SyncRunResponse(BaseModel):
    run_id: int
    trigger: str
    status: str
    periods: list[str] | None = None
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    report_payload: dict[str, Any] | None = None
    error_message: str | None = None


class SyncRunListResponse(BaseModel):
    state: str
    running: bool
    runs: list[SyncRunResponse] = Field(default_factory=list)
