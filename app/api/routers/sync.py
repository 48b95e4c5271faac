"""
Registry sync trigger and run history endpoints.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from app.domain.errors import SyncAlreadyRunningError
from app.domain.registry import Period, SyncReport
from app.schemas.sync import (
    SyncConflictResponse,
    SyncFailureResponse,
    SyncReportResponse,
    SyncRunListResponse,
    SyncRunRequest,
    SyncRunResponse,
)
from app.services.sync_service import SyncService, SyncTrigger, get_sync_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["sync"])


def _report_response(report: SyncReport, run_id: int | None) -> SyncReportResponse:
    return SyncReportResponse(
        run_id=run_id,
        status=report.status,
        periods=report.periods,
        records_seen=report.records_seen,
        inserted=report.inserted,
        skipped_duplicates=report.skipped_duplicates,
        amendments_inserted=report.amendments_inserted,
        suppliers_inserted=report.suppliers_inserted,
        failed=report.failed,
        failures=[
            SyncFailureResponse(
                index=failure.index,
                kind=failure.kind,
                message=failure.message,
                external_id=failure.external_id,
            )
            for failure in report.failures
        ],
        conflicts=[
            SyncConflictResponse(
                index=conflict.index,
                message=conflict.message,
                supplier_name=conflict.supplier_name,
                tax_id=conflict.tax_id,
                existing_name=conflict.existing_name,
            )
            for conflict in report.conflicts
        ],
        error=report.error,
        cancelled=report.cancelled,
        started_at=report.started_at,
        finished_at=report.finished_at,
        duration_seconds=report.duration_seconds,
    )


@router.post("/sync/run", response_model=SyncReportResponse)
def run_sync(
    payload: SyncRunRequest | None = Body(default=None),
    service: SyncService = Depends(get_sync_service),
) -> SyncReportResponse:
    periods = [Period(year=item.year, month=item.month) for item in payload.periods] if payload else []
    try:
        result = service.run_sync(trigger=SyncTrigger.API, periods=periods or None)
    except SyncAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("Sync run crashed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Sync run failed unexpectedly; see the run history for details.",
        ) from exc

    return _report_response(result.report, result.run_id)


@router.get("/sync/runs", response_model=SyncRunListResponse)
def list_sync_runs(
    limit: int = Query(default=20, ge=1, le=200, description="Max runs returned"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    service: SyncService = Depends(get_sync_service),
) -> SyncRunListResponse:
    runs = service.list_runs(limit=limit, status=status_filter)
    return SyncRunListResponse(
        state=service.runner.state,
        running=service.runner.is_running,
        runs=[
            SyncRunResponse(
                run_id=run.id,
                trigger=run.trigger,
                status=run.status,
                periods=run.periods,
                created_at=run.created_at,
                started_at=run.started_at,
                completed_at=run.completed_at,
                report_payload=run.report_payload,
                error_message=run.error_message,
            )
            for run in runs
        ],
    )
