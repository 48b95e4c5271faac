"""
Repository for sync run lifecycle persistence and history lookup.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from db.models.sync_run import SyncRun, SyncRunStatus


class SyncRunRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_run(self, *, trigger: str, periods: list[str] | None = None) -> SyncRun:
        run = SyncRun(
            trigger=trigger,
            status=SyncRunStatus.RUNNING,
            periods=periods,
            started_at=datetime.now(timezone.utc),
        )
        self._session.add(run)
        self._session.flush()
        self._session.refresh(run)
        return run

    def get_run(self, run_id: int) -> SyncRun | None:
        return self._session.get(SyncRun, run_id)

    def list_runs(self, *, limit: int = 20, status: str | None = None) -> list[SyncRun]:
        stmt: Select[tuple[SyncRun]] = select(SyncRun)
        if status:
            stmt = stmt.where(SyncRun.status == status)
        stmt = stmt.order_by(SyncRun.id.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())

    def mark_finished(
        self,
        *,
        run_id: int,
        status: str,
        report_payload: dict[str, Any] | None = None,
        error_message: str | None = None,
    ) -> SyncRun | None:
        run = self.get_run(run_id)
        if run is None:
            return None
        run.status = status
        run.completed_at = datetime.now(timezone.utc)
        run.report_payload = report_payload
        run.error_message = error_message
        if report_payload and report_payload.get("periods"):
            run.periods = list(report_payload["periods"])
        return run
