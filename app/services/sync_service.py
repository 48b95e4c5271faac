"""
app/services/sync_service.py

Sync triggers shared by the scheduler and the admin API.

Each trigger is recorded in `sync_runs` so past reports stay inspectable.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from functools import lru_cache

from sqlalchemy.orm import Session, sessionmaker

from app.domain.errors import SyncAlreadyRunningError
from app.domain.registry import Period, SyncReport, SyncState
from app.services.sync_runner import SyncRunner, get_sync_runner
from db.models.sync_run import SyncRun, SyncRunStatus
from db.repositories.sync_run_repository import SyncRunRepository

logger = logging.getLogger(__name__)


class SyncTrigger:
    SCHEDULE = "schedule"
    API = "api"


@dataclass(frozen=True)
class SyncRunResult:
    run_id: int
    report: SyncReport


class SyncService:
    def __init__(
        self,
        *,
        runner: SyncRunner,
        session_factory: sessionmaker[Session] | None = None,
    ) -> None:
        if session_factory is None:
            from db.session import get_session_factory

            session_factory = get_session_factory()
        self._runner = runner
        self._session_factory = session_factory

    @property
    def runner(self) -> SyncRunner:
        return self._runner

    def run_sync(
        self,
        *,
        trigger: str,
        periods: Sequence[Period] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SyncRunResult:
        """
        Run one sync and persist its report.

        Raises SyncAlreadyRunningError without recording a run when another
        sync holds the lock.
        """

        if self._runner.is_running:
            raise SyncAlreadyRunningError("A registry sync is already running.")

        selected = list(periods or self._runner.default_periods())
        with self._session_factory() as db:
            repository = SyncRunRepository(db)
            run = repository.create_run(trigger=trigger, periods=[period.label for period in selected])
            db.commit()
            run_id = run.id

            try:
                report = self._runner.run(selected, cancel_event=cancel_event)
            except SyncAlreadyRunningError:
                repository.mark_finished(
                    run_id=run_id,
                    status=SyncRunStatus.FAILED,
                    error_message="Another sync run is in progress.",
                )
                db.commit()
                raise
            except Exception as exc:
                db.rollback()
                repository.mark_finished(
                    run_id=run_id,
                    status=SyncRunStatus.FAILED,
                    error_message=str(exc) or exc.__class__.__name__,
                )
                db.commit()
                raise

            status = SyncRunStatus.DONE if report.status == SyncState.DONE else SyncRunStatus.FAILED
            repository.mark_finished(
                run_id=run_id,
                status=status,
                report_payload=report.to_payload(),
                error_message=report.error,
            )
            db.commit()

        logger.info("Sync run recorded run_id=%s trigger=%s status=%s", run_id, trigger, status)
        return SyncRunResult(run_id=run_id, report=report)

    def list_runs(self, *, limit: int = 20, status: str | None = None) -> list[SyncRun]:
        with self._session_factory() as db:
            return SyncRunRepository(db).list_runs(limit=limit, status=status)


@lru_cache(maxsize=1)
def get_sync_service() -> SyncService:
    return SyncService(runner=get_sync_runner())
