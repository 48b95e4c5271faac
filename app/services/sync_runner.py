"""
app/services/sync_runner.py

End-to-end sync of one or more monthly registry dumps.

Every period is downloaded and scanned before the first write, so a
transport or format failure leaves the store and the cache untouched.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import AbstractContextManager
from datetime import date, datetime, timezone
from functools import lru_cache
from pathlib import Path

from app.cache.query_cache import QueryCache, get_query_cache
from app.config import (
    SyncSettings,
    get_extraction_settings,
    get_registry_dump_settings,
    get_sync_settings,
)
from app.connectors.dump_downloader import RegistryDumpDownloader
from app.domain.errors import DumpFormatError, SyncAlreadyRunningError, TransportError
from app.domain.registry import Period, RawRecord, SyncReport, SyncState
from app.extraction.dump_extractor import DumpExtractor
from app.logging_utils import log_event
from app.repositories.contract_store import ContractStore, open_contract_store
from app.services.reconciler import Reconciler

logger = logging.getLogger(__name__)

StoreFactory = Callable[[], AbstractContextManager[ContractStore]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_periods(today: date, *, months: int, include_current: bool) -> list[Period]:
    """
    Return the periods to sync, oldest first.

    The current month is only included on request because its dump is
    usually published after the month closes.
    """

    first_offset = 0 if include_current else 1
    periods: list[Period] = []
    for offset in range(first_offset, first_offset + max(1, months)):
        month_index = today.year * 12 + (today.month - 1) - offset
        periods.append(Period(year=month_index // 12, month=month_index % 12 + 1))
    return list(reversed(periods))


class SyncRunner:
    """
    Runs the download, extract and reconcile pipeline under a process-wide lock.

    State moves idle -> downloading -> extracting -> reconciling -> done | failed
    and keeps the last terminal state until the next run starts.
    """

    def __init__(
        self,
        *,
        downloader: RegistryDumpDownloader,
        extractor: DumpExtractor,
        store_factory: StoreFactory,
        cache: QueryCache,
        settings: SyncSettings,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._downloader = downloader
        self._extractor = extractor
        self._store_factory = store_factory
        self._cache = cache
        self._settings = settings
        self._clock = clock
        self._run_lock = threading.Lock()
        self._cancel_event = threading.Event()
        self._state = SyncState.IDLE

    @property
    def state(self) -> str:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def default_periods(self, today: date | None = None) -> list[Period]:
        return compute_periods(
            today or self._clock().date(),
            months=self._settings.months_to_process,
            include_current=self._settings.include_current_month,
        )

    def request_cancel(self) -> None:
        """Ask the active run to stop before its next record."""
        if self.is_running:
            logger.info("Sync cancellation requested")
            self._cancel_event.set()

    def run(
        self,
        periods: Sequence[Period] | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SyncReport:
        if not self._run_lock.acquire(blocking=False):
            raise SyncAlreadyRunningError("A registry sync is already running.")
        try:
            self._cancel_event.clear()
            return self._run_locked(list(periods or self.default_periods()), cancel_event or self._cancel_event)
        finally:
            self._run_lock.release()

    def _run_locked(self, periods: list[Period], cancel_event: threading.Event) -> SyncReport:
        report = SyncReport(
            status=SyncState.FAILED,
            periods=[period.label for period in periods],
            started_at=self._clock(),
        )
        log_event(logger, logging.INFO, "sync_started", periods=report.periods)

        try:
            self._transition(SyncState.DOWNLOADING)
            staged = [(period, self._downloader.fetch(period.year, period.month)) for period in periods]

            self._transition(SyncState.EXTRACTING)
            counts = [self._extractor.scan(path) for _, path in staged]
            for (period, path), count in zip(staged, counts):
                log_event(logger, logging.INFO, "sync_dump_ready", period=period.label, path=str(path), records=count)

            self._transition(SyncState.RECONCILING)
            with self._store_factory() as store:
                outcome = Reconciler(store, self._cache).reconcile(
                    self._records(staged, counts),
                    cancel_event=cancel_event,
                )
            report.absorb(outcome)
            if outcome.cancelled:
                report.status = SyncState.FAILED
                report.error = "Sync cancelled before all records were processed."
            else:
                report.status = SyncState.DONE
        except (TransportError, DumpFormatError) as exc:
            report.status = SyncState.FAILED
            report.error = str(exc)
        except Exception:
            self._state = SyncState.FAILED
            log_event(logger, logging.ERROR, "sync_crashed", periods=report.periods)
            raise

        report.finished_at = self._clock()
        self._transition(report.status)
        log_event(
            logger,
            logging.INFO if report.status == SyncState.DONE else logging.WARNING,
            "sync_finished",
            status=report.status,
            periods=report.periods,
            records_seen=report.records_seen,
            inserted=report.inserted,
            skipped_duplicates=report.skipped_duplicates,
            amendments_inserted=report.amendments_inserted,
            failed=report.failed,
            conflicts=len(report.conflicts),
            cancelled=report.cancelled,
            error=report.error,
            duration_seconds=round(report.duration_seconds, 3),
        )
        return report

    def _records(self, staged: list[tuple[Period, Path]], counts: list[int]) -> Iterator[RawRecord]:
        offset = 0
        for (period, path), count in zip(staged, counts):
            logger.info("Reconciling dump period=%s records=%s", period.label, count)
            yield from self._extractor.extract(path, start_index=offset + 1)
            offset += count

    def _transition(self, state: str) -> None:
        logger.debug("Sync state %s -> %s", self._state, state)
        self._state = state


@lru_cache(maxsize=1)
def get_sync_runner() -> SyncRunner:
    return SyncRunner(
        downloader=RegistryDumpDownloader(settings=get_registry_dump_settings()),
        extractor=DumpExtractor(party_shape_order=get_extraction_settings().party_shape_order),
        store_factory=open_contract_store,
        cache=get_query_cache(),
        settings=get_sync_settings(),
    )
