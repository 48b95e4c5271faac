"""
tests/test_sync_runner.py

Pytest tests for SyncRunner: period selection, the all-or-nothing
download/scan phase, failure indexing across dumps, and the run lock.
"""

from __future__ import annotations

import threading
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

from app.cache.query_cache import QueryCache
from app.config import SyncSettings
from app.domain.errors import SyncAlreadyRunningError, TransportError
from app.domain.query_cache import CacheKind, CacheScope
from app.domain.registry import Period, SyncState
from app.extraction.dump_extractor import DumpExtractor
from app.services.sync_runner import SyncRunner, compute_periods


def _contract_xml(external_id: str, title: str, amount: str = "1000") -> str:
    return (
        "<zaznam>"
        f"<identifikator><idSmlouvy>{external_id}</idSmlouvy></identifikator>"
        "<smlouva>"
        f"<predmet>{title}</predmet><hodnotaBezDph>{amount}</hodnotaBezDph>"
        "<datumUzavreni>2024-02-10</datumUzavreni>"
        f"<dodavatel><nazev>Dodavatel {external_id}</nazev><ico>9{external_id:0>7}</ico></dodavatel>"
        "<zadavatel>Obec Lhota</zadavatel>"
        "</smlouva></zaznam>"
    )


class FakeDownloader:
    """Serves pre-written dumps; a period mapped to an exception raises it."""

    def __init__(self, files: dict[tuple[int, int], Path | Exception]) -> None:
        self._files = files
        self.fetched: list[tuple[int, int]] = []
        self.gate: threading.Event | None = None
        self.entered = threading.Event()

    def fetch(self, year: int, month: int) -> Path:
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        self.fetched.append((year, month))
        result = self._files[(year, month)]
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture()
def dumps(tmp_path: Path) -> dict[str, Path]:
    january = tmp_path / "dump_2024_01.xml"
    january.write_text(
        "<dump>" + _contract_xml("1", "Oprava silnice") + _contract_xml("2", "Stavba školy") + "</dump>",
        encoding="utf-8",
    )
    february = tmp_path / "dump_2024_02.xml"
    february.write_text(
        "<dump>" + _contract_xml("3", "Dodávka PC") + _contract_xml("4", "Úklid", amount="neznámo") + "</dump>",
        encoding="utf-8",
    )
    broken = tmp_path / "dump_2024_03.xml"
    broken.write_text("<dump><zaznam><smlouva>", encoding="utf-8")
    return {"jan": january, "feb": february, "broken": broken}


def _runner(downloader, store_factory, cache: QueryCache) -> SyncRunner:
    return SyncRunner(
        downloader=downloader,
        extractor=DumpExtractor(),
        store_factory=store_factory,
        cache=cache,
        settings=SyncSettings(),
        clock=lambda: datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
    )


def _seed_cache(cache: QueryCache):
    fp = cache.fingerprint(CacheScope.CONTRACTS, CacheKind.LIST, {"page": 1})
    cache.set(fp, {"items": []})
    return fp


# ---------------------------------------------------------------------------
# Period selection
# ---------------------------------------------------------------------------


class TestPeriods:
    def test_previous_month_by_default(self) -> None:
        assert compute_periods(date(2024, 3, 15), months=1, include_current=False) == [Period(2024, 2)]

    def test_spans_year_boundary(self) -> None:
        assert compute_periods(date(2024, 2, 2), months=3, include_current=False) == [
            Period(2023, 11),
            Period(2023, 12),
            Period(2024, 1),
        ]

    def test_current_month_on_request(self) -> None:
        assert compute_periods(date(2024, 1, 20), months=2, include_current=True) == [
            Period(2023, 12),
            Period(2024, 1),
        ]

    def test_runner_uses_clock_for_defaults(self, store_factory, cache: QueryCache) -> None:
        runner = _runner(FakeDownloader({}), store_factory, cache)
        assert runner.default_periods() == [Period(2024, 2)]


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


class TestRun:
    def test_successful_run_over_two_dumps(self, dumps, store_factory, cache: QueryCache) -> None:
        downloader = FakeDownloader({(2024, 1): dumps["jan"], (2024, 2): dumps["feb"]})
        fp = _seed_cache(cache)
        runner = _runner(downloader, store_factory, cache)

        report = runner.run([Period(2024, 1), Period(2024, 2)])

        assert report.status == SyncState.DONE
        assert report.periods == ["2024-01", "2024-02"]
        assert report.records_seen == 4
        assert report.inserted == 3
        assert [(f.index, f.kind, f.external_id) for f in report.failures] == [(4, "ValidationError", "4")]
        assert report.started_at is not None and report.finished_at is not None
        assert runner.state == SyncState.DONE
        assert cache.get(fp).hit is False

    def test_rerun_inserts_nothing(self, dumps, store_factory, cache: QueryCache) -> None:
        downloader = FakeDownloader({(2024, 1): dumps["jan"]})
        runner = _runner(downloader, store_factory, cache)

        first = runner.run([Period(2024, 1)])
        second = runner.run([Period(2024, 1)])

        assert first.inserted == 2
        assert second.inserted == 0
        assert second.skipped_duplicates == 2

    def test_transport_error_writes_nothing(self, dumps, store_factory, cache: QueryCache) -> None:
        downloader = FakeDownloader({(2024, 1): dumps["jan"], (2024, 2): TransportError("HTTP 503")})
        fp = _seed_cache(cache)
        runner = _runner(downloader, store_factory, cache)

        report = runner.run([Period(2024, 1), Period(2024, 2)])

        assert report.status == SyncState.FAILED
        assert report.error == "HTTP 503"
        assert report.inserted == 0
        assert runner.state == SyncState.FAILED
        assert cache.get(fp).hit is True
        with store_factory() as store:
            assert store.count_contracts() == 0

    def test_malformed_dump_writes_nothing(self, dumps, store_factory, cache: QueryCache) -> None:
        downloader = FakeDownloader({(2024, 1): dumps["jan"], (2024, 3): dumps["broken"]})
        runner = _runner(downloader, store_factory, cache)

        report = runner.run([Period(2024, 1), Period(2024, 3)])

        assert report.status == SyncState.FAILED
        assert "Malformed XML" in (report.error or "")
        with store_factory() as store:
            assert store.count_contracts() == 0

    def test_cancelled_run_is_failed_and_flagged(self, dumps, store_factory, cache: QueryCache) -> None:
        event = threading.Event()
        event.set()
        runner = _runner(FakeDownloader({(2024, 1): dumps["jan"]}), store_factory, cache)

        report = runner.run([Period(2024, 1)], cancel_event=event)

        assert report.status == SyncState.FAILED
        assert report.cancelled is True
        assert report.inserted == 0


# ---------------------------------------------------------------------------
# Run lock
# ---------------------------------------------------------------------------


class TestRunLock:
    def test_second_trigger_is_rejected_while_running(self, dumps, store_factory, cache: QueryCache) -> None:
        downloader = FakeDownloader({(2024, 1): dumps["jan"]})
        downloader.gate = threading.Event()
        runner = _runner(downloader, store_factory, cache)
        reports = []

        worker = threading.Thread(target=lambda: reports.append(runner.run([Period(2024, 1)])))
        worker.start()
        try:
            assert downloader.entered.wait(timeout=5)
            assert runner.is_running is True
            with pytest.raises(SyncAlreadyRunningError):
                runner.run([Period(2024, 1)])
        finally:
            downloader.gate.set()
            worker.join(timeout=10)

        assert reports[0].status == SyncState.DONE
        assert runner.is_running is False
