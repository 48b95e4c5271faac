"""
app/scheduler/jobs.py

APScheduler-based scheduler for the monthly registry sync.

Schedule (all times UTC)
--------------------------
  monthly_registry_sync: SYNC_SCHEDULE_HOUR:00 on day SYNC_SCHEDULE_DAY of
                          every month (defaults: 03:00 on the 2nd)

Registry dumps for a month are published after it closes, so the job syncs
the previous month by default (see ``SYNC_MONTHS_TO_PROCESS`` and
``SYNC_INCLUDE_CURRENT_MONTH``).

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import get_sync_settings
from app.domain.errors import SyncAlreadyRunningError
from app.services.sync_service import SyncTrigger, get_sync_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Monthly registry sync
# ---------------------------------------------------------------------------


def run_monthly_registry_sync() -> None:
    """
    Sync the configured dump periods. Run-level failures are recorded in the
    run history by the service; nothing here re-raises into APScheduler.
    """
    logger.info("Scheduler: monthly_registry_sync starting")
    try:
        result = get_sync_service().run_sync(trigger=SyncTrigger.SCHEDULE)
    except SyncAlreadyRunningError:
        logger.warning("Scheduler: monthly_registry_sync skipped, another run is in progress")
        return
    except Exception as exc:  # noqa: BLE001
        logger.warning("Scheduler: monthly_registry_sync failed: %s", exc)
        return

    report = result.report
    logger.info(
        "Scheduler: monthly_registry_sync complete run_id=%s status=%s inserted=%s failed=%s",
        result.run_id,
        report.status,
        report.inserted,
        report.failed,
    )


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Build and register the sync job.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    The caller must call ``.start()`` and ``.shutdown(wait=True)`` at the
    appropriate lifecycle points.
    """
    settings = get_sync_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_monthly_registry_sync,
        trigger="cron",
        day=settings.schedule_day,
        hour=settings.schedule_hour,
        minute=0,
        id="monthly_registry_sync",
        name="Monthly registry dump sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=6 * 3600,
    )

    logger.info(
        "Scheduler: registered job monthly_registry_sync day=%s hour=%s",
        settings.schedule_day,
        settings.schedule_hour,
    )
    return scheduler
