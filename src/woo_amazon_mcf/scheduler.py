"""Periodic background jobs: inventory sync and open-order status polling."""

import logging
from typing import Any, Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler

from .constants import DEFAULT_STATUS_POLL_MINUTES, DEFAULT_SYNC_INTERVAL_MINUTES

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "inventory_sync"
STATUS_JOB_ID = "fulfillment_status_poll"


class SyncScheduler:
    """Runs the reconciler (and optionally status polling) on fixed intervals.

    A single APScheduler instance per process; every job runs with
    ``max_instances=1`` and ``coalesce=True`` so missed runs collapse into one.
    """

    def __init__(
        self,
        sync_job: Callable[[], Any],
        interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES,
        status_job: Optional[Callable[[], Any]] = None,
        status_interval_minutes: int = DEFAULT_STATUS_POLL_MINUTES,
        scheduler: Optional[BackgroundScheduler] = None,
    ) -> None:
        self.sync_job = sync_job
        self.interval_minutes = interval_minutes
        self.status_job = status_job
        self.status_interval_minutes = status_interval_minutes
        self._scheduler = scheduler or BackgroundScheduler()
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def _run(self, name: str, job: Callable[[], Any]) -> None:
        # Exceptions must not kill the job; the next interval tries again
        try:
            job()
        except Exception:
            logger.exception(f"Scheduled job {name} failed")

    def start(self) -> None:
        if self._started:
            return

        self._scheduler.add_job(
            self._run,
            "interval",
            args=[SYNC_JOB_ID, self.sync_job],
            id=SYNC_JOB_ID,
            minutes=self.interval_minutes,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        logger.info(f"Scheduling inventory sync every {self.interval_minutes} minutes")

        if self.status_job is not None and self.status_interval_minutes > 0:
            self._scheduler.add_job(
                self._run,
                "interval",
                args=[STATUS_JOB_ID, self.status_job],
                id=STATUS_JOB_ID,
                minutes=self.status_interval_minutes,
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            logger.info(f"Scheduling MCF status polling every {self.status_interval_minutes} minutes")

        self._scheduler.start()
        self._started = True

    def shutdown(self) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Background scheduler stopped")
