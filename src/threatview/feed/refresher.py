# ThreatView: Feed Module - Periodic Refresh
#
# Schedules ThreatStore.refresh on a fixed interval with APScheduler.
# Each cycle is a single attempt; failures are absorbed by the store and
# the next cycle simply tries again.

import logging
import threading
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .fetcher import FeedFetcher
from .store import RefreshReport, ThreatStore

logger = logging.getLogger(__name__)

JOB_ID = "threatview_feed_refresh"


class FeedRefresher:
    """Keeps a ThreatStore current by polling a FeedFetcher.

    Usage::

        refresher = FeedRefresher(store, fetcher, interval_seconds=300)
        refresher.start()      # immediate refresh + periodic schedule
        refresher.run_now()    # manual refresh
        refresher.stop()
    """

    def __init__(
        self,
        store: ThreatStore,
        fetcher: FeedFetcher,
        interval_seconds: int = 300,
    ):
        self._store = store
        self._fetcher = fetcher
        self._interval = interval_seconds
        self._scheduler: Optional[BackgroundScheduler] = None
        self._run_lock = threading.Lock()
        self._on_complete: Optional[Callable[[RefreshReport], None]] = None

    def set_on_complete(self, callback: Callable[[RefreshReport], None]) -> None:
        """Set a callback invoked after each refresh cycle."""
        self._on_complete = callback

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def start(self, refresh_immediately: bool = True) -> None:
        """Start periodic refreshes in a background thread."""
        if self._scheduler is not None:
            return  # already running

        if refresh_immediately:
            self.run_now()

        self._scheduler = BackgroundScheduler(daemon=True)
        self._scheduler.add_job(
            self.run_now,
            trigger=IntervalTrigger(seconds=self._interval),
            id=JOB_ID,
            name="Threat feed refresh",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info("FeedRefresher started: every %ds from %s",
                    self._interval, self._fetcher.name)

    def stop(self) -> None:
        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("FeedRefresher stopped")

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def run_now(self) -> RefreshReport:
        """Run one refresh cycle; concurrent calls are serialised."""
        with self._run_lock:
            report = self._store.refresh(self._fetcher)

        if self._on_complete:
            try:
                self._on_complete(report)
            except Exception as exc:
                logger.warning("on_complete callback failed: %s", exc)
        return report

    def stats(self):
        return {
            "running": self.is_running,
            "interval_seconds": self._interval,
            "fetcher": self._fetcher.get_stats(),
            "store_version": self._store.version,
            "store_records": len(self._store),
            "last_report": (
                self._store.last_report.to_dict() if self._store.last_report else None
            ),
        }
