# ThreatView: Feed Module - Threat Record Store
#
# Holds the last successfully fetched record set.  The set is replaced
# wholesale (one tuple swap under a lock), never patched, and every
# replacement bumps ``version`` so derived views know to recompute.
# A failed refresh leaves the previous set in place.

import logging
import threading
import time
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Tuple

from ..core.audit_log import EventSeverity, EventType, log_dashboard_event
from .errors import FeedError
from .fetcher import FeedFetcher
from .models import ThreatRecord

logger = logging.getLogger(__name__)


class RefreshReport:
    """Outcome of a single refresh attempt."""

    def __init__(self, source: str):
        self.source = source
        self.started = datetime.utcnow().isoformat()
        self.record_count: int = 0
        self.dropped: int = 0
        self.version: int = 0
        self.error: Optional[str] = None
        self.duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "started": self.started,
            "success": self.success,
            "record_count": self.record_count,
            "dropped": self.dropped,
            "version": self.version,
            "error": self.error,
            "duration_ms": round(self.duration_ms, 1),
        }


class ThreatStore:
    """Owner of the current threat record set.

    Readers get an immutable tuple, so a refresh landing mid-read can
    never expose a half-replaced set.
    """

    def __init__(self, records: Iterable[ThreatRecord] = ()):
        self._lock = threading.RLock()
        self._records: Tuple[ThreatRecord, ...] = tuple(records)
        self._version = 1 if self._records else 0
        self._last_refreshed: Optional[str] = None
        self._last_report: Optional[RefreshReport] = None

    @property
    def records(self) -> Tuple[ThreatRecord, ...]:
        with self._lock:
            return self._records

    @property
    def version(self) -> int:
        with self._lock:
            return self._version

    def snapshot(self) -> Tuple[int, Tuple[ThreatRecord, ...]]:
        """Version and records read together."""
        with self._lock:
            return self._version, self._records

    @property
    def last_refreshed(self) -> Optional[str]:
        return self._last_refreshed

    @property
    def last_report(self) -> Optional[RefreshReport]:
        return self._last_report

    def __len__(self) -> int:
        return len(self.records)

    def replace_all(self, records: Iterable[ThreatRecord]) -> int:
        """Atomically replace the record set. Returns the new version."""
        new_records = tuple(records)
        with self._lock:
            self._records = new_records
            self._version += 1
            self._last_refreshed = datetime.utcnow().isoformat()
            return self._version

    def refresh(self, fetcher: FeedFetcher) -> RefreshReport:
        """Pull a fresh record set from ``fetcher`` and swap it in.

        Feed failures are logged and audited, never raised: the store
        keeps its last-known-good set.
        """
        report = RefreshReport(fetcher.name)
        start = time.monotonic()
        try:
            feed = fetcher.fetch()
        except FeedError as exc:
            report.error = str(exc)
            report.version = self.version
            report.duration_ms = (time.monotonic() - start) * 1000
            logger.warning("Feed refresh from %s failed, keeping %d records: %s",
                           fetcher.name, len(self), exc)
            log_dashboard_event(
                EventType.FEED_REFRESH_FAILED,
                EventSeverity.WARNING,
                f"Feed refresh failed: {exc}",
                details={"source": fetcher.name, "kept_records": len(self)},
                source=fetcher.name,
            )
            self._last_report = report
            return report

        report.version = self.replace_all(feed.records)
        report.record_count = len(feed.records)
        report.dropped = feed.dropped
        report.duration_ms = (time.monotonic() - start) * 1000
        self._last_report = report

        log_dashboard_event(
            EventType.FEED_REFRESHED,
            EventSeverity.INFO,
            f"Feed refreshed: {report.record_count} records",
            details=report.to_dict(),
            source=fetcher.name,
        )
        if feed.dropped:
            log_dashboard_event(
                EventType.FEED_RECORDS_DROPPED,
                EventSeverity.WARNING,
                f"Dropped {feed.dropped} malformed feed items",
                details={
                    "missing_id": feed.missing_id,
                    "duplicates": feed.duplicates,
                    "not_objects": feed.not_objects,
                },
                source=fetcher.name,
            )
        return report
