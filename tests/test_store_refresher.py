# Tests for the threat store and periodic refresher
# Covers: versioning, wholesale replacement, last-known-good on failure,
#          refresh reports, audit events, FeedRefresher scheduling.

import time

import pytest

from threatview.core.audit_log import EventType, get_audit_logger
from threatview.feed.errors import FeedFetchError, FeedFormatError
from threatview.feed.fetcher import FeedFetcher
from threatview.feed.models import ThreatRecord
from threatview.feed.normalize import NormalizedFeed
from threatview.feed.refresher import JOB_ID, FeedRefresher
from threatview.feed.store import ThreatStore


# ── Helpers ──────────────────────────────────────────────────────────

def _records(*ids):
    return tuple(ThreatRecord(i, None, None, None) for i in ids)


class StubFetcher(FeedFetcher):
    """Returns queued results in order; exceptions are raised."""

    def __init__(self, *results):
        super().__init__("stub")
        self.results = list(results)
        self.calls = 0

    def configure(self, **kwargs):
        pass

    def fetch(self):
        self.calls += 1
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            self.record_error()
            raise result
        self.record_fetch(len(result.records))
        return result

    def health_check(self):
        return True


# ── ThreatStore ──────────────────────────────────────────────────────

class TestThreatStore:
    def test_empty_store(self):
        store = ThreatStore()
        assert len(store) == 0
        assert store.version == 0
        assert store.records == ()

    def test_initial_records(self):
        store = ThreatStore(_records("a", "b"))
        assert len(store) == 2
        assert store.version == 1

    def test_replace_all_bumps_version(self):
        store = ThreatStore()
        v1 = store.replace_all(_records("a"))
        v2 = store.replace_all(_records("b", "c"))
        assert v2 == v1 + 1
        assert [r.record_id for r in store.records] == ["b", "c"]
        assert store.last_refreshed is not None

    def test_snapshot_is_consistent(self):
        store = ThreatStore(_records("a"))
        version, records = store.snapshot()
        store.replace_all(_records("b"))
        assert version == 1
        assert records[0].record_id == "a"


class TestRefresh:
    def test_successful_refresh(self):
        store = ThreatStore()
        report = store.refresh(StubFetcher(NormalizedFeed(_records("a", "b"))))
        assert report.success
        assert report.record_count == 2
        assert report.version == store.version == 1
        assert store.last_report is report

    def test_failure_keeps_previous_records(self):
        store = ThreatStore(_records("a", "b", "c"))
        report = store.refresh(StubFetcher(FeedFetchError("HTTP 503", status_code=503)))
        assert not report.success
        assert "503" in report.error
        assert len(store) == 3
        assert store.version == 1

    def test_format_error_keeps_previous_records(self):
        store = ThreatStore(_records("a"))
        store.refresh(StubFetcher(FeedFormatError("not json")))
        assert [r.record_id for r in store.records] == ["a"]

    def test_unexpected_errors_propagate(self):
        store = ThreatStore()
        with pytest.raises(RuntimeError):
            store.refresh(StubFetcher(RuntimeError("bug")))

    def test_dropped_items_reported(self):
        store = ThreatStore()
        feed = NormalizedFeed(_records("a"), missing_id=2, duplicates=1)
        report = store.refresh(StubFetcher(feed))
        assert report.dropped == 3

    def test_audit_events_written(self):
        store = ThreatStore()
        store.refresh(StubFetcher(NormalizedFeed(_records("a"), duplicates=1)))
        store.refresh(StubFetcher(FeedFetchError("down")))
        audit = get_audit_logger()
        assert audit.recent_events(EventType.FEED_REFRESHED)
        assert audit.recent_events(EventType.FEED_RECORDS_DROPPED)
        failed = audit.recent_events(EventType.FEED_REFRESH_FAILED)
        assert failed[0]["details"]["kept_records"] == 1

    def test_report_to_dict(self):
        store = ThreatStore()
        d = store.refresh(StubFetcher(NormalizedFeed(_records("a")))).to_dict()
        assert d["source"] == "stub"
        assert d["success"] is True
        assert d["record_count"] == 1


# ── FeedRefresher ────────────────────────────────────────────────────

class TestFeedRefresher:
    def test_run_now(self):
        store = ThreatStore()
        refresher = FeedRefresher(store, StubFetcher(NormalizedFeed(_records("a"))))
        report = refresher.run_now()
        assert report.success
        assert len(store) == 1

    def test_on_complete_callback(self):
        store = ThreatStore()
        refresher = FeedRefresher(store, StubFetcher(NormalizedFeed(_records("a"))))
        reports = []
        refresher.set_on_complete(reports.append)
        refresher.run_now()
        assert len(reports) == 1

    def test_callback_failure_contained(self):
        refresher = FeedRefresher(ThreatStore(), StubFetcher(NormalizedFeed(_records("a"))))

        def boom(_report):
            raise RuntimeError("listener gone")

        refresher.set_on_complete(boom)
        assert refresher.run_now().success

    def test_failed_cycle_then_recovery(self):
        store = ThreatStore(_records("old"))
        fetcher = StubFetcher(FeedFetchError("down"), NormalizedFeed(_records("new")))
        refresher = FeedRefresher(store, fetcher)
        assert not refresher.run_now().success
        assert store.records[0].record_id == "old"
        assert refresher.run_now().success
        assert store.records[0].record_id == "new"

    def test_start_and_stop(self):
        store = ThreatStore()
        fetcher = StubFetcher(NormalizedFeed(_records("a")))
        refresher = FeedRefresher(store, fetcher, interval_seconds=3600)
        refresher.start()
        try:
            assert refresher.is_running
            assert fetcher.calls == 1
            assert refresher._scheduler.get_job(JOB_ID) is not None
        finally:
            refresher.stop()
        assert not refresher.is_running

    def test_start_without_immediate_refresh(self):
        fetcher = StubFetcher(NormalizedFeed(_records("a")))
        refresher = FeedRefresher(ThreatStore(), fetcher, interval_seconds=3600)
        refresher.start(refresh_immediately=False)
        try:
            assert fetcher.calls == 0
        finally:
            refresher.stop()

    def test_interval_fires(self):
        fetcher = StubFetcher(NormalizedFeed(_records("a")))
        refresher = FeedRefresher(ThreatStore(), fetcher, interval_seconds=1)
        refresher.start(refresh_immediately=False)
        try:
            deadline = time.monotonic() + 5
            while fetcher.calls == 0 and time.monotonic() < deadline:
                time.sleep(0.05)
            assert fetcher.calls >= 1
        finally:
            refresher.stop()

    def test_stats(self):
        store = ThreatStore()
        refresher = FeedRefresher(store, StubFetcher(NormalizedFeed(_records("a"))), 120)
        refresher.run_now()
        stats = refresher.stats()
        assert stats["running"] is False
        assert stats["interval_seconds"] == 120
        assert stats["store_records"] == 1
        assert stats["fetcher"]["name"] == "stub"
        assert stats["last_report"]["success"] is True
