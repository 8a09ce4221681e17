# Tests for the dashboard session
# Covers: immutable state updates, filtered view vs. whole-feed stats,
#          memoisation by store version, tier changes and banners,
#          tab switches, CSV export gating.

import csv
import io
from datetime import datetime, timezone

import pytest

from threatview.core.audit_log import EventType, get_audit_logger
from threatview.core.tiers import SubscriptionTier
from threatview.feed.errors import TierLockedError
from threatview.feed.export import CSV_COLUMNS, records_to_csv
from threatview.feed.models import FilterCriteria, Severity, ThreatRecord, ThreatType
from threatview.feed.notifications import NotificationScheduler
from threatview.feed.session import (
    VIEW_MEMO_SIZE,
    DashboardSession,
    DashboardState,
    Tab,
    tier_change_message,
)
from threatview.feed.store import ThreatStore
from threatview.feed.tier_gate import Locked, StatField, Visible


# ── Helpers ──────────────────────────────────────────────────────────

def _make_records():
    ts = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
    return (
        ThreatRecord("T-1", ts, ThreatType.RANSOMWARE, Severity.CRITICAL, "China", "10.0.0.1"),
        ThreatRecord("T-2", ts, ThreatType.PHISHING, Severity.LOW, "Russia", "evil.example"),
        ThreatRecord("T-3", ts, ThreatType.DDOS, Severity.CRITICAL, "China", "10.0.0.3"),
        ThreatRecord("T-4", None, ThreatType.MALWARE, Severity.HIGH, "USA", "abc123"),
    )


@pytest.fixture
def store():
    return ThreatStore(_make_records())


@pytest.fixture
def session(store, timers, fixed_clock):
    sched = NotificationScheduler(timer_factory=timers, clock=fixed_clock)
    s = DashboardSession(store, scheduler=sched)
    yield s
    s.close()


# ── State ────────────────────────────────────────────────────────────

class TestState:
    def test_defaults(self, session):
        state = session.state
        assert state.tier is SubscriptionTier.FREE
        assert state.active_tab is Tab.OVERVIEW
        assert state.criteria.is_wildcard

    def test_set_criteria_replaces_state(self, session):
        before = session.state
        after = session.set_criteria(FilterCriteria(severity="Critical"))
        assert before is not after
        assert before.criteria.is_wildcard
        assert after.criteria.severity == "Critical"

    def test_state_to_dict(self):
        d = DashboardState().to_dict()
        assert d["tier"] == "free"
        assert d["active_tab"] == "overview"
        assert d["criteria"]["severity"] == "all"


# ── Derived views ────────────────────────────────────────────────────

class TestDerivedViews:
    def test_filtered_view_uses_criteria(self, session):
        session.set_criteria(FilterCriteria(severity="Critical", country="China"))
        assert [r.record_id for r in session.filtered_view()] == ["T-1", "T-3"]

    def test_stats_ignore_list_filter(self, session):
        session.set_criteria(FilterCriteria(severity="Low"))
        assert len(session.filtered_view()) == 1
        assert session.stats().total_threats == 4

    def test_view_memoised_per_version(self, session):
        first = session.filtered_view()
        assert session.filtered_view() is first

    def test_memo_dropped_on_store_replace(self, session, store):
        first_stats = session.stats()
        store.replace_all(_make_records()[:2])
        second_stats = session.stats()
        assert second_stats is not first_stats
        assert second_stats.total_threats == 2
        assert len(session.filtered_view()) == 2

    def test_explicit_criteria_does_not_change_state(self, session):
        view = session.filtered_view(FilterCriteria(country="USA"))
        assert [r.record_id for r in view] == ["T-4"]
        assert session.state.criteria.is_wildcard

    def test_memo_stays_bounded(self, session):
        for i in range(VIEW_MEMO_SIZE * 10):
            session.filtered_view(FilterCriteria(search=f"q{i}"))
        assert len(session._view_memo) <= VIEW_MEMO_SIZE

    def test_recently_used_view_survives_eviction(self, session):
        hot = FilterCriteria(country="China")
        first = session.filtered_view(hot)
        for i in range(VIEW_MEMO_SIZE * 2):
            session.filtered_view(FilterCriteria(search=f"q{i}"))
            session.filtered_view(hot)
        assert session.filtered_view(hot) is first


# ── Tier changes ─────────────────────────────────────────────────────

class TestTierChange:
    def test_free_to_pro_unlocks_blocked_attacks(self, session):
        assert isinstance(session.visibility(StatField.BLOCKED_ATTACKS), Locked)
        assert session.change_tier(SubscriptionTier.PRO)
        shown = session.visibility(StatField.BLOCKED_ATTACKS)
        assert isinstance(shown, Visible)
        assert shown.value == session.stats().blocked_attacks

    def test_upgrade_banner(self, session):
        session.change_tier(SubscriptionTier.PRO)
        assert session.current_notification().message == "Upgraded to Pro plan"

    def test_downgrade_banner(self, session):
        session.change_tier(SubscriptionTier.BUSINESS)
        session.change_tier(SubscriptionTier.FREE)
        assert session.current_notification().message == "Switched to Free plan"

    def test_same_tier_is_noop(self, session):
        assert not session.change_tier(SubscriptionTier.FREE)
        assert session.current_notification() is None

    def test_history_and_audit(self, session):
        session.change_tier(SubscriptionTier.PRO, reason="trial")
        assert session.tier_history[0]["reason"] == "trial"
        events = get_audit_logger().recent_events(EventType.TIER_CHANGED)
        assert events[-1]["details"]["to"] == "pro"

    def test_gated_view_masks_indicator_until_pro(self, session):
        assert all(item["indicator"] is None for item in session.gated_view())
        session.change_tier(SubscriptionTier.PRO)
        assert session.gated_view()[0]["indicator"] == "10.0.0.1"

    def test_message_helper(self):
        assert tier_change_message(SubscriptionTier.PRO, SubscriptionTier.BUSINESS) == \
            "Upgraded to Business plan"
        assert tier_change_message(SubscriptionTier.PRO, SubscriptionTier.FREE) == \
            "Switched to Free plan"

    def test_every_toggle_is_audited(self, session):
        for tier in (SubscriptionTier.PRO, SubscriptionTier.FREE,
                     SubscriptionTier.PRO, SubscriptionTier.FREE):
            session.change_tier(tier)
        events = get_audit_logger().recent_events(EventType.TIER_CHANGED)
        assert len(events) == len(session.tier_history) == 4

    def test_repeated_tab_switches_are_audited(self, session):
        for tab in (Tab.THREATS, Tab.OVERVIEW, Tab.THREATS):
            session.switch_tab(tab)
        assert len(get_audit_logger().recent_events(EventType.TAB_SWITCHED)) == 3


# ── Tabs and notifications ───────────────────────────────────────────

class TestTabs:
    def test_switch_tab_shows_banner(self, session):
        assert session.switch_tab(Tab.ANALYTICS)
        assert session.state.active_tab is Tab.ANALYTICS
        assert session.current_notification().message == "Switched to Analytics"

    def test_same_tab_is_noop(self, session):
        assert not session.switch_tab(Tab.OVERVIEW)
        assert session.current_notification() is None

    def test_second_transition_replaces_banner(self, session, timers):
        session.switch_tab(Tab.THREATS)
        session.change_tier(SubscriptionTier.PRO)
        assert session.current_notification().message == "Upgraded to Pro plan"
        # the first banner's timer firing late must not clear the second
        timers.timers[0].fire()
        assert session.current_notification().message == "Upgraded to Pro plan"

    def test_dismiss_notification(self, session):
        session.switch_tab(Tab.PRICING)
        assert session.dismiss_notification()
        assert not session.dismiss_notification()

    def test_notification_duration_from_session(self, store, timers, fixed_clock):
        sched = NotificationScheduler(timer_factory=timers, clock=fixed_clock)
        s = DashboardSession(store, scheduler=sched, notification_ms=1200)
        s.switch_tab(Tab.THREATS)
        assert s.current_notification().duration_ms == 1200


# ── Export ───────────────────────────────────────────────────────────

class TestExport:
    def test_free_tier_denied(self, session):
        with pytest.raises(TierLockedError):
            session.export_csv()
        assert get_audit_logger().recent_events(EventType.EXPORT_DENIED)

    def test_export_rows_match_view(self, session):
        session.set_criteria(FilterCriteria(country="China"))
        assert session.export_rows() == session.filtered_view()

    def test_pro_export_csv(self, session):
        session.change_tier(SubscriptionTier.PRO)
        session.set_criteria(FilterCriteria(severity="Critical"))
        rows = list(csv.DictReader(io.StringIO(session.export_csv())))
        assert [r["id"] for r in rows] == ["T-1", "T-3"]
        assert rows[0]["indicator"] == "10.0.0.1"
        assert get_audit_logger().recent_events(EventType.EXPORT_GENERATED)

    def test_repeated_exports_are_audited(self, session):
        session.change_tier(SubscriptionTier.PRO)
        session.export_csv()
        session.set_criteria(FilterCriteria(country="USA"))
        session.export_csv()
        assert len(get_audit_logger().recent_events(EventType.EXPORT_GENERATED)) == 2

    def test_csv_header_and_undated(self):
        text = records_to_csv(_make_records()[3:])
        reader = csv.reader(io.StringIO(text))
        assert next(reader) == CSV_COLUMNS
        row = next(reader)
        assert row[0] == "T-4"
        assert row[1] == ""
