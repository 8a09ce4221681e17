# ThreatView: Feed Module - Dashboard Session
#
# Ties the derivation engine together for one interactive dashboard:
#   Store -> Filter Engine      -> filtered list view
#   Store -> Aggregation Engine -> summary statistics
#   Tier Gate over both, Notification Scheduler for transition banners
#
# UI state (criteria, tier, active tab) lives in an immutable
# DashboardState that is replaced on every update.  Derived views are
# memoised per (record-set version, criteria) and dropped as soon as
# the store's version moves on.

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..core.audit_log import EventSeverity, EventType, log_dashboard_event
from ..core.tiers import SubscriptionTier, TierManager
from .aggregation import DEFAULT_TOP_N, AggregatedStats, aggregate
from .errors import TierLockedError
from .export import records_to_csv
from .filters import filter_records
from .models import FilterCriteria, ThreatRecord
from .notifications import NotificationEvent, NotificationScheduler
from .store import ThreatStore
from .tier_gate import (
    StatField,
    Visibility,
    gate_record,
    gated_stats,
    require,
    visibility,
)

logger = logging.getLogger(__name__)

DEFAULT_NOTIFICATION_MS = 3000

# Filtered views kept per store version, least recently used evicted first
VIEW_MEMO_SIZE = 32


class Tab(str, Enum):
    """Top-level dashboard tabs."""

    OVERVIEW = "overview"
    THREATS = "threats"
    ANALYTICS = "analytics"
    PRICING = "pricing"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class DashboardState:
    """Snapshot of the user's selections; replaced, never mutated."""

    criteria: FilterCriteria = field(default_factory=FilterCriteria)
    tier: SubscriptionTier = SubscriptionTier.FREE
    active_tab: Tab = Tab.OVERVIEW

    def to_dict(self) -> Dict[str, Any]:
        return {
            "criteria": self.criteria.to_dict(),
            "tier": self.tier.value,
            "active_tab": self.active_tab.value,
        }


def tier_change_message(old: SubscriptionTier, new: SubscriptionTier) -> str:
    if new > old:
        return f"Upgraded to {new.label} plan"
    return f"Switched to {new.label} plan"


class DashboardSession:
    """The core behind one dashboard view.

    Usage::

        session = DashboardSession(store)
        session.set_criteria(FilterCriteria(severity="Critical"))
        session.filtered_view()
        session.visibility(StatField.BLOCKED_ATTACKS)   # Locked on Free
        session.change_tier(SubscriptionTier.PRO)
        session.visibility(StatField.BLOCKED_ATTACKS)   # Visible
    """

    def __init__(
        self,
        store: ThreatStore,
        tier: SubscriptionTier = SubscriptionTier.FREE,
        scheduler: Optional[NotificationScheduler] = None,
        notification_ms: int = DEFAULT_NOTIFICATION_MS,
        top_n: int = DEFAULT_TOP_N,
    ):
        self._store = store
        self._tiers = TierManager(tier)
        self._scheduler = scheduler or NotificationScheduler()
        self._notification_ms = notification_ms
        self._top_n = top_n
        self._lock = threading.RLock()
        self._state = DashboardState(tier=tier)

        # Memo of derived data for a single store version
        self._memo_version: int = -1
        self._view_memo: "OrderedDict[FilterCriteria, Tuple[ThreatRecord, ...]]" = OrderedDict()
        self._stats_memo: Optional[AggregatedStats] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> DashboardState:
        with self._lock:
            return self._state

    @property
    def store(self) -> ThreatStore:
        return self._store

    @property
    def tier_history(self) -> List[Dict[str, Any]]:
        return self._tiers.history

    def set_criteria(self, criteria: FilterCriteria) -> DashboardState:
        with self._lock:
            self._state = replace(self._state, criteria=criteria)
            logger.debug("Filter criteria set: %s", criteria)
            return self._state

    def switch_tab(self, tab: Tab) -> bool:
        """Activate ``tab``. Returns False if it was already active."""
        with self._lock:
            previous = self._state.active_tab
            if tab == previous:
                return False
            self._state = replace(self._state, active_tab=tab)

        self._scheduler.schedule(f"Switched to {tab.label}", self._notification_ms)
        log_dashboard_event(
            EventType.TAB_SWITCHED,
            EventSeverity.INFO,
            f"Tab switched: {previous.value} -> {tab.value}",
            details={"from": previous.value, "to": tab.value},
            source="session",
            throttle=False,
        )
        return True

    def change_tier(self, tier: SubscriptionTier, reason: str = "") -> bool:
        """Switch subscription tier; applies to every later visibility call.

        Returns False if ``tier`` was already active.
        """
        with self._lock:
            previous = self._state.tier
            if not self._tiers.set_tier(tier, reason=reason):
                return False
            self._state = replace(self._state, tier=tier)

        self._scheduler.schedule(tier_change_message(previous, tier), self._notification_ms)
        log_dashboard_event(
            EventType.TIER_CHANGED,
            EventSeverity.INFO,
            f"Tier changed: {previous.value} -> {tier.value}",
            details={"from": previous.value, "to": tier.value, "reason": reason},
            source="session",
            throttle=False,
        )
        return True

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    def _sync_memo(self) -> Tuple[ThreatRecord, ...]:
        """Drop memoised data if the store moved to a new version."""
        version, records = self._store.snapshot()
        if version != self._memo_version:
            self._memo_version = version
            self._view_memo = OrderedDict()
            self._stats_memo = None
        return records

    def filtered_view(self, criteria: Optional[FilterCriteria] = None) -> Tuple[ThreatRecord, ...]:
        """Records matching ``criteria`` (default: the session's criteria)."""
        with self._lock:
            criteria = criteria if criteria is not None else self._state.criteria
            records = self._sync_memo()
            view = self._view_memo.get(criteria)
            if view is None:
                view = filter_records(records, criteria)
                self._view_memo[criteria] = view
                if len(self._view_memo) > VIEW_MEMO_SIZE:
                    self._view_memo.popitem(last=False)
            else:
                self._view_memo.move_to_end(criteria)
            return view

    def stats(self) -> AggregatedStats:
        """Statistics over the whole record set, ignoring the list filter."""
        with self._lock:
            records = self._sync_memo()
            if self._stats_memo is None:
                self._stats_memo = aggregate(records, top_n=self._top_n)
            return self._stats_memo

    def visibility(self, stat_field: StatField) -> Visibility:
        tier = self.state.tier
        return visibility(tier, stat_field, self.stats() if stat_field.is_stat else None)

    def gated_stats(self) -> Dict[str, Visibility]:
        return gated_stats(self.state.tier, self.stats())

    def gated_view(self) -> List[Dict[str, Any]]:
        tier = self.state.tier
        return [gate_record(tier, r) for r in self.filtered_view()]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def current_notification(self) -> Optional[NotificationEvent]:
        return self._scheduler.current()

    def dismiss_notification(self) -> bool:
        return self._scheduler.dismiss_current()

    def close(self) -> None:
        self._scheduler.shutdown()

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def export_rows(self) -> Tuple[ThreatRecord, ...]:
        """Exactly the records the list currently shows."""
        return self.filtered_view()

    def export_csv(self) -> str:
        """CSV of the current view.

        Raises:
            TierLockedError: if the active tier does not include export.
        """
        tier = self.state.tier
        try:
            require(tier, StatField.EXPORT_CSV)
        except TierLockedError:
            log_dashboard_event(
                EventType.EXPORT_DENIED,
                EventSeverity.INFO,
                f"CSV export denied at {tier.value} tier",
                details={"tier": tier.value},
                source="session",
                throttle=False,
            )
            raise

        rows = self.export_rows()
        log_dashboard_event(
            EventType.EXPORT_GENERATED,
            EventSeverity.INFO,
            f"CSV export generated: {len(rows)} records",
            details={"tier": tier.value, "criteria": self.state.criteria.to_dict()},
            source="session",
            throttle=False,
        )
        return records_to_csv(rows)
