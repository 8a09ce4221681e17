# ThreatView: Feed Module - Threat Feed Derivation Engine
#
# Provides the threat record models, the record store and its feed
# fetchers, the filter and aggregation engines, the subscription tier
# gate, the notification scheduler, and the dashboard session tying
# them together.

from .models import (
    WILDCARD,
    FilterCriteria,
    Severity,
    ThreatRecord,
    ThreatType,
)
from .errors import (
    CriteriaConflictError,
    FeedError,
    FeedFetchError,
    FeedFormatError,
    TierLockedError,
)
from .filters import build_predicate, filter_records
from .aggregation import AggregatedStats, TimelineBucket, aggregate
from .tier_gate import Locked, StatField, Visible, gate_record, gated_stats, visibility
from .notifications import NotificationEvent, NotificationHandle, NotificationScheduler
from .normalize import NormalizedFeed, normalize_feed
from .fetcher import FeedFetcher, HttpFeedFetcher
from .store import RefreshReport, ThreatStore
from .refresher import FeedRefresher
from .export import records_to_csv
from .session import DashboardSession, DashboardState, Tab

__all__ = [
    # Data models
    "WILDCARD",
    "FilterCriteria",
    "Severity",
    "ThreatRecord",
    "ThreatType",
    # Errors
    "CriteriaConflictError",
    "FeedError",
    "FeedFetchError",
    "FeedFormatError",
    "TierLockedError",
    # Filter Engine
    "build_predicate",
    "filter_records",
    # Aggregation Engine
    "AggregatedStats",
    "TimelineBucket",
    "aggregate",
    # Tier Gate
    "Locked",
    "StatField",
    "Visible",
    "gate_record",
    "gated_stats",
    "visibility",
    # Notifications
    "NotificationEvent",
    "NotificationHandle",
    "NotificationScheduler",
    # Feed ingestion
    "NormalizedFeed",
    "normalize_feed",
    "FeedFetcher",
    "HttpFeedFetcher",
    "RefreshReport",
    "ThreatStore",
    "FeedRefresher",
    # Export
    "records_to_csv",
    # Session
    "DashboardSession",
    "DashboardState",
    "Tab",
]
