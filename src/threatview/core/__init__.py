# ThreatView: Core Module - Shared Utilities
#
# Core module provides functionality shared across the dashboard:
# - Subscription tiers
# - Audit logging
# - Log throttling

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_dashboard_event,
)
from .log_throttle import LogThrottler, get_log_throttler
from .tiers import SubscriptionTier, TierManager

__all__ = [
    # Tiers
    "SubscriptionTier",
    "TierManager",
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_dashboard_event",
    # Throttling
    "LogThrottler",
    "get_log_throttler",
]
