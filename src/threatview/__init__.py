# ThreatView - Main Package
#
# ThreatView: threat feed dashboard backend.
# Filters, aggregates and tier-gates a live feed of threat events.

__version__ = "0.1.0"
__author__ = "ThreatView Team"
__description__ = "Threat feed dashboard with filtering, aggregation and tier-gated statistics"

from .core import (
    EventSeverity,
    EventType,
    SubscriptionTier,
    TierManager,
    get_audit_logger,
)

__all__ = [
    "__version__",
    "SubscriptionTier",
    "TierManager",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
]
