# ThreatView: Core - Audit Logging
#
# Append-only structured log of dashboard state transitions (feed
# refreshes, tier and tab changes, exports).
# Every event is written as one JSON line to a daily audit file.

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from uuid import uuid4

import structlog

from .log_throttle import get_log_throttler

AUDIT_LOGGER_NAME = "threatview.audit"


class EventType(str, Enum):
    """Types of dashboard events recorded in the audit log."""

    # Feed
    FEED_REFRESHED = "feed.refreshed"
    FEED_REFRESH_FAILED = "feed.refresh.failed"
    FEED_RECORDS_DROPPED = "feed.records.dropped"

    # Session
    TIER_CHANGED = "session.tier.changed"
    TAB_SWITCHED = "session.tab.switched"

    # Export
    EXPORT_GENERATED = "export.generated"
    EXPORT_DENIED = "export.denied"

    # System
    SYSTEM_START = "system.start"
    SYSTEM_STOP = "system.stop"


class EventSeverity(str, Enum):
    """
    Severity levels for audit events.

    - INFO: Normal activity
    - WARNING: Degraded but recovered (e.g. refresh failed, old data kept)
    - ERROR: Operation failed outright
    - CRITICAL: Never throttled, always written
    """
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditLogger:
    """
    Append-only audit logger for dashboard events.

    Features:
    - Structured JSON logging via structlog
    - Automatic timestamp and event ID
    - Daily log files (``audit_YYYY-MM-DD.log``)
    - Throttling of repeated identical messages
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._setup_file_handler()

        self.logger = structlog.get_logger(AUDIT_LOGGER_NAME)

    @property
    def log_file(self) -> Path:
        today = datetime.now().strftime("%Y-%m-%d")
        return self.log_dir / f"audit_{today}.log"

    def _setup_file_handler(self):
        """Point the audit logger at today's file, replacing older handlers."""
        file_handler = logging.FileHandler(self.log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))  # structlog renders

        audit_logger = logging.getLogger(AUDIT_LOGGER_NAME)
        for handler in list(audit_logger.handlers):
            audit_logger.removeHandler(handler)
            handler.close()
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        audit_logger.propagate = False

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        source: str = "dashboard",
        throttle: bool = True,
    ) -> str:
        """
        Log a dashboard event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details
            source: Component emitting the event (used for throttling)
            throttle: Pass False for user actions that must always be recorded

        Returns:
            str: Event ID (UUID), also returned when the line was throttled
        """
        event_id = str(uuid4())

        suppressed_note = None
        if throttle:
            should_log, suppressed_note = get_log_throttler().should_log(
                source=source,
                message=message,
                severity=severity.value,
            )
            if not should_log:
                return event_id

        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "source": source,
            "details": details or {},
        }
        if suppressed_note:
            event_data["throttle_note"] = suppressed_note

        self.logger.info("dashboard_event", **event_data)
        return event_id

    def recent_events(
        self,
        event_type: Optional[EventType] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """Read back the newest events from today's audit file."""
        path = self.log_file
        if not path.exists():
            return []

        events: List[Dict[str, Any]] = []
        with open(path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    entry = json.loads(line)
                except json.JSONDecodeError:
                    continue
                if event_type is not None and entry.get("event_type") != event_type.value:
                    continue
                events.append(entry)
        return events[-limit:]


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import get_settings

        _audit_logger = AuditLogger(log_dir=get_settings().audit_dir)
    return _audit_logger


def log_dashboard_event(
    event_type: EventType,
    severity: EventSeverity,
    message: str,
    **kwargs
) -> str:
    """
    Convenience function for logging dashboard events.

    Usage:
        log_dashboard_event(
            EventType.TIER_CHANGED,
            EventSeverity.INFO,
            "Tier changed: free -> pro",
            details={"from": "free", "to": "pro"}
        )
    """
    return get_audit_logger().log_event(event_type, severity, message, **kwargs)
