"""
Log throttling for the ThreatView audit trail.

A feed that keeps failing would otherwise write the same line on every
refresh cycle. This module:
1. Suppresses identical messages from one source within a time window
2. Backs off further for sources that keep repeating themselves
3. Reports how many lines were suppressed when logging resumes
"""

import hashlib
import re
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

# Digits and long hex runs vary between otherwise-identical messages
_VARIABLE_PARTS = re.compile(r"[a-f0-9]{8,}|\d+")


@dataclass
class ThrottleState:
    """Throttling state for one source/message combination."""
    last_logged: float
    suppressed_count: int = 0
    backoff_multiplier: float = 1.0


class LogThrottler:
    """
    Rate limit and deduplicate log messages per source.

    Critical and error messages always pass.
    """

    def __init__(
        self,
        min_interval_seconds: float = 60.0,
        max_backoff_multiplier: float = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = min_interval_seconds
        self.max_backoff = max_backoff_multiplier
        self._clock = clock
        self.states: Dict[str, ThrottleState] = {}
        self.total_suppressed = 0

    @staticmethod
    def message_key(source: str, message: str) -> str:
        normalized = _VARIABLE_PARTS.sub("X", message.lower())
        digest = hashlib.md5(normalized.encode()).hexdigest()[:8]
        return f"{source}:{digest}"

    def should_log(
        self,
        source: str,
        message: str,
        severity: str = "info"
    ) -> Tuple[bool, Optional[str]]:
        """
        Check whether a message should be written.

        Returns:
            Tuple of (should_log, note) where ``note`` summarises lines
            suppressed since this message was last written.
        """
        if severity.lower() in ("critical", "error"):
            return True, None

        now = self._clock()
        key = self.message_key(source, message)
        state = self.states.get(key)

        if state is None:
            self.states[key] = ThrottleState(last_logged=now)
            return True, None

        required_interval = self.min_interval * state.backoff_multiplier
        if now - state.last_logged < required_interval:
            state.suppressed_count += 1
            self.total_suppressed += 1
            if state.suppressed_count % 10 == 0:
                state.backoff_multiplier = min(
                    state.backoff_multiplier * 1.5, self.max_backoff
                )
            return False, None

        note = None
        if state.suppressed_count:
            note = f"[suppressed {state.suppressed_count} similar messages from {source}]"
        state.last_logged = now
        state.suppressed_count = 0
        if state.backoff_multiplier > 1.0:
            state.backoff_multiplier = max(1.0, state.backoff_multiplier * 0.9)
        return True, note

    def reset_source(self, source: str) -> None:
        """Forget throttling state for one source."""
        for key in [k for k in self.states if k.startswith(f"{source}:")]:
            del self.states[key]


# Global throttler instance
_log_throttler: Optional[LogThrottler] = None


def get_log_throttler() -> LogThrottler:
    """Get global log throttler (singleton pattern)."""
    global _log_throttler
    if _log_throttler is None:
        _log_throttler = LogThrottler()
    return _log_throttler
