# ThreatView: Feed Module - Notification Scheduler
#
# Short-lived banners shown after a state transition (tab switch, tier
# change).  At most one banner is active; scheduling a new one replaces
# the old one and cancels its timer.  Each timer is bound to the handle
# it was started for, so a timer that fires late can only dismiss its
# own banner, never a newer one.

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Protocol
from uuid import uuid4

logger = logging.getLogger(__name__)


class Timer(Protocol):
    def start(self) -> None: ...

    def cancel(self) -> None: ...


TimerFactory = Callable[[float, Callable[[], None]], Timer]


def _thread_timer(seconds: float, callback: Callable[[], None]) -> Timer:
    timer = threading.Timer(seconds, callback)
    timer.daemon = True
    return timer


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class NotificationEvent:
    """A banner message with its display window."""

    message: str
    created_at: datetime
    duration_ms: int

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(milliseconds=self.duration_ms)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "created_at": self.created_at.isoformat(),
            "duration_ms": self.duration_ms,
            "expires_at": self.expires_at.isoformat(),
        }


@dataclass(frozen=True)
class NotificationHandle:
    """Token returned by ``schedule``; pass it to ``dismiss``."""

    event: NotificationEvent
    handle_id: str = field(default_factory=lambda: uuid4().hex)


class NotificationScheduler:
    """Owns the single active notification and its auto-dismiss timer.

    Usage::

        scheduler = NotificationScheduler()
        handle = scheduler.schedule("Switched to Analytics", 3000)
        scheduler.current()      # -> NotificationEvent
        scheduler.dismiss(handle)
        scheduler.dismiss(handle)  # no-op
    """

    def __init__(
        self,
        timer_factory: TimerFactory = _thread_timer,
        clock: Callable[[], datetime] = _utcnow,
        on_change: Optional[Callable[[Optional[NotificationEvent]], None]] = None,
    ):
        self._timer_factory = timer_factory
        self._clock = clock
        self._on_change = on_change
        self._lock = threading.Lock()
        # Held across each state change and its on_change call: callbacks
        # arrive in change order
        self._notify_lock = threading.RLock()
        self._active: Optional[NotificationHandle] = None
        self._timer: Optional[Timer] = None

    def schedule(self, message: str, duration_ms: int) -> NotificationHandle:
        """Show ``message`` for ``duration_ms``, replacing any active banner.

        Raises:
            ValueError: if ``duration_ms`` is not positive.
        """
        if duration_ms <= 0:
            raise ValueError(f"duration_ms must be positive, got {duration_ms}")

        handle = NotificationHandle(
            event=NotificationEvent(
                message=message,
                created_at=self._clock(),
                duration_ms=duration_ms,
            )
        )
        timer = self._timer_factory(
            duration_ms / 1000.0, lambda: self._expire(handle.handle_id)
        )

        with self._notify_lock:
            with self._lock:
                previous = self._timer
                self._active = handle
                self._timer = timer
                if previous is not None:
                    previous.cancel()
                timer.start()

            logger.debug("Notification shown: %s (%d ms)", message, duration_ms)
            self._notify(handle.event)
        return handle

    def dismiss(self, handle: NotificationHandle) -> bool:
        """Dismiss ``handle`` if it is still the active banner.

        Returns:
            True if a banner was removed; False if it had already gone.
        """
        return self._clear(handle.handle_id, cancel_timer=True)

    def dismiss_current(self) -> bool:
        with self._lock:
            active = self._active
        if active is None:
            return False
        return self.dismiss(active)

    def current(self) -> Optional[NotificationEvent]:
        with self._lock:
            return self._active.event if self._active else None

    @property
    def active_handle(self) -> Optional[NotificationHandle]:
        with self._lock:
            return self._active

    def is_active(self, handle: NotificationHandle) -> bool:
        with self._lock:
            return self._active is not None and self._active.handle_id == handle.handle_id

    def shutdown(self) -> None:
        """Cancel the pending timer and drop the active banner."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._active = None

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _expire(self, handle_id: str) -> None:
        if self._clear(handle_id, cancel_timer=False):
            logger.debug("Notification auto-dismissed")

    def _clear(self, handle_id: str, cancel_timer: bool) -> bool:
        with self._notify_lock:
            with self._lock:
                if self._active is None or self._active.handle_id != handle_id:
                    return False
                if cancel_timer and self._timer is not None:
                    self._timer.cancel()
                self._active = None
                self._timer = None
            self._notify(None)
        return True

    def _notify(self, event: Optional[NotificationEvent]) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(event)
        except Exception as exc:
            logger.warning("Notification change callback failed: %s", exc)
