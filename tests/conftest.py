"""
Shared pytest fixtures for the ThreatView test suite.

Autouse fixtures below isolate tests from live application state:
  - Audit logger  -> temp directory  (keeps test events out of ./audit_logs)
  - Log throttler -> fresh instance  (repeated messages across tests still log)
  - Settings      -> reset singleton (env changes in one test do not leak)
"""

from datetime import datetime, timezone

import pytest


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path):
    """Point the global AuditLogger at a temp directory for every test."""
    import threatview.core.audit_log as audit_mod

    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = audit_mod.AuditLogger(log_dir=tmp_path / "audit_logs")

    yield audit_mod._audit_logger

    audit_mod._audit_logger = old_logger


@pytest.fixture(autouse=True)
def _fresh_throttler():
    import threatview.core.log_throttle as throttle_mod

    old = throttle_mod._log_throttler
    throttle_mod._log_throttler = None
    yield
    throttle_mod._log_throttler = old


@pytest.fixture(autouse=True)
def _reset_settings():
    import threatview.config as config_mod

    old = config_mod._settings
    config_mod._settings = None
    yield
    config_mod._settings = old


# ── Fake timers for the notification scheduler ───────────────────────


class FakeTimer:
    """Timer that only fires when the test says so."""

    def __init__(self, seconds, callback):
        self.seconds = seconds
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class FakeTimerFactory:
    def __init__(self):
        self.timers = []

    def __call__(self, seconds, callback):
        timer = FakeTimer(seconds, callback)
        self.timers.append(timer)
        return timer


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def fixed_clock():
    now = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    return lambda: now
