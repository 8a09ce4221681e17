# ThreatView: Dashboard - FastAPI Backend
#
# REST API consumed by the browser dashboard.  The app object is built
# at import time; the feed components behind it are wired by
# ``build_services`` when the server starts (tests install their own).

import logging
from typing import Optional, Tuple

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import Settings, get_settings
from ..core import EventSeverity, EventType, get_audit_logger
from ..feed.fetcher import HttpFeedFetcher
from ..feed.refresher import FeedRefresher
from ..feed.session import DashboardSession
from ..feed.store import ThreatStore
from .dashboard_routes import router as dashboard_router, services

logger = logging.getLogger(__name__)

app = FastAPI(
    title="ThreatView API",
    description="Threat feed dashboard backend",
    version=__version__,
)

_allowed_origins = [
    "http://localhost:3000", "http://127.0.0.1:3000",
    "http://localhost:5173", "http://127.0.0.1:5173",
]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(dashboard_router)


def build_services(settings: Optional[Settings] = None) -> Tuple[DashboardSession, FeedRefresher]:
    """Create the store, fetcher, refresher and session from settings."""
    settings = settings or get_settings()
    store = ThreatStore()
    fetcher = HttpFeedFetcher(url=settings.feed_url, timeout=settings.feed_timeout)
    refresher = FeedRefresher(store, fetcher, interval_seconds=settings.refresh_interval)
    session = DashboardSession(
        store,
        tier=settings.default_tier,
        notification_ms=settings.notification_ms,
        top_n=settings.top_n,
    )
    return session, refresher


def install_services(session: DashboardSession, refresher: Optional[FeedRefresher] = None) -> None:
    services.session = session
    services.refresher = refresher


def start_api_server(
    host: str = "127.0.0.1",
    port: int = 8000,
    refresh: bool = True,
    settings: Optional[Settings] = None,
):
    """
    Start the FastAPI server with live feed refresh.

    Args:
        host: Host to bind to (default: localhost only)
        port: Port to listen on
        refresh: Poll the feed in the background (False serves an empty store)
    """
    session, refresher = build_services(settings)
    install_services(session, refresher)

    get_audit_logger().log_event(
        event_type=EventType.SYSTEM_START,
        severity=EventSeverity.INFO,
        message="ThreatView API starting",
        details={"host": host, "port": port, "refresh": refresh, "version": __version__},
        source="api",
    )

    if refresh:
        refresher.start()
    try:
        uvicorn.run(app, host=host, port=port, log_level="info")
    finally:
        refresher.stop()
        session.close()
        get_audit_logger().log_event(
            event_type=EventType.SYSTEM_STOP,
            severity=EventSeverity.INFO,
            message="ThreatView API stopped",
            source="api",
        )


if __name__ == "__main__":
    start_api_server()
