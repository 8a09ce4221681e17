# ThreatView: Dashboard - Web API
#
# FastAPI backend serving the filtered threat list, tier-gated
# statistics, and notification state to the dashboard UI.

from .main import app, build_services, install_services, start_api_server
from .dashboard_routes import DashboardServices, services

__all__ = [
    "app",
    "build_services",
    "install_services",
    "start_api_server",
    "DashboardServices",
    "services",
]
