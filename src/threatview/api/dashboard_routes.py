# ThreatView: Dashboard API Routes
#
# Read surface for the rendering layer plus the intents it forwards:
#   /api/threats           - filtered, tier-gated record list
#   /api/criteria          - set the list filter
#   /api/stats             - tier-gated summary statistics
#   /api/visibility/{f}    - one field's visibility decision
#   /api/tier, /api/tab    - session transitions (trigger a banner)
#   /api/notification      - current banner / dismiss it
#   /api/export.csv        - CSV of the current view (Pro and up)
#   /api/refresh           - trigger an immediate feed refresh

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response
from pydantic import BaseModel, Field

from ..core.tiers import SubscriptionTier
from ..feed.errors import TierLockedError
from ..feed.models import FilterCriteria
from ..feed.refresher import FeedRefresher
from ..feed.session import DashboardSession, Tab
from ..feed.tier_gate import StatField, gate_record

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dashboard"])


# ── Service container ────────────────────────────────────────────────


class DashboardServices:
    """Holds the session and refresher the routes operate on.

    Routes look components up here rather than importing singletons,
    so tests can install their own.
    """

    def __init__(self):
        self.session: Optional[DashboardSession] = None
        self.refresher: Optional[FeedRefresher] = None


services = DashboardServices()


def get_session() -> DashboardSession:
    if services.session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard session not initialised",
        )
    return services.session


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ── Pydantic models ──────────────────────────────────────────────────


class ThreatItem(BaseModel):
    id: str
    timestamp: Optional[str] = None
    type: str = ""
    severity: str = ""
    country: str = ""
    indicator: Optional[str] = None
    indicator_locked: bool = False
    description: str = ""
    classified: bool = True


class CriteriaModel(BaseModel):
    search: str = ""
    severity: str = "all"
    threat_type: str = "all"
    country: str = "all"


class ThreatListResponse(BaseModel):
    items: List[ThreatItem]
    total: int
    criteria: CriteriaModel
    tier: str
    generated_at: str


class StatsResponse(BaseModel):
    tier: str
    fields: Dict[str, Dict[str, Any]]
    generated_at: str


class TierRequest(BaseModel):
    tier: str


class TabRequest(BaseModel):
    tab: str


class TransitionResponse(BaseModel):
    changed: bool
    state: Dict[str, Any]
    notification: Optional[Dict[str, Any]] = None


class NotificationResponse(BaseModel):
    notification: Optional[Dict[str, Any]] = None


class DismissResponse(BaseModel):
    dismissed: bool


class VisibilityResponse(BaseModel):
    field: str
    locked: bool
    value: Any = None
    required_tier: Optional[str] = None


class RefreshResponse(BaseModel):
    report: Dict[str, Any] = Field(default_factory=dict)


# ── Routes ───────────────────────────────────────────────────────────


@router.get("/threats", response_model=ThreatListResponse)
async def list_threats(
    search: Optional[str] = Query(None),
    severity: Optional[str] = Query(None),
    threat_type: Optional[str] = Query(None, alias="type"),
    country: Optional[str] = Query(None),
    session: DashboardSession = Depends(get_session),
):
    """Filtered list view.

    Query parameters override the session's criteria for this request
    only; with none given, the session's criteria apply.
    """
    if any(p is not None for p in (search, severity, threat_type, country)):
        criteria = FilterCriteria.from_params(search, severity, threat_type, country)
        view = session.filtered_view(criteria)
    else:
        criteria = session.state.criteria
        view = session.filtered_view()

    tier = session.state.tier
    return ThreatListResponse(
        items=[ThreatItem(**gate_record(tier, r)) for r in view],
        total=len(view),
        criteria=CriteriaModel(**criteria.to_dict()),
        tier=tier.value,
        generated_at=_now(),
    )


@router.post("/criteria")
async def set_criteria(
    body: CriteriaModel,
    session: DashboardSession = Depends(get_session),
):
    state = session.set_criteria(FilterCriteria(**body.model_dump()))
    return {"state": state.to_dict(), "total": len(session.filtered_view())}


@router.get("/stats", response_model=StatsResponse)
async def get_stats(session: DashboardSession = Depends(get_session)):
    gated = session.gated_stats()
    return StatsResponse(
        tier=session.state.tier.value,
        fields={name: v.to_dict() for name, v in gated.items()},
        generated_at=_now(),
    )


@router.get("/visibility/{field_name}", response_model=VisibilityResponse)
async def get_visibility(
    field_name: str,
    session: DashboardSession = Depends(get_session),
):
    try:
        stat_field = StatField.parse(field_name)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown field: {field_name}")
    return VisibilityResponse(**session.visibility(stat_field).to_dict())


@router.get("/state")
async def get_state(session: DashboardSession = Depends(get_session)):
    return session.state.to_dict()


@router.post("/tier", response_model=TransitionResponse)
async def change_tier(
    body: TierRequest,
    session: DashboardSession = Depends(get_session),
):
    try:
        tier = SubscriptionTier.parse(body.tier)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    changed = session.change_tier(tier, reason="dashboard toggle")
    current = session.current_notification()
    return TransitionResponse(
        changed=changed,
        state=session.state.to_dict(),
        notification=current.to_dict() if current else None,
    )


@router.post("/tab", response_model=TransitionResponse)
async def switch_tab(
    body: TabRequest,
    session: DashboardSession = Depends(get_session),
):
    try:
        tab = Tab(body.tab.strip().lower())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown tab: {body.tab}")
    changed = session.switch_tab(tab)
    current = session.current_notification()
    return TransitionResponse(
        changed=changed,
        state=session.state.to_dict(),
        notification=current.to_dict() if current else None,
    )


@router.get("/notification", response_model=NotificationResponse)
async def get_notification(session: DashboardSession = Depends(get_session)):
    current = session.current_notification()
    return NotificationResponse(notification=current.to_dict() if current else None)


@router.delete("/notification", response_model=DismissResponse)
async def dismiss_notification(session: DashboardSession = Depends(get_session)):
    return DismissResponse(dismissed=session.dismiss_notification())


@router.get("/export.csv")
async def export_csv(session: DashboardSession = Depends(get_session)):
    try:
        body = session.export_csv()
    except TierLockedError as exc:
        raise HTTPException(status_code=403, detail=str(exc))
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="threats.csv"'},
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_feed():
    if services.refresher is None:
        raise HTTPException(status_code=503, detail="Feed refresher not configured")
    logger.info("Manual feed refresh requested")
    report = services.refresher.run_now()
    return RefreshResponse(report=report.to_dict())


@router.get("/health")
async def health():
    session = services.session
    return {
        "status": "healthy",
        "records": len(session.store) if session else 0,
        "store_version": session.store.version if session else 0,
    }
