from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.leads.schemas import LeadHistoryRead
from app.business.reporting.dashboard.schemas import DashboardStatsRead
from app.business.reporting.dashboard.service import dashboard_service
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/dashboard", tags=["reporting.dashboard"])


@router.get("/stats", response_model=DashboardStatsRead)
def get_dashboard_stats(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DashboardStatsRead | JSONResponse:
    try:
        require_permission(user, "reporting.dashboard.read")
        return dashboard_service.stats(db)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "dashboard_stats", exc)


@router.get("/recent-activities", response_model=list[LeadHistoryRead])
def get_recent_activities(
    request: Request,
    count: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadHistoryRead] | JSONResponse:
    try:
        require_permission(user, "reporting.dashboard.read")
        return dashboard_service.recent_activities(db, count=count)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "dashboard_activities", exc)
