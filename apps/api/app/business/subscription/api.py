from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.subscription.schemas import SubscriptionRead, SubscriptionStatus
from app.business.subscription.service import subscription_provisioner
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/subscriptions", tags=["sales.subscriptions"])


@router.get("", response_model=list[SubscriptionRead])
def list_subscriptions(
    request: Request,
    status_filter: SubscriptionStatus | None = Query(default=None, alias="status"),
    customer_id: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[SubscriptionRead] | JSONResponse:
    try:
        require_permission(user, "sales.subscriptions.read")
        return subscription_provisioner.list_subscriptions(db, status=status_filter, customer_id=customer_id, limit=limit)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "subscription_list", exc)


@router.get("/upcoming-renewals", response_model=list[SubscriptionRead])
def list_upcoming_renewals(
    request: Request,
    days: int = Query(default=30, ge=1, le=365),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[SubscriptionRead] | JSONResponse:
    try:
        require_permission(user, "sales.subscriptions.read")
        return subscription_provisioner.list_upcoming_renewals(db, days=days)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "subscription_renewals", exc)


@router.get("/{subscription_id}", response_model=SubscriptionRead)
def get_subscription(
    request: Request,
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> SubscriptionRead | JSONResponse:
    try:
        require_permission(user, "sales.subscriptions.read")
        return subscription_provisioner.get_subscription(db, subscription_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "subscription_get", exc)
