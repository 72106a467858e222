from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user
from app.business.notifications.schemas import MarkAllReadResult, NotificationRead
from app.business.notifications.service import notification_dispatcher
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationRead])
def list_notifications(
    request: Request,
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[NotificationRead] | JSONResponse:
    try:
        return notification_dispatcher.list_for_user(db, user.user_uuid, unread_only=unread_only, limit=limit)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "notification_list", exc)


@router.put("/mark-all-read", response_model=MarkAllReadResult)
def mark_all_read(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> MarkAllReadResult | JSONResponse:
    try:
        return MarkAllReadResult(updated=notification_dispatcher.mark_all_as_read(db, user.user_uuid))
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "notification_mark_all_read", exc)


@router.put("/{notification_id}/mark-read", response_model=NotificationRead)
def mark_read(
    request: Request,
    notification_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> NotificationRead | JSONResponse:
    try:
        return notification_dispatcher.mark_as_read(db, notification_id, user.user_uuid)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "notification_mark_read", exc)
