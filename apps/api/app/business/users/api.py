from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.users.schemas import UserCreate, UserRead
from app.business.users.service import user_service
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    request: Request,
    dto: UserCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> UserRead | JSONResponse:
    try:
        require_permission(user, "admin.users.write")
        return user_service.create_user(db, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "user_create", exc)


@router.get("", response_model=list[UserRead])
def list_users(
    request: Request,
    include_inactive: bool = Query(default=True),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[UserRead] | JSONResponse:
    try:
        require_permission(user, "admin.users.read")
        return user_service.list_users(db, include_inactive=include_inactive)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "user_list", exc)


@router.put("/{user_id}/disable", response_model=UserRead)
def disable_user(
    request: Request,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> UserRead | JSONResponse:
    try:
        require_permission(user, "admin.users.write")
        return user_service.set_active(db, user_id, False, actor_user_id=user.user_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "user_disable", exc)


@router.put("/{user_id}/enable", response_model=UserRead)
def enable_user(
    request: Request,
    user_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> UserRead | JSONResponse:
    try:
        require_permission(user, "admin.users.write")
        return user_service.set_active(db, user_id, True, actor_user_id=user.user_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "user_enable", exc)
