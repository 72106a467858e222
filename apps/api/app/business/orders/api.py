from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.orders.schemas import OrderCancel, OrderConfirmationRead, OrderCreate, OrderRead
from app.business.orders.service import order_lifecycle
from app.business.orders.transitions import OrderStatus
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/orders", tags=["sales.orders"])


@router.get("", response_model=list[OrderRead])
def list_orders(
    request: Request,
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    customer_id: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[OrderRead] | JSONResponse:
    try:
        require_permission(user, "sales.orders.read")
        return order_lifecycle.list_orders(db, status=status_filter, customer_id=customer_id, limit=limit)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "order_list", exc)


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    request: Request,
    dto: OrderCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrderRead | JSONResponse:
    try:
        require_permission(user, "sales.orders.write")
        return order_lifecycle.create_order(db, user, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "order_create", exc)


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    request: Request,
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrderRead | JSONResponse:
    try:
        require_permission(user, "sales.orders.read")
        return order_lifecycle.get_order(db, order_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "order_get", exc)


@router.put("/{order_id}/confirm", response_model=OrderConfirmationRead)
def confirm_order(
    request: Request,
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrderConfirmationRead | JSONResponse:
    try:
        require_permission(user, "sales.orders.confirm")
        return order_lifecycle.confirm_order(db, user, order_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "order_confirm", exc)


@router.put("/{order_id}/deliver", response_model=OrderRead)
def deliver_order(
    request: Request,
    order_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrderRead | JSONResponse:
    try:
        require_permission(user, "sales.orders.write")
        return order_lifecycle.mark_delivered(db, user, order_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "order_deliver", exc)


@router.put("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    request: Request,
    order_id: uuid.UUID,
    dto: OrderCancel | None = None,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrderRead | JSONResponse:
    try:
        require_permission(user, "sales.orders.write")
        return order_lifecycle.cancel_order(db, user, order_id, dto or OrderCancel())
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "order_cancel", exc)
