from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.customers.schemas import CustomerCreate, CustomerRead, CustomerUpdate
from app.business.customers.service import customer_service
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/customers", tags=["sales.customers"])


@router.get("", response_model=list[CustomerRead])
def list_customers(
    request: Request,
    q: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[CustomerRead] | JSONResponse:
    try:
        require_permission(user, "sales.customers.read")
        return customer_service.list_customers(db, q=q, limit=limit)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "customer_list", exc)


@router.post("", response_model=CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    request: Request,
    dto: CustomerCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerRead | JSONResponse:
    try:
        require_permission(user, "sales.customers.write")
        return customer_service.create_customer(db, user, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "customer_create", exc)


@router.get("/{customer_id}", response_model=CustomerRead)
def get_customer(
    request: Request,
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerRead | JSONResponse:
    try:
        require_permission(user, "sales.customers.read")
        return customer_service.get_customer(db, customer_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "customer_get", exc)


@router.put("/{customer_id}", response_model=CustomerRead)
def update_customer(
    request: Request,
    customer_id: uuid.UUID,
    dto: CustomerUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CustomerRead | JSONResponse:
    try:
        require_permission(user, "sales.customers.write")
        return customer_service.update_customer(db, user, customer_id, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "customer_update", exc)


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_customer(
    request: Request,
    customer_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        require_permission(user, "sales.customers.delete")
        customer_service.delete_customer(db, user, customer_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "customer_delete", exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
