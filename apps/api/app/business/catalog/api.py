from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.catalog.schemas import ProductVariantCreate, ProductVariantRead
from app.business.catalog.service import catalog_service
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/product-variants", tags=["sales.catalog"])


@router.get("", response_model=list[ProductVariantRead])
def list_variants(
    request: Request,
    active_only: bool = Query(default=True),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProductVariantRead] | JSONResponse:
    try:
        require_permission(user, "sales.catalog.read")
        return catalog_service.list_variants(db, active_only=active_only)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "variant_list", exc)


@router.post("", response_model=ProductVariantRead, status_code=status.HTTP_201_CREATED)
def create_variant(
    request: Request,
    dto: ProductVariantCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProductVariantRead | JSONResponse:
    try:
        require_permission(user, "sales.catalog.write")
        return catalog_service.create_variant(db, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "variant_create", exc)


@router.get("/{variant_id}", response_model=ProductVariantRead)
def get_variant(
    request: Request,
    variant_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProductVariantRead | JSONResponse:
    try:
        require_permission(user, "sales.catalog.read")
        return catalog_service.get_variant(db, variant_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "variant_get", exc)


@router.put("/{variant_id}/deactivate", response_model=ProductVariantRead)
def deactivate_variant(
    request: Request,
    variant_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProductVariantRead | JSONResponse:
    try:
        require_permission(user, "sales.catalog.write")
        return catalog_service.deactivate_variant(db, variant_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "variant_deactivate", exc)
