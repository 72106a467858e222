from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import failure_response, get_current_user, require_permission
from app.business.leads.schemas import (
    LeadAssignmentUpdate,
    LeadConversionRead,
    LeadCreate,
    LeadDetailsUpdate,
    LeadHistoryRead,
    LeadNoteCreate,
    LeadRatingUpdate,
    LeadRead,
    LeadStatusUpdate,
    LeadWithHistoryRead,
)
from app.business.leads.service import lead_lifecycle
from app.business.leads.transitions import LeadStatus
from app.core.auth import ActorUser
from app.core.database import get_db
from app.core.errors import WorkflowError


router = APIRouter(prefix="/api/leads", tags=["sales.leads"])


@router.get("", response_model=list[LeadRead])
def list_leads(
    request: Request,
    status_filter: LeadStatus | None = Query(default=None, alias="status"),
    assigned_to: uuid.UUID | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadRead] | JSONResponse:
    try:
        require_permission(user, "sales.leads.read")
        return lead_lifecycle.list_leads(db, status=status_filter, assigned_to=assigned_to, limit=limit)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_list", exc)


@router.post("", response_model=LeadRead, status_code=status.HTTP_201_CREATED)
def create_lead(
    request: Request,
    dto: LeadCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.write")
        return lead_lifecycle.create_lead(db, user, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_create", exc)


@router.get("/{lead_id}", response_model=LeadRead)
def get_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.read")
        return lead_lifecycle.get_lead(db, lead_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_get", exc)


@router.get("/{lead_id}/with-history", response_model=LeadWithHistoryRead)
def get_lead_with_history(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadWithHistoryRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.read")
        return lead_lifecycle.get_lead_with_history(db, lead_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_get", exc)


@router.get("/{lead_id}/history", response_model=list[LeadHistoryRead])
def list_lead_history(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[LeadHistoryRead] | JSONResponse:
    try:
        require_permission(user, "sales.leads.read")
        return lead_lifecycle.list_history(db, lead_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_history", exc)


@router.patch("/{lead_id}", response_model=LeadRead)
def update_lead_details(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadDetailsUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.write")
        return lead_lifecycle.update_details(db, user, lead_id, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_update", exc)


@router.post("/{lead_id}/add-note", response_model=LeadHistoryRead, status_code=status.HTTP_201_CREATED)
def add_lead_note(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadNoteCreate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadHistoryRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.write")
        return lead_lifecycle.add_note(db, user, lead_id, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_add_note", exc)


@router.put("/{lead_id}/update-status", response_model=LeadRead)
def update_lead_status(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadStatusUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.write")
        return lead_lifecycle.change_status(db, user, lead_id, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_update_status", exc)


@router.put("/{lead_id}/assignment", response_model=LeadRead)
def update_lead_assignment(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadAssignmentUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.assign")
        return lead_lifecycle.change_assignment(db, user, lead_id, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_assign", exc)


@router.put("/{lead_id}/rating", response_model=LeadRead)
def update_lead_rating(
    request: Request,
    lead_id: uuid.UUID,
    dto: LeadRatingUpdate,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.write")
        return lead_lifecycle.change_rating(db, user, lead_id, dto)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_rating", exc)


@router.post("/{lead_id}/convert", response_model=LeadConversionRead)
def convert_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> LeadConversionRead | JSONResponse:
    try:
        require_permission(user, "sales.leads.convert")
        return lead_lifecycle.convert_to_customer(db, user, lead_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_convert", exc)


@router.delete("/{lead_id}", status_code=status.HTTP_204_NO_CONTENT, response_model=None)
def delete_lead(
    request: Request,
    lead_id: uuid.UUID,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> Response:
    try:
        require_permission(user, "sales.leads.delete")
        lead_lifecycle.delete_lead(db, user, lead_id)
    except (HTTPException, WorkflowError) as exc:
        return failure_response(request, "lead_delete", exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
