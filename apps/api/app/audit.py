"""Append-only lead history.

Entries are written into the caller's session and become durable together with
the mutation they describe. Entries are never updated or deleted.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.business.leads.models import LeadHistoryEvent
from app.business.leads.schemas import LeadChangeType
from app.context import get_correlation_id


def record(
    session: Session,
    *,
    lead_id: uuid.UUID,
    change_type: LeadChangeType,
    actor_user_id: uuid.UUID,
    old_value: str | None = None,
    new_value: str | None = None,
    description: str | None = None,
    correlation_id: str | None = None,
) -> LeadHistoryEvent:
    entry = LeadHistoryEvent(
        lead_id=lead_id,
        change_type=change_type.value,
        old_value=old_value,
        new_value=new_value,
        description=description,
        changed_by_user_id=actor_user_id,
        correlation_id=correlation_id or get_correlation_id(),
    )
    session.add(entry)
    session.flush()
    return entry


def list_for_lead(session: Session, lead_id: uuid.UUID) -> list[LeadHistoryEvent]:
    return list(
        session.scalars(
            select(LeadHistoryEvent)
            .where(LeadHistoryEvent.lead_id == lead_id)
            .order_by(LeadHistoryEvent.changed_at.asc(), LeadHistoryEvent.id.asc())
        ).all()
    )
