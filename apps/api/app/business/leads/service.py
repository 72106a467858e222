from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import audit, events
from app.business.customers.schemas import CustomerRead
from app.business.customers.service import customer_service
from app.business.leads.models import Lead
from app.business.leads.schemas import (
    LeadAssignmentUpdate,
    LeadChangeType,
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
from app.business.leads.transitions import LeadStatus, assert_convertible, assert_lead_mutable, next_lead_status
from app.business.notifications.models import Notification
from app.business.notifications.schemas import NotificationType, RelatedToType
from app.business.notifications.service import notification_dispatcher
from app.business.users.service import user_service
from app.core.auth import ActorUser
from app.core.database import unit_of_work
from app.core.errors import AlreadyConvertedError, InvalidTransitionError, NotFoundError
from app.metrics import observe_lead_transition
from app.otel import workflow_span


logger = logging.getLogger("app.sales.leads")
tracer = trace.get_tracer("app.sales.leads")

_DETAIL_FIELDS = (
    "company_name",
    "contact_name",
    "email",
    "phone",
    "website",
    "industry",
    "lead_source",
    "estimated_value",
    "expected_close_date",
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LeadLifecycle:
    def create_lead(self, session: Session, actor: ActorUser, dto: LeadCreate) -> LeadRead:
        with workflow_span(tracer, "sales.lead.create"):
            if dto.assigned_to is not None:
                user_service.get_active_user(session, dto.assigned_to)

            lead = Lead(**dto.model_dump(mode="python"), status=LeadStatus.NEW.value, created_by=actor.user_uuid)
            pending: list[Notification] = []
            with unit_of_work(session):
                session.add(lead)
                session.flush()
                if lead.assigned_to is not None:
                    pending.append(
                        notification_dispatcher.notify(
                            session,
                            user_id=lead.assigned_to,
                            notification_type=NotificationType.LEAD_ASSIGNED,
                            title="New Lead Assigned",
                            message=f"You have been assigned a new lead: {lead.company_name}",
                            related_to_type=RelatedToType.LEAD,
                            related_to_id=lead.id,
                        )
                    )

            notification_dispatcher.deliver(session, pending)
            session.refresh(lead)
            logger.info("lead.created", extra={"lead_id": str(lead.id), "actor_user_id": actor.user_id})
            self._emit("sales.lead.created", actor, lead)
            return LeadRead.model_validate(lead)

    def add_note(self, session: Session, actor: ActorUser, lead_id: uuid.UUID, dto: LeadNoteCreate) -> LeadHistoryRead:
        with workflow_span(tracer, "sales.lead.add_note", lead_id=lead_id):
            lead = self._get_lead(session, lead_id)
            assert_lead_mutable(LeadStatus(lead.status))

            with unit_of_work(session):
                self._bump_version(session, lead, {})
                entry = audit.record(
                    session,
                    lead_id=lead.id,
                    change_type=LeadChangeType.NOTE_ADDED,
                    actor_user_id=actor.user_uuid,
                    new_value=dto.note,
                    description=dto.description or dto.note,
                )

            self._after_mutation(actor, lead, LeadChangeType.NOTE_ADDED)
            return LeadHistoryRead.model_validate(entry)

    def change_status(self, session: Session, actor: ActorUser, lead_id: uuid.UUID, dto: LeadStatusUpdate) -> LeadRead:
        with workflow_span(tracer, "sales.lead.change_status", lead_id=lead_id, target=dto.status):
            lead = self._get_lead(session, lead_id)
            current = LeadStatus(lead.status)
            target = next_lead_status(current, dto.status)
            if target == current:
                return LeadRead.model_validate(lead)

            changes: dict[str, Any] = {"status": target.value}
            if target == LeadStatus.LOST:
                changes["lost_reason"] = dto.notes

            pending: list[Notification] = []
            with unit_of_work(session):
                self._bump_version(session, lead, changes)
                audit.record(
                    session,
                    lead_id=lead.id,
                    change_type=LeadChangeType.STATUS_CHANGED,
                    actor_user_id=actor.user_uuid,
                    old_value=current.value,
                    new_value=target.value,
                    description=dto.notes or f"Status changed from {current} to {target}",
                )
                if lead.assigned_to is not None:
                    pending.append(
                        notification_dispatcher.notify(
                            session,
                            user_id=lead.assigned_to,
                            notification_type=NotificationType.LEAD_STATUS_CHANGED,
                            title="Lead Status Changed",
                            message=f"Lead {lead.company_name} moved from {current} to {target}",
                            related_to_type=RelatedToType.LEAD,
                            related_to_id=lead.id,
                        )
                    )

            notification_dispatcher.deliver(session, pending)
            logger.info(
                "lead.status_changed",
                extra={
                    "lead_id": str(lead_id),
                    "from_status": current.value,
                    "to_status": target.value,
                    "actor_user_id": actor.user_id,
                },
            )
            return self._after_mutation(actor, lead, LeadChangeType.STATUS_CHANGED)

    def change_assignment(
        self,
        session: Session,
        actor: ActorUser,
        lead_id: uuid.UUID,
        dto: LeadAssignmentUpdate,
    ) -> LeadRead:
        with workflow_span(tracer, "sales.lead.change_assignment", lead_id=lead_id):
            lead = self._get_lead(session, lead_id)
            assert_lead_mutable(LeadStatus(lead.status))
            assignee = user_service.get_active_user(session, dto.assigned_to)
            previous = lead.assigned_to
            if previous == assignee.id:
                return LeadRead.model_validate(lead)

            pending: list[Notification] = []
            with unit_of_work(session):
                self._bump_version(session, lead, {"assigned_to": assignee.id})
                audit.record(
                    session,
                    lead_id=lead.id,
                    change_type=LeadChangeType.ASSIGNMENT_CHANGED,
                    actor_user_id=actor.user_uuid,
                    old_value=str(previous) if previous is not None else None,
                    new_value=str(assignee.id),
                    description=f"Lead assigned to {assignee.name}",
                )
                pending.append(
                    notification_dispatcher.notify(
                        session,
                        user_id=assignee.id,
                        notification_type=NotificationType.LEAD_ASSIGNED,
                        title="New Lead Assigned",
                        message=f"You have been assigned a new lead: {lead.company_name}",
                        related_to_type=RelatedToType.LEAD,
                        related_to_id=lead.id,
                    )
                )

            notification_dispatcher.deliver(session, pending)
            return self._after_mutation(actor, lead, LeadChangeType.ASSIGNMENT_CHANGED)

    def change_rating(self, session: Session, actor: ActorUser, lead_id: uuid.UUID, dto: LeadRatingUpdate) -> LeadRead:
        with workflow_span(tracer, "sales.lead.change_rating", lead_id=lead_id, target=dto.rating):
            lead = self._get_lead(session, lead_id)
            assert_lead_mutable(LeadStatus(lead.status))
            previous = lead.rating
            if previous == dto.rating.value:
                return LeadRead.model_validate(lead)

            with unit_of_work(session):
                self._bump_version(session, lead, {"rating": dto.rating.value})
                audit.record(
                    session,
                    lead_id=lead.id,
                    change_type=LeadChangeType.RATING_CHANGED,
                    actor_user_id=actor.user_uuid,
                    old_value=previous,
                    new_value=dto.rating.value,
                    description=f"Rating set to {dto.rating}",
                )

            logger.info("lead.rating_changed", extra={"lead_id": str(lead_id), "actor_user_id": actor.user_id})
            return self._after_mutation(actor, lead, LeadChangeType.RATING_CHANGED)

    def update_details(self, session: Session, actor: ActorUser, lead_id: uuid.UUID, dto: LeadDetailsUpdate) -> LeadRead:
        with workflow_span(tracer, "sales.lead.update_details", lead_id=lead_id):
            lead = self._get_lead(session, lead_id)
            assert_lead_mutable(LeadStatus(lead.status))

            requested = dto.model_dump(mode="python", exclude_unset=True)
            changes = {
                key: value
                for key, value in requested.items()
                if key in _DETAIL_FIELDS and value is not None and getattr(lead, key) != value
            }
            if not changes:
                return LeadRead.model_validate(lead)

            before = {key: getattr(lead, key) for key in changes}
            with unit_of_work(session):
                self._bump_version(session, lead, changes)
                audit.record(
                    session,
                    lead_id=lead.id,
                    change_type=LeadChangeType.DETAILS_ADDED,
                    actor_user_id=actor.user_uuid,
                    old_value=json.dumps(before, default=str, sort_keys=True),
                    new_value=json.dumps(changes, default=str, sort_keys=True),
                    description="Updated " + ", ".join(sorted(changes)),
                )

            logger.info("lead.details_updated", extra={"lead_id": str(lead_id), "actor_user_id": actor.user_id})
            return self._after_mutation(actor, lead, LeadChangeType.DETAILS_ADDED)

    def convert_to_customer(self, session: Session, actor: ActorUser, lead_id: uuid.UUID) -> LeadConversionRead:
        with workflow_span(tracer, "sales.lead.convert", lead_id=lead_id):
            lead = self._get_lead(session, lead_id)
            current = LeadStatus(lead.status)
            assert_convertible(current)

            customer = customer_service.build_from_lead(lead, actor)
            pending: list[Notification] = []
            try:
                with unit_of_work(session):
                    session.add(customer)
                    session.flush()
                    result = session.execute(
                        update(Lead)
                        .where(
                            and_(
                                Lead.id == lead.id,
                                Lead.status == current.value,
                                Lead.row_version == lead.row_version,
                                Lead.converted_to_customer_id.is_(None),
                            )
                        )
                        .values(
                            status=LeadStatus.CONVERTED.value,
                            converted_to_customer_id=customer.id,
                            converted_date=utcnow(),
                            updated_at=utcnow(),
                            row_version=Lead.row_version + 1,
                        )
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        raise AlreadyConvertedError("lead already converted")
                    audit.record(
                        session,
                        lead_id=lead.id,
                        change_type=LeadChangeType.CONVERTED_TO_CUSTOMER,
                        actor_user_id=actor.user_uuid,
                        old_value=current.value,
                        new_value=str(customer.id),
                        description=f"Lead converted to customer {customer.company_name}",
                    )
                    if lead.assigned_to is not None:
                        pending.append(
                            notification_dispatcher.notify(
                                session,
                                user_id=lead.assigned_to,
                                notification_type=NotificationType.LEAD_CONVERTED,
                                title="Lead Converted",
                                message=f"Lead {lead.company_name} has been converted to a customer",
                                related_to_type=RelatedToType.CUSTOMER,
                                related_to_id=customer.id,
                            )
                        )
            except IntegrityError as exc:
                raise AlreadyConvertedError("lead already converted") from exc

            notification_dispatcher.deliver(session, pending)
            session.refresh(lead)
            session.refresh(customer)
            logger.info(
                "lead.converted",
                extra={"lead_id": str(lead.id), "customer_id": str(customer.id), "actor_user_id": actor.user_id},
            )
            observe_lead_transition(LeadChangeType.CONVERTED_TO_CUSTOMER.value)
            self._emit("sales.lead.converted", actor, lead, customer_id=str(customer.id))
            return LeadConversionRead(lead=LeadRead.model_validate(lead), customer=CustomerRead.model_validate(customer))

    def delete_lead(self, session: Session, actor: ActorUser, lead_id: uuid.UUID) -> None:
        """Soft-delete a lead. The history row survives and records who removed it."""
        with workflow_span(tracer, "sales.lead.delete", lead_id=lead_id):
            lead = self._get_lead(session, lead_id)
            with unit_of_work(session):
                self._bump_version(session, lead, {"deleted_at": utcnow()})
                audit.record(
                    session,
                    lead_id=lead.id,
                    change_type=LeadChangeType.DETAILS_ADDED,
                    actor_user_id=actor.user_uuid,
                    old_value=lead.status,
                    new_value="deleted",
                    description="Lead deleted",
                )

            observe_lead_transition("Deleted")
            logger.info("lead.deleted", extra={"lead_id": str(lead_id), "actor_user_id": actor.user_id})
            self._emit("sales.lead.deleted", actor, lead)

    def get_lead(self, session: Session, lead_id: uuid.UUID) -> LeadRead:
        return LeadRead.model_validate(self._get_lead(session, lead_id))

    def get_lead_with_history(self, session: Session, lead_id: uuid.UUID) -> LeadWithHistoryRead:
        lead = self._get_lead(session, lead_id)
        return LeadWithHistoryRead(
            lead=LeadRead.model_validate(lead),
            history=[LeadHistoryRead.model_validate(item) for item in audit.list_for_lead(session, lead.id)],
        )

    def list_history(self, session: Session, lead_id: uuid.UUID) -> list[LeadHistoryRead]:
        lead = self._get_lead(session, lead_id)
        return [LeadHistoryRead.model_validate(item) for item in audit.list_for_lead(session, lead.id)]

    def list_leads(
        self,
        session: Session,
        *,
        status: LeadStatus | None = None,
        assigned_to: uuid.UUID | None = None,
        limit: int = 100,
    ) -> list[LeadRead]:
        stmt = select(Lead).where(Lead.deleted_at.is_(None))
        if status is not None:
            stmt = stmt.where(Lead.status == status.value)
        if assigned_to is not None:
            stmt = stmt.where(Lead.assigned_to == assigned_to)
        rows = session.scalars(stmt.order_by(Lead.created_at.desc()).limit(limit)).all()
        return [LeadRead.model_validate(row) for row in rows]

    def _get_lead(self, session: Session, lead_id: uuid.UUID) -> Lead:
        lead = session.scalar(select(Lead).where(Lead.id == lead_id, Lead.deleted_at.is_(None)))
        if lead is None:
            raise NotFoundError("lead not found", details={"lead_id": str(lead_id)})
        return lead

    @staticmethod
    def _bump_version(session: Session, lead: Lead, changes: dict[str, Any]) -> None:
        values = {**changes, "updated_at": utcnow(), "row_version": Lead.row_version + 1}
        result = session.execute(
            update(Lead)
            .where(
                and_(
                    Lead.id == lead.id,
                    Lead.status == lead.status,
                    Lead.row_version == lead.row_version,
                    Lead.deleted_at.is_(None),
                )
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidTransitionError("lead was modified concurrently", details={"lead_id": str(lead.id)})

    def _after_mutation(self, actor: ActorUser, lead: Lead, change_type: LeadChangeType) -> LeadRead:
        observe_lead_transition(change_type.value)
        self._emit("sales.lead.updated", actor, lead, change_type=change_type.value)
        return LeadRead.model_validate(lead)

    @staticmethod
    def _emit(event_type: str, actor: ActorUser, lead: Lead, **payload: str) -> None:
        events.publish(
            events.build_envelope(
                event_type,
                actor.user_id,
                {"lead_id": str(lead.id), "status": lead.status, **payload},
            )
        )


lead_lifecycle = LeadLifecycle()
