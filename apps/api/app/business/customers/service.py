from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from app import events
from app.business.customers.models import Customer
from app.business.customers.schemas import CustomerCreate, CustomerRead, CustomerUpdate
from app.business.leads.models import Lead
from app.business.users.service import user_service
from app.core.auth import ActorUser
from app.core.database import unit_of_work
from app.core.errors import InvalidInputError, NotFoundError


logger = logging.getLogger("app.sales.customers")

_REQUIRED_FIELDS = ("company_name", "contact_person", "email", "customer_type", "billing_country")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CustomerService:
    def create_customer(self, session: Session, actor: ActorUser, dto: CustomerCreate) -> CustomerRead:
        if dto.account_owner is not None:
            user_service.get_active_user(session, dto.account_owner)

        customer = Customer(**dto.model_dump(mode="python"), created_by=actor.user_uuid)
        with unit_of_work(session):
            session.add(customer)
        session.refresh(customer)

        logger.info("customer.created", extra={"customer_id": str(customer.id), "actor_user_id": actor.user_id})
        events.publish(events.build_envelope("sales.customer.created", actor.user_id, {"customer_id": str(customer.id)}))
        return CustomerRead.model_validate(customer)

    def build_from_lead(self, lead: Lead, actor: ActorUser) -> Customer:
        return Customer(
            lead_id=lead.id,
            company_name=lead.company_name,
            contact_person=lead.contact_name,
            email=lead.email,
            phone=lead.phone,
            website=lead.website,
            industry=lead.industry,
            account_owner=lead.assigned_to,
            created_by=actor.user_uuid,
        )

    def get_customer(self, session: Session, customer_id: uuid.UUID) -> CustomerRead:
        return CustomerRead.model_validate(self.get_active(session, customer_id))

    def get_active(self, session: Session, customer_id: uuid.UUID) -> Customer:
        customer = session.scalar(select(Customer).where(Customer.id == customer_id, Customer.deleted_at.is_(None)))
        if customer is None:
            raise NotFoundError("customer not found", details={"customer_id": str(customer_id)})
        return customer

    def list_customers(self, session: Session, *, q: str | None = None, limit: int = 100) -> list[CustomerRead]:
        stmt = select(Customer).where(Customer.deleted_at.is_(None))
        if q:
            stmt = stmt.where(Customer.company_name.ilike(f"%{q}%"))
        rows = session.scalars(stmt.order_by(Customer.created_at.desc()).limit(limit)).all()
        return [CustomerRead.model_validate(row) for row in rows]

    def update_customer(
        self,
        session: Session,
        actor: ActorUser,
        customer_id: uuid.UUID,
        dto: CustomerUpdate,
    ) -> CustomerRead:
        """Apply the fields present in ``dto``. Required columns cannot be cleared."""
        customer = self.get_active(session, customer_id)
        changes = dto.model_dump(mode="python", exclude_unset=True)
        for key in _REQUIRED_FIELDS:
            if key in changes and changes[key] is None:
                raise InvalidInputError(f"{key} cannot be empty", details={"field": key})
        if changes.get("account_owner") is not None:
            user_service.get_active_user(session, changes["account_owner"])

        with unit_of_work(session):
            for key, value in changes.items():
                setattr(customer, key, value)
        session.refresh(customer)

        logger.info(
            "customer.updated",
            extra={"customer_id": str(customer_id), "actor_user_id": actor.user_id},
        )
        events.publish(events.build_envelope("sales.customer.updated", actor.user_id, {"customer_id": str(customer_id)}))
        return CustomerRead.model_validate(customer)

    def delete_customer(self, session: Session, actor: ActorUser, customer_id: uuid.UUID) -> None:
        customer = self.get_active(session, customer_id)
        with unit_of_work(session):
            customer.deleted_at = utcnow()
        logger.info("customer.deleted", extra={"customer_id": str(customer_id), "actor_user_id": actor.user_id})


customer_service = CustomerService()
