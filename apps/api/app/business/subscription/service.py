from __future__ import annotations

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from app.business.catalog.models import ProductVariant
from app.business.orders.models import Order
from app.business.subscription.models import Subscription
from app.business.subscription.schemas import SubscriptionRead, SubscriptionStatus
from app.core.auth import ActorUser
from app.core.errors import NotFoundError
from app.core.sequences import next_number


logger = logging.getLogger("app.sales.subscriptions")

SUBSCRIPTION_TERM_MONTHS = 12


def add_months(base_date: date, months: int) -> date:
    month_index = base_date.month - 1 + months
    year = base_date.year + (month_index // 12)
    month = month_index % 12 + 1
    day = min(base_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_term(start: date, months: int = SUBSCRIPTION_TERM_MONTHS) -> tuple[date, date]:
    """Return ``(period_end, renewal_date)`` for a term starting on ``start``.

    The renewal date is the same calendar day one term later, clamped to the
    last day of the month; the period ends the day before it.
    """
    renewal_date = add_months(start, months)
    return renewal_date - timedelta(days=1), renewal_date


@dataclass(slots=True)
class SubscriptionProvisioner:
    def provision(
        self,
        session: Session,
        order: Order,
        variant: ProductVariant,
        actor: ActorUser,
        *,
        today: date | None = None,
    ) -> Subscription:
        """Create the subscription for a confirmed order inside the caller's transaction."""
        start = today or date.today()
        period_end, renewal_date = calculate_term(start)
        subscription = Subscription(
            subscription_number=next_number(session, "SUB", start),
            customer_id=order.customer_id,
            order_id=order.id,
            variant_id=variant.id,
            start_date=start,
            current_period_start=start,
            current_period_end=period_end,
            renewal_date=renewal_date,
            next_payment_due_date=renewal_date,
            annual_fee=variant.annual_subscription_fee,
            status=SubscriptionStatus.ACTIVE.value,
            auto_renew=True,
            renewal_count=0,
            created_by=actor.user_uuid,
        )
        session.add(subscription)
        session.flush()
        logger.info(
            "subscription.provisioned",
            extra={
                "subscription_id": str(subscription.id),
                "subscription_number": subscription.subscription_number,
                "order_id": str(order.id),
            },
        )
        return subscription

    def get_subscription(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        subscription = session.get(Subscription, subscription_id)
        if subscription is None:
            raise NotFoundError("subscription not found", details={"subscription_id": str(subscription_id)})
        return SubscriptionRead.model_validate(subscription)

    def get_for_order(self, session: Session, order_id: uuid.UUID) -> Subscription | None:
        return session.scalar(select(Subscription).where(Subscription.order_id == order_id))

    def list_subscriptions(
        self,
        session: Session,
        *,
        status: SubscriptionStatus | None = None,
        customer_id: uuid.UUID | None = None,
        limit: int = 100,
    ) -> list[SubscriptionRead]:
        stmt: Select[tuple[Subscription]] = select(Subscription)
        if status is not None:
            stmt = stmt.where(Subscription.status == status.value)
        if customer_id is not None:
            stmt = stmt.where(Subscription.customer_id == customer_id)
        rows = session.scalars(stmt.order_by(Subscription.created_at.desc()).limit(limit)).all()
        return [SubscriptionRead.model_validate(row) for row in rows]

    def list_upcoming_renewals(
        self,
        session: Session,
        *,
        days: int = 30,
        today: date | None = None,
    ) -> list[SubscriptionRead]:
        start = today or date.today()
        rows = session.scalars(
            select(Subscription)
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE.value,
                Subscription.renewal_date >= start,
                Subscription.renewal_date <= start + timedelta(days=days),
            )
            .order_by(Subscription.renewal_date.asc())
        ).all()
        return [SubscriptionRead.model_validate(row) for row in rows]


subscription_provisioner = SubscriptionProvisioner()
