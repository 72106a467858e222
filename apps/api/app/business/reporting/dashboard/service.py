from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.business.customers.models import Customer
from app.business.leads.models import Lead, LeadHistoryEvent
from app.business.leads.schemas import LeadHistoryRead
from app.business.leads.transitions import LeadStatus
from app.business.orders.models import Order
from app.business.orders.transitions import OrderStatus
from app.business.reporting.dashboard.schemas import DashboardStatsRead, LeadStats, OrderStats, SubscriptionStats
from app.business.subscription.models import Subscription
from app.business.subscription.schemas import SubscriptionStatus


REVENUE_STATUSES = (OrderStatus.CONFIRMED.value, OrderStatus.DELIVERED.value)


@dataclass(slots=True)
class DashboardService:
    def stats(self, session: Session, *, today: date | None = None) -> DashboardStatsRead:
        """Pipeline totals. Soft-deleted leads, customers and orders are excluded."""
        as_of = today or date.today()
        return DashboardStatsRead(
            leads=self._lead_stats(session),
            customers=session.scalar(select(func.count(Customer.id)).where(Customer.deleted_at.is_(None))) or 0,
            orders=self._order_stats(session),
            subscriptions=self._subscription_stats(session, as_of),
        )

    def recent_activities(self, session: Session, *, count: int = 10) -> list[LeadHistoryRead]:
        """Latest lead history entries across the pipeline, newest first."""
        rows = session.scalars(
            select(LeadHistoryEvent).order_by(LeadHistoryEvent.changed_at.desc()).limit(count)
        ).all()
        return [LeadHistoryRead.model_validate(row) for row in rows]

    @staticmethod
    def _lead_stats(session: Session) -> LeadStats:
        rows = session.execute(
            select(Lead.status, func.count(Lead.id)).where(Lead.deleted_at.is_(None)).group_by(Lead.status)
        ).all()
        counts = {status: count for status, count in rows}
        total = sum(counts.values())
        converted = counts.get(LeadStatus.CONVERTED.value, 0)
        rate = Decimal("0")
        if total:
            rate = (Decimal(converted) * Decimal("100") / Decimal(total)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return LeadStats(
            total=total,
            new=counts.get(LeadStatus.NEW.value, 0),
            demo=counts.get(LeadStatus.DEMO.value, 0),
            converted=converted,
            lost=counts.get(LeadStatus.LOST.value, 0),
            conversion_rate=rate,
        )

    @staticmethod
    def _order_stats(session: Session) -> OrderStats:
        rows = session.execute(
            select(Order.status, func.count(Order.id)).where(Order.deleted_at.is_(None)).group_by(Order.status)
        ).all()
        counts = {status: count for status, count in rows}
        revenue = session.scalar(
            select(func.coalesce(func.sum(Order.total_amount), 0)).where(
                Order.deleted_at.is_(None),
                Order.status.in_(REVENUE_STATUSES),
            )
        )
        return OrderStats(
            total=sum(counts.values()),
            pending=counts.get(OrderStatus.PENDING.value, 0),
            confirmed=counts.get(OrderStatus.CONFIRMED.value, 0),
            delivered=counts.get(OrderStatus.DELIVERED.value, 0),
            cancelled=counts.get(OrderStatus.CANCELLED.value, 0),
            total_revenue=Decimal(revenue or 0).quantize(Decimal("0.01")),
        )

    @staticmethod
    def _subscription_stats(session: Session, as_of: date) -> SubscriptionStats:
        def _count(*criteria) -> int:
            return session.scalar(select(func.count(Subscription.id)).where(*criteria)) or 0

        active = Subscription.status == SubscriptionStatus.ACTIVE.value
        return SubscriptionStats(
            active=_count(active),
            expired=_count(Subscription.status == SubscriptionStatus.EXPIRED.value),
            renewals_due_30_days=_count(
                active,
                Subscription.renewal_date >= as_of,
                Subscription.renewal_date <= as_of + timedelta(days=30),
            ),
            renewals_due_90_days=_count(
                active,
                Subscription.renewal_date >= as_of,
                Subscription.renewal_date <= as_of + timedelta(days=90),
            ),
        )


dashboard_service = DashboardService()
