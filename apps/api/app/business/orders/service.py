from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any

from opentelemetry import trace
from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import events
from app.business.catalog.service import catalog_service
from app.business.customers.models import Customer
from app.business.customers.service import customer_service
from app.business.notifications.models import Notification
from app.business.notifications.schemas import NotificationType, RelatedToType
from app.business.notifications.service import notification_dispatcher
from app.business.orders.models import Order
from app.business.orders.schemas import OrderCancel, OrderConfirmationRead, OrderCreate, OrderRead
from app.business.orders.transitions import (
    OrderStatus,
    PaymentStatus,
    assert_confirmable,
    assert_order_transition,
)
from app.business.pricing.schemas import PricingInput
from app.business.pricing.service import calculate_order_pricing
from app.business.subscription.schemas import SubscriptionRead
from app.business.subscription.service import subscription_provisioner
from app.core.auth import ActorUser
from app.core.config import get_settings
from app.core.database import unit_of_work
from app.core.errors import AlreadyConfirmedError, InvalidTransitionError, NotFoundError
from app.core.sequences import next_number
from app.metrics import observe_order_status, observe_subscription_provisioned
from app.otel import workflow_span


logger = logging.getLogger("app.sales.orders")
tracer = trace.get_tracer("app.sales.orders")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderLifecycle:
    def create_order(
        self,
        session: Session,
        actor: ActorUser,
        dto: OrderCreate,
        *,
        today: date | None = None,
    ) -> OrderRead:
        with workflow_span(tracer, "sales.order.create", customer_id=dto.customer_id, variant_id=dto.variant_id):
            order_date = today or date.today()
            customer = customer_service.get_active(session, dto.customer_id)
            variant = catalog_service.get_orderable(session, dto.variant_id)
            tax_percent = dto.tax_percent if dto.tax_percent is not None else get_settings().default_tax_percent
            pricing = calculate_order_pricing(
                PricingInput(
                    base_price_single_user=variant.base_price_single_user,
                    base_price_multi_user=variant.base_price_multi_user,
                    license_type=dto.license_type,
                    quantity=dto.quantity,
                    customization_amount=dto.customization_amount,
                    discount_percent=dto.discount_percent,
                    tax_percent=tax_percent,
                )
            )

            pending: list[Notification] = []
            with unit_of_work(session):
                order = Order(
                    order_number=next_number(session, "ORD", order_date),
                    customer_id=customer.id,
                    variant_id=variant.id,
                    license_type=dto.license_type.value,
                    quantity=dto.quantity,
                    customization_details=dto.customization_details,
                    order_date=order_date,
                    expected_delivery_date=dto.expected_delivery_date,
                    status=OrderStatus.PENDING.value,
                    payment_status=PaymentStatus.PENDING.value,
                    payment_terms=dto.payment_terms,
                    notes=dto.notes,
                    created_by=actor.user_uuid,
                    **pricing.model_dump(),
                )
                session.add(order)
                session.flush()
                if customer.account_owner is not None:
                    pending.append(
                        notification_dispatcher.notify(
                            session,
                            user_id=customer.account_owner,
                            notification_type=NotificationType.ORDER_CREATED,
                            title="New Order Created",
                            message=f"Order {order.order_number} has been created for {customer.company_name}",
                            related_to_type=RelatedToType.ORDER,
                            related_to_id=order.id,
                        )
                    )

            notification_dispatcher.deliver(session, pending)
            session.refresh(order)
            logger.info(
                "order.created",
                extra={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "customer_id": str(customer.id),
                    "actor_user_id": actor.user_id,
                },
            )
            observe_order_status(OrderStatus.PENDING.value)
            self._emit("sales.order.created", actor, order)
            return OrderRead.model_validate(order)

    def confirm_order(
        self,
        session: Session,
        actor: ActorUser,
        order_id: uuid.UUID,
        *,
        today: date | None = None,
    ) -> OrderConfirmationRead:
        """Confirm a pending order and provision its subscription in the same commit.

        Pricing is not recomputed; the amounts stored at creation are final.
        A second confirmation, concurrent or not, raises ``AlreadyConfirmedError``.
        """
        with workflow_span(tracer, "sales.order.confirm", order_id=order_id):
            order = self._get_order(session, order_id)
            current = OrderStatus(order.status)
            assert_confirmable(current)
            variant = catalog_service.get_existing(session, order.variant_id)
            customer = session.get(Customer, order.customer_id)

            pending: list[Notification] = []
            try:
                with unit_of_work(session):
                    if not self._compare_and_swap(session, order, {"status": OrderStatus.CONFIRMED.value}):
                        raise AlreadyConfirmedError("order already confirmed", details={"order_id": str(order_id)})
                    subscription = subscription_provisioner.provision(session, order, variant, actor, today=today)
                    owner = customer.account_owner if customer is not None else None
                    if owner is not None:
                        pending.append(
                            notification_dispatcher.notify(
                                session,
                                user_id=owner,
                                notification_type=NotificationType.ORDER_CONFIRMED,
                                title="Order Confirmed",
                                message=f"Order {order.order_number} has been confirmed and subscription created",
                                related_to_type=RelatedToType.ORDER,
                                related_to_id=order.id,
                            )
                        )
                        pending.append(
                            notification_dispatcher.notify(
                                session,
                                user_id=owner,
                                notification_type=NotificationType.SUBSCRIPTION_CREATED,
                                title="Subscription Created",
                                message=(
                                    f"Subscription {subscription.subscription_number} has been created "
                                    f"for {customer.company_name}"
                                ),
                                related_to_type=RelatedToType.SUBSCRIPTION,
                                related_to_id=subscription.id,
                            )
                        )
            except IntegrityError as exc:
                if subscription_provisioner.get_for_order(session, order_id) is None:
                    raise
                raise AlreadyConfirmedError("order already confirmed", details={"order_id": str(order_id)}) from exc

            notification_dispatcher.deliver(session, pending)
            session.refresh(order)
            session.refresh(subscription)
            logger.info(
                "order.confirmed",
                extra={
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "subscription_id": str(subscription.id),
                    "subscription_number": subscription.subscription_number,
                    "from_status": current.value,
                    "to_status": OrderStatus.CONFIRMED.value,
                    "actor_user_id": actor.user_id,
                },
            )
            observe_order_status(OrderStatus.CONFIRMED.value)
            observe_subscription_provisioned()
            self._emit("sales.order.confirmed", actor, order, subscription_id=str(subscription.id))
            return OrderConfirmationRead(
                order=OrderRead.model_validate(order),
                subscription=SubscriptionRead.model_validate(subscription),
            )

    def mark_delivered(
        self,
        session: Session,
        actor: ActorUser,
        order_id: uuid.UUID,
        *,
        today: date | None = None,
    ) -> OrderRead:
        order = self._get_order(session, order_id)
        current = OrderStatus(order.status)
        target = assert_order_transition(current, OrderStatus.DELIVERED)
        return self._transition(
            session,
            actor,
            order,
            target,
            {"actual_delivery_date": today or date.today()},
        )

    def cancel_order(self, session: Session, actor: ActorUser, order_id: uuid.UUID, dto: OrderCancel) -> OrderRead:
        order = self._get_order(session, order_id)
        current = OrderStatus(order.status)
        target = assert_order_transition(current, OrderStatus.CANCELLED)
        return self._transition(session, actor, order, target, {"cancellation_reason": dto.reason})

    def get_order(self, session: Session, order_id: uuid.UUID) -> OrderRead:
        return OrderRead.model_validate(self._get_order(session, order_id))

    def list_orders(
        self,
        session: Session,
        *,
        status: OrderStatus | None = None,
        customer_id: uuid.UUID | None = None,
        limit: int = 100,
    ) -> list[OrderRead]:
        stmt = select(Order).where(Order.deleted_at.is_(None))
        if status is not None:
            stmt = stmt.where(Order.status == status.value)
        if customer_id is not None:
            stmt = stmt.where(Order.customer_id == customer_id)
        rows = session.scalars(stmt.order_by(Order.created_at.desc()).limit(limit)).all()
        return [OrderRead.model_validate(row) for row in rows]

    def _get_order(self, session: Session, order_id: uuid.UUID) -> Order:
        order = session.scalar(select(Order).where(Order.id == order_id, Order.deleted_at.is_(None)))
        if order is None:
            raise NotFoundError("order not found", details={"order_id": str(order_id)})
        return order

    def _transition(
        self,
        session: Session,
        actor: ActorUser,
        order: Order,
        target: OrderStatus,
        changes: dict[str, Any],
    ) -> OrderRead:
        current = order.status
        with unit_of_work(session):
            if not self._compare_and_swap(session, order, {**changes, "status": target.value}):
                raise InvalidTransitionError("order was modified concurrently", details={"order_id": str(order.id)})
        session.refresh(order)
        logger.info(
            "order.status_changed",
            extra={
                "order_id": str(order.id),
                "from_status": current,
                "to_status": target.value,
                "actor_user_id": actor.user_id,
            },
        )
        observe_order_status(target.value)
        self._emit("sales.order.updated", actor, order)
        return OrderRead.model_validate(order)

    @staticmethod
    def _compare_and_swap(session: Session, order: Order, changes: dict[str, Any]) -> bool:
        result = session.execute(
            update(Order)
            .where(
                and_(
                    Order.id == order.id,
                    Order.status == order.status,
                    Order.row_version == order.row_version,
                    Order.deleted_at.is_(None),
                )
            )
            .values(**changes, updated_at=utcnow(), row_version=Order.row_version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    @staticmethod
    def _emit(event_type: str, actor: ActorUser, order: Order, **payload: str) -> None:
        events.publish(
            events.build_envelope(
                event_type,
                actor.user_id,
                {"order_id": str(order.id), "order_number": order.order_number, "status": order.status, **payload},
            )
        )


order_lifecycle = OrderLifecycle()
