from __future__ import annotations

from enum import StrEnum

from app.core.errors import AlreadyConfirmedError, InvalidTransitionError


class OrderStatus(StrEnum):
    DRAFT = "Draft"
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(StrEnum):
    PENDING = "Pending"
    PARTIAL = "Partial"
    PAID = "Paid"


TERMINAL_ORDER_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

VALID_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.DRAFT: {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def assert_order_transition(current: OrderStatus, target: OrderStatus) -> OrderStatus:
    if target not in VALID_ORDER_TRANSITIONS[current]:
        raise InvalidTransitionError(
            f"invalid order transition {current} -> {target}",
            details={"status": current.value, "target": target.value},
        )
    return target


def assert_confirmable(current: OrderStatus) -> OrderStatus:
    """Confirmed and Delivered orders already carry their subscription."""
    if current in {OrderStatus.CONFIRMED, OrderStatus.DELIVERED}:
        raise AlreadyConfirmedError("order already confirmed", details={"status": current.value})
    return assert_order_transition(current, OrderStatus.CONFIRMED)
