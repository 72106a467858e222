from app.business.orders.models import Order
from app.business.orders.transitions import OrderStatus, PaymentStatus

__all__ = [
    "Order",
    "OrderStatus",
    "PaymentStatus",
]
