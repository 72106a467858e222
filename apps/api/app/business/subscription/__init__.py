from app.business.subscription.models import Subscription
from app.business.subscription.schemas import SubscriptionRead, SubscriptionStatus

__all__ = [
    "Subscription",
    "SubscriptionRead",
    "SubscriptionStatus",
]
