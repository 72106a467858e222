from app.business.catalog.models import ProductVariant
from app.business.customers.models import Customer
from app.business.leads.models import Lead, LeadHistoryEvent
from app.business.notifications.models import Notification
from app.business.orders.models import Order
from app.business.otp.models import OtpChallenge
from app.business.subscription.models import Subscription
from app.business.users.models import User
from app.core.sequences import NumberSequence

__all__ = [
	"Customer",
	"Lead",
	"LeadHistoryEvent",
	"Notification",
	"NumberSequence",
	"Order",
	"OtpChallenge",
	"ProductVariant",
	"Subscription",
	"User",
]
