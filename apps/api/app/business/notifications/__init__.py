from app.business.notifications.models import Notification
from app.business.notifications.schemas import NotificationPriority, NotificationRead, NotificationType, RelatedToType

__all__ = [
    "Notification",
    "NotificationPriority",
    "NotificationRead",
    "NotificationType",
    "RelatedToType",
]
