from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NotificationType(StrEnum):
    LEAD_ASSIGNED = "LeadAssigned"
    LEAD_STATUS_CHANGED = "LeadStatusChanged"
    LEAD_CONVERTED = "LeadConverted"
    ORDER_CREATED = "OrderCreated"
    ORDER_CONFIRMED = "OrderConfirmed"
    SUBSCRIPTION_CREATED = "SubscriptionCreated"
    SUBSCRIPTION_RENEWAL_DUE = "SubscriptionRenewalDue"
    SUBSCRIPTION_EXPIRED = "SubscriptionExpired"
    TASK_ASSIGNED = "TaskAssigned"
    ACTIVITY_OVERDUE = "ActivityOverdue"
    SYSTEM_ALERT = "SystemAlert"


class RelatedToType(StrEnum):
    LEAD = "Lead"
    CUSTOMER = "Customer"
    ORDER = "Order"
    SUBSCRIPTION = "Subscription"


class NotificationPriority(StrEnum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class NotificationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    notification_type: str
    title: str
    message: str
    related_to_type: str | None
    related_to_id: UUID | None
    priority: str
    is_read: bool
    read_at: datetime | None
    email_sent: bool
    email_sent_at: datetime | None
    email_error: str | None
    created_at: datetime


class MarkAllReadResult(BaseModel):
    updated: int
