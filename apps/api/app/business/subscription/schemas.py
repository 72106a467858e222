from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class SubscriptionStatus(StrEnum):
    ACTIVE = "Active"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"
    SUSPENDED = "Suspended"
    PENDING_RENEWAL = "PendingRenewal"


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subscription_number: str
    customer_id: UUID
    order_id: UUID
    variant_id: UUID
    start_date: date
    current_period_start: date
    current_period_end: date
    renewal_date: date
    annual_fee: Decimal
    status: str
    auto_renew: bool
    renewal_count: int
    next_payment_due_date: date | None
    cancellation_date: date | None
    cancellation_reason: str | None
    created_at: datetime
    updated_at: datetime
