from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.business.pricing.schemas import LicenseType
from app.business.subscription.schemas import SubscriptionRead


class OrderCreate(BaseModel):
    customer_id: UUID
    variant_id: UUID
    license_type: LicenseType = LicenseType.SINGLE_USER
    quantity: int = Field(default=1, ge=1)
    customization_details: str | None = None
    customization_amount: Decimal = Field(default=Decimal("0"), ge=0)
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)
    tax_percent: Decimal | None = Field(default=None, ge=0)
    expected_delivery_date: date | None = None
    payment_terms: str | None = Field(default=None, max_length=100)
    notes: str | None = None


class OrderCancel(BaseModel):
    reason: str | None = None


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    customer_id: UUID
    variant_id: UUID
    license_type: str
    quantity: int
    base_price: Decimal
    base_amount: Decimal
    customization_details: str | None
    customization_amount: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    sub_total: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    order_date: date
    expected_delivery_date: date | None
    actual_delivery_date: date | None
    status: str
    payment_status: str
    payment_terms: str | None
    notes: str | None
    cancellation_reason: str | None
    created_by: UUID
    created_at: datetime
    updated_at: datetime
    row_version: int


class OrderConfirmationRead(BaseModel):
    order: OrderRead
    subscription: SubscriptionRead
