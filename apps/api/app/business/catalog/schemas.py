from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProductVariantCreate(BaseModel):
    variant_name: str = Field(min_length=1, max_length=100)
    variant_code: str = Field(min_length=1, max_length=50)
    description: str | None = None
    base_price_single_user: Decimal = Field(ge=Decimal("0"))
    base_price_multi_user: Decimal = Field(ge=Decimal("0"))
    annual_subscription_fee: Decimal = Field(ge=Decimal("0"))
    is_active: bool = True
    display_order: int = 0


class ProductVariantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    variant_name: str
    variant_code: str
    description: str | None
    base_price_single_user: Decimal
    base_price_multi_user: Decimal
    annual_subscription_fee: Decimal
    is_active: bool
    display_order: int
    created_at: datetime
