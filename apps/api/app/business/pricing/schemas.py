from __future__ import annotations

from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict


class LicenseType(StrEnum):
    SINGLE_USER = "SingleUser"
    MULTI_USER = "MultiUser"


class PricingInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_price_single_user: Decimal
    base_price_multi_user: Decimal
    license_type: LicenseType
    quantity: int
    customization_amount: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    tax_percent: Decimal = Decimal("18")


class PricingBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    base_price: Decimal
    base_amount: Decimal
    customization_amount: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    sub_total: Decimal
    tax_percent: Decimal
    tax_amount: Decimal
    total_amount: Decimal
