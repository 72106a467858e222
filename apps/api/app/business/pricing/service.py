from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from app.business.pricing.schemas import LicenseType, PricingBreakdown, PricingInput
from app.core.errors import InvalidInputError


_CENT = Decimal("0.01")
_HUNDRED = Decimal("100")


def _q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def _validate(data: PricingInput) -> None:
    if data.quantity < 1:
        raise InvalidInputError("quantity must be at least 1", details={"quantity": data.quantity})
    if data.customization_amount < 0:
        raise InvalidInputError("customization amount cannot be negative")
    if not (Decimal("0") <= data.discount_percent <= _HUNDRED):
        raise InvalidInputError("discount percent must be between 0 and 100")
    if data.tax_percent < 0:
        raise InvalidInputError("tax percent cannot be negative")
    if data.base_price_single_user < 0 or data.base_price_multi_user < 0:
        raise InvalidInputError("variant prices cannot be negative")


def select_base_price(data: PricingInput) -> Decimal:
    if data.license_type == LicenseType.SINGLE_USER:
        return data.base_price_single_user
    return data.base_price_multi_user


def calculate_order_pricing(data: PricingInput) -> PricingBreakdown:
    """Compute the full order breakdown.

    The discount applies to base amount plus customization. Each step is
    rounded half-up to cents before the next step consumes it, so
    ``sub_total == base_amount + customization_amount - discount_amount`` and
    ``total_amount == sub_total + tax_amount`` hold exactly on the stored values.
    """
    _validate(data)

    base_price = _q(select_base_price(data))
    base_amount = _q(base_price * data.quantity)
    customization_amount = _q(data.customization_amount)
    discount_percent = _q(data.discount_percent)
    tax_percent = _q(data.tax_percent)

    taxable_base = base_amount + customization_amount
    discount_amount = _q(taxable_base * discount_percent / _HUNDRED)
    sub_total = taxable_base - discount_amount
    tax_amount = _q(sub_total * tax_percent / _HUNDRED)
    total_amount = sub_total + tax_amount

    return PricingBreakdown(
        base_price=base_price,
        base_amount=base_amount,
        customization_amount=customization_amount,
        discount_percent=discount_percent,
        discount_amount=discount_amount,
        sub_total=sub_total,
        tax_percent=tax_percent,
        tax_amount=tax_amount,
        total_amount=total_amount,
    )
