from __future__ import annotations

from decimal import Decimal

import pytest

from app.business.pricing.schemas import LicenseType, PricingInput
from app.business.pricing.service import calculate_order_pricing
from app.core.errors import InvalidInputError


def _input(**overrides: object) -> PricingInput:
    values: dict[str, object] = {
        "base_price_single_user": Decimal("9000"),
        "base_price_multi_user": Decimal("14000"),
        "license_type": LicenseType.SINGLE_USER,
        "quantity": 1,
        "customization_amount": Decimal("0"),
        "discount_percent": Decimal("10"),
        "tax_percent": Decimal("18"),
    }
    values.update(overrides)
    return PricingInput(**values)


def test_single_user_order_breakdown() -> None:
    result = calculate_order_pricing(_input())

    assert result.base_price == Decimal("9000.00")
    assert result.base_amount == Decimal("9000.00")
    assert result.discount_amount == Decimal("900.00")
    assert result.sub_total == Decimal("8100.00")
    assert result.tax_amount == Decimal("1458.00")
    assert result.total_amount == Decimal("9558.00")


def test_multi_user_license_uses_multi_user_price() -> None:
    result = calculate_order_pricing(
        _input(license_type=LicenseType.MULTI_USER, quantity=2, discount_percent=Decimal("0"))
    )

    assert result.base_price == Decimal("14000.00")
    assert result.base_amount == Decimal("28000.00")
    assert result.total_amount == Decimal("33040.00")


def test_discount_applies_to_customization_as_well() -> None:
    result = calculate_order_pricing(_input(customization_amount=Decimal("1000")))

    assert result.discount_amount == Decimal("1000.00")
    assert result.sub_total == Decimal("9000.00")


def test_amounts_round_half_up_to_cents() -> None:
    result = calculate_order_pricing(
        _input(
            base_price_single_user=Decimal("1001"),
            discount_percent=Decimal("0.5"),
            tax_percent=Decimal("0"),
        )
    )

    assert result.discount_amount == Decimal("5.01")
    assert result.sub_total == Decimal("995.99")


@pytest.mark.parametrize(
    ("base", "quantity", "customization", "discount", "tax"),
    [
        (Decimal("333.33"), 3, Decimal("17.45"), Decimal("12.5"), Decimal("18")),
        (Decimal("16000"), 7, Decimal("0"), Decimal("33.33"), Decimal("5")),
        (Decimal("0.99"), 1, Decimal("0.01"), Decimal("100"), Decimal("28")),
        (Decimal("11000"), 4, Decimal("2500.50"), Decimal("0"), Decimal("0")),
    ],
)
def test_breakdown_identities_hold_exactly(
    base: Decimal,
    quantity: int,
    customization: Decimal,
    discount: Decimal,
    tax: Decimal,
) -> None:
    result = calculate_order_pricing(
        _input(
            base_price_single_user=base,
            quantity=quantity,
            customization_amount=customization,
            discount_percent=discount,
            tax_percent=tax,
        )
    )

    assert result.sub_total == result.base_amount + result.customization_amount - result.discount_amount
    assert result.total_amount == result.sub_total + result.tax_amount
    for value in (result.base_amount, result.discount_amount, result.sub_total, result.tax_amount, result.total_amount):
        assert value == value.quantize(Decimal("0.01"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"quantity": 0},
        {"discount_percent": Decimal("100.01")},
        {"discount_percent": Decimal("-1")},
        {"customization_amount": Decimal("-5")},
        {"tax_percent": Decimal("-18")},
    ],
)
def test_invalid_inputs_are_rejected(overrides: dict[str, object]) -> None:
    with pytest.raises(InvalidInputError) as exc_info:
        calculate_order_pricing(_input(**overrides))
    assert exc_info.value.code == "invalid_input"
    assert exc_info.value.status_code == 422
