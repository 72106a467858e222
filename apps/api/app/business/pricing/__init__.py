from app.business.pricing.schemas import LicenseType, PricingBreakdown, PricingInput
from app.business.pricing.service import calculate_order_pricing, select_base_price

__all__ = [
    "LicenseType",
    "PricingInput",
    "PricingBreakdown",
    "calculate_order_pricing",
    "select_base_price",
]
