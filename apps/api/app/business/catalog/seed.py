from __future__ import annotations

from decimal import Decimal

from sqlalchemy.orm import Session

from app.business.catalog.schemas import ProductVariantCreate, ProductVariantRead
from app.business.catalog.service import CatalogService


DEFAULT_VARIANTS = (
    ProductVariantCreate(
        variant_name="Billing",
        variant_code="BILLING-001",
        description="Comprehensive billing and invoicing solution",
        base_price_single_user=Decimal("9000"),
        base_price_multi_user=Decimal("14000"),
        annual_subscription_fee=Decimal("2000"),
        display_order=1,
    ),
    ProductVariantCreate(
        variant_name="Lite",
        variant_code="LITE-001",
        description="Lightweight solution",
        base_price_single_user=Decimal("11000"),
        base_price_multi_user=Decimal("16000"),
        annual_subscription_fee=Decimal("3000"),
        display_order=2,
    ),
    ProductVariantCreate(
        variant_name="Standard",
        variant_code="STANDARD-001",
        description="Full accounting suite",
        base_price_single_user=Decimal("16000"),
        base_price_multi_user=Decimal("26000"),
        annual_subscription_fee=Decimal("4000"),
        display_order=3,
    ),
)


class CatalogSeedHelper:
    def __init__(self, service: CatalogService) -> None:
        self._service = service

    def ensure_default_variants(self, session: Session) -> list[ProductVariantRead]:
        seeded: list[ProductVariantRead] = []
        for dto in DEFAULT_VARIANTS:
            existing = self._service.find_by_code(session, dto.variant_code)
            if existing is not None:
                seeded.append(ProductVariantRead.model_validate(existing))
                continue
            seeded.append(self._service.create_variant(session, dto))
        return seeded


catalog_seed_helper = CatalogSeedHelper(CatalogService())
