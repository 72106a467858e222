from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.business.catalog.models import ProductVariant
from app.business.catalog.schemas import ProductVariantCreate, ProductVariantRead
from app.core.errors import InvalidInputError, NotFoundError


@dataclass(slots=True)
class CatalogService:
    def create_variant(self, session: Session, dto: ProductVariantCreate) -> ProductVariantRead:
        variant = ProductVariant(**dto.model_dump(mode="python"))
        session.add(variant)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise InvalidInputError("variant code already exists", details={"variant_code": dto.variant_code})
        session.refresh(variant)
        return ProductVariantRead.model_validate(variant)

    def list_variants(self, session: Session, *, active_only: bool = True) -> list[ProductVariantRead]:
        stmt = select(ProductVariant).where(ProductVariant.deleted_at.is_(None))
        if active_only:
            stmt = stmt.where(ProductVariant.is_active.is_(True))
        rows = session.scalars(stmt.order_by(ProductVariant.display_order.asc(), ProductVariant.variant_name.asc())).all()
        return [ProductVariantRead.model_validate(row) for row in rows]

    def get_variant(self, session: Session, variant_id: uuid.UUID) -> ProductVariantRead:
        return ProductVariantRead.model_validate(self.get_existing(session, variant_id))

    def get_existing(self, session: Session, variant_id: uuid.UUID) -> ProductVariant:
        variant = session.scalar(
            select(ProductVariant).where(ProductVariant.id == variant_id, ProductVariant.deleted_at.is_(None))
        )
        if variant is None:
            raise NotFoundError("product variant not found", details={"variant_id": str(variant_id)})
        return variant

    def get_orderable(self, session: Session, variant_id: uuid.UUID) -> ProductVariant:
        variant = self.get_existing(session, variant_id)
        if not variant.is_active:
            raise NotFoundError("product variant is not available", details={"variant_id": str(variant_id)})
        return variant

    def deactivate_variant(self, session: Session, variant_id: uuid.UUID) -> ProductVariantRead:
        variant = self.get_existing(session, variant_id)
        variant.is_active = False
        variant.updated_at = datetime.now(timezone.utc)
        session.commit()
        session.refresh(variant)
        return ProductVariantRead.model_validate(variant)

    def find_by_code(self, session: Session, variant_code: str) -> ProductVariant | None:
        return session.scalar(select(ProductVariant).where(ProductVariant.variant_code == variant_code))


catalog_service = CatalogService()
