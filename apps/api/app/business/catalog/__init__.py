from app.business.catalog.models import ProductVariant
from app.business.catalog.schemas import ProductVariantCreate, ProductVariantRead
from app.business.catalog.service import CatalogService, catalog_service

__all__ = [
    "ProductVariant",
    "ProductVariantCreate",
    "ProductVariantRead",
    "CatalogService",
    "catalog_service",
]
