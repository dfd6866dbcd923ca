"""Catalog entities and snapshot"""
from closet.core.catalog.models import (
    CATEGORIES,
    CatalogSnapshot,
    DamageRecord,
    ListingDraft,
    ModerationAction,
    Product,
    ProductCondition,
    ProductStatus,
    PurchaseRequest,
    RequestStatus,
    Review,
    Transaction,
    User,
    UserRole,
    utcnow,
)

__all__ = [
    "CATEGORIES",
    "CatalogSnapshot",
    "DamageRecord",
    "ListingDraft",
    "ModerationAction",
    "Product",
    "ProductCondition",
    "ProductStatus",
    "PurchaseRequest",
    "RequestStatus",
    "Review",
    "Transaction",
    "User",
    "UserRole",
    "utcnow",
]
