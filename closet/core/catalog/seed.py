"""
Demo catalog used by the CLI and integration tests.

All timestamps are relative to the ``now`` passed in, so the seeded
marketplace looks the same whenever it is built.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Dict, List

from closet.core.catalog.models import (
    CatalogSnapshot,
    Product,
    ProductCondition,
    ProductStatus,
    PurchaseRequest,
    Review,
    Transaction,
    User,
    UserRole,
)

# Wishlists of other shoppers, for popularity in the recommended sort
DEMO_WISHLISTS: Dict[str, List[str]] = {
    "user-seller-1": ["prod-4", "prod-3"],
    "user-buyer-1": ["prod-1"],
    "user-guest-1": ["prod-1", "prod-5"],
}


def build_demo_catalog(now: datetime) -> CatalogSnapshot:
    """Build the seeded marketplace relative to ``now``."""
    day = timedelta(days=1)

    users = [
        User(
            id="user-seller-1",
            name="Jane Doe",
            email="jane.d@example.com",
            age=25,
            role=UserRole.SELLER,
            reviews=(
                Review("review-1", "user-buyer-1", "user-seller-1", 5,
                       "Great seller, fast shipping!", "txn-1", now),
            ),
            payment_methods={"paypal": "jane.d@example.com"},
            fees_owed=Decimal("12.50"),
            age_verified=True,
        ),
        User(
            id="user-seller-2",
            name="NSFW Seller",
            email="nsfw.seller@example.com",
            age=28,
            role=UserRole.SELLER,
            fees_owed=Decimal("5.00"),
            age_verified=True,
            is_nsfw=True,
        ),
        User(
            id="user-buyer-1",
            name="John Smith",
            email="john.s@example.com",
            age=16,
        ),
        User(
            id="user-buyer-2",
            name="Alice Wonder",
            email="alice.w@example.com",
            age=35,
            reviews=(
                Review("review-2", "user-seller-1", "user-buyer-2", 4,
                       "Polite buyer, quick communication.", "txn-0", now),
            ),
            age_verified=True,
        ),
        User(
            id="user-admin-1",
            name="Site Admin",
            email="admin@example.com",
            age=40,
            role=UserRole.ADMIN,
            is_admin=True,
            age_verified=True,
        ),
    ]

    products = [
        Product("prod-1", "Vintage Denim Jacket", "A classic denim jacket from the 90s.",
                Decimal("75"), "Outerwear", ProductCondition.GOOD, "user-seller-1",
                created_at=now - 2 * day, expires_at=now + 88 * day,
                shipping_cost=Decimal("10")),
        Product("prod-2", "Silk Scarf", "A beautiful 100% silk scarf.",
                Decimal("25"), "Accessories", ProductCondition.LIKE_NEW, "user-seller-1",
                created_at=now - 5 * day, expires_at=now + 85 * day,
                shipping_cost=Decimal("5"), status=ProductStatus.SOLD),
        Product("prod-3", "Leather Boots", "Handmade leather boots, barely worn.",
                Decimal("150"), "Shoes", ProductCondition.LIKE_NEW, "user-seller-1",
                created_at=now - day, expires_at=now + 89 * day,
                shipping_cost=Decimal("15"), reserve_price=Decimal("160")),
        Product("prod-4", "Gothic Corset", "A very specific style for mature audiences.",
                Decimal("90"), "NSFW", ProductCondition.NEW_WITH_TAGS, "user-seller-2",
                created_at=now - 3 * day, expires_at=now + 87 * day,
                shipping_cost=Decimal("8"), is_nsfw=True, reported_nsfw=True),
        Product("prod-5", "Chain Necklace", "Goes with the corset.",
                Decimal("40"), "Accessories", ProductCondition.GOOD, "user-seller-2",
                created_at=now - timedelta(hours=12), expires_at=now + 5 * day,
                shipping_cost=Decimal("5")),
    ]

    requests = [
        PurchaseRequest("req-1", "prod-3", "user-buyer-1", Decimal("140"), Decimal("150"),
                        now - timedelta(minutes=30),
                        "I love these boots! Hope you consider my offer."),
        PurchaseRequest("req-2", "prod-3", "user-buyer-2", Decimal("155"), Decimal("165"),
                        now - timedelta(minutes=15),
                        "Willing to pay a bit extra, I need these for an event next week!"),
        PurchaseRequest("req-3", "prod-1", "user-buyer-2", Decimal("60"), Decimal("75"),
                        now - timedelta(hours=1)),
    ]

    transactions = [
        Transaction("txn-1", "prod-2", "user-buyer-1", "user-seller-1",
                    Decimal("25"), Decimal("5"), Decimal("2.50"), now,
                    reviewed_by_buyer=True),
    ]

    return CatalogSnapshot(
        users={u.id: u for u in users},
        products={p.id: p for p in products},
        requests={r.id: r for r in requests},
        transactions={t.id: t for t in transactions},
    )
