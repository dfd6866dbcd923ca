"""
Catalog Models - Entities of the Closet Swap marketplace.

Entities are treated as values: the catalog store never edits an
instance in place, it derives a new one with ``dataclasses.replace``
and commits it as part of a new snapshot. Older snapshots therefore
stay consistent for readers that still hold them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional, Tuple


# =============================================================================
# Enums
# =============================================================================


class UserRole(str, Enum):
    """Marketplace role of an account."""
    BUYER = "buyer"
    SELLER = "seller"
    ADMIN = "admin"


class ProductCondition(str, Enum):
    """Condition grades a listing can declare."""
    NEW_WITH_TAGS = "New with tags"
    LIKE_NEW = "Like new"
    GOOD = "Good"
    FAIR = "Fair"


class ProductStatus(str, Enum):
    """Listing lifecycle. SOLD and EXPIRED are terminal."""
    AVAILABLE = "available"
    SOLD = "sold"
    EXPIRED = "expired"


class RequestStatus(str, Enum):
    """Purchase request lifecycle. Terminal once not PENDING."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ModerationAction(str, Enum):
    """Moderator decision on a report."""
    CONFIRM = "confirm"
    DISMISS = "dismiss"


CATEGORIES = ("Tops", "Bottoms", "Dresses", "Outerwear", "Shoes", "Accessories", "NSFW")


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# Entities
# =============================================================================


@dataclass
class Review:
    """Feedback left on a user, authorized by a transaction."""
    id: str
    author_id: str
    target_id: str
    rating: int
    text: str
    transaction_id: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class User:
    """
    A marketplace account.

    Attributes:
        id: Unique account id
        email: Unique, compared case-insensitively
        role: buyer, seller or admin
        reviews: Append-only feedback received by this user
        payment_methods: Payout settings (sellers)
        fees_owed: Outstanding marketplace fees (sellers)
        reported_nsfw: Pending moderation, not a confirmed classification
        is_suspended: Excluded from all marketplace participation
    """
    id: str
    name: str
    email: str
    age: int
    role: UserRole = UserRole.BUYER
    reviews: Tuple[Review, ...] = ()
    payment_methods: Optional[Dict[str, str]] = None
    fees_owed: Decimal = Decimal("0")
    is_admin: bool = False
    age_verified: bool = False
    is_nsfw: bool = False
    reported_nsfw: bool = False
    is_suspended: bool = False

    @property
    def is_moderator(self) -> bool:
        """Admins may moderate, suspend and see reported content."""
        return self.is_admin or self.role == UserRole.ADMIN

    @property
    def is_seller(self) -> bool:
        return self.role == UserRole.SELLER

    @property
    def outstanding_fees(self) -> Decimal:
        """Fees owed; meaningless (0) for non-sellers."""
        return self.fees_owed if self.is_seller else Decimal("0")

    @property
    def average_rating(self) -> float:
        """Mean review rating, 0 when the user has no reviews."""
        if not self.reviews:
            return 0.0
        return sum(r.rating for r in self.reviews) / len(self.reviews)

    def __repr__(self) -> str:
        return f"User(id={self.id}, role={self.role.value}, suspended={self.is_suspended})"


@dataclass
class DamageRecord:
    """A documented flaw on a listing."""
    description: str
    images: Tuple[str, ...] = ()


@dataclass
class Product:
    """
    A listing.

    ``reserve_price`` is only read at settlement; ``public_view`` is
    what bidders get to see.
    """
    id: str
    title: str
    description: str
    price: Decimal
    category: str
    condition: ProductCondition
    seller_id: str
    created_at: datetime
    expires_at: datetime
    shipping_cost: Decimal = Decimal("0")
    reserve_price: Optional[Decimal] = None
    status: ProductStatus = ProductStatus.AVAILABLE
    is_nsfw: bool = False
    reported_nsfw: bool = False
    documented_damage: Tuple[DamageRecord, ...] = ()
    image_url: str = ""

    @property
    def is_available(self) -> bool:
        return self.status == ProductStatus.AVAILABLE

    def public_view(self) -> Dict[str, Any]:
        """Bidder-facing fields. Never includes the reserve price."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "condition": self.condition.value,
            "seller_id": self.seller_id,
            "shipping_cost": self.shipping_cost,
            "status": self.status.value,
            "is_nsfw": self.is_nsfw,
            "image_url": self.image_url,
            "documented_damage": [
                {"description": d.description, "images": list(d.images)}
                for d in self.documented_damage
            ],
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        }

    def __repr__(self) -> str:
        return f"Product(id={self.id}, price={self.price}, status={self.status.value})"


@dataclass
class PurchaseRequest:
    """A buyer's standing offer on one product."""
    id: str
    product_id: str
    buyer_id: str
    min_bid: Decimal
    max_bid: Decimal
    created_at: datetime
    comment: str = ""
    status: RequestStatus = RequestStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status == RequestStatus.PENDING


@dataclass
class Transaction:
    """
    Record of a completed sale.

    Immutable except the two reviewed flags, each flipped once.
    """
    id: str
    product_id: str
    buyer_id: str
    seller_id: str
    price: Decimal
    shipping_cost: Decimal
    fee: Decimal
    created_at: datetime
    reviewed_by_buyer: bool = False
    reviewed_by_seller: bool = False

    @property
    def total(self) -> Decimal:
        """What the buyer pays."""
        return self.price + self.shipping_cost


@dataclass
class ListingDraft:
    """Seller-supplied fields of a new listing."""
    title: str
    description: str
    price: Any
    category: str
    condition: Any
    shipping_cost: Any = Decimal("0")
    reserve_price: Any = None
    is_nsfw: bool = False
    image_url: str = ""
    documented_damage: Tuple[DamageRecord, ...] = ()
    expires_at: Optional[datetime] = None


# =============================================================================
# Snapshot
# =============================================================================


@dataclass
class CatalogSnapshot:
    """
    One consistent state of the whole catalog.

    The store replaces its snapshot wholesale on every committed mutation.
    """
    users: Dict[str, User] = field(default_factory=dict)
    products: Dict[str, Product] = field(default_factory=dict)
    requests: Dict[str, PurchaseRequest] = field(default_factory=dict)
    transactions: Dict[str, Transaction] = field(default_factory=dict)

    def copy(self) -> "CatalogSnapshot":
        """Shallow copy: new dicts, shared (unmodified) entities."""
        return CatalogSnapshot(
            users=dict(self.users),
            products=dict(self.products),
            requests=dict(self.requests),
            transactions=dict(self.transactions),
        )
