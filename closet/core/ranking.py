"""
Ranking - Listing order for browse views.

Implements the sort modes of the browse page:
- newest: most recently listed first
- price-asc / price-desc: by asking price
- relevance: keep the order handed in (already ranked by search)
- recommended: descending composite score

The recommended score is a sum of independent signals:

    score = recency + urgency + popularity + demand + seller_reputation

Every sort is stable: equal keys keep their input order. The engine is
read-only and never touches the catalog.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from closet.core.catalog.models import (
    CatalogSnapshot,
    Product,
    ProductCondition,
)
from closet.utils.logger import get_logger

logger = get_logger("ranking")


# =============================================================================
# Constants
# =============================================================================

DAY = timedelta(hours=24)
WEEK = timedelta(days=7)

RECENCY_DAY_POINTS = 50
RECENCY_WEEK_POINTS = 20
URGENCY_DAY_POINTS = 60
URGENCY_WEEK_POINTS = 30
POINTS_PER_WISHLIST = 5
POINTS_PER_PENDING_BID = 10
NEUTRAL_RATING = 3
POINTS_PER_RATING_STEP = 5

# Inclusive price bands of the browse filter; None means unbounded
PRICE_BANDS: Dict[str, Tuple[Decimal, Optional[Decimal]]] = {
    "0-25": (Decimal("0"), Decimal("25")),
    "25-75": (Decimal("25"), Decimal("75")),
    "75-150": (Decimal("75"), Decimal("150")),
    "150+": (Decimal("150"), None),
}


class SortMode(str, Enum):
    """Browse sort options."""
    RECOMMENDED = "recommended"
    RELEVANCE = "relevance"
    NEWEST = "newest"
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"


@dataclass
class RankingContext:
    """
    Read-only inputs of the recommended score.

    Missing entries in the lookups count as zero.
    """
    now: datetime
    wishlist_counts: Mapping[str, int] = field(default_factory=dict)
    pending_bid_counts: Mapping[str, int] = field(default_factory=dict)
    seller_ratings: Mapping[str, float] = field(default_factory=dict)


@dataclass
class BrowseFilter:
    """Manual filters of the browse page. None means 'All'."""
    category: Optional[str] = None
    condition: Optional[ProductCondition] = None
    price_band: Optional[str] = None

    def matches(self, product: Product) -> bool:
        if self.category is not None and product.category != self.category:
            return False
        if self.condition is not None and product.condition != self.condition:
            return False
        if self.price_band is not None:
            low, high = PRICE_BANDS[self.price_band]
            if product.price < low:
                return False
            if high is not None and product.price > high:
                return False
        return True


# =============================================================================
# Score Signals
# =============================================================================


def recency_score(product: Product, now: datetime) -> int:
    """+50 if listed in the last 24h, +20 within a week."""
    age = now - product.created_at
    if age <= DAY:
        return RECENCY_DAY_POINTS
    if age <= WEEK:
        return RECENCY_WEEK_POINTS
    return 0


def urgency_score(product: Product, now: datetime) -> int:
    """+60 if expiring within 24h, +30 within a week; expired scores 0."""
    time_left = product.expires_at - now
    if time_left <= timedelta(0):
        return 0
    if time_left <= DAY:
        return URGENCY_DAY_POINTS
    if time_left <= WEEK:
        return URGENCY_WEEK_POINTS
    return 0


def popularity_score(wishlist_count: int) -> int:
    return POINTS_PER_WISHLIST * wishlist_count


def demand_score(pending_bids: int) -> int:
    return POINTS_PER_PENDING_BID * pending_bids


def reputation_score(average_rating: float) -> float:
    """
    (average - 3) * 5.

    Sellers without reviews have average 0 and score -15; they are
    not boosted over rated sellers.
    """
    return (average_rating - NEUTRAL_RATING) * POINTS_PER_RATING_STEP


def recommended_score(product: Product, context: RankingContext) -> float:
    """Composite score of a listing for the recommended sort."""
    return (
        recency_score(product, context.now)
        + urgency_score(product, context.now)
        + popularity_score(context.wishlist_counts.get(product.id, 0))
        + demand_score(context.pending_bid_counts.get(product.id, 0))
        + reputation_score(context.seller_ratings.get(product.seller_id, 0.0))
    )


# =============================================================================
# Ranking
# =============================================================================


def rank(
    products: Sequence[Product],
    mode: SortMode,
    context: RankingContext,
) -> List[Product]:
    """
    Order listings for a sort mode.

    Args:
        products: Listings in their incoming order
        mode: Sort mode
        context: Score inputs (only read by RECOMMENDED)

    Returns:
        New list; the input is not modified
    """
    mode = SortMode(mode)

    if mode == SortMode.RELEVANCE:
        return list(products)
    if mode == SortMode.NEWEST:
        return sorted(products, key=lambda p: p.created_at, reverse=True)
    if mode == SortMode.PRICE_ASC:
        return sorted(products, key=lambda p: p.price)
    if mode == SortMode.PRICE_DESC:
        return sorted(products, key=lambda p: p.price, reverse=True)

    # sorted() is stable and reverse=True keeps ties in input order
    scores = {id(p): recommended_score(p, context) for p in products}
    return sorted(products, key=lambda p: scores[id(p)], reverse=True)


def rank_with_scores(
    products: Sequence[Product],
    context: RankingContext,
) -> List[Tuple[Product, float]]:
    """Rank by recommended score and return (product, score) pairs."""
    ranked = rank(products, SortMode.RECOMMENDED, context)
    return [(p, recommended_score(p, context)) for p in ranked]


def browse(
    products: Iterable[Product],
    browse_filter: Optional[BrowseFilter],
    mode: SortMode,
    context: RankingContext,
    search_ids: Optional[Sequence[str]] = None,
) -> List[Product]:
    """
    Produce the browse page listing order.

    1. Base set: available listings, or the search matches in search
       order when ``search_ids`` is given (unknown ids are dropped).
    2. Apply the manual filters.
    3. Rank with the chosen mode.

    ``products`` should already be filtered for visibility.
    """
    available = [p for p in products if p.is_available]

    if search_ids is not None:
        by_id = {p.id: p for p in available}
        base = [by_id[pid] for pid in search_ids if pid in by_id]
    else:
        base = available

    if browse_filter is not None:
        base = [p for p in base if browse_filter.matches(p)]

    return rank(base, mode, context)


def build_context(
    snapshot: CatalogSnapshot,
    now: datetime,
    wishlist_counts: Optional[Mapping[str, int]] = None,
) -> RankingContext:
    """Assemble ranking inputs from a catalog snapshot."""
    pending: Dict[str, int] = {}
    for request in snapshot.requests.values():
        if request.is_pending:
            pending[request.product_id] = pending.get(request.product_id, 0) + 1

    ratings = {uid: user.average_rating for uid, user in snapshot.users.items()}

    return RankingContext(
        now=now,
        wishlist_counts=dict(wishlist_counts or {}),
        pending_bid_counts=pending,
        seller_ratings=ratings,
    )
