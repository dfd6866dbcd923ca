"""
Tests for browse ranking.

These tests verify:
1. Individual score signals and their thresholds
2. Sort modes and stability on ties
3. Monotonicity in wishlist and pending-bid counts
4. Manual filters and search-order preservation
5. Context assembly from a catalog snapshot
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from closet.core.catalog.models import (
    CatalogSnapshot,
    Product,
    ProductCondition,
    ProductStatus,
    PurchaseRequest,
    RequestStatus,
    Review,
    User,
)
from closet.core.ranking import (
    BrowseFilter,
    RankingContext,
    SortMode,
    browse,
    build_context,
    rank,
    rank_with_scores,
    recency_score,
    recommended_score,
    reputation_score,
    urgency_score,
)


NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_product(
    pid,
    price="10",
    age=timedelta(days=30),
    time_left=timedelta(days=60),
    seller_id="seller",
    **kwargs,
):
    return Product(
        id=pid,
        title=pid,
        description="",
        price=Decimal(price),
        category=kwargs.pop("category", "Tops"),
        condition=kwargs.pop("condition", ProductCondition.GOOD),
        seller_id=seller_id,
        created_at=NOW - age,
        expires_at=NOW + time_left,
        **kwargs,
    )


def neutral_context(**kwargs):
    """Context where every seller sits at the neutral rating."""
    ratings = kwargs.pop("seller_ratings", {"seller": 3.0})
    return RankingContext(now=NOW, seller_ratings=ratings, **kwargs)


class TestSignals:
    """Tests for the individual score signals."""

    @pytest.mark.parametrize(
        "age,expected",
        [
            (timedelta(hours=1), 50),
            (timedelta(hours=24), 50),
            (timedelta(hours=25), 20),
            (timedelta(days=7), 20),
            (timedelta(days=8), 0),
        ],
    )
    def test_recency(self, age, expected):
        assert recency_score(make_product("p", age=age), NOW) == expected

    @pytest.mark.parametrize(
        "time_left,expected",
        [
            (timedelta(hours=2), 60),
            (timedelta(hours=24), 60),
            (timedelta(days=3), 30),
            (timedelta(days=7), 30),
            (timedelta(days=30), 0),
            (timedelta(0), 0),
            (-timedelta(hours=1), 0),
        ],
    )
    def test_urgency(self, time_left, expected):
        assert urgency_score(make_product("p", time_left=time_left), NOW) == expected

    def test_reputation(self):
        assert reputation_score(5.0) == 10
        assert reputation_score(3.0) == 0
        assert reputation_score(1.0) == -10

    def test_unrated_seller_penalised(self):
        """Sellers with no reviews average 0 and score -15."""
        assert reputation_score(0.0) == -15

    def test_composite(self):
        """New, expiring, wishlisted, bid-on listing from a 5-star seller."""
        product = make_product("p", age=timedelta(hours=2), time_left=timedelta(hours=5))
        context = RankingContext(
            now=NOW,
            wishlist_counts={"p": 2},
            pending_bid_counts={"p": 3},
            seller_ratings={"seller": 5.0},
        )
        assert recommended_score(product, context) == 50 + 60 + 10 + 30 + 10

    def test_missing_lookups_default(self):
        """Unknown listing/seller counts as zero wishlists, bids and rating."""
        product = make_product("p")
        context = RankingContext(now=NOW)
        assert recommended_score(product, context) == -15


class TestSortModes:
    """Tests for each sort mode."""

    def test_price_asc_and_desc(self):
        products = [make_product("a", "30"), make_product("b", "10"), make_product("c", "20")]
        context = neutral_context()
        assert [p.id for p in rank(products, SortMode.PRICE_ASC, context)] == ["b", "c", "a"]
        assert [p.id for p in rank(products, SortMode.PRICE_DESC, context)] == ["a", "c", "b"]

    def test_newest(self):
        products = [
            make_product("old", age=timedelta(days=10)),
            make_product("new", age=timedelta(hours=1)),
            make_product("mid", age=timedelta(days=2)),
        ]
        ranked = rank(products, SortMode.NEWEST, neutral_context())
        assert [p.id for p in ranked] == ["new", "mid", "old"]

    def test_relevance_keeps_input_order(self):
        products = [make_product("z", "1"), make_product("a", "99")]
        assert [p.id for p in rank(products, SortMode.RELEVANCE, neutral_context())] == ["z", "a"]

    def test_mode_accepts_string(self):
        products = [make_product("a", "30"), make_product("b", "10")]
        assert [p.id for p in rank(products, "price-asc", neutral_context())] == ["b", "a"]

    def test_input_not_modified(self):
        products = [make_product("a", "30"), make_product("b", "10")]
        rank(products, SortMode.PRICE_ASC, neutral_context())
        assert [p.id for p in products] == ["a", "b"]

    def test_recommended_descending(self):
        products = [
            make_product("plain"),
            make_product("fresh", age=timedelta(hours=1)),
            make_product("ending", time_left=timedelta(hours=3)),
        ]
        ranked = rank(products, SortMode.RECOMMENDED, neutral_context())
        assert [p.id for p in ranked] == ["ending", "fresh", "plain"]

    def test_recommended_stable_on_ties(self):
        """Equal scores keep the incoming order."""
        products = [make_product(pid) for pid in ("c", "a", "b")]
        ranked = rank(products, SortMode.RECOMMENDED, neutral_context())
        assert [p.id for p in ranked] == ["c", "a", "b"]

    def test_price_stable_on_ties(self):
        products = [make_product(pid, "10") for pid in ("c", "a", "b")]
        ranked = rank(products, SortMode.PRICE_DESC, neutral_context())
        assert [p.id for p in ranked] == ["c", "a", "b"]

    def test_rank_with_scores(self):
        products = [make_product("plain"), make_product("fresh", age=timedelta(hours=1))]
        pairs = rank_with_scores(products, neutral_context())
        assert [(p.id, s) for p, s in pairs] == [("fresh", 50), ("plain", 0)]


class TestMonotonicity:
    """More wishlists or bids never lower a listing's position."""

    @pytest.mark.parametrize("extra", [1, 2, 5])
    def test_wishlist_count(self, extra):
        products = [make_product("a"), make_product("b"), make_product("c")]
        before = neutral_context(wishlist_counts={"a": 1, "b": 1, "c": 1})
        after = neutral_context(wishlist_counts={"a": 1, "b": 1, "c": 1 + extra})

        pos_before = [p.id for p in rank(products, SortMode.RECOMMENDED, before)].index("c")
        pos_after = [p.id for p in rank(products, SortMode.RECOMMENDED, after)].index("c")
        assert pos_after <= pos_before

    @pytest.mark.parametrize("extra", [1, 3])
    def test_pending_bid_count(self, extra):
        products = [make_product("a"), make_product("b")]
        before = neutral_context(pending_bid_counts={"a": 1})
        after = neutral_context(pending_bid_counts={"a": 1, "b": extra})

        pos_before = [p.id for p in rank(products, SortMode.RECOMMENDED, before)].index("b")
        pos_after = [p.id for p in rank(products, SortMode.RECOMMENDED, after)].index("b")
        assert pos_after <= pos_before


class TestBrowse:
    """Tests for the browse pipeline."""

    def test_only_available(self):
        products = [
            make_product("a"),
            make_product("sold", status=ProductStatus.SOLD),
            make_product("gone", status=ProductStatus.EXPIRED),
        ]
        result = browse(products, None, SortMode.RELEVANCE, neutral_context())
        assert [p.id for p in result] == ["a"]

    def test_category_and_condition(self):
        products = [
            make_product("a", category="Shoes", condition=ProductCondition.NEW_WITH_TAGS),
            make_product("b", category="Shoes", condition=ProductCondition.FAIR),
            make_product("c", category="Tops", condition=ProductCondition.NEW_WITH_TAGS),
        ]
        flt = BrowseFilter(category="Shoes", condition=ProductCondition.NEW_WITH_TAGS)
        result = browse(products, flt, SortMode.RELEVANCE, neutral_context())
        assert [p.id for p in result] == ["a"]

    @pytest.mark.parametrize(
        "band,expected",
        [
            ("0-25", ["p10", "p25"]),
            ("25-75", ["p25", "p75"]),
            ("75-150", ["p75", "p150"]),
            ("150+", ["p150", "p400"]),
        ],
    )
    def test_price_bands_inclusive(self, band, expected):
        products = [make_product(f"p{v}", str(v)) for v in (10, 25, 75, 150, 400)]
        result = browse(products, BrowseFilter(price_band=band), SortMode.RELEVANCE, neutral_context())
        assert [p.id for p in result] == expected

    def test_search_order_preserved_under_relevance(self):
        products = [make_product("a"), make_product("b"), make_product("c")]
        result = browse(products, None, SortMode.RELEVANCE, neutral_context(), search_ids=["c", "a"])
        assert [p.id for p in result] == ["c", "a"]

    def test_search_drops_unknown_ids(self):
        products = [make_product("a")]
        result = browse(products, None, SortMode.RELEVANCE, neutral_context(), search_ids=["x", "a"])
        assert [p.id for p in result] == ["a"]

    def test_search_then_sort(self):
        """Search narrows the base set; the chosen mode still orders it."""
        products = [make_product("a", "50"), make_product("b", "5"), make_product("c", "20")]
        result = browse(products, None, SortMode.PRICE_ASC, neutral_context(), search_ids=["a", "c"])
        assert [p.id for p in result] == ["c", "a"]


class TestBuildContext:
    """Tests for assembling ranking inputs from a snapshot."""

    def test_counts_only_pending_bids(self):
        def req(rid, pid, status=RequestStatus.PENDING):
            return PurchaseRequest(rid, pid, "buyer", Decimal("1"), Decimal("2"), NOW, status=status)

        rated = User(
            id="seller",
            name="S",
            email="s@example.com",
            age=30,
            reviews=(Review("r1", "b", "seller", 4, "", "t1", NOW),),
        )
        snapshot = CatalogSnapshot(
            users={"seller": rated, "fresh": User("fresh", "F", "f@example.com", 30)},
            products={},
            requests={
                "r1": req("r1", "p1"),
                "r2": req("r2", "p1"),
                "r3": req("r3", "p1", RequestStatus.REJECTED),
                "r4": req("r4", "p2"),
            },
        )

        context = build_context(snapshot, NOW, {"p1": 3})

        assert context.pending_bid_counts == {"p1": 2, "p2": 1}
        assert context.wishlist_counts == {"p1": 3}
        assert context.seller_ratings["seller"] == 4.0
        assert context.seller_ratings["fresh"] == 0.0
