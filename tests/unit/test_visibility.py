"""
Tests for per-viewer visibility.

These tests verify:
1. Reported listings are admin-only regardless of confirmed NSFW state
2. Suspended sellers' listings are hidden except to themselves and admins
3. Effective NSFW (listing OR seller) needs an age-verified viewer
4. Profile visibility
5. Determinism
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from closet.core.catalog.models import Product, ProductCondition, User, UserRole
from closet.core.visibility import (
    Visibility,
    effective_visibility,
    is_effectively_nsfw,
    is_product_visible,
    is_user_visible,
    user_visibility,
    visible_products,
)


NOW = datetime(2024, 5, 1, tzinfo=timezone.utc)


def make_user(uid, **kwargs):
    defaults = dict(name=uid, email=f"{uid}@example.com", age=30)
    defaults.update(kwargs)
    return User(id=uid, **defaults)


def make_product(pid="prod-1", seller_id="seller", **kwargs):
    return Product(
        id=pid,
        title="Item",
        description="",
        price=Decimal("10"),
        category="Tops",
        condition=ProductCondition.GOOD,
        seller_id=seller_id,
        created_at=NOW,
        expires_at=NOW + timedelta(days=90),
        **kwargs,
    )


@pytest.fixture
def seller():
    return make_user("seller", role=UserRole.SELLER, age_verified=True)


@pytest.fixture
def admin():
    return make_user("admin", role=UserRole.ADMIN, is_admin=True, age_verified=True)


@pytest.fixture
def adult():
    return make_user("adult", age_verified=True)


@pytest.fixture
def minor():
    return make_user("minor", age=16, age_verified=False)


class TestReportedRule:
    """Rule 1: reported listings."""

    @pytest.mark.parametrize("is_nsfw", [True, False])
    def test_reported_hidden_from_non_admins(self, seller, adult, minor, is_nsfw):
        """Reported listings are hidden from everyone but admins."""
        product = make_product(reported_nsfw=True, is_nsfw=is_nsfw)
        users = {"seller": seller}
        for viewer in (None, adult, minor, seller):
            assert not is_product_visible(product, viewer, users)

    def test_reported_visible_to_admin(self, seller, admin):
        product = make_product(reported_nsfw=True, is_nsfw=True)
        assert is_product_visible(product, admin, {"seller": seller})

    def test_admin_flag_without_admin_role(self, seller):
        """is_admin alone grants moderator visibility."""
        viewer = make_user("mod", is_admin=True)
        product = make_product(reported_nsfw=True)
        assert is_product_visible(product, viewer, {"seller": seller})

    def test_tag(self, seller, adult):
        product = make_product(reported_nsfw=True)
        assert effective_visibility(product, seller, adult) == Visibility.HIDDEN_REPORTED


class TestSuspendedRule:
    """Rule 2: suspended sellers."""

    def test_hidden_from_others(self, adult, minor):
        seller = make_user("seller", role=UserRole.SELLER, is_suspended=True)
        product = make_product()
        for viewer in (None, adult, minor):
            assert effective_visibility(product, seller, viewer) == Visibility.HIDDEN_SUSPENDED

    def test_visible_to_self_and_admin(self, admin):
        seller = make_user("seller", role=UserRole.SELLER, is_suspended=True)
        product = make_product()
        assert is_product_visible(product, seller, {"seller": seller})
        assert is_product_visible(product, admin, {"seller": seller})

    def test_reported_beats_suspended_for_owner(self):
        """Rule order: a reported listing stays hidden from its suspended owner."""
        seller = make_user("seller", role=UserRole.SELLER, is_suspended=True)
        product = make_product(reported_nsfw=True)
        assert effective_visibility(product, seller, seller) == Visibility.HIDDEN_REPORTED


class TestNSFWRule:
    """Rule 3: effective NSFW."""

    def test_listing_flag(self, seller, adult, minor):
        product = make_product(is_nsfw=True)
        users = {"seller": seller}
        assert is_product_visible(product, adult, users)
        assert not is_product_visible(product, minor, users)
        assert not is_product_visible(product, None, users)

    def test_seller_flag_makes_listing_nsfw(self, adult, minor):
        seller = make_user("seller", role=UserRole.SELLER, is_nsfw=True)
        product = make_product(is_nsfw=False)
        assert is_effectively_nsfw(product, seller)
        assert is_product_visible(product, adult, {"seller": seller})
        assert effective_visibility(product, seller, minor) == Visibility.HIDDEN_NSFW

    def test_plain_listing_visible_to_anonymous(self, seller):
        assert is_product_visible(make_product(), None, {"seller": seller})

    def test_unknown_seller_treated_as_clean(self, adult):
        product = make_product(seller_id="ghost")
        assert is_product_visible(product, adult, {})


class TestUserVisibility:
    """Profile visibility."""

    def test_suspended_profile(self, adult, admin):
        user = make_user("u", is_suspended=True)
        assert not is_user_visible(user, adult)
        assert is_user_visible(user, admin)
        assert is_user_visible(user, user)

    def test_reported_profile(self, adult):
        user = make_user("u", reported_nsfw=True)
        assert user_visibility(user, adult) == Visibility.HIDDEN_REPORTED

    def test_nsfw_profile(self, adult, minor):
        user = make_user("u", is_nsfw=True)
        assert is_user_visible(user, adult)
        assert not is_user_visible(user, minor)
        assert not is_user_visible(user, None)


class TestFiltering:
    """Collection filtering and determinism."""

    def test_visible_products_preserves_order(self, seller, minor):
        products = [
            make_product("p1"),
            make_product("p2", is_nsfw=True),
            make_product("p3"),
        ]
        result = visible_products(products, minor, {"seller": seller})
        assert [p.id for p in result] == ["p1", "p3"]

    def test_idempotent(self, seller, adult):
        product = make_product(is_nsfw=True)
        users = {"seller": seller}
        first = is_product_visible(product, adult, users)
        second = is_product_visible(product, adult, users)
        assert first == second
