"""
Visibility - Per-viewer content visibility for Closet Swap.

Decides whether a listing or a profile may be shown to a viewer.
Rules are applied in order and the first match decides:

1. Reported listings are visible only to admins.
2. Listings of suspended sellers are visible only to the seller and admins.
3. Effectively NSFW listings (listing OR seller flagged) need an
   age-verified viewer.
4. Everything else is visible.

All functions are pure and read the snapshot they are given. Results
are never cached: suspension and NSFW state change between reads.
"""

from enum import Enum
from typing import Iterable, List, Mapping, Optional

from closet.core.catalog.models import Product, User
from closet.utils.logger import get_logger

logger = get_logger("visibility")


class Visibility(str, Enum):
    """Outcome of a visibility decision, tagged with the deciding rule."""
    VISIBLE = "visible"
    HIDDEN_REPORTED = "hidden_reported"
    HIDDEN_SUSPENDED = "hidden_suspended"
    HIDDEN_NSFW = "hidden_nsfw"

    @property
    def visible(self) -> bool:
        return self is Visibility.VISIBLE


def _is_admin(viewer: Optional[User]) -> bool:
    return viewer is not None and viewer.is_moderator


def _is_self(viewer: Optional[User], user_id: str) -> bool:
    return viewer is not None and viewer.id == user_id


def is_effectively_nsfw(product: Product, seller: Optional[User]) -> bool:
    """A listing is NSFW if it is flagged itself or its seller's account is."""
    return product.is_nsfw or (seller is not None and seller.is_nsfw)


def effective_visibility(
    product: Product,
    seller: Optional[User],
    viewer: Optional[User],
) -> Visibility:
    """
    Compute the tagged visibility of a listing for a viewer.

    Args:
        product: The listing
        seller: The listing's seller (None if unknown)
        viewer: The viewing account, None for anonymous visitors

    Returns:
        Visibility tag; ``.visible`` tells whether to show it
    """
    if product.reported_nsfw and not _is_admin(viewer):
        return Visibility.HIDDEN_REPORTED

    if seller is not None and seller.is_suspended:
        if not (_is_admin(viewer) or _is_self(viewer, seller.id)):
            return Visibility.HIDDEN_SUSPENDED

    if is_effectively_nsfw(product, seller):
        if viewer is None or not viewer.age_verified:
            return Visibility.HIDDEN_NSFW

    return Visibility.VISIBLE


def is_product_visible(
    product: Product,
    viewer: Optional[User],
    users: Mapping[str, User],
) -> bool:
    """Whether a listing is visible to the viewer given all users."""
    seller = users.get(product.seller_id)
    return effective_visibility(product, seller, viewer).visible


def user_visibility(user: User, viewer: Optional[User]) -> Visibility:
    """
    Compute the tagged visibility of a profile for a viewer.

    Owners and admins always see the profile.
    """
    if _is_admin(viewer) or _is_self(viewer, user.id):
        return Visibility.VISIBLE

    if user.reported_nsfw:
        return Visibility.HIDDEN_REPORTED

    if user.is_suspended:
        return Visibility.HIDDEN_SUSPENDED

    if user.is_nsfw and (viewer is None or not viewer.age_verified):
        return Visibility.HIDDEN_NSFW

    return Visibility.VISIBLE


def is_user_visible(user: User, viewer: Optional[User]) -> bool:
    """Whether a profile is visible to the viewer."""
    return user_visibility(user, viewer).visible


def visible_products(
    products: Iterable[Product],
    viewer: Optional[User],
    users: Mapping[str, User],
) -> List[Product]:
    """Filter listings down to those the viewer may see, preserving order."""
    result = [p for p in products if is_product_visible(p, viewer, users)]
    logger.debug(
        f"Visible listings for {viewer.id if viewer else 'anonymous'}: {len(result)}"
    )
    return result
