"""
Moderation - Listing lifecycle and report/review state machine.

Listing status:

    available --(now >= expires_at)--> expired
    available --(settlement)---------> sold

Both destinations are terminal.

Report sub-state (orthogonal to status), on listings and accounts:

    reported_nsfw: False --report--> True
    reported_nsfw: True  --review(confirm)--> False, is_nsfw := True
    reported_nsfw: True  --review(dismiss)--> False, is_nsfw unchanged

Suspension is toggled by admins only and is independent of reports.

Functions here take an entity and return a new one (or the same object
when nothing changes). Authorization of the acting admin is checked by
the catalog store.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Mapping, Tuple

from closet.core.catalog.models import (
    ModerationAction,
    Product,
    ProductStatus,
    User,
)
from closet.core.errors import InvalidInput, Unauthorized
from closet.utils.logger import get_logger
from closet.utils.validation import validate_choice

logger = get_logger("moderation")


# =============================================================================
# Expiry
# =============================================================================


def is_expired(product: Product, now: datetime) -> bool:
    """An available listing whose deadline has passed."""
    return product.status == ProductStatus.AVAILABLE and product.expires_at <= now


def apply_expiry(
    products: Mapping[str, Product],
    now: datetime,
) -> Tuple[Dict[str, Product], List[str]]:
    """
    Expire every available listing past its deadline.

    Args:
        products: Listings by id
        now: Injected current time

    Returns:
        (new mapping, ids that expired in this sweep)
    """
    updated: Dict[str, Product] = {}
    expired: List[str] = []

    for pid, product in products.items():
        if is_expired(product, now):
            updated[pid] = replace(product, status=ProductStatus.EXPIRED)
            expired.append(pid)
        else:
            updated[pid] = product

    if expired:
        logger.info(f"Expiry sweep: {len(expired)} listing(s) expired")
    return updated, expired


def mark_sold(product: Product) -> Product:
    """Transition an available listing to sold."""
    if product.status != ProductStatus.AVAILABLE:
        raise InvalidInput(f"Listing {product.id} is already {product.status.value}")
    return replace(product, status=ProductStatus.SOLD)


# =============================================================================
# Reports
# =============================================================================


def report_product(product: Product, reporter_id: str) -> Product:
    """Flag a listing for NSFW review. Sellers cannot report their own."""
    if reporter_id == product.seller_id:
        raise Unauthorized("Sellers cannot report their own listing")
    if product.reported_nsfw:
        return product
    return replace(product, reported_nsfw=True)


def report_user(user: User, reporter_id: str) -> User:
    """Flag an account for NSFW review. Users cannot report themselves."""
    if reporter_id == user.id:
        raise Unauthorized("Users cannot report their own account")
    if user.reported_nsfw:
        return user
    return replace(user, reported_nsfw=True)


def _resolve(entity, action: ModerationAction):
    is_valid, error = validate_choice(action, "action", list(ModerationAction))
    if not is_valid:
        raise InvalidInput(error)
    action = ModerationAction(action)
    if not entity.reported_nsfw:
        raise InvalidInput(f"{entity.id} has no pending report")
    is_nsfw = True if action == ModerationAction.CONFIRM else entity.is_nsfw
    return replace(entity, reported_nsfw=False, is_nsfw=is_nsfw)


def review_product(product: Product, action: ModerationAction) -> Product:
    """Resolve a listing report. Confirm marks it NSFW; status is untouched."""
    return _resolve(product, action)


def review_user(user: User, action: ModerationAction) -> User:
    """Resolve an account report. Confirm marks the account NSFW."""
    return _resolve(user, action)


# =============================================================================
# Suspension
# =============================================================================


def suspend(user: User) -> User:
    return replace(user, is_suspended=True)


def reinstate(user: User) -> User:
    return replace(user, is_suspended=False)
