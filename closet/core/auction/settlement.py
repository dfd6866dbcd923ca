"""
Settlement - Clearing price computation for accepted bids.

A seller picks one pending purchase request on a listing. The price the
winner pays follows a second-price rule with two floors:

    highest_other = max(max_bid of every other pending request, or 0)
    clearing      = max(winner.min_bid, highest_other + increment)
    clearing      = min(clearing, winner.max_bid)
    clearing      = max(clearing, reserve)            # if a reserve is set

With no competitors highest_other is 0, so a lone bidder clears at
max(min_bid, increment), or the reserve. The winner never pays above their own
ceiling, and a ceiling below the reserve is rejected up front, so the
last floor cannot lift the price over max_bid.

The seller's fee is ``clearing * fee_rate``, computed once here.

Everything in this module is pure: it returns an outcome and the
catalog store applies it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from closet.core.catalog.models import Product, PurchaseRequest
from closet.core.errors import InvalidInput, NotFound, ReserveNotMet, Unauthorized
from closet.utils.logger import get_logger
from closet.utils.validation import quantize_cents

logger = get_logger("settlement")


DEFAULT_FEE_RATE = Decimal("0.10")
DEFAULT_INCREMENT = Decimal("1")


@dataclass
class SettlementOutcome:
    """
    Result of a successful settlement.

    Attributes:
        product_id: The listing being sold
        accepted_id: The winning request
        rejected_ids: Every other pending request on the listing
        clearing_price: What the winner pays (before shipping)
        fee: Marketplace fee charged to the seller
    """
    product_id: str
    accepted_id: str
    rejected_ids: Tuple[str, ...]
    clearing_price: Decimal
    fee: Decimal


def competing_requests(
    winning: PurchaseRequest,
    pending: Iterable[PurchaseRequest],
) -> List[PurchaseRequest]:
    """Other pending requests on the same listing."""
    return [
        r for r in pending
        if r.id != winning.id and r.product_id == winning.product_id and r.is_pending
    ]


def highest_other_max_bid(
    winning: PurchaseRequest,
    pending: Iterable[PurchaseRequest],
) -> Decimal:
    """Highest max_bid among the other pending requests, 0 if none."""
    return max(
        (r.max_bid for r in competing_requests(winning, pending)),
        default=Decimal("0"),
    )


def compute_clearing_price(
    winning: PurchaseRequest,
    pending: Iterable[PurchaseRequest],
    reserve_price: Optional[Decimal] = None,
    increment: Decimal = DEFAULT_INCREMENT,
) -> Decimal:
    """
    Compute the price the winning request settles at.

    Args:
        winning: The request the seller accepts
        pending: All pending requests on the listing (winner may be included)
        reserve_price: Seller's hidden floor, None if unset
        increment: Step over the runner-up's ceiling

    Returns:
        Clearing price

    Raises:
        ReserveNotMet: winning.max_bid is below the reserve
    """
    if reserve_price is not None and winning.max_bid < reserve_price:
        raise ReserveNotMet(winning.max_bid, reserve_price)

    price = max(winning.min_bid, highest_other_max_bid(winning, pending) + increment)

    price = min(price, winning.max_bid)

    if reserve_price is not None:
        price = max(price, reserve_price)

    return price


def compute_fee(clearing_price: Decimal, fee_rate: Decimal = DEFAULT_FEE_RATE) -> Decimal:
    """Seller fee on a clearing price, rounded to cents."""
    return quantize_cents(clearing_price * fee_rate)


def settle(
    product: Product,
    winning: PurchaseRequest,
    pending: Iterable[PurchaseRequest],
    caller_id: str,
    fee_rate: Decimal = DEFAULT_FEE_RATE,
    increment: Decimal = DEFAULT_INCREMENT,
) -> SettlementOutcome:
    """
    Settle a listing in favour of one pending request.

    Checks, in order:
    1. Caller is the listing's seller
    2. Listing is still available
    3. Winning request is pending and belongs to the listing
    4. Reserve price is met

    Args:
        product: The listing being sold
        winning: The request the seller accepts
        pending: All pending requests on the listing
        caller_id: Account invoking the settlement
        fee_rate: Marketplace fee rate
        increment: Step over the runner-up's ceiling

    Returns:
        SettlementOutcome for the store to apply

    Raises:
        Unauthorized, InvalidInput, NotFound, ReserveNotMet
    """
    if caller_id != product.seller_id:
        logger.warning(f"Settlement refused: {caller_id} is not the seller of {product.id}")
        raise Unauthorized("Only the seller can accept offers on this listing")

    if not product.is_available:
        raise InvalidInput(f"Listing {product.id} is {product.status.value}")

    if winning.product_id != product.id:
        raise NotFound("purchase request", winning.id)

    if not winning.is_pending:
        raise InvalidInput(f"Request {winning.id} is already {winning.status.value}")

    pool: List[PurchaseRequest] = [
        r for r in pending if r.product_id == product.id and r.is_pending
    ]

    clearing_price = compute_clearing_price(
        winning, pool, product.reserve_price, increment
    )
    fee = compute_fee(clearing_price, fee_rate)
    rejected = tuple(r.id for r in pool if r.id != winning.id)

    logger.debug(
        f"Settled {product.id}: winner={winning.id} price={clearing_price} "
        f"fee={fee} rejected={len(rejected)}"
    )

    return SettlementOutcome(
        product_id=product.id,
        accepted_id=winning.id,
        rejected_ids=rejected,
        clearing_price=clearing_price,
        fee=fee,
    )
