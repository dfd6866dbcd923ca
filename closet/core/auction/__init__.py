"""
Closet Swap Auction Module.

Second-price settlement of purchase requests:
- Clearing price with bidder floor, increment and reserve
- Seller fee computation
- Settlement outcome for the catalog store to apply
"""

from closet.core.auction.settlement import (
    SettlementOutcome,
    competing_requests,
    highest_other_max_bid,
    compute_clearing_price,
    compute_fee,
    settle,
    DEFAULT_FEE_RATE,
    DEFAULT_INCREMENT,
)

__all__ = [
    "SettlementOutcome",
    "competing_requests",
    "highest_other_max_bid",
    "compute_clearing_price",
    "compute_fee",
    "settle",
    "DEFAULT_FEE_RATE",
    "DEFAULT_INCREMENT",
]
