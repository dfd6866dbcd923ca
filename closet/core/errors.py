"""
Marketplace error taxonomy.

Engines raise these synchronously; callers own user-facing messaging.
"""


class MarketplaceError(Exception):
    """Base class for all marketplace rule violations."""


class NotFound(MarketplaceError, LookupError):
    """Referenced user, product, request or transaction does not exist."""

    def __init__(self, kind: str, entity_id: str):
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class Unauthorized(MarketplaceError):
    """Caller lacks the rights for the mutation."""


class ReserveNotMet(MarketplaceError):
    """Winning bid ceiling is below the seller's reserve price."""

    def __init__(self, max_bid, reserve_price):
        super().__init__("Bid does not meet the reserve price")
        self.max_bid = max_bid
        self.reserve_price = reserve_price


class InvalidInput(MarketplaceError, ValueError):
    """Malformed amounts or arguments (negative, NaN, max < min, ...)."""


class AlreadyReviewed(MarketplaceError):
    """The author already reviewed this transaction in the same role."""


class ExternalServiceFailure(MarketplaceError):
    """Listing assistant call failed or returned malformed data."""
