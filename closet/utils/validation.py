"""
Input Validation - Sanitization of caller-supplied values.

Provides validation for all external inputs to the catalog store:
- Currency amounts (bids, prices, shipping costs)
- Ratings and bounded integers
- Enumerated choices
- Free text lengths
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Tuple

# =============================================================================
# Constants
# =============================================================================

MAX_AMOUNT = Decimal("1000000000")
MAX_TITLE_LENGTH = 200
MAX_TEXT_LENGTH = 5000
MIN_RATING = 1
MAX_RATING = 5

CENT = Decimal("0.01")


# =============================================================================
# Conversion
# =============================================================================


def to_amount(value: Any) -> Optional[Decimal]:
    """
    Convert a number-like value to a finite Decimal.

    Floats go through ``str`` so that 0.1 becomes Decimal("0.1").
    Booleans are not amounts.

    Returns:
        Decimal, or None when the value is not a finite number
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float, str)):
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None

    if not amount.is_finite():
        return None
    return amount


def quantize_cents(amount: Decimal) -> Decimal:
    """Round an amount to whole cents."""
    return amount.quantize(CENT)


# =============================================================================
# Validation Functions
# =============================================================================


def validate_amount(
    value: Any,
    name: str,
    allow_zero: bool = True,
    max_val: Decimal = MAX_AMOUNT,
) -> Tuple[bool, str]:
    """
    Validate a currency amount.

    Args:
        value: Value to validate
        name: Field name for error messages
        allow_zero: Whether 0 is acceptable
        max_val: Maximum allowed value

    Returns:
        (is_valid, error_message)
    """
    amount = to_amount(value)
    if amount is None:
        return False, f"{name} must be a finite number, got {value!r}"

    if amount < 0:
        return False, f"{name} must be >= 0, got {amount}"

    if not allow_zero and amount == 0:
        return False, f"{name} must be > 0"

    if amount > max_val:
        return False, f"{name} must be <= {max_val}, got {amount}"

    return True, ""


def validate_bid_range(min_bid: Any, max_bid: Any) -> Tuple[bool, str]:
    """Validate a (min_bid, max_bid) pair."""
    for value, name in ((min_bid, "min_bid"), (max_bid, "max_bid")):
        valid, err = validate_amount(value, name)
        if not valid:
            return False, err

    if to_amount(max_bid) < to_amount(min_bid):
        return False, f"max_bid {max_bid} is below min_bid {min_bid}"

    return True, ""


def validate_rating(value: Any) -> Tuple[bool, str]:
    """Validate a review rating (integer 1-5)."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"rating must be int, got {type(value).__name__}"

    if value < MIN_RATING or value > MAX_RATING:
        return False, f"rating must be between {MIN_RATING} and {MAX_RATING}, got {value}"

    return True, ""


def validate_age(value: Any) -> Tuple[bool, str]:
    """Validate a user age."""
    if isinstance(value, bool) or not isinstance(value, int):
        return False, f"age must be int, got {type(value).__name__}"

    if value < 0:
        return False, f"age must be >= 0, got {value}"

    return True, ""


def validate_text(
    value: Any,
    name: str,
    max_length: int = MAX_TEXT_LENGTH,
    required: bool = False,
) -> Tuple[bool, str]:
    """Validate free text."""
    if not isinstance(value, str):
        return False, f"{name} must be str, got {type(value).__name__}"

    if required and not value.strip():
        return False, f"{name} is required"

    if len(value) > max_length:
        return False, f"{name} exceeds max length {max_length}, got {len(value)}"

    return True, ""


def validate_choice(value: Any, name: str, choices: Iterable[Any]) -> Tuple[bool, str]:
    """Validate that a value is one of the allowed choices."""
    allowed = list(choices)
    if value not in allowed:
        return False, f"{name} must be one of {allowed}, got {value!r}"
    return True, ""
