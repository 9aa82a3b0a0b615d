"""
Money Arithmetic Module

Converts caller input to Decimal and rounds to cent precision for every
balance, amount and interest figure. NEVER uses float for monetary values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, getcontext
from typing import Union
import re

from .errors import InvalidAmountError

# Set global decimal context for financial precision
getcontext().prec = 28

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Optional sign, digits with an optional fraction; no exponents
AMOUNT_PATTERN = re.compile(r'[+-]?(\d+(\.\d*)?|\.\d+)')

AmountLike = Union[Decimal, int, float, str]


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number, e.g. "1,250.50" or "$ 10"

    Returns:
        Decimal value

    Raises:
        InvalidAmountError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise InvalidAmountError("Amount must be a non-empty string")

    # Remove currency symbols and whitespace only
    clean_value = re.sub(r'[\s$€£¥]', '', value)

    # Handle comma as decimal separator (European format)
    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Thousands separator
            clean_value = clean_value.replace(',', '')
    elif clean_value.count(',') > 1:
        # Several commas - thousands separators
        clean_value = clean_value.replace(',', '')

    if not AMOUNT_PATTERN.fullmatch(clean_value):
        raise InvalidAmountError(f"Cannot convert '{value}' to Decimal")
    return Decimal(clean_value)


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert an amount or rate to Decimal without rounding

    Floats are converted through their string form so 0.05 stays 0.05.
    Booleans are rejected even though they are ints.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(f"Amount must be numeric, got {value!r}")
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise InvalidAmountError(f"Amount must be finite, got {value}")
        return value
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        result = Decimal(repr(value))
        if not result.is_finite():
            raise InvalidAmountError(f"Amount must be finite, got {value}")
        return result
    if isinstance(value, str):
        return decimal_from_string(value)
    raise InvalidAmountError(f"Amount must be numeric, got {type(value).__name__}")


def round_amount(value: AmountLike) -> Decimal:
    """
    Round to cent precision with ROUND_HALF_UP

    Raises:
        InvalidAmountError: If the value has too many digits to hold in cents
    """
    decimal_value = to_decimal(value)
    try:
        return decimal_value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmountError(f"Amount {decimal_value} is too large") from None


def require_positive(value: AmountLike, label: str = "Amount") -> Decimal:
    """
    Round to cents and ensure the result is strictly positive

    Raises:
        InvalidAmountError: If the rounded amount is zero or negative
    """
    amount = round_amount(value)
    if amount <= ZERO:
        raise InvalidAmountError(f"{label} must be greater than 0, got {amount}")
    return amount


def format_amount(value: Decimal) -> str:
    """Format for display with two decimals"""
    return f"{value:.2f}"
