"""
Fixed-Point Money Helpers

All monetary values are Decimal with exactly two fractional digits.
NEVER uses float for monetary values.

Amounts and balances are bounded by MAX_AMOUNT, the largest value a
NUMERIC(15, 2) column holds. The same bound keeps SQLite's integer cents
inside a 64-bit INTEGER, so every backend accepts exactly the same values.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Union

from .errors import InvalidAmount

CENTS = Decimal("0.01")
ZERO = Decimal("0.00")
MAX_AMOUNT = Decimal("9999999999999.99")

AmountLike = Union[Decimal, int, str]


def parse_amount(value: AmountLike) -> Decimal:
    """
    Parse a monetary amount into a two-place Decimal

    Args:
        value: Decimal, int or decimal string ("12.50")

    Returns:
        Decimal quantized to two fractional digits

    Raises:
        InvalidAmount: If the value is a float, not a finite number, has
            more than two fractional digits or exceeds MAX_AMOUNT in size
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmount(f"Amount must be a decimal value, got {type(value).__name__}")

    if isinstance(value, str):
        value = value.strip()

    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmount(f"Malformed amount: {value!r}")

    if not amount.is_finite():
        raise InvalidAmount(f"Malformed amount: {value!r}")

    # Checked before quantizing: huge exponents overflow the decimal context
    if abs(amount) > MAX_AMOUNT:
        raise InvalidAmount(f"Amount {value} exceeds the maximum of {MAX_AMOUNT}")

    try:
        quantized = amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise InvalidAmount(f"Malformed amount: {value!r}")

    if amount != quantized:
        raise InvalidAmount(f"Amount {value} has more than two decimal places")

    return quantized


def require_positive(value: AmountLike) -> Decimal:
    """Parse an amount and reject anything that is not strictly positive"""
    amount = parse_amount(value)
    if amount <= ZERO:
        raise InvalidAmount(f"Amount must be positive, got {format_amount(amount)}")
    return amount


def to_cents(amount: Decimal) -> int:
    """Convert a two-place Decimal to integer minor units"""
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    """Convert integer minor units back to a two-place Decimal"""
    return (Decimal(cents) / 100).quantize(CENTS)


def format_amount(amount: Decimal) -> str:
    """Render an amount with exactly two fractional digits"""
    return str(amount.quantize(CENTS, rounding=ROUND_HALF_UP))
