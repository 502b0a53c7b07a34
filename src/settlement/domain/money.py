"""Currency helpers.

Amounts are ``Decimal`` in the domain and integer cents in storage so that
balance arithmetic in SQL stays exact.
"""

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def quantize(amount: Decimal) -> Decimal:
    """Round *amount* to whole cents."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """Convert a Decimal currency amount to integer cents.

    Raises:
        TypeError: If *amount* is a float.
        ValueError: If *amount* has sub-cent precision.
    """
    if isinstance(amount, float):
        raise TypeError("Use Decimal or string, not float, for monetary values")
    value = Decimal(amount)
    if value != quantize(value):
        raise ValueError(f"Amount {value} has sub-cent precision")
    return int(value * 100)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return (Decimal(cents) / 100).quantize(CENT)
