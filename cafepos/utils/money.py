"""Conversions between API decimal amounts and stored integer cents."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

# Largest amount whose cents fit a 32-bit INTEGER column
MAX_AMOUNT = 10_000_000


def to_cents(amount) -> int:
    """Convert a decimal amount (int/float/str) to whole cents, half-up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: Optional[int]) -> Optional[float]:
    """Convert stored cents back to a decimal amount for JSON responses."""
    if cents is None:
        return None
    return cents / 100.0
