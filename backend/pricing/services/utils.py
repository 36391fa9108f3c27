from __future__ import annotations

from decimal import Decimal, ROUND_CEILING

ZERO = Decimal("0")
GST_RATE = Decimal("0.18")


def round_up_to_next_whole(amount: Decimal) -> Decimal:
    """Round a Decimal amount up to the next whole number."""
    return amount.to_integral_value(rounding=ROUND_CEILING)


def money_str(amount: Decimal) -> str:
    """Serialise money without rounding (presentation layers round)."""
    return format(amount.normalize(), "f")
