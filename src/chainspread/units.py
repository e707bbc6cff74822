from __future__ import annotations

from decimal import Decimal


def from_base_units(value: int, decimals: int) -> Decimal:
    """Convert a raw integer amount to a human-scale Decimal.

    Args:
        value: Integer amount expressed with ``decimals`` decimal places.
        decimals: Decimal precision of ``value``.

    Returns:
        ``value / 10**decimals`` without float rounding.
    """
    if decimals < 0:
        raise ValueError(f"decimals must be non-negative, got {decimals}")
    return Decimal(int(value)).scaleb(-decimals)
