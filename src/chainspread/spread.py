"""Spread between two prices and the pairwise comparison view."""

from __future__ import annotations

import itertools
from collections.abc import Mapping
from dataclasses import dataclass

from .logger import get_logger
from .models import PriceQuote

logger = get_logger(__name__)


def calculate_spread(price_a: float, price_b: float) -> float:
    """Relative difference in percent, measured against the lower price.

    Returns 0 when either price is not positive: that is a bad read, not a
    spread.
    """
    if price_a <= 0 or price_b <= 0:
        return 0.0
    return abs(price_a - price_b) / min(price_a, price_b) * 100


def is_abnormal(price_a: float, price_b: float, threshold_percent: float) -> bool:
    return calculate_spread(price_a, price_b) > threshold_percent


def warn_if_large(spread_percent: float, limit_percent: float, context: str) -> bool:
    """Log a spread above ``limit_percent``, which usually means a bad read."""
    if spread_percent > limit_percent:
        logger.warning(
            "%s spread %.2f%% exceeds %.2f%%, check the price sources",
            context,
            spread_percent,
            limit_percent,
        )
        return True
    return False


@dataclass(frozen=True)
class SpreadComparison:
    chain_a: str
    chain_b: str
    pair: str
    price_a: float
    price_b: float
    spread_percent: float
    is_abnormal: bool


def compare_quotes(
    quotes: Mapping[str, PriceQuote], threshold_percent: float
) -> list[SpreadComparison]:
    """One comparison per unordered chain pair where both prices are usable.

    Pairs follow the iteration order of ``quotes``.
    """
    usable = [(chain, q) for chain, q in quotes.items() if q.success and q.price > 0]
    comparisons = []
    for (chain_a, quote_a), (chain_b, quote_b) in itertools.combinations(usable, 2):
        spread = calculate_spread(quote_a.price, quote_b.price)
        comparisons.append(
            SpreadComparison(
                chain_a=chain_a,
                chain_b=chain_b,
                pair=quote_a.pair,
                price_a=quote_a.price,
                price_b=quote_b.price,
                spread_percent=spread,
                is_abnormal=spread > threshold_percent,
            )
        )
    return comparisons
