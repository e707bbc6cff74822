"""Pure price formulas for the supported pool-math variants.

Each formula takes the raw state read from the pool, the per-token decimal
counts and the token ordering, and returns the base token price quoted in
the quote token.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from decimal import Decimal

from .errors import MalformedResponseError
from .registry import PoolMath, TokenDecimals, TokenOrder
from .units import from_base_units

Q96 = Decimal(2**96)


def constant_product_price(
    reserve0: int, reserve1: int, decimals: TokenDecimals, order: TokenOrder
) -> float:
    """Price from constant-product reserves: quote reserve / base reserve."""
    reserves = (int(reserve0), int(reserve1))
    base_reserve = reserves[order.base]
    quote_reserve = reserves[order.quote]
    if base_reserve <= 0 or quote_reserve <= 0:
        raise MalformedResponseError(
            f"Pool reports empty reserves (base={base_reserve}, quote={quote_reserve})"
        )

    base_amount = from_base_units(base_reserve, decimals.base)
    quote_amount = from_base_units(quote_reserve, decimals.quote)
    return float(quote_amount / base_amount)


def concentrated_liquidity_price(
    sqrt_price_x96: int, decimals: TokenDecimals, order: TokenOrder
) -> float:
    """Price from a Q64.96 square-root price.

    ``(sqrtPriceX96 / 2**96) ** 2`` is token1 per token0 in raw units. The
    ratio is scaled by the decimal difference and inverted when the quote
    token sits in the token0 slot.
    """
    sqrt_price_x96 = int(sqrt_price_x96)
    if sqrt_price_x96 <= 0:
        raise MalformedResponseError(f"Pool reports sqrtPriceX96={sqrt_price_x96}")

    sqrt_price = Decimal(sqrt_price_x96) / Q96
    raw_ratio = sqrt_price * sqrt_price

    if order.base == 0:
        price = raw_ratio.scaleb(decimals.base - decimals.quote)
    else:
        price = (Decimal(1) / raw_ratio).scaleb(decimals.base - decimals.quote)

    if price <= 0:
        raise MalformedResponseError(f"Pool price underflowed to {price}")
    return float(price)


def _from_reserves(
    state: Sequence[int], decimals: TokenDecimals, order: TokenOrder
) -> float:
    if len(state) < 2:
        raise MalformedResponseError(f"getReserves returned {len(state)} fields")
    return constant_product_price(state[0], state[1], decimals, order)


def _from_slot0(
    state: Sequence[int], decimals: TokenDecimals, order: TokenOrder
) -> float:
    if len(state) < 1:
        raise MalformedResponseError("slot0 returned no fields")
    return concentrated_liquidity_price(state[0], decimals, order)


PoolPricer = Callable[[Sequence[int], TokenDecimals, TokenOrder], float]

POOL_PRICERS: dict[PoolMath, PoolPricer] = {
    PoolMath.CONSTANT_PRODUCT: _from_reserves,
    PoolMath.CONCENTRATED_LIQUIDITY: _from_slot0,
}

# Contract read method each variant prices from
POOL_READ_METHODS: dict[PoolMath, str] = {
    PoolMath.CONSTANT_PRODUCT: "getReserves",
    PoolMath.CONCENTRATED_LIQUIDITY: "slot0",
}


def price_from_pool_state(
    math: PoolMath,
    state: Sequence[int],
    decimals: TokenDecimals,
    order: TokenOrder,
) -> float:
    """Dispatch to the formula for ``math``."""
    return POOL_PRICERS[math](state, decimals, order)
