"""Contract ABIs shipped with the package, one JSON file per contract."""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from .registry import PoolMath

ABIS_DIR = Path(__file__).parent / "abis"

AGGREGATOR_ABI = "AggregatorV3Interface"

# Contract whose ABI exposes the read method each pool-math variant prices from
POOL_ABIS: dict[PoolMath, str] = {
    PoolMath.CONSTANT_PRODUCT: "UniswapV2Pair",
    PoolMath.CONCENTRATED_LIQUIDITY: "UniswapV3Pool",
}


@lru_cache(maxsize=None)
def load_abi(contract: str) -> list[dict]:
    """Return the ``"abi"`` field of ``abis/<contract>.json``.

    Raises:
        FileNotFoundError: If no ABI is shipped for ``contract``
        KeyError: If the file has no "abi" field
    """
    with (ABIS_DIR / f"{contract}.json").open() as f:
        return json.load(f)["abi"]


def load_aggregator_abi() -> list[dict]:
    return load_abi(AGGREGATOR_ABI)


def load_pool_abi(math: PoolMath) -> list[dict]:
    return load_abi(POOL_ABIS[math])
