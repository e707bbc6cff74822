from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from ...constants import (
    API_SOURCE_PRIORITY,
    MORALIS_API_URL,
    SUSHISWAP_API_URL,
    UNISWAP_SUBGRAPH_URL,
)
from ...errors import (
    MalformedResponseError,
    PriceSourceError,
    SourceNotConfiguredError,
    SourceUnavailableError,
)
from ...http_client import JsonHttpClient
from ...pool_math import concentrated_liquidity_price
from ...registry import ChainDescriptor, ChainRegistry
from ...settings import MonitorSettings
from .base import BasePriceSource

logger = logging.getLogger(__name__)

SUBGRAPH_POOL_QUERY = """
query PoolPrice($id: ID!) {
  pool(id: $id) {
    sqrtPrice
    token0 { symbol decimals }
    token1 { symbol decimals }
  }
}
"""


class ApiSource(BasePriceSource):
    """Hosted price APIs, tried in turn: Moralis, SushiSwap, Uniswap V3 subgraph.

    A provider with no identifiers for the chain (or no API key) is skipped.
    The first provider to return a valid price wins; if all fail, the error
    lists every provider's reason.
    """

    priority = API_SOURCE_PRIORITY

    def __init__(
        self,
        config: MonitorSettings,
        registry: ChainRegistry,
        http: JsonHttpClient | None = None,
    ):
        super().__init__(config, registry)
        self.http = http or JsonHttpClient(
            timeout=config.request_timeout_seconds, retry_limit=config.retry_limit
        )
        self.moralis_api_key = config.secret_value("moralis_api_key")

    @property
    def source_name(self) -> str:
        return "api"

    def providers(
        self,
    ) -> list[tuple[str, Callable[[ChainDescriptor], Awaitable[float]]]]:
        return [
            ("moralis", self.fetch_moralis_price),
            ("sushiswap", self.fetch_sushiswap_price),
            ("subgraph", self.fetch_subgraph_price),
        ]

    async def get_price(self, chain: str) -> float:
        descriptor = self.describe(chain)
        errors: list[str] = []
        attempted = False

        for name, fetch in self.providers():
            try:
                price = await fetch(descriptor)
            except SourceNotConfiguredError as e:
                logger.debug("Skipping %s for %s: %s", name, descriptor.name, e)
                errors.append(f"{name}: {e}")
                continue
            except PriceSourceError as e:
                attempted = True
                logger.warning("%s price for %s failed: %s", name, descriptor.name, e)
                errors.append(f"{name}: {e}")
                continue

            logger.debug(
                "%s %s from %s: %.6f", descriptor.name, self.config.pair, name, price
            )
            return price

        summary = "; ".join(errors)
        if not attempted:
            raise SourceNotConfiguredError(
                f"No hosted API configured for {descriptor.name}: {summary}"
            )
        raise SourceUnavailableError(
            f"All hosted APIs failed for {descriptor.name}: {summary}"
        )

    async def fetch_moralis_price(self, descriptor: ChainDescriptor) -> float:
        """USD price of the wrapped base token from the Moralis ERC20 price endpoint."""
        api = descriptor.api
        if api is None or not api.moralis_token_address:
            raise SourceNotConfiguredError("no token address")
        if not self.moralis_api_key:
            raise SourceNotConfiguredError("no API key")

        data = await self.http.get_json(
            f"{MORALIS_API_URL}/erc20/{api.moralis_token_address}/price",
            params={"chain": api.moralis_chain or descriptor.name},
            headers={"X-API-Key": self.moralis_api_key, "Accept": "application/json"},
        )
        if not isinstance(data, dict) or not data.get("usdPrice"):
            raise MalformedResponseError(f"Invalid response structure: {data}")
        return self.validate_price(data["usdPrice"], f"{descriptor.name} moralis")

    async def fetch_sushiswap_price(self, descriptor: ChainDescriptor) -> float:
        """Inverse of the base token's ``tokenNPrice`` on the SushiSwap pair endpoint."""
        api = descriptor.api
        if api is None or not api.sushiswap_pair_address:
            raise SourceNotConfiguredError("no pair address")

        data = await self.http.get_json(
            f"{SUSHISWAP_API_URL}/api/v1/pairs/{api.sushiswap_pair_address}"
        )
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Invalid response structure: {data}")

        field = f"token{descriptor.pool.order.base}Price"
        try:
            token_price = float(data[field])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Missing or invalid {field}: {data}") from e
        if token_price <= 0:
            raise MalformedResponseError(f"Non-positive {field}: {token_price}")
        return self.validate_price(1 / token_price, f"{descriptor.name} sushiswap")

    async def fetch_subgraph_price(self, descriptor: ChainDescriptor) -> float:
        """Price from ``sqrtPrice`` of a Uniswap V3 pool indexed by the subgraph.

        Token order and decimals come from the chain's pool descriptor.
        """
        api = descriptor.api
        if api is None or not api.subgraph_pool_id:
            raise SourceNotConfiguredError("no subgraph pool id")

        data = await self.http.post_json(
            UNISWAP_SUBGRAPH_URL,
            {
                "query": SUBGRAPH_POOL_QUERY,
                "variables": {"id": api.subgraph_pool_id.lower()},
            },
        )
        pool = (data.get("data") or {}).get("pool") if isinstance(data, dict) else None
        if not isinstance(pool, dict):
            raise MalformedResponseError(f"Subgraph returned no pool: {data}")

        try:
            sqrt_price_x96 = int(pool["sqrtPrice"])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid sqrtPrice: {pool}") from e

        price = concentrated_liquidity_price(
            sqrt_price_x96, descriptor.pool.decimals, descriptor.pool.order
        )
        return self.validate_price(price, f"{descriptor.name} subgraph")
