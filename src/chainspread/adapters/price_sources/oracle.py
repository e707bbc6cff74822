from __future__ import annotations

import logging

from web3 import Web3

from ...abi import load_aggregator_abi
from ...constants import ORACLE_SOURCE_PRIORITY
from ...errors import MalformedResponseError, SourceNotConfiguredError
from ...registry import ChainDescriptor, ChainRegistry
from ...rpc import RpcClientPool
from ...settings import MonitorSettings
from ...units import from_base_units
from .base import BasePriceSource

logger = logging.getLogger(__name__)


class OracleSource(BasePriceSource):
    """Adapter for querying Chainlink-style price feeds."""

    priority = ORACLE_SOURCE_PRIORITY

    def __init__(
        self,
        config: MonitorSettings,
        registry: ChainRegistry,
        rpc: RpcClientPool | None = None,
    ):
        super().__init__(config, registry)
        self._rpc = rpc or RpcClientPool(config.request_timeout_seconds)
        self._decimals_cache: dict[str, int] = {}

    @property
    def source_name(self) -> str:
        return "oracle"

    def latest_answer_and_decimals(
        self, w3: Web3, feed_address: str, cached_decimals: int | None
    ) -> tuple[int, int]:
        feed_contract = w3.eth.contract(
            address=Web3.to_checksum_address(feed_address),
            abi=load_aggregator_abi(),
        )
        _, answer, _, _, _ = feed_contract.functions.latestRoundData().call()
        if cached_decimals is None:
            decimals = feed_contract.functions.decimals().call()
        else:
            decimals = cached_decimals
        return int(answer), int(decimals)

    async def get_price(self, chain: str) -> float:
        """Latest feed answer divided by ``10**decimals``.

        Raises:
            SourceNotConfiguredError: If the chain has no feed address
            SourceUnavailableError: If both RPC endpoints fail
            MalformedResponseError: If the feed reports a non-positive answer
        """
        descriptor: ChainDescriptor = self.describe(chain)
        if descriptor.oracle is None or not descriptor.oracle.feed_address:
            raise SourceNotConfiguredError(f"{descriptor.name} has no oracle feed configured")

        feed_address = descriptor.oracle.feed_address
        answer, decimals = await self._rpc.call(
            descriptor.name,
            descriptor.rpc_endpoints,
            lambda w3: self.latest_answer_and_decimals(
                w3, feed_address, self._decimals_cache.get(descriptor.name)
            ),
            "latestRoundData()",
        )
        if answer <= 0:
            raise MalformedResponseError(
                f"Oracle feed {feed_address} on {descriptor.name} answered {answer}"
            )
        self._decimals_cache[descriptor.name] = decimals

        price = float(from_base_units(answer, decimals))
        logger.debug("%s %s from oracle: %.6f", descriptor.name, self.config.pair, price)
        return self.validate_price(price, f"{descriptor.name} oracle")
