from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from web3 import Web3

from ...abi import load_pool_abi
from ...constants import POOL_SOURCE_PRIORITY
from ...errors import SourceUnavailableError
from ...pool_math import POOL_READ_METHODS, price_from_pool_state
from ...registry import ChainDescriptor, ChainRegistry
from ...rpc import RpcClientPool
from ...settings import MonitorSettings
from .base import BasePriceSource

logger = logging.getLogger(__name__)


class PoolSource(BasePriceSource):
    """Reads the reference price straight from an AMM pool.

    Constant-product pools are priced from ``getReserves``, concentrated
    liquidity pools from ``slot0``. Each pool is verified once: a pool whose
    read method cannot be called is marked unusable for the lifetime of the
    source and rejected without further RPC traffic.
    """

    priority = POOL_SOURCE_PRIORITY

    def __init__(
        self,
        config: MonitorSettings,
        registry: ChainRegistry,
        rpc: RpcClientPool | None = None,
    ):
        super().__init__(config, registry)
        self._rpc = rpc or RpcClientPool(config.request_timeout_seconds)
        self._verified: dict[str, bool] = {}
        self._verify_errors: dict[str, str] = {}
        self._verify_lock = asyncio.Lock()

    @property
    def source_name(self) -> str:
        return "pool"

    def _read_pool_state(self, w3: Web3, descriptor: ChainDescriptor) -> Sequence[int]:
        pool = descriptor.pool
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(pool.address),
            abi=load_pool_abi(pool.math),
        )
        method = getattr(contract.functions, POOL_READ_METHODS[pool.math])
        return tuple(method().call())

    async def _fetch_state(self, descriptor: ChainDescriptor) -> Sequence[int]:
        return await self._rpc.call(
            descriptor.name,
            descriptor.rpc_endpoints,
            lambda w3: self._read_pool_state(w3, descriptor),
            f"{POOL_READ_METHODS[descriptor.pool.math]}()",
        )

    async def _verify(self, descriptor: ChainDescriptor) -> bool:
        chain = descriptor.name
        try:
            await self._fetch_state(descriptor)
        except Exception as e:
            self._verified[chain] = False
            self._verify_errors[chain] = str(e)
            logger.warning(
                "Pool %s on %s failed verification (%s), disabling pool reads: %s",
                descriptor.pool.address,
                chain,
                descriptor.pool.math.value,
                e,
            )
            return False

        self._verified[chain] = True
        logger.debug("Verified %s pool on %s", descriptor.pool.math.value, chain)
        return True

    async def initialize(self) -> None:
        """Verify every configured pool exposes its read method."""
        descriptors = [
            self.registry.require(chain)
            for chain in self.registry.all_chains()
            if chain not in self._verified
        ]
        if not descriptors:
            return
        async with self._verify_lock:
            results = await asyncio.gather(*(self._verify(d) for d in descriptors))
        logger.info(
            "Pool verification: %d/%d usable", sum(results), len(descriptors)
        )

    def is_verified(self, chain: str) -> bool | None:
        """True/False once verified, None if verification has not run."""
        return self._verified.get(chain.lower())

    async def get_price(self, chain: str) -> float:
        descriptor = self.describe(chain)
        name = descriptor.name

        if name not in self._verified:
            async with self._verify_lock:
                if name not in self._verified:
                    await self._verify(descriptor)

        if not self._verified[name]:
            raise SourceUnavailableError(
                f"Pool on {name} is unusable (verification failed: {self._verify_errors.get(name, 'unknown')})"
            )

        state = await self._fetch_state(descriptor)
        price = price_from_pool_state(
            descriptor.pool.math, state, descriptor.pool.decimals, descriptor.pool.order
        )
        logger.debug("%s %s from pool: %.6f", name, self.config.pair, price)
        return self.validate_price(price, f"{name} pool")
