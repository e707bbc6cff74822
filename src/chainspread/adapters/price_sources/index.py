from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from ...clock import SYSTEM_CLOCK, Clock
from ...constants import (
    COINGECKO_API_URL,
    DEFAULT_INDEX_ASSET_ID,
    DEFAULT_INDEX_VS_CURRENCY,
    INDEX_SOURCE_PRIORITY,
)
from ...errors import MalformedResponseError
from ...http_client import JsonHttpClient
from ...registry import ChainRegistry
from ...settings import MonitorSettings
from .base import BasePriceSource

logger = logging.getLogger(__name__)


class RateLimiter:
    """Spaces calls at least ``min_interval`` seconds apart.

    Callers queue on a lock, so concurrent requests are released one at a
    time in arrival order.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Clock = SYSTEM_CLOCK,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_call: float | None = None

    async def wait(self) -> None:
        async with self._lock:
            if self._last_call is not None:
                elapsed = self._clock.monotonic() - self._last_call
                delay = self.min_interval - elapsed
                if delay > 0:
                    logger.debug("Rate limiting index request for %.3fs", delay)
                    await self._sleep(delay)
            self._last_call = self._clock.monotonic()


class IndexSource(BasePriceSource):
    """Chain-agnostic market index price from CoinGecko.

    The same global price is returned for every chain, so a spread between
    two chains both served by this source is always zero.
    """

    priority = INDEX_SOURCE_PRIORITY

    def __init__(
        self,
        config: MonitorSettings,
        registry: ChainRegistry,
        http: JsonHttpClient | None = None,
        rate_limiter: RateLimiter | None = None,
    ):
        super().__init__(config, registry)
        self.http = http or JsonHttpClient(
            timeout=config.request_timeout_seconds, retry_limit=config.retry_limit
        )
        self.rate_limiter = rate_limiter or RateLimiter(
            config.index_min_interval_seconds
        )
        self.api_key = config.secret_value("coingecko_api_key")

    @property
    def source_name(self) -> str:
        return "index"

    def asset_id(self, chain: str) -> str:
        descriptor = self.describe(chain)
        if descriptor.api is not None and descriptor.api.coingecko_id:
            return descriptor.api.coingecko_id
        return DEFAULT_INDEX_ASSET_ID

    async def get_price(self, chain: str) -> float:
        asset_id = self.asset_id(chain)
        await self.rate_limiter.wait()

        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["x-cg-demo-api-key"] = self.api_key

        data = await self.http.get_json(
            f"{COINGECKO_API_URL}/simple/price",
            params={"ids": asset_id, "vs_currencies": DEFAULT_INDEX_VS_CURRENCY},
            headers=headers,
        )
        try:
            value = data[asset_id][DEFAULT_INDEX_VS_CURRENCY]
        except (KeyError, TypeError) as e:
            raise MalformedResponseError(
                f"CoinGecko response has no {asset_id}/{DEFAULT_INDEX_VS_CURRENCY}: {data}"
            ) from e

        price = self.validate_price(value, f"{chain} index")
        logger.debug("%s %s from index: %.6f", chain, self.config.pair, price)
        return price
