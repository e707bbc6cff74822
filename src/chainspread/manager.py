"""Ordered source fallback and bounded-parallel batch fetching."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence

from .adapters.price_sources import BasePriceSource, build_sources
from .cache import PriceCache
from .clock import SYSTEM_CLOCK, Clock
from .constants import DEFAULT_PAIR
from .errors import PriceSourceError
from .logger import get_logger
from .models import PriceQuote
from .registry import ChainRegistry
from .settings import MonitorSettings

logger = get_logger(__name__)


class SourceManager:
    """Tries price sources in ascending priority until one succeeds.

    Source failures never escape ``get_price``: they are logged and kept as
    text on the returned quote. The first successful quote is written to the
    cache, when one is attached.
    """

    def __init__(
        self,
        sources: Iterable[BasePriceSource],
        registry: ChainRegistry,
        *,
        cache: PriceCache | None = None,
        pair: str = DEFAULT_PAIR,
        source_timeout: float = 30.0,
        max_parallel: int = 4,
        clock: Clock = SYSTEM_CLOCK,
    ):
        if max_parallel < 1:
            raise ValueError(f"max_parallel must be at least 1, got {max_parallel}")
        self.sources: tuple[BasePriceSource, ...] = tuple(
            sorted(sources, key=lambda s: s.priority)
        )
        self.registry = registry
        self.cache = cache
        self.pair = pair
        self.source_timeout = source_timeout
        self.max_parallel = max_parallel
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: MonitorSettings,
        registry: ChainRegistry,
        *,
        cache: PriceCache | None = None,
        sources: Iterable[BasePriceSource] | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> "SourceManager":
        # On-chain sources try two endpoints, HTTP sources up to retry_limit times
        attempts = max(settings.retry_limit, 2)
        return cls(
            sources if sources is not None else build_sources(settings, registry),
            registry,
            cache=cache,
            pair=settings.pair,
            source_timeout=settings.request_timeout_seconds * attempts,
            max_parallel=settings.max_parallel,
            clock=clock,
        )

    async def initialize(self) -> None:
        """Run one-off initialization (e.g. pool verification) for every source."""
        results = await asyncio.gather(
            *(source.initialize() for source in self.sources), return_exceptions=True
        )
        for source, result in zip(self.sources, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Initialization of %s source failed: %s", source.source_name, result
                )

    async def get_price(self, chain: str) -> PriceQuote:
        """Quote from the first source that succeeds, or a failure quote.

        Raises:
            UnsupportedChainError: If the chain is not registered
        """
        name = self.registry.require(chain).name
        errors: list[str] = []

        for source in self.sources:
            try:
                async with asyncio.timeout(self.source_timeout):
                    price = await source.get_price(name)
            except TimeoutError:
                message = f"timed out after {self.source_timeout:.1f}s"
                logger.warning("%s source for %s %s", source.source_name, name, message)
                errors.append(f"{source.source_name}: {message}")
                continue
            except PriceSourceError as e:
                logger.warning("%s source failed for %s: %s", source.source_name, name, e)
                errors.append(f"{source.source_name}: {e}")
                continue
            except Exception as e:
                logger.error(
                    "Unexpected error from %s source for %s: %s",
                    source.source_name,
                    name,
                    e,
                    exc_info=True,
                )
                errors.append(f"{source.source_name}: {type(e).__name__}: {e}")
                continue

            quote = PriceQuote(
                chain=name,
                pair=self.pair,
                price=price,
                observed_at_ms=self._clock.now_ms(),
                source=source.source_name,
                errors=tuple(errors),
            )
            if self.cache is not None:
                self.cache.put(name, self.pair, quote)
            logger.debug(
                "%s %s = %.6f via %s", name, self.pair, price, source.source_name
            )
            return quote

        logger.warning("All price sources failed for %s %s", name, self.pair)
        return PriceQuote.failure(name, self.pair, self._clock.now_ms(), tuple(errors))

    async def batch_get_prices(
        self, chains: Sequence[str] | None = None, max_parallel: int | None = None
    ) -> list[PriceQuote]:
        """Fetch several chains, at most ``max_parallel`` at a time.

        Chunks run one after another; chains within a chunk run concurrently.
        Every chain is validated before any request is made.
        """
        names = [
            self.registry.require(chain).name
            for chain in (chains if chains is not None else self.registry.all_chains())
        ]
        chunk_size = max_parallel if max_parallel is not None else self.max_parallel
        if chunk_size < 1:
            raise ValueError(f"max_parallel must be at least 1, got {chunk_size}")

        quotes: list[PriceQuote] = []
        for start in range(0, len(names), chunk_size):
            chunk = names[start : start + chunk_size]
            logger.debug("Fetching chunk %s", chunk)
            quotes.extend(await asyncio.gather(*(self.get_price(c) for c in chunk)))
        return quotes
