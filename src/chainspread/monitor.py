"""Price orchestration: cached lookups, stale fallback and per-task polling loops."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any

from .adapters.price_sources import BasePriceSource
from .alerts import (
    BaseAlertHandler,
    build_alert_handlers,
    cooldown_remaining_ms,
    should_alert,
)
from .cache import PriceCache
from .clock import SYSTEM_CLOCK, Clock
from .errors import PriceUnavailableError
from .logger import get_logger
from .manager import SourceManager
from .models import Alert, MonitoringTask, PriceQuote
from .registry import ChainRegistry
from .settings import MonitorSettings
from .spread import calculate_spread, warn_if_large

logger = get_logger(__name__)


class Monitor:
    """Serves prices for registered chains and runs monitoring tasks.

    Every task runs as its own asyncio task: one tick immediately, then one
    tick per interval. A tick is bounded by ``tick_timeout_seconds`` and the
    next one is only scheduled after it finishes, so overruns never stack up.
    """

    def __init__(
        self,
        settings: MonitorSettings,
        *,
        registry: ChainRegistry | None = None,
        cache: PriceCache | None = None,
        sources: Iterable[BasePriceSource] | None = None,
        manager: SourceManager | None = None,
        handlers: Sequence[BaseAlertHandler] | None = None,
        clock: Clock = SYSTEM_CLOCK,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings
        self.pair = settings.pair
        self.registry = (
            registry if registry is not None else ChainRegistry.from_settings(settings)
        )
        self.cache = (
            cache
            if cache is not None
            else PriceCache(ttl_ms=settings.cache_ttl_ms, clock=clock)
        )
        self.manager = (
            manager
            if manager is not None
            else SourceManager.from_settings(
                settings, self.registry, cache=self.cache, sources=sources, clock=clock
            )
        )
        self.handlers: list[BaseAlertHandler] = (
            list(handlers)
            if handlers is not None
            else build_alert_handlers(settings, self.registry.display_name)
        )
        self._clock = clock
        self._sleep = sleep
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._last_used: dict[str, tuple[str, int]] = {}

    async def start(self) -> None:
        """Initialize all sources (pool verification and the like)."""
        await self.manager.initialize()

    async def __aenter__(self) -> "Monitor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop_all()

    # --- prices ---

    def _remember(self, quote: PriceQuote) -> None:
        self._last_used[quote.chain] = (quote.source, quote.observed_at_ms)

    async def get_price(self, chain: str) -> PriceQuote:
        """Fresh cached quote, else a new fetch, else the stale cached quote.

        Returns a failure quote (``success=False``) when nothing is available.

        Raises:
            UnsupportedChainError: If the chain is not registered
        """
        name = self.registry.require(chain).name
        cached, fresh = self.cache.get(name, self.pair)
        if cached is not None and fresh:
            logger.debug("%s %s served from cache", name, self.pair)
            self._remember(cached)
            return cached

        quote = await self.manager.get_price(name)
        if quote.success:
            self._remember(quote)
            return quote
        return self._stale_fallback(quote)

    def _stale_fallback(self, failure: PriceQuote) -> PriceQuote:
        cached, _ = self.cache.get(failure.chain, self.pair)
        if cached is None:
            return failure
        logger.warning(
            "All sources failed for %s, using stale %s price from %s (%d ms old)",
            failure.chain,
            self.pair,
            cached.source,
            cached.age_ms(self._clock.now_ms()),
        )
        stale = cached.as_stale()
        self._remember(stale)
        return stale

    async def require_price(self, chain: str) -> PriceQuote:
        """Like ``get_price`` but raises instead of returning a failure quote.

        Raises:
            UnsupportedChainError: If the chain is not registered
            PriceUnavailableError: If neither sources nor cache have a price
        """
        quote = await self.get_price(chain)
        if not quote.success:
            raise PriceUnavailableError(quote.chain, quote.errors)
        return quote

    async def batch_get_prices(
        self, chains: Sequence[str] | None = None
    ) -> dict[str, PriceQuote]:
        """Quotes keyed by chain. Chains with no price and no stale fallback are omitted.

        Fresh cache entries are reused; only the rest are fetched.

        Raises:
            UnsupportedChainError: If any chain is not registered
        """
        names = [
            self.registry.require(chain).name
            for chain in (chains if chains is not None else self.registry.all_chains())
        ]

        results: dict[str, PriceQuote] = {}
        to_fetch: list[str] = []
        for name in names:
            cached, fresh = self.cache.get(name, self.pair)
            if cached is not None and fresh:
                results[name] = cached
            elif name not in to_fetch:
                to_fetch.append(name)

        if to_fetch:
            for quote in await self.manager.batch_get_prices(to_fetch):
                if not quote.success:
                    quote = self._stale_fallback(quote)
                if quote.success:
                    results[quote.chain] = quote
                else:
                    logger.debug("No price for %s, omitting from batch", quote.chain)

        for quote in results.values():
            self._remember(quote)
        return {name: results[name] for name in names if name in results}

    def last_used_source(self, chain: str) -> tuple[str, int] | None:
        """``(source_name, observed_at_ms)`` of the last quote served for ``chain``."""
        name = self.registry.require(chain).name
        if name in self._last_used:
            return self._last_used[name]
        cached, _ = self.cache.get(name, self.pair)
        if cached is not None:
            return cached.source, cached.observed_at_ms
        return None

    def supported_pairs(self) -> dict[str, list[str]]:
        return {"chains": list(self.registry.all_chains()), "pairs": [self.pair]}

    # --- monitoring tasks ---

    async def run_tick(self, task: MonitoringTask) -> Alert | None:
        """Evaluate a task once and emit an alert when warranted."""
        if not task.active:
            logger.debug("Task %s is inactive, skipping tick", task.id)
            return None

        chain_a, chain_b = task.chains
        quotes = await self.batch_get_prices()
        for chain in (chain_a, chain_b):
            if chain not in quotes:
                quote = await self.get_price(chain)
                if quote.success:
                    quotes[chain] = quote

        missing = [chain for chain in (chain_a, chain_b) if chain not in quotes]
        if missing:
            logger.warning(
                "Task %s: no price for %s, skipping tick", task.id, ", ".join(missing)
            )
            return None

        quote_a, quote_b = quotes[chain_a], quotes[chain_b]
        spread = calculate_spread(quote_a.price, quote_b.price)
        logger.info(
            "Task %s: %s=%.4f %s=%.4f spread=%.4f%%",
            task.id,
            chain_a,
            quote_a.price,
            chain_b,
            quote_b.price,
            spread,
        )
        warn_if_large(
            spread,
            self.settings.large_spread_warning_percent,
            f"{chain_a}/{chain_b}",
        )

        if spread <= task.threshold_percent:
            return None

        now_ms = self._clock.now_ms()
        if not should_alert(task, now_ms):
            logger.info(
                "Task %s: spread %.2f%% above threshold, alert suppressed for another %.1fs",
                task.id,
                spread,
                cooldown_remaining_ms(task, now_ms) / 1000,
            )
            return None

        alert = Alert(
            task_id=task.id,
            chain_a=chain_a,
            chain_b=chain_b,
            price_a=quote_a.price,
            price_b=quote_b.price,
            spread_percent=spread,
            timestamp_ms=now_ms,
            threshold_percent=task.threshold_percent,
            sources=(quote_a.source, quote_b.source),
        )
        task.last_alert_at_ms = now_ms
        await self._dispatch(alert)
        return alert

    async def _dispatch(self, alert: Alert) -> None:
        for handler in self.handlers:
            try:
                await handler.handle(alert)
            except Exception as e:
                logger.error(
                    "Alert handler %s failed for task %s: %s",
                    handler.name,
                    alert.task_id,
                    e,
                    exc_info=True,
                )

    async def _run_task(self, task: MonitoringTask, interval: float) -> None:
        try:
            while True:
                started = self._clock.monotonic()
                try:
                    async with asyncio.timeout(self.settings.tick_timeout_seconds):
                        await self.run_tick(task)
                except TimeoutError:
                    logger.error(
                        "Task %s: tick exceeded %.0fs and was abandoned",
                        task.id,
                        self.settings.tick_timeout_seconds,
                    )
                except Exception as e:
                    logger.error("Task %s: tick failed: %s", task.id, e, exc_info=True)

                elapsed = self._clock.monotonic() - started
                await self._sleep(max(0.0, interval - elapsed))
        except asyncio.CancelledError:
            logger.info("Task %s stopped", task.id)
            raise
        finally:
            if self._tasks.get(task.id) is asyncio.current_task():
                del self._tasks[task.id]

    def start_task(self, task: MonitoringTask, interval: float | None = None) -> bool:
        """Start polling ``task``. Returns False when it is already running.

        Must be called from a running event loop.

        Raises:
            UnsupportedChainError: If either chain is not registered
        """
        for chain in task.chains:
            self.registry.require(chain)

        running = self._tasks.get(task.id)
        if running is not None and not running.done():
            logger.info("Task %s is already being monitored", task.id)
            return False

        interval = interval if interval is not None else self.settings.poll_interval_seconds
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")

        self._tasks[task.id] = asyncio.create_task(
            self._run_task(task, interval), name=f"monitor:{task.id}"
        )
        logger.info(
            "Monitoring task %s: %s vs %s every %.0fs (threshold %.2f%%, cooldown %.0fs)",
            task.id,
            *task.chains,
            interval,
            task.threshold_percent,
            task.cooldown_seconds,
        )
        return True

    def stop_task(self, task_id: str) -> bool:
        """Cancel a running task. Returns False when it was not running."""
        running = self._tasks.pop(task_id, None)
        if running is None or running.done():
            logger.warning("Task %s is not running", task_id)
            return False
        running.cancel()
        return True

    async def stop_all(self) -> None:
        """Cancel every running task and wait for them to finish."""
        running = list(self._tasks.values())
        self._tasks.clear()
        for task in running:
            task.cancel()
        if running:
            await asyncio.gather(*running, return_exceptions=True)
            logger.info("Stopped %d monitoring task(s)", len(running))

    def running_task_ids(self) -> list[str]:
        return [task_id for task_id, task in self._tasks.items() if not task.done()]
