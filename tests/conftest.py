from __future__ import annotations

import os

import pytest

from chainspread.adapters.price_sources.base import BasePriceSource
from chainspread.clock import Clock
from chainspread.errors import SourceUnavailableError
from chainspread.registry import ChainRegistry
from chainspread.settings import MonitorSettings

START_MS = 1_700_000_000_000


class FakeClock(Clock):
    """Manually advanced clock."""

    def __init__(self, start_ms: int = START_MS):
        self.start_ms = start_ms
        self.ms = start_ms

    def now_ms(self) -> int:
        return self.ms

    def monotonic(self) -> float:
        return (self.ms - self.start_ms) / 1000

    def advance(self, seconds: float) -> None:
        self.ms += round(seconds * 1000)


class StaticSource(BasePriceSource):
    """Source returning preset prices; chains missing from ``prices`` fail."""

    def __init__(
        self,
        config: MonitorSettings,
        registry: ChainRegistry,
        name: str,
        priority: int,
        prices: dict[str, float] | None = None,
        error: Exception | None = None,
    ):
        super().__init__(config, registry)
        self._name = name
        self.priority = priority
        self.prices = dict(prices or {})
        self.error = error
        self.calls: list[str] = []

    @property
    def source_name(self) -> str:
        return self._name

    async def get_price(self, chain: str) -> float:
        self.calls.append(chain)
        if self.error is not None:
            raise self.error
        if chain not in self.prices:
            raise SourceUnavailableError(f"{self._name} has no price for {chain}")
        return self.prices[chain]


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep config files, .env and CHAINSPREAD_* variables out of unit tests."""
    for key in list(os.environ):
        if key.startswith("CHAINSPREAD_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> MonitorSettings:
    return MonitorSettings()


@pytest.fixture
def registry(settings) -> ChainRegistry:
    return ChainRegistry.from_settings(settings)


@pytest.fixture
def make_source(settings, registry):
    def _make(
        name: str,
        priority: int,
        prices: dict[str, float] | None = None,
        error: Exception | None = None,
    ) -> StaticSource:
        return StaticSource(settings, registry, name, priority, prices, error)

    return _make


@pytest.fixture
def static_source_cls() -> type[StaticSource]:
    return StaticSource
