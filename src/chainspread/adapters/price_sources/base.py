from __future__ import annotations

import math
from abc import ABC, abstractmethod

from ...errors import MalformedResponseError
from ...registry import ChainDescriptor, ChainRegistry
from ...settings import MonitorSettings


class BasePriceSource(ABC):
    """Abstract base class for price sources.

    A source only knows how to turn a chain identifier into a price, or fail
    with a ``PriceSourceError``. Ordering and fallback live in SourceManager.
    """

    priority: int = 100

    def __init__(self, config: MonitorSettings, registry: ChainRegistry):
        """Initialize the source with configuration."""
        self.config = config
        self.registry = registry

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this source, used as quote provenance."""
        ...

    @abstractmethod
    async def get_price(self, chain: str) -> float:
        """Return the current base-asset price on ``chain``, quoted in the quote asset."""
        ...

    async def initialize(self) -> None:
        """One-off setup before the first ``get_price`` call. Optional."""
        return None

    def describe(self, chain: str) -> ChainDescriptor:
        """Resolve ``chain``, raising UnsupportedChainError when unknown."""
        return self.registry.require(chain)

    @staticmethod
    def validate_price(price: float, context: str) -> float:
        """Reject non-positive or non-finite prices.

        Raises:
            MalformedResponseError: If the value cannot be a real quote
        """
        try:
            value = float(price)
        except (TypeError, ValueError) as e:
            raise MalformedResponseError(f"{context}: invalid price {price!r}") from e
        if not math.isfinite(value) or value <= 0:
            raise MalformedResponseError(f"{context}: invalid price {price!r}")
        return value

    def __repr__(self) -> str:
        return f"{type(self).__name__}(priority={self.priority})"
