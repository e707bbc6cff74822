from __future__ import annotations

from ...constants import SYNTHETIC_SOURCE_PRIORITY
from ...errors import SourceNotConfiguredError
from .base import BasePriceSource


class SyntheticSource(BasePriceSource):
    """Fixed prices from configuration. Never enabled by default.

    Used for demos and dry runs where no network access is available.
    """

    priority = SYNTHETIC_SOURCE_PRIORITY

    @property
    def source_name(self) -> str:
        return "synthetic"

    async def get_price(self, chain: str) -> float:
        descriptor = self.describe(chain)
        price = self.config.synthetic_prices.get(descriptor.name)
        if price is None:
            raise SourceNotConfiguredError(f"No synthetic price for {descriptor.name}")
        return self.validate_price(price, f"{descriptor.name} synthetic")
