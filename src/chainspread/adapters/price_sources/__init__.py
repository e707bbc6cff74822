from __future__ import annotations

from ...registry import ChainRegistry
from ...settings import MonitorSettings
from .api import ApiSource
from .base import BasePriceSource
from .index import IndexSource, RateLimiter
from .oracle import OracleSource
from .pool import PoolSource
from .synthetic import SyntheticSource

# Sources enabled by default, in priority order
PRICE_SOURCES: list[type[BasePriceSource]] = [
    PoolSource,
    OracleSource,
    ApiSource,
    IndexSource,
]


def build_sources(
    settings: MonitorSettings, registry: ChainRegistry
) -> list[BasePriceSource]:
    """Instantiate the default sources, plus the synthetic one when enabled."""
    source_classes = list(PRICE_SOURCES)
    if settings.enable_synthetic_source:
        source_classes.append(SyntheticSource)
    sources = [cls(settings, registry) for cls in source_classes]
    return sorted(sources, key=lambda s: s.priority)


__all__ = [
    "ApiSource",
    "BasePriceSource",
    "IndexSource",
    "OracleSource",
    "PoolSource",
    "PRICE_SOURCES",
    "RateLimiter",
    "SyntheticSource",
    "build_sources",
]
