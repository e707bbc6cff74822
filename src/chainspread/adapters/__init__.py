from __future__ import annotations

from .price_sources import PRICE_SOURCES, build_sources

__all__ = ["PRICE_SOURCES", "build_sources"]
