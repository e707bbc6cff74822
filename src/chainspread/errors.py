"""Exception hierarchy for the price engine."""

from __future__ import annotations


class ChainspreadError(Exception):
    """Base class for all engine errors."""


class UnsupportedChainError(ChainspreadError):
    """Raised when a caller asks for a chain the registry does not know."""

    def __init__(self, chain: str, supported: list[str] | tuple[str, ...] = ()):
        self.chain = chain
        message = f"Unsupported chain: {chain}"
        if supported:
            message += f". Supported chains: {', '.join(supported)}"
        super().__init__(message)


class PriceSourceError(ChainspreadError):
    """A single price source could not produce a price."""


class SourceNotConfiguredError(PriceSourceError):
    """The chain has no endpoint, address or key for this source."""


class SourceUnavailableError(PriceSourceError):
    """Transport, timeout or RPC failure while talking to a provider."""


class MalformedResponseError(PriceSourceError):
    """The provider answered, but the payload cannot be turned into a price."""


class PriceUnavailableError(ChainspreadError):
    """No source and no cached value could provide a price."""

    def __init__(self, chain: str, errors: tuple[str, ...] = ()):
        self.chain = chain
        self.errors = errors
        detail = "; ".join(errors) if errors else "no sources succeeded"
        super().__init__(f"Price unavailable for {chain}: {detail}")
