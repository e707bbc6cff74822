"""Chain descriptors and the immutable registry built from them."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import UnsupportedChainError


class PoolMath(str, Enum):
    """Pricing formula used by an on-chain venue."""

    CONSTANT_PRODUCT = "constant_product"
    CONCENTRATED_LIQUIDITY = "concentrated_liquidity"


# Venue names accepted in configuration and the formula they use
POOL_MATH_ALIASES: dict[str, PoolMath] = {
    "uniswap_v2": PoolMath.CONSTANT_PRODUCT,
    "sushiswap": PoolMath.CONSTANT_PRODUCT,
    "pancakeswap": PoolMath.CONSTANT_PRODUCT,
    "uniswap_v3": PoolMath.CONCENTRATED_LIQUIDITY,
}


class TokenDecimals(BaseModel):
    base: int = Field(ge=0, le=36)
    quote: int = Field(ge=0, le=36)

    model_config = ConfigDict(frozen=True)


class TokenOrder(BaseModel):
    """Pool slot (0 or 1) holding each token."""

    base: int
    quote: int

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def validate_slots(self) -> "TokenOrder":
        if {self.base, self.quote} != {0, 1}:
            raise ValueError(
                f"token order must place base and quote in slots 0 and 1, got base={self.base} quote={self.quote}"
            )
        return self


class PoolDescriptor(BaseModel):
    address: str
    decimals: TokenDecimals
    order: TokenOrder
    math: PoolMath

    model_config = ConfigDict(frozen=True, extra="ignore")

    @field_validator("math", mode="before")
    @classmethod
    def resolve_alias(cls, v: Any) -> Any:
        if isinstance(v, str) and v.lower() in POOL_MATH_ALIASES:
            return POOL_MATH_ALIASES[v.lower()]
        return v


class OracleDescriptor(BaseModel):
    feed_address: str

    model_config = ConfigDict(frozen=True, extra="ignore")


class ApiDescriptor(BaseModel):
    """Provider-specific identifiers for the hosted APIs."""

    moralis_token_address: str | None = None
    moralis_chain: str | None = None
    sushiswap_pair_address: str | None = None
    subgraph_pool_id: str | None = None
    coingecko_id: str | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class ChainDescriptor(BaseModel):
    """How to reach a reference price on one chain."""

    name: str = ""
    display_name: str = ""
    rpc_url: str
    backup_rpc_url: str | None = None
    pool: PoolDescriptor
    oracle: OracleDescriptor | None = None
    api: ApiDescriptor | None = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def rpc_endpoints(self) -> list[str]:
        """Primary endpoint first, backup second when configured."""
        endpoints = [self.rpc_url]
        if self.backup_rpc_url and self.backup_rpc_url != self.rpc_url:
            endpoints.append(self.backup_rpc_url)
        return endpoints


class ChainRegistry(Mapping[str, ChainDescriptor]):
    """Read-only lookup of chain descriptors, fixed at construction."""

    def __init__(self, chains: Mapping[str, ChainDescriptor]):
        normalized: dict[str, ChainDescriptor] = {}
        for key, descriptor in chains.items():
            name = key.lower()
            normalized[name] = descriptor.model_copy(
                update={
                    "name": name,
                    "display_name": descriptor.display_name or key.capitalize(),
                }
            )
        self._chains = MappingProxyType(normalized)

    @classmethod
    def from_settings(cls, settings: Any) -> "ChainRegistry":
        return cls(settings.chains)

    def describe(self, chain: str) -> ChainDescriptor | None:
        """Return the descriptor for ``chain`` or None when unknown."""
        return self._chains.get(chain.lower())

    def require(self, chain: str) -> ChainDescriptor:
        """Return the descriptor for ``chain``.

        Raises:
            UnsupportedChainError: If the chain is not registered
        """
        descriptor = self.describe(chain)
        if descriptor is None:
            raise UnsupportedChainError(chain, self.all_chains())
        return descriptor

    def all_chains(self) -> tuple[str, ...]:
        """Chain identifiers in configuration order."""
        return tuple(self._chains)

    def display_name(self, chain: str) -> str:
        descriptor = self.describe(chain)
        return descriptor.display_name if descriptor else chain

    def __getitem__(self, chain: str) -> ChainDescriptor:
        return self._chains[chain.lower()]

    def __contains__(self, chain: object) -> bool:
        return isinstance(chain, str) and chain.lower() in self._chains

    def __iter__(self) -> Iterator[str]:
        return iter(self._chains)

    def __len__(self) -> int:
        return len(self._chains)
