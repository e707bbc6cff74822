"""Value types passed between sources, cache, monitor and alert handlers."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

NO_SOURCE = "none"


@dataclass(frozen=True)
class PriceQuote:
    """A price for one chain and pair, with its provenance."""

    chain: str
    pair: str
    price: float
    observed_at_ms: int
    source: str
    success: bool = True
    stale: bool = False
    errors: tuple[str, ...] = ()

    @classmethod
    def failure(
        cls, chain: str, pair: str, observed_at_ms: int, errors: tuple[str, ...] = ()
    ) -> "PriceQuote":
        """Marker for "no source produced a price". Never carries a number."""
        return cls(
            chain=chain,
            pair=pair,
            price=0.0,
            observed_at_ms=observed_at_ms,
            source=NO_SOURCE,
            success=False,
            errors=errors,
        )

    def as_stale(self) -> "PriceQuote":
        return replace(self, stale=True)

    def age_ms(self, now_ms: int) -> int:
        return max(0, now_ms - self.observed_at_ms)


def parse_chain_ref(ref: str) -> str:
    """Chain identifier from a ``"chain:tokenPair"`` reference."""
    return ref.split(":", 1)[0].strip().lower()


@dataclass
class MonitoringTask:
    """A continuous comparison of one pair across two chains.

    ``last_alert_at_ms`` is only written by the monitor loop that owns the task.
    """

    id: str
    chain_pair: tuple[str, str]
    threshold_percent: float
    cooldown_seconds: float
    last_alert_at_ms: int | None = None
    active: bool = True

    def __post_init__(self) -> None:
        if len(self.chain_pair) != 2:
            raise ValueError(
                f"Task {self.id} needs exactly two chains, got {list(self.chain_pair)}"
            )
        self.chain_pair = (self.chain_pair[0], self.chain_pair[1])

    @property
    def chains(self) -> tuple[str, str]:
        """The two chain identifiers, with any ``:tokenPair`` suffix removed."""
        return parse_chain_ref(self.chain_pair[0]), parse_chain_ref(self.chain_pair[1])


@dataclass(frozen=True)
class Alert:
    """Emitted when a task's spread crosses its threshold outside cooldown."""

    task_id: str
    chain_a: str
    chain_b: str
    price_a: float
    price_b: float
    spread_percent: float
    timestamp_ms: int
    threshold_percent: float = 0.0
    sources: tuple[str, str] = field(default=("", ""))
