"""Time-boxed price cache keyed by (chain, pair)."""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .clock import SYSTEM_CLOCK, Clock
from .logger import get_logger
from .models import PriceQuote

logger = get_logger(__name__)

DEFAULT_TTL_MS = 30_000


@dataclass(frozen=True)
class CacheEntry:
    quote: PriceQuote
    inserted_at_ms: int


class PriceCache:
    """Most recent successful quote per (chain, pair).

    Entries are never evicted: once older than the TTL they are reported as
    stale but stay available as a last-resort fallback. Writes to a key are
    serialized by a per-key lock; reads return the current entry snapshot
    without locking.
    """

    def __init__(self, ttl_ms: int = DEFAULT_TTL_MS, clock: Clock = SYSTEM_CLOCK):
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._key_locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @staticmethod
    def _key(chain: str, pair: str) -> tuple[str, str]:
        return chain.lower(), pair.upper()

    def _lock_for(self, key: tuple[str, str]) -> threading.Lock:
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def get(self, chain: str, pair: str) -> tuple[PriceQuote | None, bool]:
        """Return the cached quote and whether it is still fresh.

        Returns ``(None, False)`` when nothing was ever cached for the key.
        """
        entry = self._entries.get(self._key(chain, pair))
        if entry is None:
            return None, False
        fresh = self._clock.now_ms() - entry.quote.observed_at_ms < self.ttl_ms
        return entry.quote, fresh

    def put(self, chain: str, pair: str, quote: PriceQuote) -> bool:
        """Store a successful quote.

        Failure quotes are ignored, and so is a quote older than the one
        already stored. Returns True when the entry was replaced.
        """
        if not quote.success:
            logger.debug("Not caching failed quote for %s %s", chain, pair)
            return False

        key = self._key(chain, pair)
        with self._lock_for(key):
            current = self._entries.get(key)
            if current is not None and current.quote.observed_at_ms > quote.observed_at_ms:
                logger.debug(
                    "Keeping newer cached quote for %s %s (%d > %d)",
                    chain,
                    pair,
                    current.quote.observed_at_ms,
                    quote.observed_at_ms,
                )
                return False
            self._entries[key] = CacheEntry(
                quote=quote, inserted_at_ms=self._clock.now_ms()
            )
        return True

    def entry(self, chain: str, pair: str) -> CacheEntry | None:
        return self._entries.get(self._key(chain, pair))

    def __len__(self) -> int:
        return len(self._entries)
