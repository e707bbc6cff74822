"""Wall-clock access, injectable so cache, rate limiter and cooldown can be tested."""

from __future__ import annotations

import time


class Clock:
    """System clock."""

    def now_ms(self) -> int:
        """Unix time in milliseconds."""
        return int(time.time() * 1000)

    def monotonic(self) -> float:
        """Monotonic seconds, for measuring intervals."""
        return time.monotonic()


SYSTEM_CLOCK = Clock()
