from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from ...errors import FetchCancelled


@dataclass(frozen=True)
class RateTier:
    limit: int
    per_seconds: float


# Slack Web API tiers (requests per minute). "boost" is a slightly more
# aggressive tier-2 budget used for the one-off cold-start enumeration.
TIERS: dict[str, RateTier] = {
    "tier1": RateTier(limit=1, per_seconds=60.0),
    "tier2": RateTier(limit=20, per_seconds=60.0),
    "tier2boost": RateTier(limit=30, per_seconds=60.0),
    "tier3": RateTier(limit=50, per_seconds=60.0),
    "tier4": RateTier(limit=100, per_seconds=60.0),
}


def tier(name: str | None) -> RateTier:
    k = str(name or "").strip().lower()
    return TIERS.get(k) or TIERS["tier2boost"]


@dataclass
class _Window:
    # Sliding window of permit timestamps (seconds)
    ts: list[float] = field(default_factory=list)


class Limiter:
    """
    Blocking sliding-window limiter (per-process).

    `wait()` hands out one permit, sleeping until the window has room. The
    sleep is an Event wait, so setting `cancel` wakes the caller immediately.
    """

    def __init__(
        self,
        *,
        limit: int,
        per_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._limit = max(1, int(limit or 1))
        self._per = max(0.001, float(per_seconds or 1.0))
        self._clock = clock
        self._lock = threading.Lock()
        self._w = _Window()

    @classmethod
    def for_tier(cls, name: str | None) -> "Limiter":
        t = tier(name)
        return cls(limit=t.limit, per_seconds=t.per_seconds)

    def _reserve(self) -> float:
        """Take a permit if one is free; else return how long to wait."""
        with self._lock:
            now = self._clock()
            cutoff = now - self._per
            self._w.ts = [t for t in self._w.ts if t > cutoff]
            if len(self._w.ts) < self._limit:
                self._w.ts.append(now)
                return 0.0
            return max(0.0, self._w.ts[0] + self._per - now)

    def allow(self) -> bool:
        return self._reserve() == 0.0

    def wait(self, cancel: threading.Event | None = None) -> None:
        ev = cancel or threading.Event()
        while True:
            if ev.is_set():
                raise FetchCancelled(message="rate limit wait cancelled")
            delay = self._reserve()
            if delay <= 0.0:
                return
            if ev.wait(timeout=delay):
                raise FetchCancelled(message="rate limit wait cancelled")
