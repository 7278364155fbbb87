"""Lazily refilled token bucket."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from .policy import Quota


@dataclass(slots=True, eq=False)
class TokenBucket:
    """Per-identity bucket state guarded by its own lock.

    ``refill`` and ``try_consume`` do not lock; callers hold ``lock`` around
    the pair so a refill-and-consume is atomic per key.
    """

    quota: Quota
    tokens: float
    last_refill: float
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @classmethod
    def full(cls, quota: Quota, now: float) -> "TokenBucket":
        return cls(quota=quota, tokens=float(quota.capacity), last_refill=now)

    def refill(self, now: float) -> float:
        # A clock that steps backwards adds nothing and keeps last_refill put.
        elapsed = now - self.last_refill
        if elapsed > 0:
            self.tokens = min(float(self.quota.capacity), self.tokens + elapsed * self.quota.refill_rate)
            self.last_refill = now
        return self.tokens

    def try_consume(self, now: float) -> bool:
        self.refill(now)
        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False

    def retry_after(self) -> float:
        """Seconds until one whole token is available."""

        if self.tokens >= 1:
            return 0.0
        return (1 - self.tokens) / self.quota.refill_rate

    def idle_for(self, now: float) -> float:
        return max(0.0, now - self.last_refill)
