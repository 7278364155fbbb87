"""Token bucket rate limiter with per-identity tracking."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
import enum
import logging
from typing import AsyncIterator, Optional

from ..core.clock import Clock
from ..core.errors import LimiterUnavailable
from .bucket import TokenBucket
from .policy import PolicyTable
from .store import BucketStore

logger = logging.getLogger("keygate.ratelimit")


class Outcome(enum.Enum):
    ALLOW = "allow"
    DENY = "deny"


@dataclass(frozen=True, slots=True)
class Decision:
    """Result of a single ``try_acquire`` call."""

    outcome: Outcome
    limit: int
    remaining: int
    retry_after: float = 0.0

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW


class RateLimiter:
    """Accept or reject requests per identity key.

    Each key gets a bucket from ``store`` sized by ``policies``. Refill and
    consumption for one key happen under that bucket's lock, so calls for
    the same key are totally ordered while different keys never wait on
    each other. A non-zero ``lock_timeout`` bounds the wait for a busy
    bucket; exceeding it raises :class:`LimiterUnavailable` rather than
    denying the request.
    """

    def __init__(
        self,
        policies: PolicyTable,
        *,
        store: Optional[BucketStore] = None,
        clock: Optional[Clock] = None,
        lock_timeout: Optional[float] = None,
        idle_seconds: float = 300.0,
    ) -> None:
        self.policies = policies
        # An empty store is falsy, so test against None.
        self.store = store if store is not None else BucketStore(clock)
        self.clock = clock if clock is not None else self.store.clock
        self.lock_timeout = lock_timeout or None
        self.idle_seconds = idle_seconds

    @asynccontextmanager
    async def _hold(self, key: str, bucket: TokenBucket) -> AsyncIterator[TokenBucket]:
        if self.lock_timeout is None:
            await bucket.lock.acquire()
        else:
            try:
                async with asyncio.timeout(self.lock_timeout):
                    await bucket.lock.acquire()
            except TimeoutError as exc:
                logger.warning("Bucket lock for %s not acquired within %ss", key, self.lock_timeout)
                raise LimiterUnavailable(key, self.lock_timeout) from exc
        try:
            yield bucket
        finally:
            bucket.lock.release()

    async def try_acquire(self, key: str) -> Decision:
        quota = self.policies.lookup(key)
        bucket = self.store.get_or_create(key, quota)
        async with self._hold(key, bucket):
            allowed = bucket.try_consume(self.clock.monotonic())
            remaining = int(bucket.tokens)
            if allowed:
                return Decision(Outcome.ALLOW, limit=bucket.quota.capacity, remaining=remaining)
            retry_after = bucket.retry_after()
        logger.debug("Denied %s, retry in %.3fs", key, retry_after)
        return Decision(Outcome.DENY, limit=bucket.quota.capacity, remaining=remaining, retry_after=retry_after)

    def peek(self, key: str) -> Optional[float]:
        """Tokens currently available to ``key`` without consuming any."""

        bucket = self.store.get(key)
        if bucket is None:
            return None
        elapsed = max(0.0, self.clock.monotonic() - bucket.last_refill)
        return min(float(bucket.quota.capacity), bucket.tokens + elapsed * bucket.quota.refill_rate)

    def sweep(self) -> int:
        return self.store.evict_idle(self.idle_seconds)
