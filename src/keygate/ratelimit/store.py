"""Concurrent mapping from identity keys to token buckets."""
from __future__ import annotations

import logging
from typing import Dict, Iterator, Optional

from ..core.clock import Clock, MonotonicClock
from .bucket import TokenBucket
from .policy import Quota

logger = logging.getLogger("keygate.ratelimit")


class BucketStore:
    """Owns every bucket for the lifetime of a server.

    Buckets are created on first use with full capacity. Creation relies on
    ``dict.setdefault``, which inserts and returns in one step with no await
    in between, so concurrent first requests for a key share one bucket.
    There is no store-wide lock; each bucket carries its own.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or MonotonicClock()
        self._buckets: Dict[str, TokenBucket] = {}

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: object) -> bool:
        return key in self._buckets

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._buckets))

    def get(self, key: str) -> Optional[TokenBucket]:
        return self._buckets.get(key)

    def get_or_create(self, key: str, quota: Quota) -> TokenBucket:
        bucket = self._buckets.get(key)
        if bucket is not None:
            return bucket
        return self._buckets.setdefault(key, TokenBucket.full(quota, self.clock.monotonic()))

    def evict_idle(self, max_idle: float) -> int:
        """Drop buckets nobody is using that have refilled to capacity.

        A bucket is only removed once it has been idle for at least the time
        it needs to refill completely, so a recreated bucket starts in the
        same state the evicted one would have reached.
        """

        now = self.clock.monotonic()
        evicted = 0
        for key, bucket in list(self._buckets.items()):
            if bucket.lock.locked():
                continue
            if bucket.idle_for(now) < max(max_idle, bucket.quota.full_refill_seconds):
                continue
            # Only remove the exact instance inspected above.
            if self._buckets.get(key) is bucket:
                del self._buckets[key]
                evicted += 1
        if evicted:
            logger.info("Evicted %s idle bucket(s), %s remaining", evicted, len(self._buckets))
        return evicted

    def clear(self) -> None:
        self._buckets.clear()
