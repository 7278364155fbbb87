"""Time sources used by the rate limiter."""
from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    def monotonic(self) -> float:
        """Return a reading in seconds from a monotonic source."""


class MonotonicClock:
    """Clock backed by :func:`time.monotonic`."""

    def monotonic(self) -> float:
        return time.monotonic()
