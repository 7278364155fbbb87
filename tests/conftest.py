from __future__ import annotations

import pytest

from keygate.core.config import Settings
from keygate.ratelimit.policy import PolicyTable, Quota


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def monotonic(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def policies() -> PolicyTable:
    return PolicyTable(
        Quota(capacity=10, refill_rate=10.0),
        tokens={
            "abc123": Quota(capacity=100, refill_rate=100.0),
            "def456": Quota(capacity=70, refill_rate=70.0),
        },
    )


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        log_level="INFO",
        default_capacity=3,
        default_refill_rate=1.0,
        token_limits={
            "abc123": {"capacity": 100, "refill_rate": 100},
            "def456": {"capacity": 70, "refill_rate": 70},
        },
        bucket_sweep_interval_seconds=0,
    )
