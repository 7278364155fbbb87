"""Tests for the lazily refilled token bucket."""

import pytest

from keygate.ratelimit.bucket import TokenBucket
from keygate.ratelimit.policy import Quota


def test_fresh_bucket_allows_exactly_capacity():
    bucket = TokenBucket.full(Quota(capacity=5, refill_rate=1.0), now=0.0)

    results = [bucket.try_consume(0.0) for _ in range(6)]

    assert results == [True] * 5 + [False]
    assert bucket.tokens == 0


def test_refill_adds_elapsed_times_rate():
    bucket = TokenBucket.full(Quota(capacity=10, refill_rate=2.0), now=0.0)
    for _ in range(10):
        bucket.try_consume(0.0)

    assert bucket.refill(2.0) == 4.0
    assert bucket.last_refill == 2.0


def test_refill_is_capped_at_capacity():
    bucket = TokenBucket.full(Quota(capacity=10, refill_rate=2.0), now=0.0)
    bucket.try_consume(0.0)

    assert bucket.refill(100.0) == 10.0


def test_denied_consume_does_not_change_tokens():
    bucket = TokenBucket.full(Quota(capacity=1, refill_rate=4.0), now=0.0)
    assert bucket.try_consume(0.0) is True
    bucket.refill(0.125)
    assert bucket.tokens == 0.5

    assert bucket.try_consume(0.125) is False
    assert bucket.try_consume(0.125) is False
    assert bucket.tokens == 0.5


def test_backward_clock_adds_nothing():
    bucket = TokenBucket.full(Quota(capacity=2, refill_rate=2.0), now=10.0)
    bucket.try_consume(10.0)
    bucket.try_consume(10.0)

    assert bucket.refill(5.0) == 0.0
    assert bucket.last_refill == 10.0
    assert bucket.refill(10.5) == 1.0


def test_retry_after_counts_missing_fraction():
    bucket = TokenBucket(quota=Quota(capacity=4, refill_rate=2.0), tokens=0.25, last_refill=0.0)

    assert bucket.retry_after() == pytest.approx(0.375)
    bucket.tokens = 1.0
    assert bucket.retry_after() == 0.0


def test_idle_for_never_negative():
    bucket = TokenBucket.full(Quota(capacity=1, refill_rate=1.0), now=5.0)

    assert bucket.idle_for(3.0) == 0.0
    assert bucket.idle_for(8.0) == 3.0
