"""Tests for quota lookup."""

import pytest

from keygate.core.config import Settings
from keygate.ratelimit.policy import PolicyTable, Quota


def test_exact_token_match(policies):
    assert policies.lookup("token:abc123") == Quota(capacity=100, refill_rate=100.0)
    assert policies.lookup("token:def456") == Quota(capacity=70, refill_rate=70.0)


def test_unknown_token_and_ip_use_default(policies):
    assert policies.lookup("token:xyz000") == policies.default
    assert policies.lookup("token:ABC123") == policies.default
    assert policies.lookup("ip:10.0.0.1") == policies.default


def test_token_value_matching_ip_text_is_still_a_token():
    table = PolicyTable(Quota(1, 1.0), tokens={"10.0.0.1": Quota(5, 5.0)})

    assert table.lookup("token:10.0.0.1").capacity == 5
    assert table.lookup("ip:10.0.0.1").capacity == 1


def test_ip_default_only_applies_to_ip_keys():
    table = PolicyTable(Quota(10, 10.0), ip_default=Quota(3, 1.0))

    assert table.lookup("ip:127.0.0.1") == Quota(3, 1.0)
    assert table.lookup("token:ghi789") == Quota(10, 10.0)


def test_token_table_is_read_only(policies):
    with pytest.raises(TypeError):
        policies.tokens["new"] = Quota(1, 1.0)


@pytest.mark.parametrize("capacity, rate", [(0, 1.0), (-1, 1.0), (1, 0.0), (1, -2.0)])
def test_invalid_quota_rejected(capacity, rate):
    with pytest.raises(ValueError):
        Quota(capacity=capacity, refill_rate=rate)


def test_from_settings():
    settings = Settings(
        _env_file=None,
        default_capacity=10,
        default_refill_rate=5.0,
        ip_capacity=20,
        ip_refill_rate=2.0,
        token_limits={"abc123": {"limit": 100}, "def456": {"capacity": 70, "refill_rate": 35}},
    )

    table = PolicyTable.from_settings(settings)

    assert table.default == Quota(10, 5.0)
    assert table.lookup("ip:1.2.3.4") == Quota(20, 2.0)
    assert table.lookup("token:abc123") == Quota(100, 100.0)
    assert table.lookup("token:def456") == Quota(70, 35.0)
