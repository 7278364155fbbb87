"""Quota lookup for rate-limit identities."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Optional

from ..core.config import Settings
from ..security.identity import IP_PREFIX, token_from_key


@dataclass(frozen=True, slots=True)
class Quota:
    """Bucket capacity and refill rate in tokens per second."""

    capacity: int
    refill_rate: float

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {self.capacity}")
        if not self.refill_rate > 0:
            raise ValueError(f"refill_rate must be positive, got {self.refill_rate}")

    @property
    def full_refill_seconds(self) -> float:
        return self.capacity / self.refill_rate


class PolicyTable:
    """Immutable mapping from identity keys to quotas.

    Tokens are matched exactly against the configured table. Unknown tokens
    use ``default``; IP identities use ``ip_default`` when one is configured
    and ``default`` otherwise.
    """

    def __init__(
        self,
        default: Quota,
        tokens: Optional[Mapping[str, Quota]] = None,
        ip_default: Optional[Quota] = None,
    ) -> None:
        self._default = default
        self._ip_default = ip_default
        self._tokens: Mapping[str, Quota] = MappingProxyType(dict(tokens or {}))

    @property
    def default(self) -> Quota:
        return self._default

    @property
    def tokens(self) -> Mapping[str, Quota]:
        return self._tokens

    def lookup(self, key: str) -> Quota:
        token = token_from_key(key)
        if token is not None:
            return self._tokens.get(token, self._default)
        if self._ip_default is not None and key.startswith(IP_PREFIX):
            return self._ip_default
        return self._default

    @classmethod
    def from_settings(cls, settings: Settings) -> "PolicyTable":
        tokens = {
            token: Quota(capacity=limit.capacity, refill_rate=limit.rate)
            for token, limit in settings.token_limits.items()
        }
        ip_default = None
        ip_rate = settings.ip_rate
        if settings.ip_capacity is not None and ip_rate is not None:
            ip_default = Quota(capacity=settings.ip_capacity, refill_rate=ip_rate)
        return cls(
            Quota(capacity=settings.default_capacity, refill_rate=settings.default_rate),
            tokens=tokens,
            ip_default=ip_default,
        )
