"""Exceptions raised by Keygate components."""
from __future__ import annotations


class KeygateError(RuntimeError):
    """Base class for Keygate failures."""


class LimiterUnavailable(KeygateError):
    """Raised when a limiting decision cannot be made in time."""

    def __init__(self, key: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout}s waiting for bucket {key!r}")
        self.key = key
        self.timeout = timeout
