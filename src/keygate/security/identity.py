"""Caller identity resolution for rate limiting."""
from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.security import APIKeyHeader

TOKEN_PREFIX = "token:"
IP_PREFIX = "ip:"
UNKNOWN_HOST = "unknown"


def identity_key(token: Optional[str], client_host: Optional[str]) -> str:
    """Build the rate-limit key for a caller.

    A non-empty token always wins over the client address. Tokens are not
    validated here; any value identifies its own bucket.
    """

    if token is not None:
        token = token.strip()
        if token:
            return f"{TOKEN_PREFIX}{token}"
    return f"{IP_PREFIX}{client_host or UNKNOWN_HOST}"


def token_from_key(key: str) -> Optional[str]:
    if key.startswith(TOKEN_PREFIX):
        return key[len(TOKEN_PREFIX):]
    return None


class IdentityResolver:
    """Derive identity keys from inbound requests."""

    def __init__(self, header_name: str = "API_KEY") -> None:
        self.header_name = header_name
        self._header = APIKeyHeader(name=header_name, auto_error=False)

    async def __call__(self, request: Request) -> str:
        token = await self._header(request)
        client_host = request.client.host if request.client else None
        return identity_key(token, client_host)
