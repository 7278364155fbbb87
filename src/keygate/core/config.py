"""Application configuration for Keygate."""
from __future__ import annotations

from functools import lru_cache
import logging
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger("keygate.config")


class TokenLimit(BaseModel):
    """Quota configured for a single API token."""

    capacity: int = Field(
        ge=1,
        validation_alias=AliasChoices("capacity", "limit"),
        description="Bucket size; the number of requests allowed in an instantaneous burst.",
    )
    refill_rate: Optional[float] = Field(
        default=None,
        gt=0,
        description="Tokens added per second. Defaults to the capacity, i.e. a per-second limit.",
    )

    @property
    def rate(self) -> float:
        return self.refill_rate if self.refill_rate is not None else float(self.capacity)


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    app_name: str = Field(default="Keygate", description="Human readable application name.")
    environment: str = Field(default="development", description="Environment name for telemetry tagging.")
    log_level: str = Field(default="INFO", description="Application log level.")
    host: str = Field(default="0.0.0.0", description="Interface the HTTP server binds to.")
    port: int = Field(default=8080, ge=1, le=65535, description="Port the HTTP server listens on.")
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["*"],
        description="List of CORS origins allowed to access the API.",
    )
    api_key_header: str = Field(default="API_KEY", description="Request header carrying the caller token.")
    default_capacity: int = Field(
        default=10,
        ge=1,
        validation_alias=AliasChoices("default_capacity", "token_rate_limit"),
        description="Bucket size for identities without a token limit.",
    )
    default_refill_rate: Optional[float] = Field(
        default=None,
        gt=0,
        description="Tokens per second for identities without a token limit. Defaults to the capacity.",
    )
    ip_capacity: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("ip_capacity", "ip_rate_limit"),
        description="Optional bucket size for callers identified by IP address.",
    )
    ip_refill_rate: Optional[float] = Field(
        default=None,
        gt=0,
        description="Optional refill rate for callers identified by IP address. Defaults to the IP capacity.",
    )
    token_limits: Dict[str, TokenLimit] = Field(
        default_factory=dict,
        description='Per-token quotas as JSON, e.g. {"abc123": {"capacity": 100, "refill_rate": 100}}.',
    )
    lock_timeout_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Maximum wait for a bucket lock before answering 503. Zero waits indefinitely.",
    )
    bucket_idle_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Idle time after which a bucket may be evicted.",
    )
    bucket_sweep_interval_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Interval between idle bucket sweeps. Zero disables sweeping.",
    )
    access_log: bool = Field(default=True, description="Emit one log line per request from uvicorn.")
    telemetry_endpoint: str | None = Field(
        default=None,
        description="Optional external telemetry collector endpoint for forwarding events.",
    )

    @model_validator(mode="after")
    def _check_ip_quota(self) -> "Settings":
        if self.ip_capacity is None and self.ip_refill_rate is not None:
            raise ValueError("IP_REFILL_RATE requires IP_CAPACITY")
        return self

    @property
    def default_rate(self) -> float:
        return self.default_refill_rate if self.default_refill_rate is not None else float(self.default_capacity)

    @property
    def ip_rate(self) -> Optional[float]:
        if self.ip_capacity is None:
            return None
        return self.ip_refill_rate if self.ip_refill_rate is not None else float(self.ip_capacity)


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings."""

    settings = Settings()
    logger.debug("Loaded %s token limit(s)", len(settings.token_limits))
    return settings
