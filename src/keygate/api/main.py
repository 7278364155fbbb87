"""FastAPI application entrypoint for Keygate."""
from __future__ import annotations

import asyncio
import logging
import math
from contextlib import suppress
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware

from ..core.clock import Clock
from ..core.config import Settings, get_settings
from ..core.errors import LimiterUnavailable
from ..core.logging import setup_logging
from ..ratelimit.limiter import RateLimiter
from ..ratelimit.policy import PolicyTable
from ..ratelimit.store import BucketStore
from ..security.identity import IdentityResolver
from ..telemetry.events import TelemetryClient, TelemetryEvent

logger = logging.getLogger("keygate.api")

RATE_LIMITED_DETAIL = (
    "you have reached the maximum number of requests or actions allowed within a certain time frame"
)
UNAVAILABLE_DETAIL = "rate limiter is temporarily unavailable"


async def enforce_rate_limit(request: Request, response: Response) -> None:
    state = request.app.state
    limiter: RateLimiter = state.limiter
    key = await state.identity(request)
    try:
        decision = await limiter.try_acquire(key)
    except LimiterUnavailable as exc:
        state.telemetry.record(TelemetryEvent(name="ratelimit.unavailable", attributes={"key": key}))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=UNAVAILABLE_DETAIL,
            headers={"Retry-After": "1"},
        ) from exc

    headers = {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
    }
    if not decision.allowed:
        state.telemetry.record(
            TelemetryEvent(name="ratelimit.denied", attributes={"key": key, "retry_after": decision.retry_after})
        )
        headers["Retry-After"] = str(max(1, math.ceil(decision.retry_after)))
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=RATE_LIMITED_DETAIL, headers=headers)
    response.headers.update(headers)


limited = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@limited.get("/")
async def root() -> dict:
    return {"message": "pong"}


@limited.get("/{path:path}")
async def catch_all(path: str) -> dict:
    return {"message": "pong", "path": path}


async def bucket_sweep_loop(app: FastAPI, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        evicted = app.state.limiter.sweep()
        if evicted:
            app.state.telemetry.record(
                TelemetryEvent(
                    name="ratelimit.sweep",
                    attributes={"evicted": evicted, "remaining": len(app.state.limiter.store)},
                )
            )


def create_app(settings: Optional[Settings] = None, *, clock: Optional[Clock] = None) -> FastAPI:
    """Build the application; limiter state is created on startup and dropped on shutdown."""

    settings = settings or get_settings()
    setup_logging(settings.log_level, access_log=settings.access_log)
    # Only /health is served outside the limiter.
    app = FastAPI(title=settings.app_name, version="1.0.0", docs_url=None, redoc_url=None, openapi_url=None)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.identity = IdentityResolver(settings.api_key_header)
    app.state.telemetry = TelemetryClient(settings.telemetry_endpoint)
    app.state.limiter = None
    app.state.sweep_task = None

    @app.on_event("startup")
    async def on_startup() -> None:
        logger.info("Initialising %s", settings.app_name)
        policies = PolicyTable.from_settings(settings)
        app.state.limiter = RateLimiter(
            policies,
            store=BucketStore(clock),
            clock=clock,
            lock_timeout=settings.lock_timeout_seconds,
            idle_seconds=settings.bucket_idle_seconds,
        )
        logger.info(
            "Rate limiting with default %s/%.3gs and %s token limit(s) via header %s",
            policies.default.capacity,
            policies.default.refill_rate,
            len(policies.tokens),
            settings.api_key_header,
        )
        await app.state.telemetry.start()
        app.state.telemetry.record(
            TelemetryEvent(name="app.startup", attributes={"environment": settings.environment})
        )
        if settings.bucket_sweep_interval_seconds > 0:
            app.state.sweep_task = asyncio.create_task(
                bucket_sweep_loop(app, settings.bucket_sweep_interval_seconds)
            )
            logger.info("Idle bucket sweep started with interval %ss", settings.bucket_sweep_interval_seconds)

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        logger.info("Shutting down %s", settings.app_name)
        if app.state.sweep_task:
            app.state.sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await app.state.sweep_task
            app.state.sweep_task = None
        app.state.telemetry.record(TelemetryEvent(name="app.shutdown"))
        await app.state.telemetry.stop()
        if app.state.limiter is not None:
            app.state.limiter.store.clear()
            app.state.limiter = None

    @app.get("/health")
    async def health() -> dict:
        limiter: Optional[RateLimiter] = app.state.limiter
        return {"status": "ok", "buckets": len(limiter.store) if limiter else 0}

    app.include_router(limited)
    return app
