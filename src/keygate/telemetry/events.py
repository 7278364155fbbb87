"""Telemetry event collection for Keygate."""
from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger("keygate.telemetry")

QUEUE_SIZE = 10_000


@dataclass(slots=True)
class TelemetryEvent:
    """Represents a single telemetry data point."""

    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=lambda: time.time())


class TelemetryClient:
    """Bounded event buffer forwarded to an optional collector.

    Without an endpoint every event is discarded. With one, a background
    task posts events as JSON; events recorded while the buffer is full are
    dropped and counted rather than slowing down request handling.
    """

    def __init__(
        self,
        endpoint: Optional[str] = None,
        *,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport
        self.dropped = 0
        self._events: asyncio.Queue[TelemetryEvent] = asyncio.Queue(maxsize=QUEUE_SIZE)
        self._sender_task: Optional[asyncio.Task[None]] = None

    @property
    def enabled(self) -> bool:
        return bool(self.endpoint)

    async def start(self) -> None:
        if self.enabled and self._sender_task is None:
            self._sender_task = asyncio.create_task(self._forward_events())
            logger.info("Forwarding telemetry to %s", self.endpoint)

    async def stop(self) -> None:
        if self._sender_task:
            self._sender_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._sender_task
            self._sender_task = None

    def record(self, event: TelemetryEvent) -> None:
        if not self.enabled:
            return
        try:
            self._events.put_nowait(event)
        except asyncio.QueueFull:
            self.dropped += 1

    async def _forward_events(self) -> None:
        assert self.endpoint is not None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            while True:
                event = await self._events.get()
                payload = json.dumps(asdict(event))
                try:
                    await client.post(self.endpoint, content=payload, headers={"Content-Type": "application/json"})
                except httpx.HTTPError as exc:
                    logger.debug("Dropping telemetry event %s: %s", event.name, exc)
