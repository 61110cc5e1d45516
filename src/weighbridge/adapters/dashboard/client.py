"""Queued webhook publisher for the live dashboard."""

from __future__ import annotations

import asyncio
import queue
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

import httpx

from weighbridge.adapters.http_resilience import ResilientClient

from .schema import EventPayload, payload_for

if TYPE_CHECKING:
    from weighbridge.config.dashboard import DashboardConfig
    from weighbridge.config.http_resilience import ResilienceConfig
    from weighbridge.domain.events import WorkflowEvent

log = getLogger(__name__)

DEFAULT_QUEUE_SIZE: Final[int] = 1000

type ClientFactory = Callable[[ResilienceConfig], ResilientClient]


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


@dataclass(slots=True)
class DashboardWebhookPublisher:
    """Push workflow events to the dashboard without blocking the workflow.

    :meth:`publish` only validates and enqueues; a daemon thread owns an event
    loop and posts the payloads in order. A full queue drops the event with a
    warning, a failed delivery is logged once the retries are exhausted.
    """

    config: DashboardConfig
    client_factory: ClientFactory = field(default=_default_client_factory)
    max_queue_size: int = DEFAULT_QUEUE_SIZE
    _queue: queue.Queue[EventPayload | None] = field(init=False, repr=False)
    _thread: threading.Thread | None = field(default=None, init=False, repr=False)
    delivered: int = field(default=0, init=False)
    failed: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        self._queue = queue.Queue(maxsize=self.max_queue_size)

    def publish(self, event: WorkflowEvent) -> None:
        payload = payload_for(event)
        try:
            self._queue.put_nowait(payload)
        except queue.Full:
            log.warning(f"Dashboard queue full, dropping {payload.event} for {payload.session_id}")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._thread = threading.Thread(
            target=self._run, name="weighbridge-dashboard", daemon=True
        )
        self._thread.start()

    def close(self, timeout: float | None = 5.0) -> None:
        """Deliver what is queued, then stop the worker."""

        thread = self._thread
        if thread is None:
            return
        self._thread = None
        if not thread.is_alive():
            log.warning(
                f"Dashboard worker is not running, {self._queue.qsize()} events left undelivered"
            )
            return
        try:
            self._queue.put(None, timeout=timeout)
        except queue.Full:
            log.warning(
                f"Dashboard worker is stuck, {self._queue.qsize()} events left undelivered"
            )
            return
        thread.join(timeout)

    def _run(self) -> None:
        try:
            asyncio.run(self._drain())
        except Exception:
            log.exception("Dashboard worker stopped")

    async def _drain(self) -> None:
        async with self.client_factory(self.config.resilience) as client:
            while True:
                payload = await asyncio.to_thread(self._queue.get)
                if payload is None:
                    return
                await self._deliver(client, payload)

    async def _deliver(self, client: ResilientClient, payload: EventPayload) -> None:
        try:
            response = await client.post(
                self.config.webhook_url, json=payload.model_dump(mode="json")
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            self.failed += 1
            log.warning(f"Dashboard delivery of {payload.event} failed: {exc}")
            return
        self.delivered += 1
