from __future__ import annotations

import json
import logging
import threading
from uuid import uuid4

import httpx
import pytest

from weighbridge.adapters.dashboard import DashboardWebhookPublisher
from weighbridge.adapters.http_resilience import ResilientClient
from weighbridge.config.dashboard import DashboardConfig
from weighbridge.config.http_resilience import ResilienceConfig, RetryPolicy
from weighbridge.domain.events import BridgeGranted, WeighingCancelled
from weighbridge.domain.model import WeighingState

WEBHOOK_URL = "https://dashboard.example/hooks/weighbridge"


class Dashboard:
    """Stands in for the dashboard behind an ``httpx.MockTransport``."""

    def __init__(self, status_code: int = 204) -> None:
        self.status_code = status_code
        self.bodies: list[dict[str, object]] = []
        self.headers: list[httpx.Headers] = []
        self._lock = threading.Lock()

    def handle(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.bodies.append(json.loads(request.content))
            self.headers.append(request.headers)
        return httpx.Response(self.status_code)

    def client_factory(self, config: ResilienceConfig) -> ResilientClient:
        return ResilientClient(config, transport=httpx.MockTransport(self.handle))


def _config(**headers: str) -> DashboardConfig:
    return DashboardConfig(
        webhook_url=WEBHOOK_URL,
        token=None,
        resilience=ResilienceConfig(
            name="dashboard",
            retry=RetryPolicy(total=0),
            default_headers=headers or None,
        ),
    )


def _granted() -> BridgeGranted:
    return BridgeGranted(session_id=uuid4())


def test_queued_events_are_delivered_in_order_on_close() -> None:
    dashboard = Dashboard()
    publisher = DashboardWebhookPublisher(
        _config(Authorization="Bearer s3cret"), client_factory=dashboard.client_factory
    )
    first, second = _granted(), _granted()

    publisher.start()
    publisher.publish(first)
    publisher.publish(second)
    publisher.close(timeout=5)

    assert publisher.delivered == 2
    assert publisher.failed == 0
    assert [body["session_id"] for body in dashboard.bodies] == [
        str(first.session_id),
        str(second.session_id),
    ]
    assert dashboard.headers[0]["authorization"] == "Bearer s3cret"


def test_rejected_delivery_is_counted_and_logged(caplog: pytest.LogCaptureFixture) -> None:
    dashboard = Dashboard(status_code=400)
    publisher = DashboardWebhookPublisher(_config(), client_factory=dashboard.client_factory)
    event = WeighingCancelled(
        session_id=uuid4(), truck_id="T1", previous_state=WeighingState.ARRIVAL
    )

    with caplog.at_level(logging.WARNING):
        publisher.start()
        publisher.publish(event)
        publisher.close(timeout=5)

    assert publisher.failed == 1
    assert publisher.delivered == 0
    assert "weighing_cancelled" in caplog.text


def test_full_queue_drops_events_without_blocking(caplog: pytest.LogCaptureFixture) -> None:
    dashboard = Dashboard()
    publisher = DashboardWebhookPublisher(
        _config(), client_factory=dashboard.client_factory, max_queue_size=1
    )

    with caplog.at_level(logging.WARNING):
        publisher.publish(_granted())
        publisher.publish(_granted())

    assert "queue full" in caplog.text

    # close needs room for its stop marker
    publisher.start()
    publisher.close(timeout=5)
    assert publisher.delivered == 1


def test_close_without_start_is_a_no_op() -> None:
    publisher = DashboardWebhookPublisher(_config(), client_factory=Dashboard().client_factory)

    publisher.close()

    assert publisher.delivered == 0


def test_close_gives_up_when_the_worker_is_gone(caplog: pytest.LogCaptureFixture) -> None:
    started = threading.Event()

    def broken_factory(config: ResilienceConfig) -> ResilientClient:
        started.set()
        raise RuntimeError("no route to dashboard")

    publisher = DashboardWebhookPublisher(
        _config(), client_factory=broken_factory, max_queue_size=1
    )

    with caplog.at_level(logging.WARNING):
        publisher.start()
        assert started.wait(5)
        publisher.publish(_granted())
        publisher.close(timeout=0.2)

    assert "1 events left undelivered" in caplog.text
    assert publisher.delivered == 0
