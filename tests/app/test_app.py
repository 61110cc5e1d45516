from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from weighbridge.adapters.dashboard import DashboardWebhookPublisher
from weighbridge.adapters.notifications import CompositePublisher
from weighbridge.app import build_app, known_tickets, run_reconciliation
from weighbridge.config import (
    DashboardConfig,
    DatabaseConfig,
    ReconciliationConfig,
    ResilienceConfig,
    WorkflowConfig,
)
from weighbridge.domain.errors import BridgeBusy, StoreUnavailable
from weighbridge.domain.model import WeighPhase
from tests.helpers.reconciliation import seed_historical_record, store_completed
from tests.helpers.workflow import RecordingPublisher, SteppingClock, make_planning

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy.engine import Engine

    from weighbridge.app import WeighbridgeApp
    from weighbridge.domain.ports import HistoricalUnitOfWork, OperationalUnitOfWork

UNUSED = DatabaseConfig(operational_uri="sqlite://", historical_uri="sqlite://")


@pytest.fixture
def make_app(
    operational_engine: Engine,
    historical_engine: Engine,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[Callable[..., WeighbridgeApp]]:
    monkeypatch.delenv("DASHBOARD_WEBHOOK_URL", raising=False)
    built: list[WeighbridgeApp] = []

    def factory(**kwargs: object) -> WeighbridgeApp:
        kwargs.setdefault("database", UNUSED)
        kwargs.setdefault("workflow", WorkflowConfig())
        kwargs.setdefault("reconciliation", ReconciliationConfig())
        kwargs.setdefault("clock", SteppingClock())
        app = build_app(
            operational_engine=operational_engine,
            historical_engine=historical_engine,
            **kwargs,  # type: ignore[arg-type]
        )
        built.append(app)
        return app

    yield factory
    for app in built:
        app.close()


def _weigh(app: WeighbridgeApp, truck_id: str) -> int:
    orchestrator = app.orchestrator
    orchestrator.schedule_planning(make_planning(truck_id))
    session = orchestrator.handle_arrival(truck_id)
    orchestrator.request_entry_weighing(session.id)
    orchestrator.report_weight(session.id, WeighPhase.ENTRY, "12.000")
    orchestrator.request_zone_transition(session.id)
    orchestrator.request_exit_weighing(session.id)
    orchestrator.report_weight(session.id, WeighPhase.EXIT, "40.000")
    completed = orchestrator.complete(session.id)
    assert completed.ticket_number is not None
    return completed.ticket_number


def test_fresh_stores_start_at_the_ticket_base(make_app: Callable[..., WeighbridgeApp]) -> None:
    app = make_app(publisher=RecordingPublisher())

    assert _weigh(app, "T1") == 58000


def test_ticket_sequence_continues_after_the_historical_maximum(
    make_app: Callable[..., WeighbridgeApp],
    historical_uow: Callable[[], HistoricalUnitOfWork],
) -> None:
    seed_historical_record(historical_uow, ticket="61234", truck_code="LEGACY")

    app = make_app(publisher=RecordingPublisher())

    assert _weigh(app, "T1") == 61235


def test_known_tickets_reads_both_stores(
    operational_uow: Callable[[], OperationalUnitOfWork],
    historical_uow: Callable[[], HistoricalUnitOfWork],
) -> None:
    store_completed(operational_uow, "T1", ticket=58500)
    seed_historical_record(historical_uow, ticket="58400", truck_code="T9")

    assert known_tickets(operational_uow, historical_uow) == [58500, 58400]


def test_known_tickets_survives_an_unreachable_historical_store(
    operational_uow: Callable[[], OperationalUnitOfWork],
) -> None:
    def unreachable() -> HistoricalUnitOfWork:
        raise StoreUnavailable("connection refused")

    assert known_tickets(operational_uow, unreachable) == [None, None]


def test_completion_is_transferred_immediately(make_app: Callable[..., WeighbridgeApp]) -> None:
    publisher = RecordingPublisher()
    app = make_app(publisher=publisher)

    _weigh(app, "T1")

    assert app.reconciliation.pending_count() == 0
    assert "weighing_completed" in publisher.names()
    result = run_reconciliation(app, once=True)
    assert result is not None
    assert result.attempted == 0


def test_configured_webhook_is_added_next_to_the_primary_publisher(
    make_app: Callable[..., WeighbridgeApp],
) -> None:
    dashboard = DashboardConfig(
        webhook_url="https://dashboard.example/hooks",
        token=None,
        resilience=ResilienceConfig(name="dashboard"),
    )

    app = make_app(dashboard=dashboard)

    assert isinstance(app.dashboard, DashboardWebhookPublisher)
    assert isinstance(app.orchestrator._publisher, CompositePublisher)  # noqa: SLF001


def test_close_is_idempotent(make_app: Callable[..., WeighbridgeApp]) -> None:
    app = make_app(publisher=RecordingPublisher())
    app.start_background()
    assert app.scheduler.running

    app.close()
    app.close()

    assert not app.scheduler.running


def test_rebuilt_app_keeps_the_truck_on_the_bridge(
    make_app: Callable[..., WeighbridgeApp],
) -> None:
    before = make_app(publisher=RecordingPublisher())
    before.orchestrator.schedule_planning(make_planning("T1", client="a"))
    before.orchestrator.schedule_planning(make_planning("T2", client="b"))
    t1 = before.orchestrator.handle_arrival("T1")
    before.orchestrator.request_entry_weighing(t1.id)

    after = make_app(publisher=RecordingPublisher())
    orchestrator = after.orchestrator
    t2 = orchestrator.handle_arrival("T2")

    assert orchestrator.bridge_snapshot().holder == t1.id
    with pytest.raises(BridgeBusy):
        orchestrator.request_entry_weighing(t2.id)
    orchestrator.report_weight(t1.id, WeighPhase.ENTRY, "12.000")


def test_notifications_start_without_the_sweep(make_app: Callable[..., WeighbridgeApp]) -> None:
    dashboard = DashboardConfig(
        webhook_url="https://dashboard.example/hooks",
        token=None,
        resilience=ResilienceConfig(name="dashboard"),
    )
    app = make_app(dashboard=dashboard)

    app.start_notifications()

    assert app.dashboard is not None
    assert app.dashboard.running
    assert not app.scheduler.running
    app.close()
    assert not app.dashboard.running
