"""Application wiring: stores, workflow services and background workers."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from weighbridge.adapters.dashboard import DashboardWebhookPublisher
from weighbridge.adapters.notifications import CompositePublisher, LoggingEventPublisher
from weighbridge.adapters.sqlalchemy.unit_of_work import (
    StoreHandle,
    historical_unit_of_work_factory,
    open_historical_store,
    open_operational_store,
    operational_unit_of_work_factory,
)
from weighbridge.config import (
    get_dashboard_config,
    get_database_config,
    get_reconciliation_config,
    get_workflow_config,
)
from weighbridge.domain.errors import StoreError
from weighbridge.domain.reconciliation import ReconciliationEngine, ReconciliationScheduler
from weighbridge.domain.workflow import (
    BridgeAdmissionController,
    QuotaLedger,
    SequenceAllocator,
    WeighingOrchestrator,
)

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.engine import Engine

    from weighbridge.config import (
        DashboardConfig,
        DatabaseConfig,
        ReconciliationConfig,
        WorkflowConfig,
    )
    from weighbridge.domain.ports import EventPublisher
    from weighbridge.domain.reconciliation import HistoricalUnitOfWorkFactory, SweepResult
    from weighbridge.domain.workflow import OperationalUnitOfWorkFactory

log = getLogger(__name__)


@dataclass(slots=True)
class WeighbridgeApp:
    """Everything a running facility needs, built once per process."""

    orchestrator: WeighingOrchestrator
    reconciliation: ReconciliationEngine
    scheduler: ReconciliationScheduler
    operational: StoreHandle
    historical: StoreHandle
    dashboard: DashboardWebhookPublisher | None = None
    _closed: bool = field(default=False, init=False)

    def start_notifications(self) -> None:
        """Start the dashboard delivery worker when a webhook is configured."""
        if self.dashboard is not None:
            self.dashboard.start()

    def start_background(self) -> None:
        self.start_notifications()
        self.scheduler.start()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.scheduler.stop(timeout=10.0)
        if self.dashboard is not None:
            self.dashboard.close()
        self.operational.dispose()
        self.historical.dispose()


def known_tickets(
    operational: OperationalUnitOfWorkFactory,
    historical: HistoricalUnitOfWorkFactory,
) -> list[int | None]:
    """Largest tickets already committed to either store."""

    with operational() as uow:
        operational_max = uow.repositories.sessions.max_ticket()
    try:
        with historical() as uow:
            historical_max = uow.repositories.records.max_numeric_ticket()
    except StoreError as exc:
        log.warning(f"Historical store unavailable, seeding tickets from operational only: {exc}")
        historical_max = None
    return [operational_max, historical_max]


def build_app(
    *,
    database: DatabaseConfig | None = None,
    workflow: WorkflowConfig | None = None,
    reconciliation: ReconciliationConfig | None = None,
    dashboard: DashboardConfig | None = None,
    operational_engine: Engine | None = None,
    historical_engine: Engine | None = None,
    publisher: EventPublisher | None = None,
    clock: Callable[[], datetime] | None = None,
) -> WeighbridgeApp:
    """Open both stores and assemble the workflow around them.

    Configuration not passed in is read from the environment. Passing engines
    skips the URIs (tests use in-memory SQLite).
    """

    database_config = database or get_database_config()
    workflow_config = workflow or get_workflow_config()
    reconciliation_config = reconciliation or get_reconciliation_config()
    dashboard_config = dashboard if dashboard is not None else get_dashboard_config()

    operational_store = open_operational_store(
        engine=operational_engine, database_uri=database_config.operational_uri
    )
    historical_store = open_historical_store(
        engine=historical_engine, database_uri=database_config.historical_uri
    )
    operational = operational_unit_of_work_factory(operational_store)
    historical = historical_unit_of_work_factory(historical_store)

    sequence = SequenceAllocator.seeded(
        known_tickets(operational, historical), base=workflow_config.ticket_base
    )

    engine_kwargs = {} if clock is None else {"clock": clock}
    engine = ReconciliationEngine(
        operational,
        historical,
        batch_size=reconciliation_config.batch_size,
        **engine_kwargs,
    )

    webhook = DashboardWebhookPublisher(dashboard_config) if dashboard_config else None
    publishers: list[EventPublisher] = [publisher or LoggingEventPublisher()]
    if webhook is not None:
        publishers.append(webhook)

    orchestrator = WeighingOrchestrator(
        unit_of_work_factory=operational,
        bridge=BridgeAdmissionController(),
        sequence=sequence,
        ledger=QuotaLedger(**engine_kwargs),
        publisher=publishers[0] if len(publishers) == 1 else CompositePublisher(publishers),
        advance_on_grant=workflow_config.advance_on_grant,
        transfer=engine.transfer_session,
        **engine_kwargs,
    )
    orchestrator.restore_bridge()
    scheduler = ReconciliationScheduler(
        engine,
        interval=reconciliation_config.interval_seconds,
        max_backoff=reconciliation_config.max_backoff_seconds,
        jitter=reconciliation_config.jitter,
    )
    return WeighbridgeApp(
        orchestrator=orchestrator,
        reconciliation=engine,
        scheduler=scheduler,
        operational=operational_store,
        historical=historical_store,
        dashboard=webhook,
    )


def run_reconciliation(app: WeighbridgeApp, *, once: bool = False) -> SweepResult | None:
    """Sweep once and return the tally, or loop on the calling thread until stopped."""

    if once:
        return app.reconciliation.sweep()
    app.scheduler.run_forever()
    return None
