"""Reusable builders and fakes for weighing workflow tests."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from weighbridge.domain.model import OperationKind, PlanningEntry, WeighingSession, WeighPhase
from weighbridge.domain.workflow import (
    BridgeAdmissionController,
    QuotaLedger,
    SequenceAllocator,
    WeighingOrchestrator,
)

from tests.helpers.stores import InMemoryOperationalStore

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from weighbridge.domain.events import WorkflowEvent

    from tests.helpers.stores import InMemoryOperationalUnitOfWork

START = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


class SteppingClock:
    """Returns ``START`` plus one second per call, so timestamps stay ordered."""

    def __init__(self, start: datetime = START, step: timedelta = timedelta(seconds=1)) -> None:
        self._now = start
        self._step = step
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            current = self._now
            self._now += self._step
            return current


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: list[WorkflowEvent] = []
        self._lock = threading.Lock()

    def publish(self, event: WorkflowEvent) -> None:
        with self._lock:
            self.events.append(event)

    def names(self) -> list[str]:
        with self._lock:
            return [event.name for event in self.events]

    def of_type[T](self, kind: type[T]) -> list[T]:
        with self._lock:
            return [event for event in self.events if isinstance(event, kind)]


class ExplodingPublisher(RecordingPublisher):
    """Records the event, then fails like an unreachable dashboard."""

    def publish(self, event: WorkflowEvent) -> None:
        super().publish(event)
        raise RuntimeError(f"dashboard down ({event.name})")


def make_planning(
    truck_id: str = "TRK-001",
    *,
    client: str = "ACME",
    operation: OperationKind = OperationKind.LOAD,
    product_id: int = 7,
    product_name: str | None = "Gravel 0/20",
    planned_on: datetime = START,
) -> PlanningEntry:
    return PlanningEntry(
        planned_on=planned_on.date(),
        truck_id=truck_id,
        client=client,
        product_id=product_id,
        product_name=product_name,
        operation=operation,
        planned_quantity=Decimal("25.000"),
    )


@dataclass
class WorkflowHarness:
    """An orchestrator wired to in-memory collaborators."""

    store: InMemoryOperationalStore = field(default_factory=InMemoryOperationalStore)
    bridge: BridgeAdmissionController = field(default_factory=BridgeAdmissionController)
    sequence: SequenceAllocator = field(default_factory=SequenceAllocator)
    publisher: RecordingPublisher = field(default_factory=RecordingPublisher)
    clock: SteppingClock = field(default_factory=SteppingClock)
    advance_on_grant: bool = True
    transfer: Callable[[UUID], object] | None = None
    orchestrator: WeighingOrchestrator = field(init=False)

    def __post_init__(self) -> None:
        self.orchestrator = WeighingOrchestrator(
            unit_of_work_factory=self.unit_of_work,
            bridge=self.bridge,
            sequence=self.sequence,
            ledger=QuotaLedger(clock=self.clock),
            publisher=self.publisher,
            clock=self.clock,
            advance_on_grant=self.advance_on_grant,
            transfer=self.transfer,
        )

    def unit_of_work(self) -> InMemoryOperationalUnitOfWork:
        return self.store.unit_of_work_factory()()

    def plan(self, truck_id: str = "TRK-001", **kwargs: object) -> PlanningEntry:
        return self.orchestrator.schedule_planning(make_planning(truck_id, **kwargs))  # type: ignore[arg-type]

    def stored(self, session_id: UUID) -> WeighingSession:
        return self.store.sessions[session_id]

    def weigh_through(
        self,
        truck_id: str,
        *,
        entry: str,
        exit_: str,
    ) -> WeighingSession:
        """Run one planned truck from arrival to completion."""

        orchestrator = self.orchestrator
        session = orchestrator.handle_arrival(truck_id)
        orchestrator.request_entry_weighing(session.id)
        orchestrator.report_weight(session.id, WeighPhase.ENTRY, Decimal(entry))
        orchestrator.request_zone_transition(session.id)
        orchestrator.request_exit_weighing(session.id)
        orchestrator.report_weight(session.id, WeighPhase.EXIT, Decimal(exit_))
        return orchestrator.complete(session.id)

