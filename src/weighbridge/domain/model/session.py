"""Weighing session aggregate and its state machine.

    ARRIVAL -> ENTRY_WEIGHING -> LOADING | UNLOADING -> EXIT_WEIGHING -> COMPLETED

``CANCELLED`` is reachable from every non-terminal state. The zone branch is
fixed at creation by the planning entry's operation kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from weighbridge.domain.errors import InvalidTransition, StaleReading
from weighbridge.domain.model.entity import Entity
from weighbridge.domain.model.enums import (
    OperationKind,
    TransferStatus,
    WeighingState,
    WeighPhase,
)
from weighbridge.domain.model.primitives import ZERO_TONS, to_non_negative_tons, to_tons

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime
    from decimal import Decimal
    from uuid import UUID

    from weighbridge.domain.model.planning import PlanningEntry


_FORWARD: Final[Mapping[WeighingState, frozenset[WeighingState]]] = MappingProxyType(
    {
        WeighingState.ARRIVAL: frozenset({WeighingState.ENTRY_WEIGHING}),
        WeighingState.ENTRY_WEIGHING: frozenset({WeighingState.LOADING, WeighingState.UNLOADING}),
        WeighingState.LOADING: frozenset({WeighingState.EXIT_WEIGHING}),
        WeighingState.UNLOADING: frozenset({WeighingState.EXIT_WEIGHING}),
        WeighingState.EXIT_WEIGHING: frozenset({WeighingState.COMPLETED}),
        WeighingState.COMPLETED: frozenset(),
        WeighingState.CANCELLED: frozenset(),
    }
)

_PHASE_STATE: Final[Mapping[WeighPhase, WeighingState]] = MappingProxyType(
    {
        WeighPhase.ENTRY: WeighingState.ENTRY_WEIGHING,
        WeighPhase.EXIT: WeighingState.EXIT_WEIGHING,
    }
)


def allowed_transitions() -> dict[WeighingState, frozenset[WeighingState]]:
    """Return the transition graph, cancellation edges included."""

    graph: dict[WeighingState, frozenset[WeighingState]] = {}
    for state, targets in _FORWARD.items():
        graph[state] = targets if state.is_terminal else targets | {WeighingState.CANCELLED}
    return graph


def zone_state_for(operation: OperationKind) -> WeighingState:
    return WeighingState.LOADING if operation is OperationKind.LOAD else WeighingState.UNLOADING


def phase_for_state(state: WeighingState) -> WeighPhase | None:
    for phase, phase_state in _PHASE_STATE.items():
        if phase_state is state:
            return phase
    return None


@dataclass(frozen=True, slots=True)
class WeightBreakdown:
    tare: Decimal
    gross: Decimal
    net: Decimal

    @classmethod
    def from_readings(
        cls,
        operation: OperationKind,
        *,
        entry_weight: Decimal,
        exit_weight: Decimal,
    ) -> WeightBreakdown:
        """LOAD arrives empty (entry = tare); UNLOAD arrives full (entry = gross)."""

        if operation is OperationKind.LOAD:
            tare, gross = entry_weight, exit_weight
        else:
            gross, tare = entry_weight, exit_weight
        net = max(to_tons(abs(gross - tare)), ZERO_TONS)
        return cls(tare=to_tons(tare), gross=to_tons(gross), net=net)


@dataclass(eq=False, kw_only=True)
class WeighingSession(Entity):
    """One truck's pass over the bridge for one planning entry."""

    planning_id: UUID
    truck_id: str
    client: str
    product_id: int
    operation: OperationKind
    product_name: str | None = None
    planned_quantity: Decimal | None = None

    state: WeighingState = WeighingState.ARRIVAL

    entry_weight: Decimal | None = None
    exit_weight: Decimal | None = None
    tare: Decimal | None = None
    gross: Decimal | None = None
    net: Decimal | None = None
    ticket_number: int | None = None

    arrived_at: datetime | None = None
    entry_weighing_at: datetime | None = None
    zone_entry_at: datetime | None = None
    exit_weighing_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    transfer_status: TransferStatus = field(default=TransferStatus.PENDING)
    transferred_at: datetime | None = None
    historical_id: int | None = None

    @classmethod
    def open(cls, planning: PlanningEntry, *, at: datetime) -> WeighingSession:
        return cls(
            planning_id=planning.id,
            truck_id=planning.truck_id,
            client=planning.client,
            product_id=planning.product_id,
            product_name=planning.product_name,
            operation=planning.operation,
            planned_quantity=planning.planned_quantity,
            arrived_at=at,
        )

    # -- queries -----------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @property
    def zone_state(self) -> WeighingState:
        return zone_state_for(self.operation)

    @property
    def awaiting_bridge(self) -> bool:
        """True while the next step of the session needs a bridge grant."""
        return self.state is WeighingState.ARRIVAL or self.state.in_zone

    @property
    def derived(self) -> WeightBreakdown | None:
        if self.entry_weight is None or self.exit_weight is None:
            return None
        return WeightBreakdown.from_readings(
            self.operation,
            entry_weight=self.entry_weight,
            exit_weight=self.exit_weight,
        )

    def can_transition(self, target: WeighingState) -> bool:
        if target is WeighingState.CANCELLED:
            return not self.is_terminal
        if target.in_zone and target is not self.zone_state:
            return False
        return target in _FORWARD[self.state]

    # -- transitions -------------------------------------------------------------

    def begin_entry_weighing(self, *, at: datetime) -> None:
        self._advance(WeighingState.ENTRY_WEIGHING)
        self.entry_weighing_at = at

    def record_weight(self, phase: WeighPhase, weight: Decimal | float | str) -> Decimal:
        """Store a reading for ``phase``; the state does not change."""

        if self.state is not _PHASE_STATE[phase]:
            raise StaleReading(
                f"{phase} reading for session {self.id} rejected in state {self.state}"
            )
        tons = to_non_negative_tons(weight)
        if phase is WeighPhase.ENTRY:
            self.entry_weight = tons
        else:
            self.exit_weight = tons
        return tons

    def enter_zone(self, *, at: datetime) -> None:
        if self.state is WeighingState.ENTRY_WEIGHING and self.entry_weight is None:
            raise InvalidTransition(
                f"session {self.id} cannot leave the bridge without an entry weight",
                state=self.state,
            )
        self._advance(self.zone_state)
        self.zone_entry_at = at

    def begin_exit_weighing(self, *, at: datetime) -> None:
        self._advance(WeighingState.EXIT_WEIGHING)
        self.exit_weighing_at = at

    def complete(self, ticket_number: int, *, at: datetime) -> WeightBreakdown:
        self._require(WeighingState.COMPLETED)
        if self.ticket_number is not None:
            raise InvalidTransition(
                f"session {self.id} already carries ticket {self.ticket_number}",
                state=self.state,
            )
        breakdown = self.derived
        if breakdown is None:
            raise InvalidTransition(
                f"session {self.id} needs both entry and exit weights to complete",
                state=self.state,
            )
        self.tare = breakdown.tare
        self.gross = breakdown.gross
        self.net = breakdown.net
        self.ticket_number = ticket_number
        self.state = WeighingState.COMPLETED
        self.completed_at = at
        return breakdown

    def check_completable(self) -> WeightBreakdown:
        """Run the completion guards without mutating anything."""

        self._require(WeighingState.COMPLETED)
        breakdown = self.derived
        if breakdown is None:
            raise InvalidTransition(
                f"session {self.id} needs both entry and exit weights to complete",
                state=self.state,
            )
        return breakdown

    def cancel(self, *, at: datetime) -> None:
        if self.is_terminal:
            raise InvalidTransition(
                f"session {self.id} is already {self.state}",
                state=self.state,
            )
        self.state = WeighingState.CANCELLED
        self.cancelled_at = at

    # -- reconciliation bookkeeping ---------------------------------------------

    def mark_transferred(self, *, historical_id: int | None, at: datetime) -> None:
        if self.state is not WeighingState.COMPLETED:
            raise InvalidTransition(
                f"only completed sessions are transferred, {self.id} is {self.state}",
                state=self.state,
            )
        self.transfer_status = TransferStatus.CONFIRMED
        self.historical_id = historical_id
        self.transferred_at = at

    def quarantine(self) -> None:
        self.transfer_status = TransferStatus.QUARANTINED

    # -- helpers -----------------------------------------------------------------

    def _require(self, target: WeighingState) -> None:
        if not self.can_transition(target):
            raise InvalidTransition(
                f"session {self.id}: {self.state} -> {target} is not allowed",
                state=self.state,
            )

    def _advance(self, target: WeighingState) -> None:
        self._require(target)
        self.state = target
