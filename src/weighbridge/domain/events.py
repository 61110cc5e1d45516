"""Outbound notifications emitted by the workflow."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, ClassVar

if TYPE_CHECKING:
    from decimal import Decimal
    from uuid import UUID

    from weighbridge.domain.model import Stability, WeighingState, WeighPhase, WeightBreakdown


def _now() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class WorkflowEvent:
    NAME: ClassVar[str] = "workflow_event"

    session_id: UUID
    occurred_at: datetime = field(default_factory=_now)

    @property
    def name(self) -> str:
        return self.NAME


@dataclass(frozen=True, slots=True, kw_only=True)
class TruckArrived(WorkflowEvent):
    NAME: ClassVar[str] = "truck_arrived"

    truck_id: str
    client: str
    product_name: str | None
    state: WeighingState
    existing: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class StateChanged(WorkflowEvent):
    NAME: ClassVar[str] = "weighing_state_changed"

    old_state: WeighingState
    new_state: WeighingState
    truck_id: str


@dataclass(frozen=True, slots=True, kw_only=True)
class WeightUpdated(WorkflowEvent):
    NAME: ClassVar[str] = "weight_updated"

    weight: Decimal
    phase: WeighPhase
    stability: Stability
    derived: WeightBreakdown | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class WeighingCompleted(WorkflowEvent):
    NAME: ClassVar[str] = "weighing_completed"

    ticket_number: int
    net_weight: Decimal
    client: str


@dataclass(frozen=True, slots=True, kw_only=True)
class WeighingCancelled(WorkflowEvent):
    NAME: ClassVar[str] = "weighing_cancelled"

    truck_id: str
    previous_state: WeighingState


@dataclass(frozen=True, slots=True, kw_only=True)
class BridgeGranted(WorkflowEvent):
    NAME: ClassVar[str] = "bridge_granted"
