"""Pydantic models of the payloads pushed to the dashboard webhook."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from weighbridge.domain.events import (
    BridgeGranted,
    StateChanged,
    TruckArrived,
    WeighingCancelled,
    WeighingCompleted,
    WeightUpdated,
    WorkflowEvent,
)


class DashboardBaseModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class DerivedWeights(DashboardBaseModel):
    tare: Decimal
    gross: Decimal
    net: Decimal


class EventPayload(DashboardBaseModel):
    event: str
    session_id: UUID
    timestamp: datetime


class TruckArrivedPayload(EventPayload):
    event: Literal["truck_arrived"] = "truck_arrived"
    truck_id: str
    client: str
    product_name: str | None = None
    state: str
    existing: bool = False


class StateChangedPayload(EventPayload):
    event: Literal["weighing_state_changed"] = "weighing_state_changed"
    truck_id: str
    old_state: str
    new_state: str


class WeightUpdatedPayload(EventPayload):
    event: Literal["weight_updated"] = "weight_updated"
    weight: Decimal
    weight_type: Literal["entry", "exit"]
    stability: Literal["STABLE", "UNSTABLE"]
    derived: DerivedWeights | None = None


class WeighingCompletedPayload(EventPayload):
    event: Literal["weighing_completed"] = "weighing_completed"
    ticket_number: int
    net_weight: Decimal
    client: str


class WeighingCancelledPayload(EventPayload):
    event: Literal["weighing_cancelled"] = "weighing_cancelled"
    truck_id: str
    previous_state: str


class BridgeGrantedPayload(EventPayload):
    event: Literal["bridge_granted"] = "bridge_granted"


def payload_for(event: WorkflowEvent) -> EventPayload:
    """Translate a workflow event into its webhook payload."""

    common = {"session_id": event.session_id, "timestamp": event.occurred_at}
    match event:
        case TruckArrived():
            return TruckArrivedPayload(
                **common,
                truck_id=event.truck_id,
                client=event.client,
                product_name=event.product_name,
                state=event.state.value,
                existing=event.existing,
            )
        case StateChanged():
            return StateChangedPayload(
                **common,
                truck_id=event.truck_id,
                old_state=event.old_state.value,
                new_state=event.new_state.value,
            )
        case WeightUpdated():
            derived = (
                None
                if event.derived is None
                else DerivedWeights(
                    tare=event.derived.tare, gross=event.derived.gross, net=event.derived.net
                )
            )
            return WeightUpdatedPayload(
                **common,
                weight=event.weight,
                weight_type=event.phase.value,
                stability=event.stability.value,
                derived=derived,
            )
        case WeighingCompleted():
            return WeighingCompletedPayload(
                **common,
                ticket_number=event.ticket_number,
                net_weight=event.net_weight,
                client=event.client,
            )
        case WeighingCancelled():
            return WeighingCancelledPayload(
                **common,
                truck_id=event.truck_id,
                previous_state=event.previous_state.value,
            )
        case BridgeGranted():
            return BridgeGrantedPayload(**common)
        case _:
            return EventPayload(event=event.name, **common)
