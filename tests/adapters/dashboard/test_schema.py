from __future__ import annotations

from decimal import Decimal
from uuid import uuid4

import pytest
from pydantic import ValidationError

from weighbridge.adapters.dashboard import payload_for
from weighbridge.adapters.dashboard.schema import WeightUpdatedPayload
from weighbridge.domain.events import (
    BridgeGranted,
    StateChanged,
    TruckArrived,
    WeighingCancelled,
    WeighingCompleted,
    WeightUpdated,
)
from weighbridge.domain.model import Stability, WeighingState, WeighPhase, WeightBreakdown
from tests.helpers.workflow import START


def test_arrival_payload() -> None:
    session_id = uuid4()
    event = TruckArrived(
        session_id=session_id,
        occurred_at=START,
        truck_id="TRK-001",
        client="ACME",
        product_name="Gravel 0/20",
        state=WeighingState.ARRIVAL,
    )

    body = payload_for(event).model_dump(mode="json")

    assert body == {
        "event": "truck_arrived",
        "session_id": str(session_id),
        "timestamp": "2026-03-02T08:00:00Z",
        "truck_id": "TRK-001",
        "client": "ACME",
        "product_name": "Gravel 0/20",
        "state": "ARRIVAL",
        "existing": False,
    }


def test_weight_payload_carries_phase_stability_and_derived_weights() -> None:
    event = WeightUpdated(
        session_id=uuid4(),
        occurred_at=START,
        weight=Decimal("35.000"),
        phase=WeighPhase.EXIT,
        stability=Stability.STABLE,
        derived=WeightBreakdown(
            tare=Decimal("10.000"), gross=Decimal("35.000"), net=Decimal("25.000")
        ),
    )

    payload = payload_for(event)

    assert isinstance(payload, WeightUpdatedPayload)
    assert payload.weight_type == "exit"
    assert payload.stability == "STABLE"
    assert payload.derived is not None
    assert payload.derived.net == Decimal("25.000")


def test_entry_weight_has_no_derived_weights() -> None:
    event = WeightUpdated(
        session_id=uuid4(),
        weight=Decimal("10.000"),
        phase=WeighPhase.ENTRY,
        stability=Stability.UNSTABLE,
    )

    body = payload_for(event).model_dump(mode="json")

    assert body["weight_type"] == "entry"
    assert body["derived"] is None


@pytest.mark.parametrize(
    ("event", "name"),
    [
        (
            StateChanged(
                session_id=uuid4(),
                old_state=WeighingState.ARRIVAL,
                new_state=WeighingState.ENTRY_WEIGHING,
                truck_id="T1",
            ),
            "weighing_state_changed",
        ),
        (
            WeighingCompleted(
                session_id=uuid4(), ticket_number=58042, net_weight=Decimal("25"), client="ACME"
            ),
            "weighing_completed",
        ),
        (
            WeighingCancelled(
                session_id=uuid4(), truck_id="T1", previous_state=WeighingState.LOADING
            ),
            "weighing_cancelled",
        ),
        (BridgeGranted(session_id=uuid4()), "bridge_granted"),
    ],
)
def test_every_event_maps_to_its_named_payload(event: object, name: str) -> None:
    payload = payload_for(event)  # type: ignore[arg-type]

    assert payload.event == name
    assert payload.session_id == event.session_id  # type: ignore[attr-defined]


def test_payloads_are_immutable_and_strict() -> None:
    payload = payload_for(BridgeGranted(session_id=uuid4()))

    with pytest.raises(ValidationError):
        payload.event = "other"  # type: ignore[misc]
    with pytest.raises(ValidationError):
        WeightUpdatedPayload(
            session_id=uuid4(),
            timestamp=START,
            weight=Decimal("1"),
            weight_type="sideways",  # type: ignore[arg-type]
            stability="STABLE",
        )
