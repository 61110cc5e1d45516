from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

import pytest

from weighbridge.domain.model import WeighingSession
from weighbridge.domain.reconciliation import (
    HistoricalRecord,
    SweepResult,
    TransferOutcome,
    TransferResult,
)
from tests.helpers.reconciliation import completed_session, entities
from tests.helpers.workflow import make_planning


def test_record_takes_ticket_and_weights_from_the_session() -> None:
    completed_at = datetime(2026, 3, 2, 23, 30, 15, 123456, tzinfo=UTC)
    session, _ = completed_session("T1", ticket=58123, completed_at=completed_at)

    record = HistoricalRecord.from_session(session, entities(3, 2, 1))

    local = completed_at.astimezone()
    assert record.ticket == "58123"
    assert record.weighed_on == local.date()
    assert record.weighed_at == local.time().replace(microsecond=0, tzinfo=None)
    assert (record.truck_id, record.client_id, record.product_id) == (3, 2, 1)
    assert (record.tare, record.gross, record.net) == (
        Decimal("10.000"),
        Decimal("35.000"),
        Decimal("25.000"),
    )


def test_incomplete_session_cannot_become_a_record() -> None:
    session = WeighingSession.open(make_planning(), at=datetime.now(tz=UTC))

    with pytest.raises(ValueError, match="not a complete weighing"):
        HistoricalRecord.from_session(session, entities())


def test_sweep_result_tallies_outcomes() -> None:
    result = SweepResult()
    for outcome in (
        TransferOutcome.CONFIRMED,
        TransferOutcome.DUPLICATE,
        TransferOutcome.DEFERRED,
        TransferOutcome.DEFERRED,
        TransferOutcome.SKIPPED,
    ):
        result.record(TransferResult(session_id=uuid4(), outcome=outcome))

    assert (result.confirmed, result.duplicate, result.deferred, result.skipped) == (1, 1, 2, 1)
    assert result.attempted == 5
    assert not result.struggling


def test_sweep_with_only_deferrals_is_struggling() -> None:
    result = SweepResult(deferred=3)

    assert result.struggling


def test_settled_outcomes() -> None:
    session_id = uuid4()

    assert TransferResult(session_id=session_id, outcome=TransferOutcome.DUPLICATE).settled
    assert not TransferResult(session_id=session_id, outcome=TransferOutcome.QUARANTINED).settled
