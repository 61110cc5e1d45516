"""Public domain model surface."""

from __future__ import annotations

from weighbridge.domain.model.entity import Entity, new_id
from weighbridge.domain.model.enums import (
    OperationKind,
    PlanningStatus,
    Stability,
    TransferStatus,
    WeighingState,
    WeighPhase,
)
from weighbridge.domain.model.planning import PlanningEntry
from weighbridge.domain.model.primitives import (
    TON_QUANTUM,
    ZERO_TONS,
    ClientName,
    TicketNumber,
    TruckId,
    to_non_negative_tons,
    to_tons,
)
from weighbridge.domain.model.quota import QuotaRecord
from weighbridge.domain.model.session import (
    WeighingSession,
    WeightBreakdown,
    allowed_transitions,
    phase_for_state,
    zone_state_for,
)

__all__ = [  # noqa: RUF022
    # base
    "Entity",
    "new_id",
    # enums
    "OperationKind",
    "PlanningStatus",
    "Stability",
    "TransferStatus",
    "WeighingState",
    "WeighPhase",
    # primitives
    "TON_QUANTUM",
    "ZERO_TONS",
    "ClientName",
    "TicketNumber",
    "TruckId",
    "to_non_negative_tons",
    "to_tons",
    # aggregates
    "PlanningEntry",
    "QuotaRecord",
    "WeighingSession",
    "WeightBreakdown",
    "allowed_transitions",
    "phase_for_state",
    "zone_state_for",
]
