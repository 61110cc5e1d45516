"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class OperationKind(StrEnum):
    LOAD = "LOAD"
    UNLOAD = "UNLOAD"


class WeighingState(StrEnum):
    ARRIVAL = "ARRIVAL"
    ENTRY_WEIGHING = "ENTRY_WEIGHING"
    LOADING = "LOADING"
    UNLOADING = "UNLOADING"
    EXIT_WEIGHING = "EXIT_WEIGHING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in {WeighingState.COMPLETED, WeighingState.CANCELLED}

    @property
    def on_bridge(self) -> bool:
        return self in {WeighingState.ENTRY_WEIGHING, WeighingState.EXIT_WEIGHING}

    @property
    def in_zone(self) -> bool:
        return self in {WeighingState.LOADING, WeighingState.UNLOADING}


class WeighPhase(StrEnum):
    ENTRY = "entry"
    EXIT = "exit"


class Stability(StrEnum):
    STABLE = "STABLE"
    UNSTABLE = "UNSTABLE"


class PlanningStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"


class TransferStatus(StrEnum):
    """Reconciliation bookkeeping on a completed session."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    QUARANTINED = "QUARANTINED"
