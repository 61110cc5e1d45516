"""Planning entries: the daily authorization of a truck for one operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from weighbridge.domain.model.entity import Entity
from weighbridge.domain.model.enums import OperationKind, PlanningStatus

if TYPE_CHECKING:
    from datetime import date, time
    from decimal import Decimal


@dataclass(eq=False, kw_only=True)
class PlanningEntry(Entity):
    planned_on: date
    truck_id: str
    client: str
    product_id: int
    operation: OperationKind
    product_name: str | None = None
    driver_name: str | None = None
    planned_quantity: Decimal | None = None
    scheduled_time: time | None = None
    status: PlanningStatus = PlanningStatus.PENDING

    @property
    def is_pending(self) -> bool:
        return self.status is PlanningStatus.PENDING

    def start(self) -> None:
        if self.status is not PlanningStatus.PENDING:
            raise ValueError(f"planning entry {self.id} is {self.status}, expected PENDING")
        self.status = PlanningStatus.IN_PROGRESS

    def finish(self) -> None:
        self.status = PlanningStatus.COMPLETED

    def reopen(self) -> None:
        """Hand the slot back after a cancelled session."""
        if self.status is PlanningStatus.IN_PROGRESS:
            self.status = PlanningStatus.PENDING
