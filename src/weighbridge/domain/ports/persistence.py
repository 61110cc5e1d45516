"""Ports for persisting domain aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from weighbridge.domain.model import PlanningEntry, QuotaRecord, WeighingSession

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import date, datetime
    from decimal import Decimal
    from uuid import UUID

    from weighbridge.domain.model import WeighingState
    from weighbridge.domain.reconciliation.contracts import ExistingRecord, HistoricalRecord


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def update(self, entity: TEntity) -> None: ...


# Operational store ---------------------------------------------------------------


@runtime_checkable
class SessionRepository(Repository[WeighingSession], Protocol):
    """Persistence contract for weighing sessions."""

    def get(self, session_id: UUID) -> WeighingSession | None: ...

    def find_active_by_truck(self, truck_id: str) -> WeighingSession | None: ...

    def list_active(self, state: WeighingState | None = None) -> Sequence[WeighingSession]: ...

    def pending_transfers(self, limit: int) -> Sequence[WeighingSession]: ...

    def count_pending_transfers(self) -> int: ...

    def ticket_exists(self, ticket_number: int) -> bool: ...

    def max_ticket(self) -> int | None: ...


@runtime_checkable
class PlanningRepository(Repository[PlanningEntry], Protocol):
    """Persistence contract for planning entries."""

    def get(self, planning_id: UUID) -> PlanningEntry | None: ...

    def find_pending(self, truck_id: str, on_date: date) -> PlanningEntry | None: ...

    def list_for_day(self, on_date: date) -> Sequence[PlanningEntry]: ...


@runtime_checkable
class QuotaRepository(Repository[QuotaRecord], Protocol):
    """Persistence contract for client quotas."""

    def get(self, client: str) -> QuotaRecord | None: ...

    def add_consumption(
        self, client: str, amount: Decimal, *, at: datetime
    ) -> QuotaRecord | None:
        """Atomically add ``amount`` to ``consumed`` and return the fresh record."""
        ...

    def list_all(self) -> Sequence[QuotaRecord]: ...


# Historical store ----------------------------------------------------------------


@runtime_checkable
class WeighingRecordRepository(Protocol):
    """Append-mostly store of completed weighings, keyed by ticket."""

    def find_by_ticket(self, ticket: str) -> ExistingRecord | None: ...

    def add(self, record: HistoricalRecord) -> int: ...

    def max_numeric_ticket(self) -> int | None: ...


@runtime_checkable
class TruckRepository(Protocol):
    def find_id(self, code: str) -> int | None: ...

    def holds(self, truck_id: int, code: str) -> bool: ...

    def add(self, code: str, *, client_id: int) -> int: ...


@runtime_checkable
class ClientRepository(Protocol):
    def find_id(self, name: str) -> int | None: ...

    def holds(self, client_id: int, name: str) -> bool: ...

    def add(self, name: str, *, product_id: int | None) -> int: ...


@runtime_checkable
class ProductRepository(Protocol):
    def find_id(self, reference: str) -> int | None: ...

    def holds(self, product_id: int, reference: str) -> bool: ...

    def add(self, reference: str, *, name: str) -> int: ...
