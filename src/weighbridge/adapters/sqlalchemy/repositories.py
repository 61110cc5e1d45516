"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import bindparam, func, insert, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError, SQLAlchemyError

from weighbridge.adapters.sqlalchemy.mappings import (
    TERMINAL_STATES,
    FixedPointTons,
    client_quota_table,
    client_table,
    planning_entry_table,
    product_table,
    truck_table,
    weighing_record_table,
    weighing_session_table,
)
from weighbridge.domain.errors import RecordAlreadyExists, StoreError, StoreUnavailable
from weighbridge.domain.model import (
    PlanningEntry,
    PlanningStatus,
    QuotaRecord,
    TransferStatus,
    WeighingSession,
    WeighingState,
)
from weighbridge.domain.reconciliation.contracts import ExistingRecord

if TYPE_CHECKING:
    from datetime import date, datetime
    from decimal import Decimal
    from uuid import UUID

    from sqlalchemy.engine import Row
    from sqlalchemy.orm import Session

    from weighbridge.domain.reconciliation.contracts import HistoricalRecord


@contextmanager
def store_errors() -> Iterator[None]:
    """Translate driver exceptions into the domain's store errors."""

    try:
        yield
    except IntegrityError as exc:
        raise RecordAlreadyExists(str(exc.orig)) from exc
    except OperationalError as exc:
        raise StoreUnavailable(str(exc.orig)) from exc
    except DBAPIError as exc:
        if exc.connection_invalidated:
            raise StoreUnavailable(str(exc.orig)) from exc
        raise StoreError(str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        raise StoreError(str(exc)) from exc


# Operational store -----------------------------------------------------------------

_SESSION_FIELDS = (
    "planning_id",
    "truck_id",
    "client",
    "product_id",
    "product_name",
    "operation",
    "planned_quantity",
    "state",
    "entry_weight",
    "exit_weight",
    "tare",
    "gross",
    "net",
    "ticket_number",
    "arrived_at",
    "entry_weighing_at",
    "zone_entry_at",
    "exit_weighing_at",
    "completed_at",
    "cancelled_at",
    "transfer_status",
    "transferred_at",
    "historical_id",
)

_PLANNING_FIELDS = (
    "planned_on",
    "truck_id",
    "client",
    "product_id",
    "product_name",
    "driver_name",
    "operation",
    "planned_quantity",
    "scheduled_time",
    "status",
)


def _values(entity: object, fields: tuple[str, ...]) -> dict[str, Any]:
    return {name: getattr(entity, name) for name in fields}


def _session_from_row(row: Row[Any]) -> WeighingSession:
    mapping = row._mapping  # noqa: SLF001
    return WeighingSession(id=mapping["id"], **{name: mapping[name] for name in _SESSION_FIELDS})


def _planning_from_row(row: Row[Any]) -> PlanningEntry:
    mapping = row._mapping  # noqa: SLF001
    return PlanningEntry(id=mapping["id"], **{name: mapping[name] for name in _PLANNING_FIELDS})


def _quota_from_row(row: Row[Any]) -> QuotaRecord:
    return QuotaRecord(
        client=row.client,
        total=row.total,
        consumed=row.consumed,
        blocked=bool(row.blocked),
        blocked_at=row.blocked_at,
        updated_at=row.updated_at,
    )


class SqlAlchemySessionRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: WeighingSession) -> None:
        stmt = insert(weighing_session_table).values(
            id=entity.id, **_values(entity, _SESSION_FIELDS)
        )
        with store_errors():
            self.session.execute(stmt)

    def update(self, entity: WeighingSession) -> None:
        stmt = (
            update(weighing_session_table)
            .where(weighing_session_table.c.id == entity.id)
            .values(**_values(entity, _SESSION_FIELDS))
        )
        with store_errors():
            self.session.execute(stmt)

    def get(self, session_id: UUID) -> WeighingSession | None:
        stmt = select(weighing_session_table).where(weighing_session_table.c.id == session_id)
        with store_errors():
            row = self.session.execute(stmt).one_or_none()
        return None if row is None else _session_from_row(row)

    def find_active_by_truck(self, truck_id: str) -> WeighingSession | None:
        stmt = (
            select(weighing_session_table)
            .where(weighing_session_table.c.truck_id == truck_id)
            .where(weighing_session_table.c.state.not_in(TERMINAL_STATES))
            .limit(1)
        )
        with store_errors():
            row = self.session.execute(stmt).one_or_none()
        return None if row is None else _session_from_row(row)

    def list_active(self, state: WeighingState | None = None) -> list[WeighingSession]:
        stmt = select(weighing_session_table).order_by(weighing_session_table.c.arrived_at)
        if state is None:
            stmt = stmt.where(weighing_session_table.c.state.not_in(TERMINAL_STATES))
        else:
            stmt = stmt.where(weighing_session_table.c.state == state)
        with store_errors():
            rows = self.session.execute(stmt).all()
        return [_session_from_row(row) for row in rows]

    def pending_transfers(self, limit: int) -> list[WeighingSession]:
        stmt = (
            select(weighing_session_table)
            .where(weighing_session_table.c.state == WeighingState.COMPLETED)
            .where(weighing_session_table.c.transfer_status == TransferStatus.PENDING)
            .order_by(weighing_session_table.c.completed_at, weighing_session_table.c.ticket_number)
            .limit(limit)
        )
        with store_errors():
            rows = self.session.execute(stmt).all()
        return [_session_from_row(row) for row in rows]

    def count_pending_transfers(self) -> int:
        stmt = (
            select(func.count())
            .select_from(weighing_session_table)
            .where(weighing_session_table.c.state == WeighingState.COMPLETED)
            .where(weighing_session_table.c.transfer_status == TransferStatus.PENDING)
        )
        with store_errors():
            return self.session.execute(stmt).scalar_one()

    def ticket_exists(self, ticket_number: int) -> bool:
        stmt = (
            select(weighing_session_table.c.id)
            .where(weighing_session_table.c.ticket_number == ticket_number)
            .limit(1)
        )
        with store_errors():
            return self.session.execute(stmt).first() is not None

    def max_ticket(self) -> int | None:
        stmt = select(func.max(weighing_session_table.c.ticket_number))
        with store_errors():
            return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyPlanningRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: PlanningEntry) -> None:
        stmt = insert(planning_entry_table).values(
            id=entity.id, **_values(entity, _PLANNING_FIELDS)
        )
        with store_errors():
            self.session.execute(stmt)

    def update(self, entity: PlanningEntry) -> None:
        stmt = (
            update(planning_entry_table)
            .where(planning_entry_table.c.id == entity.id)
            .values(**_values(entity, _PLANNING_FIELDS))
        )
        with store_errors():
            self.session.execute(stmt)

    def get(self, planning_id: UUID) -> PlanningEntry | None:
        stmt = select(planning_entry_table).where(planning_entry_table.c.id == planning_id)
        with store_errors():
            row = self.session.execute(stmt).one_or_none()
        return None if row is None else _planning_from_row(row)

    def find_pending(self, truck_id: str, on_date: date) -> PlanningEntry | None:
        stmt = (
            select(planning_entry_table)
            .where(planning_entry_table.c.truck_id == truck_id)
            .where(planning_entry_table.c.planned_on == on_date)
            .where(planning_entry_table.c.status == PlanningStatus.PENDING)
            .order_by(planning_entry_table.c.scheduled_time)
            .limit(1)
        )
        with store_errors():
            row = self.session.execute(stmt).first()
        return None if row is None else _planning_from_row(row)

    def list_for_day(self, on_date: date) -> list[PlanningEntry]:
        stmt = (
            select(planning_entry_table)
            .where(planning_entry_table.c.planned_on == on_date)
            .order_by(planning_entry_table.c.scheduled_time, planning_entry_table.c.truck_id)
        )
        with store_errors():
            rows = self.session.execute(stmt).all()
        return [_planning_from_row(row) for row in rows]


class SqlAlchemyQuotaRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: QuotaRecord) -> None:
        stmt = insert(client_quota_table).values(**self._values(entity))
        with store_errors():
            self.session.execute(stmt)

    def update(self, entity: QuotaRecord) -> None:
        stmt = (
            update(client_quota_table)
            .where(client_quota_table.c.client == entity.client)
            .values(**self._values(entity))
        )
        with store_errors():
            self.session.execute(stmt)

    def get(self, client: str) -> QuotaRecord | None:
        stmt = select(client_quota_table).where(client_quota_table.c.client == client)
        with store_errors():
            row = self.session.execute(stmt).one_or_none()
        return None if row is None else _quota_from_row(row)

    def add_consumption(
        self, client: str, amount: Decimal, *, at: datetime
    ) -> QuotaRecord | None:
        # the increment happens in the database so concurrent writers never lose an update
        stmt = (
            update(client_quota_table)
            .where(client_quota_table.c.client == client)
            .values(
                consumed=client_quota_table.c.consumed
                + bindparam("amount", amount, type_=FixedPointTons()),
                updated_at=at,
            )
        )
        with store_errors():
            result = self.session.execute(stmt)
        if result.rowcount == 0:
            return None
        return self.get(client)

    def list_all(self) -> list[QuotaRecord]:
        stmt = select(client_quota_table).order_by(client_quota_table.c.client)
        with store_errors():
            rows = self.session.execute(stmt).all()
        return [_quota_from_row(row) for row in rows]

    @staticmethod
    def _values(entity: QuotaRecord) -> dict[str, Any]:
        return {
            "client": entity.client,
            "total": entity.total,
            "consumed": entity.consumed,
            "blocked": entity.blocked,
            "blocked_at": entity.blocked_at,
            "updated_at": entity.updated_at,
        }


# Historical store ------------------------------------------------------------------


class SqlAlchemyWeighingRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_by_ticket(self, ticket: str) -> ExistingRecord | None:
        stmt = (
            select(
                weighing_record_table.c.id,
                weighing_record_table.c.ticket,
                truck_table.c.code,
            )
            .select_from(
                weighing_record_table.outerjoin(
                    truck_table, weighing_record_table.c.truck_id == truck_table.c.id
                )
            )
            .where(weighing_record_table.c.ticket == ticket)
            .limit(1)
        )
        with store_errors():
            row = self.session.execute(stmt).first()
        if row is None:
            return None
        return ExistingRecord(id=row.id, ticket=row.ticket, truck_code=row.code)

    def add(self, record: HistoricalRecord) -> int:
        stmt = insert(weighing_record_table).values(
            weighed_on=record.weighed_on,
            weighed_at=record.weighed_at,
            ticket=record.ticket,
            truck_id=record.truck_id,
            client_id=record.client_id,
            product_id=record.product_id,
            gross=record.gross,
            tare=record.tare,
            net=record.net,
        )
        with store_errors():
            result = self.session.execute(stmt)
        return _inserted_id(result)

    def max_numeric_ticket(self) -> int | None:
        # tickets are strings in this store; only purely numeric ones take part in the sequence
        stmt = select(weighing_record_table.c.ticket)
        with store_errors():
            tickets = self.session.execute(stmt).scalars().all()
        numeric = [int(ticket) for ticket in tickets if ticket and ticket.isdigit()]
        return max(numeric) if numeric else None


class _NaturalKeyRepository:
    """Lookups shared by the historical reference tables."""

    def __init__(self, session: Session, table: Any, key_column: str) -> None:
        self.session = session
        self._table = table
        self._key = table.c[key_column]

    def find_id(self, key: str) -> int | None:
        stmt = select(self._table.c.id).where(self._key == key).limit(1)
        with store_errors():
            return self.session.execute(stmt).scalar_one_or_none()

    def holds(self, entity_id: int, key: str) -> bool:
        # SQLite hands out a rolled-back rowid again, so the id alone proves nothing
        stmt = (
            select(self._table.c.id)
            .where(self._table.c.id == entity_id, self._key == key)
            .limit(1)
        )
        with store_errors():
            return self.session.execute(stmt).first() is not None

    def _insert(self, **values: Any) -> int:
        with store_errors():
            result = self.session.execute(insert(self._table).values(**values))
        return _inserted_id(result)


class SqlAlchemyTruckRepository(_NaturalKeyRepository):
    def __init__(self, session: Session) -> None:
        super().__init__(session, truck_table, "code")

    def add(self, code: str, *, client_id: int) -> int:
        return self._insert(code=code, client_id=client_id)


class SqlAlchemyClientRepository(_NaturalKeyRepository):
    def __init__(self, session: Session) -> None:
        super().__init__(session, client_table, "name")

    def add(self, name: str, *, product_id: int | None) -> int:
        return self._insert(name=name, product_id=product_id)


class SqlAlchemyProductRepository(_NaturalKeyRepository):
    def __init__(self, session: Session) -> None:
        super().__init__(session, product_table, "reference")

    def add(self, reference: str, *, name: str) -> int:
        return self._insert(reference=reference, name=name)


def _inserted_id(result: Any) -> int:
    primary_key = result.inserted_primary_key
    if primary_key is None or primary_key[0] is None:
        raise StoreError("insert did not return a primary key")
    return int(primary_key[0])
