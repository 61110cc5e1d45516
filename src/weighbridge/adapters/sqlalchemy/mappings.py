"""SQLAlchemy table metadata for the operational and historical stores."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Time,
    TypeDecorator,
    Uuid,
    false,
    true,
)

from weighbridge.domain.model import (
    OperationKind,
    PlanningStatus,
    TransferStatus,
    WeighingState,
)
from weighbridge.domain.model.primitives import kilograms_to_tons, tons_to_kilograms

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]

NAMING_CONVENTION: Final[dict[str, str]] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

TERMINAL_STATES: Final[tuple[WeighingState, ...]] = tuple(
    state for state in WeighingState if state.is_terminal
)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class FixedPointTons(TypeDecorator[Decimal]):
    """Tons with three decimals, stored as integer kilograms."""

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Dialect) -> int | None:
        _ = dialect
        if value is None:
            return None
        return tons_to_kilograms(value)

    def process_result_value(self, value: int | None, dialect: Dialect) -> Decimal | None:
        _ = dialect
        if value is None:
            return None
        return kilograms_to_tons(value)


def _enum(enum_cls: type[StrEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        length=16,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


# Operational store -----------------------------------------------------------------

operational_metadata = MetaData(naming_convention=NAMING_CONVENTION)

planning_entry_table = Table(
    "planning_entry",
    operational_metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("planned_on", Date, nullable=False),
    Column("truck_id", String(32), nullable=False),
    Column("client", String(255), nullable=False),
    Column("product_id", Integer, nullable=False),
    Column("product_name", String(255)),
    Column("driver_name", String(255)),
    Column("operation", _enum(OperationKind, "operation_kind"), nullable=False),
    Column("planned_quantity", FixedPointTons()),
    Column("scheduled_time", Time),
    Column(
        "status",
        _enum(PlanningStatus, "planning_status"),
        nullable=False,
        default=PlanningStatus.PENDING,
    ),
    Index("ix_planning_entry_truck_day", "truck_id", "planned_on"),
)

weighing_session_table = Table(
    "weighing_session",
    operational_metadata,
    Column("id", UUIDColumnType, primary_key=True),
    Column("planning_id", UUIDColumnType, ForeignKey("planning_entry.id"), nullable=False),
    Column("truck_id", String(32), nullable=False),
    Column("client", String(255), nullable=False),
    Column("product_id", Integer, nullable=False),
    Column("product_name", String(255)),
    Column("operation", _enum(OperationKind, "operation_kind"), nullable=False),
    Column("planned_quantity", FixedPointTons()),
    Column("state", _enum(WeighingState, "weighing_state"), nullable=False, index=True),
    Column("entry_weight", FixedPointTons()),
    Column("exit_weight", FixedPointTons()),
    Column("tare", FixedPointTons()),
    Column("gross", FixedPointTons()),
    Column("net", FixedPointTons()),
    Column("ticket_number", Integer, unique=True),
    Column("arrived_at", UTCDateTime()),
    Column("entry_weighing_at", UTCDateTime()),
    Column("zone_entry_at", UTCDateTime()),
    Column("exit_weighing_at", UTCDateTime()),
    Column("completed_at", UTCDateTime()),
    Column("cancelled_at", UTCDateTime()),
    Column(
        "transfer_status",
        _enum(TransferStatus, "transfer_status"),
        nullable=False,
        default=TransferStatus.PENDING,
    ),
    Column("transferred_at", UTCDateTime()),
    Column("historical_id", Integer),
    Index("ix_weighing_session_truck_id", "truck_id"),
    Index("ix_weighing_session_transfer", "state", "transfer_status", "completed_at"),
)

# at most one live session per truck
Index(
    "uq_weighing_session_active_truck",
    weighing_session_table.c.truck_id,
    unique=True,
    sqlite_where=weighing_session_table.c.state.not_in(TERMINAL_STATES),
    postgresql_where=weighing_session_table.c.state.not_in(TERMINAL_STATES),
)

client_quota_table = Table(
    "client_quota",
    operational_metadata,
    Column("client", String(255), primary_key=True),
    Column("total", FixedPointTons(), nullable=False),
    Column("consumed", FixedPointTons(), nullable=False),
    Column("blocked", Boolean, nullable=False, default=False, server_default=false()),
    Column("blocked_at", UTCDateTime()),
    Column("updated_at", UTCDateTime()),
)


# Historical store ------------------------------------------------------------------

historical_metadata = MetaData(naming_convention=NAMING_CONVENTION)

product_table = Table(
    "product",
    historical_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("reference", String(64), nullable=False, unique=True),
    Column("name", String(255), nullable=False),
    Column("price", Numeric(10, 2), nullable=False, server_default="0"),
    Column("active", Boolean, nullable=False, server_default=true()),
)

client_table = Table(
    "client",
    historical_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("product_id", Integer, ForeignKey("product.id")),
    Column("active", Boolean, nullable=False, server_default=true()),
)

truck_table = Table(
    "truck",
    historical_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("code", String(32), nullable=False, unique=True),
    Column("client_id", Integer, ForeignKey("client.id"), nullable=False),
    Column("active", Boolean, nullable=False, server_default=true()),
)

weighing_record_table = Table(
    "weighing_record",
    historical_metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("weighed_on", Date, nullable=False),
    Column("weighed_at", Time, nullable=False),
    Column("ticket", String(32), nullable=False, unique=True),
    Column("truck_id", Integer, ForeignKey("truck.id"), nullable=False),
    Column("client_id", Integer, ForeignKey("client.id"), nullable=False),
    Column("product_id", Integer, ForeignKey("product.id"), nullable=False),
    Column("gross", FixedPointTons(), nullable=False),
    Column("tare", FixedPointTons(), nullable=False),
    Column("net", FixedPointTons(), nullable=False),
)


def create_historical_schema(engine: Engine) -> None:
    """Create the historical tables that do not exist yet.

    The historical store is shared with other tools and is not versioned by
    this application's migrations.
    """

    historical_metadata.create_all(engine, checkfirst=True)
    log.debug("Historical schema ensured")
