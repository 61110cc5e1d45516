"""operational schema: planning entries, weighing sessions, client quotas

Revision ID: 0001
Revises:
Create Date: 2026-10-19 08:00:00
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_ACTIVE_ONLY = sa.text("state NOT IN ('COMPLETED', 'CANCELLED')")


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False, length=16)


def upgrade() -> None:
    op.create_table(
        "planning_entry",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("planned_on", sa.Date(), nullable=False),
        sa.Column("truck_id", sa.String(length=32), nullable=False),
        sa.Column("client", sa.String(length=255), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("driver_name", sa.String(length=255), nullable=True),
        sa.Column("operation", _enum("operation_kind", "LOAD", "UNLOAD"), nullable=False),
        sa.Column("planned_quantity", sa.Integer(), nullable=True),
        sa.Column("scheduled_time", sa.Time(), nullable=True),
        sa.Column(
            "status",
            _enum("planning_status", "PENDING", "IN_PROGRESS", "COMPLETED"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_planning_entry"),
    )
    op.create_index(
        "ix_planning_entry_truck_day", "planning_entry", ["truck_id", "planned_on"]
    )

    op.create_table(
        "weighing_session",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("planning_id", sa.Uuid(), nullable=False),
        sa.Column("truck_id", sa.String(length=32), nullable=False),
        sa.Column("client", sa.String(length=255), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("operation", _enum("operation_kind", "LOAD", "UNLOAD"), nullable=False),
        sa.Column("planned_quantity", sa.Integer(), nullable=True),
        sa.Column(
            "state",
            _enum(
                "weighing_state",
                "ARRIVAL",
                "ENTRY_WEIGHING",
                "LOADING",
                "UNLOADING",
                "EXIT_WEIGHING",
                "COMPLETED",
                "CANCELLED",
            ),
            nullable=False,
        ),
        sa.Column("entry_weight", sa.Integer(), nullable=True),
        sa.Column("exit_weight", sa.Integer(), nullable=True),
        sa.Column("tare", sa.Integer(), nullable=True),
        sa.Column("gross", sa.Integer(), nullable=True),
        sa.Column("net", sa.Integer(), nullable=True),
        sa.Column("ticket_number", sa.Integer(), nullable=True),
        sa.Column("arrived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("entry_weighing_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("zone_entry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("exit_weighing_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "transfer_status",
            _enum("transfer_status", "PENDING", "CONFIRMED", "QUARANTINED"),
            nullable=False,
        ),
        sa.Column("transferred_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("historical_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(
            ["planning_id"],
            ["planning_entry.id"],
            name="fk_weighing_session_planning_id_planning_entry",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_weighing_session"),
        sa.UniqueConstraint("ticket_number", name="uq_weighing_session_ticket_number"),
    )
    op.create_index("ix_weighing_session_state", "weighing_session", ["state"])
    op.create_index("ix_weighing_session_truck_id", "weighing_session", ["truck_id"])
    op.create_index(
        "ix_weighing_session_transfer",
        "weighing_session",
        ["state", "transfer_status", "completed_at"],
    )
    op.create_index(
        "uq_weighing_session_active_truck",
        "weighing_session",
        ["truck_id"],
        unique=True,
        sqlite_where=_ACTIVE_ONLY,
        postgresql_where=_ACTIVE_ONLY,
    )

    op.create_table(
        "client_quota",
        sa.Column("client", sa.String(length=255), nullable=False),
        sa.Column("total", sa.Integer(), nullable=False),
        sa.Column("consumed", sa.Integer(), nullable=False),
        sa.Column("blocked", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("blocked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("client", name="pk_client_quota"),
    )


def downgrade() -> None:
    op.drop_table("client_quota")
    op.drop_index("uq_weighing_session_active_truck", table_name="weighing_session")
    op.drop_index("ix_weighing_session_transfer", table_name="weighing_session")
    op.drop_index("ix_weighing_session_truck_id", table_name="weighing_session")
    op.drop_index("ix_weighing_session_state", table_name="weighing_session")
    op.drop_table("weighing_session")
    op.drop_index("ix_planning_entry_truck_day", table_name="planning_entry")
    op.drop_table("planning_entry")
