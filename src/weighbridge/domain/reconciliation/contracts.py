"""Shared reconciliation contract components.

This module holds only the value types passed between the transfer stages and
the historical ports:
- destination-side records and resolved reference ids
- per-session transfer outcomes and the per-sweep tally
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date, time
    from decimal import Decimal
    from uuid import UUID

    from weighbridge.domain.model import WeighingSession


@dataclass(frozen=True, slots=True, kw_only=True)
class ExistingRecord:
    """A weighing record already present in the historical store."""

    id: int
    ticket: str
    truck_code: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolvedEntities:
    """Destination-local ids of the reference rows a record points to."""

    truck_id: int
    client_id: int
    product_id: int


@dataclass(frozen=True, slots=True, kw_only=True)
class HistoricalRecord:
    weighed_on: date
    weighed_at: time
    ticket: str
    truck_id: int
    client_id: int
    product_id: int
    gross: Decimal
    tare: Decimal
    net: Decimal

    @classmethod
    def from_session(
        cls, session: WeighingSession, entities: ResolvedEntities
    ) -> HistoricalRecord:
        """Build the record of a completed session.

        Date and time are taken from the completion timestamp in the host's
        local time zone, which is how the historical store is read.
        """

        if (
            session.completed_at is None
            or session.ticket_number is None
            or session.gross is None
            or session.tare is None
            or session.net is None
        ):
            raise ValueError(f"session {session.id} is not a complete weighing")
        local = session.completed_at.astimezone()
        return cls(
            weighed_on=local.date(),
            weighed_at=local.time().replace(microsecond=0, tzinfo=None),
            ticket=str(session.ticket_number),
            truck_id=entities.truck_id,
            client_id=entities.client_id,
            product_id=entities.product_id,
            gross=session.gross,
            tare=session.tare,
            net=session.net,
        )


class TransferOutcome(StrEnum):
    """What one transfer attempt did for one session."""

    CONFIRMED = "confirmed"
    DUPLICATE = "duplicate"
    DEFERRED = "deferred"
    QUARANTINED = "quarantined"
    SKIPPED = "skipped"


@dataclass(frozen=True, slots=True, kw_only=True)
class TransferResult:
    session_id: UUID
    outcome: TransferOutcome
    ticket_number: int | None = None
    historical_id: int | None = None
    reason: str | None = None

    @property
    def settled(self) -> bool:
        return self.outcome in {TransferOutcome.CONFIRMED, TransferOutcome.DUPLICATE}


@dataclass(slots=True)
class SweepResult:
    """Tally of one sweep. ``aborted`` means the candidates could not be listed."""

    confirmed: int = 0
    duplicate: int = 0
    deferred: int = 0
    quarantined: int = 0
    skipped: int = 0
    aborted: bool = False

    def record(self, result: TransferResult) -> None:
        match result.outcome:
            case TransferOutcome.CONFIRMED:
                self.confirmed += 1
            case TransferOutcome.DUPLICATE:
                self.duplicate += 1
            case TransferOutcome.DEFERRED:
                self.deferred += 1
            case TransferOutcome.QUARANTINED:
                self.quarantined += 1
            case TransferOutcome.SKIPPED:
                self.skipped += 1

    @property
    def attempted(self) -> int:
        return self.confirmed + self.duplicate + self.deferred + self.quarantined + self.skipped

    @property
    def struggling(self) -> bool:
        """True when the sweep made no progress because the stores kept failing."""
        return self.aborted or (self.deferred > 0 and self.confirmed + self.duplicate == 0)
