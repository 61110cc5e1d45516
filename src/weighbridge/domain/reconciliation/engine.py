"""Transfer of completed weighings into the historical store.

Both the sweep and the immediate path after a completion run the same protocol
for one session:

1) look the ticket up in the historical store before writing anything
2) resolve truck, client and product to destination ids (get-or-create)
3) insert the record, treating a unique-ticket collision as "already there"
4) confirm the session in the operational store

A failure anywhere leaves the session pending for the next sweep. The only
outcome that is never retried is a ticket already used by another truck.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from weighbridge.domain.errors import (
    DuplicateTicket,
    RecordAlreadyExists,
    StoreError,
    TransferDeferred,
)
from weighbridge.domain.model import TransferStatus, WeighingState
from weighbridge.domain.workflow.locks import KeyedLocks

from .contracts import HistoricalRecord, SweepResult, TransferOutcome, TransferResult
from .resolve import EntityResolver

if TYPE_CHECKING:
    from uuid import UUID

    from weighbridge.domain.model import WeighingSession
    from weighbridge.domain.ports import HistoricalUnitOfWork, OperationalUnitOfWork

    from .contracts import ExistingRecord

type OperationalUnitOfWorkFactory = Callable[[], OperationalUnitOfWork]
type HistoricalUnitOfWorkFactory = Callable[[], HistoricalUnitOfWork]

log = getLogger(__name__)

DEFAULT_BATCH_SIZE = 10


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(slots=True)
class ReconciliationEngine:
    """Move completed sessions into the historical store, at most once in effect."""

    operational: OperationalUnitOfWorkFactory
    historical: HistoricalUnitOfWorkFactory
    resolver: EntityResolver = field(default_factory=EntityResolver)
    batch_size: int = DEFAULT_BATCH_SIZE
    clock: Callable[[], datetime] = _utcnow
    _locks: KeyedLocks = field(default_factory=KeyedLocks, init=False, repr=False)

    def sweep(self) -> SweepResult:
        """Transfer the oldest pending completions, one bounded batch per call."""

        result = SweepResult()
        try:
            with self.operational() as uow:
                candidates = [
                    session.id
                    for session in uow.repositories.sessions.pending_transfers(self.batch_size)
                ]
        except StoreError as exc:
            log.warning(f"Reconciliation sweep skipped, operational store unavailable: {exc}")
            result.aborted = True
            return result

        for session_id in candidates:
            result.record(self.transfer_session(session_id))

        if result.attempted:
            log.info(
                f"Reconciliation sweep: confirmed={result.confirmed}, duplicate={result.duplicate}, "
                f"deferred={result.deferred}, quarantined={result.quarantined}"
            )
        return result

    def pending_count(self) -> int:
        with self.operational() as uow:
            return uow.repositories.sessions.count_pending_transfers()

    def transfer_session(self, session_id: UUID) -> TransferResult:
        """Run the transfer protocol for one session. Never raises."""

        with self._locks.hold(session_id):
            try:
                return self._transfer(session_id)
            except Exception as exc:
                deferred = TransferDeferred(session_id, exc)
                log.warning(str(deferred), exc_info=not isinstance(exc, StoreError))
                return TransferResult(
                    session_id=session_id,
                    outcome=TransferOutcome.DEFERRED,
                    reason=str(exc),
                )

    # -- protocol ------------------------------------------------------------------

    def _transfer(self, session_id: UUID) -> TransferResult:
        with self.operational() as uow:
            session = uow.repositories.sessions.get(session_id)
        if (
            session is None
            or session.state is not WeighingState.COMPLETED
            or session.transfer_status is not TransferStatus.PENDING
        ):
            return TransferResult(
                session_id=session_id,
                outcome=TransferOutcome.SKIPPED,
                reason="not a pending completion",
            )

        try:
            outcome, historical_id = self._push(session)
        except DuplicateTicket as exc:
            log.critical(f"{exc}; session {session_id} quarantined for manual review")
            self._settle(session_id, quarantine=True)
            return TransferResult(
                session_id=session_id,
                outcome=TransferOutcome.QUARANTINED,
                ticket_number=session.ticket_number,
                reason=str(exc),
            )

        self._settle(session_id, historical_id=historical_id)
        if outcome is TransferOutcome.DUPLICATE:
            log.info(
                f"Ticket {session.ticket_number} already in the historical store "
                f"(id {historical_id}), session {session_id} confirmed"
            )
        else:
            log.info(
                f"Session {session_id} transferred as historical record {historical_id} "
                f"(ticket {session.ticket_number})"
            )
        return TransferResult(
            session_id=session_id,
            outcome=outcome,
            ticket_number=session.ticket_number,
            historical_id=historical_id,
        )

    def _push(self, session: WeighingSession) -> tuple[TransferOutcome, int]:
        ticket = str(session.ticket_number)
        try:
            with self.historical() as uow:
                repositories = uow.repositories
                existing = repositories.records.find_by_ticket(ticket)
                if existing is not None:
                    return _already_there(session, existing)

                entities = self.resolver.resolve(repositories, session)
                record = HistoricalRecord.from_session(session, entities)
                historical_id = repositories.records.add(record)
                uow.commit()
        except RecordAlreadyExists:
            # lost a race with the other path; the failed transaction is gone, look again
            with self.historical() as uow:
                existing = uow.repositories.records.find_by_ticket(ticket)
            if existing is None:
                raise
            return _already_there(session, existing)
        return TransferOutcome.CONFIRMED, historical_id

    def _settle(
        self, session_id: UUID, *, historical_id: int | None = None, quarantine: bool = False
    ) -> None:
        with self.operational() as uow:
            sessions = uow.repositories.sessions
            session = sessions.get(session_id)
            if session is None:
                return
            if quarantine:
                session.quarantine()
            else:
                session.mark_transferred(historical_id=historical_id, at=self.clock())
            sessions.update(session)
            uow.commit()


def _already_there(
    session: WeighingSession, existing: ExistingRecord
) -> tuple[TransferOutcome, int]:
    if existing.truck_code is not None and existing.truck_code != session.truck_id:
        raise DuplicateTicket(
            session.ticket_number or 0,
            f"historical record {existing.id} belongs to truck {existing.truck_code}, "
            f"session {session.id} to truck {session.truck_id}",
        )
    return TransferOutcome.DUPLICATE, existing.id
