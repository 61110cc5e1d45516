"""Weighing workflow orchestration.

The orchestrator is the only writer of weighing sessions. Every command runs
under a lock keyed by the session (arrivals: by the truck), loads the session
through a fresh unit of work, applies one transition and commits. Bridge grants
are only given back after the commit and outside the session lock, so a grant
listener that advances the next session never runs while another session lock
is held by the same thread.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from weighbridge.domain.errors import (
    BridgeBusy,
    DuplicateTicket,
    InvalidTransition,
    NotPlanned,
    QuotaBlocked,
    SessionNotFound,
    StaleReading,
    WeighbridgeError,
)
from weighbridge.domain.events import (
    BridgeGranted,
    StateChanged,
    TruckArrived,
    WeighingCancelled,
    WeighingCompleted,
    WeightUpdated,
)
from weighbridge.domain.model import (
    ZERO_TONS,
    Stability,
    WeighingSession,
    WeighingState,
    WeighPhase,
)
from weighbridge.domain.workflow.bridge import Queued
from weighbridge.domain.workflow.locks import KeyedLocks
from weighbridge.domain.workflow.quota import Blocked

if TYPE_CHECKING:
    from collections.abc import Sequence
    from decimal import Decimal
    from uuid import UUID

    from weighbridge.domain.events import WorkflowEvent
    from weighbridge.domain.model import PlanningEntry, QuotaRecord
    from weighbridge.domain.ports import (
        EventPublisher,
        OperationalUnitOfWork,
        QuotaRepository,
        SessionRepository,
    )
    from weighbridge.domain.workflow.bridge import BridgeAdmissionController, BridgeSnapshot
    from weighbridge.domain.workflow.quota import QuotaLedger
    from weighbridge.domain.workflow.sequence import SequenceAllocator

type OperationalUnitOfWorkFactory = Callable[[], OperationalUnitOfWork]
type TransferHook = Callable[[UUID], object]

log = getLogger(__name__)

_PHASE_TARGET = {
    WeighPhase.ENTRY: WeighingState.ENTRY_WEIGHING,
    WeighPhase.EXIT: WeighingState.EXIT_WEIGHING,
}


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class WeighingOrchestrator:
    """Drive weighing sessions from arrival to completion or cancellation.

    ``transfer`` is the optional fast path into the historical store; it is
    called once a completion has been committed and must not raise.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: OperationalUnitOfWorkFactory,
        bridge: BridgeAdmissionController,
        sequence: SequenceAllocator,
        ledger: QuotaLedger,
        publisher: EventPublisher,
        clock: Callable[[], datetime] = _utcnow,
        advance_on_grant: bool = True,
        transfer: TransferHook | None = None,
    ) -> None:
        self._unit_of_work_factory = unit_of_work_factory
        self._bridge = bridge
        self._sequence = sequence
        self._ledger = ledger
        self._publisher = publisher
        self._clock = clock
        self._advance_on_grant = advance_on_grant
        self._transfer = transfer
        self._locks = KeyedLocks()
        bridge.add_grant_listener(self._on_grant)

    # -- inbound commands --------------------------------------------------------

    def handle_arrival(self, truck_id: str) -> WeighingSession:
        """Open a session for a planned truck, or return the one already open."""

        with self._locks.hold(("truck", truck_id)), self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            existing = repositories.sessions.find_active_by_truck(truck_id)
            if existing is not None:
                log.info(f"Truck {truck_id} already has session {existing.id} ({existing.state})")
                self._publish(_arrived(existing, existing=True))
                return existing

            now = self._clock()
            planning = repositories.planning.find_pending(truck_id, now.date())
            if planning is None:
                log.warning(f"Arrival of unplanned truck {truck_id} rejected")
                raise NotPlanned(truck_id)
            self._ensure_quota(repositories.quotas, planning.client)

            session = WeighingSession.open(planning, at=now)
            planning.start()
            repositories.sessions.add(session)
            repositories.planning.update(planning)
            uow.commit()

        log.info(f"Session {session.id} opened for truck {truck_id} ({session.operation})")
        self._publish(_arrived(session))
        return session

    def request_entry_weighing(self, session_id: UUID) -> WeighingSession:
        """Move an arrived truck onto the bridge, or raise ``BridgeBusy`` while queued."""

        return self._take_bridge(session_id, WeighPhase.ENTRY)

    def request_exit_weighing(self, session_id: UUID) -> WeighingSession:
        """Bring a truck back from its zone onto the bridge for the second weighing."""

        return self._take_bridge(session_id, WeighPhase.EXIT)

    def report_weight(
        self,
        session_id: UUID,
        phase: WeighPhase,
        weight: Decimal | float | str,
        stability: Stability = Stability.UNSTABLE,
    ) -> Decimal:
        """Store a scale reading for the session holding the bridge."""

        with self._locks.hold(session_id), self._unit_of_work_factory() as uow:
            sessions = uow.repositories.sessions
            session = _load(sessions, session_id)
            if not self._bridge.is_held_by(session_id):
                raise StaleReading(
                    f"{phase} reading for session {session_id} rejected, it does not hold the bridge"
                )
            tons = session.record_weight(phase, weight)
            sessions.update(session)
            uow.commit()
            event = WeightUpdated(
                session_id=session_id,
                weight=tons,
                phase=phase,
                stability=stability,
                derived=session.derived,
                occurred_at=self._clock(),
            )

        self._publish(event)
        return tons

    def request_zone_transition(self, session_id: UUID) -> WeighingSession:
        """Leave the bridge for the loading or unloading zone."""

        with self._locks.hold(session_id), self._unit_of_work_factory() as uow:
            sessions = uow.repositories.sessions
            session = _load(sessions, session_id)
            if session.state is session.zone_state:
                return session
            old_state = session.state
            now = self._clock()
            session.enter_zone(at=now)
            sessions.update(session)
            uow.commit()

        self._publish(_changed(session, old_state, at=now))
        self._bridge.release(session_id)
        return session

    def complete(self, session_id: UUID) -> WeighingSession:
        """Finish the exit weighing: ticket, quota debit and state flip in one commit."""

        with self._locks.hold(session_id), self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            session = _load(repositories.sessions, session_id)
            if session.state is WeighingState.COMPLETED:
                return session
            breakdown = session.check_completable()

            ticket = self._sequence.next()
            if repositories.sessions.ticket_exists(ticket):
                log.critical(f"Ticket {ticket} is already assigned in the operational store")
                raise DuplicateTicket(ticket, "already assigned in the operational store")

            old_state = session.state
            now = self._clock()
            remaining = self._ledger.debit(repositories.quotas, session.client, breakdown.net)
            session.complete(ticket, at=now)
            repositories.sessions.update(session)
            planning = repositories.planning.get(session.planning_id)
            if planning is not None:
                planning.finish()
                repositories.planning.update(planning)
            uow.commit()

        if remaining is not None:
            log.info(
                f"Session {session_id} completed with ticket {ticket}: net {breakdown.net} t, "
                f"{session.client} has {remaining} t left"
            )
        else:
            log.info(f"Session {session_id} completed with ticket {ticket}: net {breakdown.net} t")
        self._publish(
            _changed(session, old_state, at=now),
            WeighingCompleted(
                session_id=session_id,
                ticket_number=ticket,
                net_weight=breakdown.net,
                client=session.client,
                occurred_at=now,
            ),
        )
        self._bridge.release(session_id)
        self._transfer_now(session_id)
        return session

    def request_cancel(self, session_id: UUID) -> WeighingSession:
        """Cancel a non-terminal session and give back its bridge grant or queue slot."""

        with self._locks.hold(session_id), self._unit_of_work_factory() as uow:
            repositories = uow.repositories
            session = _load(repositories.sessions, session_id)
            if session.state is WeighingState.CANCELLED:
                return session
            old_state = session.state
            now = self._clock()
            session.cancel(at=now)
            repositories.sessions.update(session)
            planning = repositories.planning.get(session.planning_id)
            if planning is not None:
                planning.reopen()
                repositories.planning.update(planning)
            uow.commit()

        log.info(f"Session {session_id} of truck {session.truck_id} cancelled in {old_state}")
        self._publish(
            _changed(session, old_state, at=now),
            WeighingCancelled(
                session_id=session_id,
                truck_id=session.truck_id,
                previous_state=old_state,
                occurred_at=now,
            ),
        )
        self._bridge.relinquish(session_id)
        return session

    # -- planning and quotas -------------------------------------------------------

    def schedule_planning(self, entry: PlanningEntry) -> PlanningEntry:
        with self._unit_of_work_factory() as uow:
            uow.repositories.planning.add(entry)
            uow.commit()
        log.info(f"Planned truck {entry.truck_id} for {entry.client} on {entry.planned_on}")
        return entry

    def upsert_quota(
        self, client: str, *, total: Decimal, consumed: Decimal = ZERO_TONS
    ) -> QuotaRecord:
        with self._unit_of_work_factory() as uow:
            record = self._ledger.reset(
                uow.repositories.quotas, client, total=total, consumed=consumed
            )
            uow.commit()
        return record

    def list_quotas(self) -> list[QuotaRecord]:
        with self._unit_of_work_factory() as uow:
            return list(uow.repositories.quotas.list_all())

    # -- read side -----------------------------------------------------------------

    def get_session(self, session_id: UUID) -> WeighingSession:
        with self._unit_of_work_factory() as uow:
            return _load(uow.repositories.sessions, session_id)

    def active_sessions(self, state: WeighingState | None = None) -> Sequence[WeighingSession]:
        with self._unit_of_work_factory() as uow:
            return list(uow.repositories.sessions.list_active(state))

    def bridge_snapshot(self) -> BridgeSnapshot:
        return self._bridge.snapshot()

    def restore_bridge(self) -> BridgeSnapshot:
        """Hand the bridge back to sessions stored mid-weighing by an earlier run."""

        with self._unit_of_work_factory() as uow:
            on_bridge = [
                session
                for session in uow.repositories.sessions.list_active()
                if session.state.on_bridge
            ]
        on_bridge.sort(key=_on_bridge_since)
        return self._bridge.restore(session.id for session in on_bridge)

    # -- internals -----------------------------------------------------------------

    def _take_bridge(self, session_id: UUID, phase: WeighPhase) -> WeighingSession:
        target = _PHASE_TARGET[phase]
        give_back = False
        try:
            with self._locks.hold(session_id), self._unit_of_work_factory() as uow:
                repositories = uow.repositories
                session = _load(repositories.sessions, session_id)
                if session.state is target:
                    # after a restart the stored state may outlive the in-memory grant
                    admission = self._bridge.request_occupancy(session_id)
                    if isinstance(admission, Queued):
                        raise BridgeBusy(session_id, admission.position)
                    return session
                if not session.can_transition(target):
                    raise InvalidTransition(
                        f"session {session_id}: {session.state} -> {target} is not allowed",
                        state=session.state,
                    )
                if phase is WeighPhase.ENTRY:
                    try:
                        self._ensure_quota(repositories.quotas, session.client)
                    except QuotaBlocked:
                        give_back = True
                        raise

                admission = self._bridge.request_occupancy(session_id)
                if isinstance(admission, Queued):
                    raise BridgeBusy(session_id, admission.position)
                give_back = True

                old_state = session.state
                now = self._clock()
                if phase is WeighPhase.ENTRY:
                    session.begin_entry_weighing(at=now)
                else:
                    session.begin_exit_weighing(at=now)
                repositories.sessions.update(session)
                uow.commit()
                give_back = False
        finally:
            if give_back:
                self._bridge.relinquish(session_id)

        self._publish(_changed(session, old_state, at=now))
        return session

    def _ensure_quota(self, quotas: QuotaRepository, client: str) -> None:
        verdict = self._ledger.check_available(quotas, client)
        if isinstance(verdict, Blocked):
            log.warning(f"Admission for {client} refused: {verdict.reason}")
            raise QuotaBlocked(client, verdict.reason)

    def _on_grant(self, session_id: UUID) -> None:
        with self._locks.hold(session_id), self._unit_of_work_factory() as uow:
            session = uow.repositories.sessions.get(session_id)
            state = None if session is None else session.state

        if state is None or state.is_terminal:
            log.info(f"Bridge granted to finished session {session_id}, passing it on")
            self._bridge.release(session_id)
            return

        self._publish(BridgeGranted(session_id=session_id, occurred_at=self._clock()))
        if not self._advance_on_grant:
            return
        if state is WeighingState.ARRIVAL:
            phase = WeighPhase.ENTRY
        elif state.in_zone:
            phase = WeighPhase.EXIT
        else:
            return
        try:
            self._take_bridge(session_id, phase)
        except WeighbridgeError as exc:
            log.warning(f"Automatic {phase} weighing for session {session_id} failed: {exc}")

    def _transfer_now(self, session_id: UUID) -> None:
        if self._transfer is None:
            return
        try:
            self._transfer(session_id)
        except Exception:
            log.exception(f"Immediate transfer of session {session_id} failed, left to the sweep")

    def _publish(self, *events: WorkflowEvent) -> None:
        for event in events:
            try:
                self._publisher.publish(event)
            except Exception:
                log.exception(f"Publishing {event.name} for session {event.session_id} failed")


def _load(sessions: SessionRepository, session_id: UUID) -> WeighingSession:
    session = sessions.get(session_id)
    if session is None:
        raise SessionNotFound(session_id)
    return session


def _on_bridge_since(session: WeighingSession) -> datetime:
    since = (
        session.exit_weighing_at
        if session.state is WeighingState.EXIT_WEIGHING
        else session.entry_weighing_at
    )
    return since or session.arrived_at or datetime.min.replace(tzinfo=UTC)


def _arrived(session: WeighingSession, *, existing: bool = False) -> TruckArrived:
    return TruckArrived(
        session_id=session.id,
        truck_id=session.truck_id,
        client=session.client,
        product_name=session.product_name,
        state=session.state,
        existing=existing,
    )


def _changed(session: WeighingSession, old_state: WeighingState, *, at: datetime) -> StateChanged:
    return StateChanged(
        session_id=session.id,
        old_state=old_state,
        new_state=session.state,
        truck_id=session.truck_id,
        occurred_at=at,
    )
