"""Error taxonomy for the weighing workflow and the historical transfer."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from weighbridge.domain.model.enums import WeighingState


class WeighbridgeError(Exception):
    """Base class for every error raised by the weighing core."""


class BridgeBusy(WeighbridgeError):  # noqa: N818
    """Scheduling signal: the bridge is held by another session, retry once granted."""

    def __init__(self, session_id: UUID, position: int) -> None:
        super().__init__(f"Bridge busy, session {session_id} queued at position {position}")
        self.session_id = session_id
        self.position = position


class StaleReading(WeighbridgeError):  # noqa: N818
    """A scale reading arrived for a session that is not on the bridge for that phase."""


class InvalidTransition(WeighbridgeError):  # noqa: N818
    """A guard rejected the requested transition; the session is unchanged."""

    def __init__(self, message: str, *, state: WeighingState | None = None) -> None:
        super().__init__(message)
        self.state = state


class InvalidWeight(WeighbridgeError, ValueError):  # noqa: N818
    """A weight value cannot be represented as a non-negative tonnage."""


class QuotaBlocked(WeighbridgeError):  # noqa: N818
    """Admission refused because the client exceeded its allotment."""

    def __init__(self, client: str, reason: str) -> None:
        super().__init__(f"Client {client!r} blocked: {reason}")
        self.client = client
        self.reason = reason


class NotPlanned(WeighbridgeError):  # noqa: N818
    """The truck has no pending planning entry for the day."""

    def __init__(self, truck_id: str) -> None:
        super().__init__(f"Truck {truck_id!r} is not planned")
        self.truck_id = truck_id


class SessionNotFound(WeighbridgeError, LookupError):  # noqa: N818
    """No weighing session exists for the given identifier."""

    def __init__(self, session_id: UUID) -> None:
        super().__init__(f"Weighing session {session_id} not found")
        self.session_id = session_id


class DuplicateTicket(WeighbridgeError):  # noqa: N818
    """A ticket number was observed twice. Requires manual intervention."""

    def __init__(self, ticket_number: int, detail: str = "") -> None:
        message = f"Duplicate ticket {ticket_number}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.ticket_number = ticket_number


class TransferDeferred(WeighbridgeError):  # noqa: N818
    """The historical store could not take the record now; the next sweep retries."""

    def __init__(self, session_id: UUID, cause: BaseException) -> None:
        super().__init__(f"Transfer of session {session_id} deferred: {cause}")
        self.session_id = session_id
        self.cause = cause


class StoreError(WeighbridgeError):
    """Raised by persistence adapters so the domain never sees driver exceptions."""


class StoreUnavailable(StoreError):  # noqa: N818
    """The backing store cannot be reached or refused the operation."""


class RecordAlreadyExists(StoreError):  # noqa: N818
    """An insert collided with an existing record on a natural key."""
