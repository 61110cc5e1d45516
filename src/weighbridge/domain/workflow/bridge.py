"""Admission control for the single weighbridge."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

log = getLogger(__name__)

type GrantListener = Callable[[UUID], None]


@dataclass(frozen=True, slots=True)
class Granted:
    session_id: UUID


@dataclass(frozen=True, slots=True)
class Queued:
    session_id: UUID
    position: int  # 1-based among waiters


type Admission = Granted | Queued


@dataclass(frozen=True, slots=True)
class BridgeSnapshot:
    holder: UUID | None
    waiting: tuple[UUID, ...]


class BridgeAdmissionController:
    """One holder at a time, strict FIFO among waiters.

    A session asks once per bridge phase (entry, exit); each request joins the
    tail of the queue. Listeners are told about grants that happen on release;
    a grant returned directly from :meth:`request_occupancy` is not broadcast
    because the caller already observes it. Listeners run outside the lock.
    """

    def __init__(self) -> None:
        self._holder: UUID | None = None
        self._waiting: deque[UUID] = deque()
        self._condition = threading.Condition()
        self._listeners: list[GrantListener] = []

    def add_grant_listener(self, listener: GrantListener) -> None:
        with self._condition:
            self._listeners.append(listener)

    @property
    def holder(self) -> UUID | None:
        with self._condition:
            return self._holder

    def is_held_by(self, session_id: UUID) -> bool:
        with self._condition:
            return self._holder == session_id

    def position(self, session_id: UUID) -> int | None:
        with self._condition:
            return self._position_locked(session_id)

    def snapshot(self) -> BridgeSnapshot:
        with self._condition:
            return BridgeSnapshot(holder=self._holder, waiting=tuple(self._waiting))

    def request_occupancy(self, session_id: UUID) -> Admission:
        with self._condition:
            if self._holder == session_id:
                return Granted(session_id)
            position = self._position_locked(session_id)
            if position is not None:
                return Queued(session_id, position)
            if self._holder is None and not self._waiting:
                self._holder = session_id
                log.debug(f"Bridge granted to {session_id}")
                return Granted(session_id)
            self._waiting.append(session_id)
            position = len(self._waiting)
        log.info(f"Session {session_id} queued for the bridge at position {position}")
        return Queued(session_id, position)

    def release(self, session_id: UUID) -> UUID | None:
        """Free the bridge if ``session_id`` holds it; return the next grantee.

        Releasing a bridge the caller does not hold is a no-op.
        """

        with self._condition:
            if self._holder != session_id:
                return None
            self._holder = self._waiting.popleft() if self._waiting else None
            granted = self._holder
            listeners = tuple(self._listeners)
            self._condition.notify_all()
        log.debug(f"Bridge released by {session_id}, next holder {granted}")
        if granted is not None:
            self._notify(granted, listeners)
        return granted

    def withdraw(self, session_id: UUID) -> bool:
        """Remove a waiting session from the queue; return whether it was queued."""

        with self._condition:
            try:
                self._waiting.remove(session_id)
            except ValueError:
                return False
        log.info(f"Session {session_id} withdrawn from the bridge queue")
        return True

    def relinquish(self, session_id: UUID) -> UUID | None:
        """Release the bridge or leave the queue, whichever applies to ``session_id``."""

        with self._condition:
            holding = self._holder == session_id
        if holding:
            return self.release(session_id)
        self.withdraw(session_id)
        return None

    def restore(self, session_ids: Iterable[UUID]) -> BridgeSnapshot:
        """Re-admit sessions a previous run left on the bridge, in the given order.

        The first one becomes the holder when the bridge is free; the others
        wait behind it. No listener is told.
        """

        with self._condition:
            for session_id in session_ids:
                if self._holder == session_id or session_id in self._waiting:
                    continue
                if self._holder is None:
                    self._holder = session_id
                else:
                    self._waiting.append(session_id)
            self._condition.notify_all()
            snapshot = BridgeSnapshot(holder=self._holder, waiting=tuple(self._waiting))
        if snapshot.holder is not None:
            log.info(f"Bridge restored to session {snapshot.holder}")
        if snapshot.waiting:
            log.warning(f"Sessions {list(snapshot.waiting)} were also on the bridge, queued")
        return snapshot

    def wait_for_grant(self, session_id: UUID, timeout: float | None = None) -> bool:
        """Block until ``session_id`` holds the bridge or ``timeout`` expires."""

        with self._condition:
            return self._condition.wait_for(lambda: self._holder == session_id, timeout)

    def _position_locked(self, session_id: UUID) -> int | None:
        for index, waiting in enumerate(self._waiting, start=1):
            if waiting == session_id:
                return index
        return None

    @staticmethod
    def _notify(session_id: UUID, listeners: tuple[GrantListener, ...]) -> None:
        for listener in listeners:
            try:
                listener(session_id)
            except Exception:
                log.exception(f"Bridge grant listener failed for session {session_id}")
