"""In-process event publishers."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from weighbridge.domain.events import WorkflowEvent
    from weighbridge.domain.ports import EventPublisher

log = getLogger(__name__)


class LoggingEventPublisher:
    """Write every event to the log; the default when no dashboard is configured."""

    def publish(self, event: WorkflowEvent) -> None:
        log.info(f"{event.name} session={event.session_id}")


class CompositePublisher:
    """Fan an event out to several publishers; one failing does not stop the others."""

    def __init__(self, publishers: Iterable[EventPublisher]) -> None:
        self._publishers = tuple(publishers)

    def publish(self, event: WorkflowEvent) -> None:
        for publisher in self._publishers:
            try:
                publisher.publish(event)
            except Exception:
                log.exception(f"{type(publisher).__name__} failed to publish {event.name}")
