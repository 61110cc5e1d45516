"""Port for pushing workflow notifications to dashboards."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from weighbridge.domain.events import WorkflowEvent


@runtime_checkable
class EventPublisher(Protocol):
    """Receives every event the orchestrator emits. Must not block for long."""

    def publish(self, event: WorkflowEvent) -> None: ...


__all__ = ["EventPublisher"]
