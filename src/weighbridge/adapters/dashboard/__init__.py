"""Dashboard notification adapter."""

from __future__ import annotations

from .client import DashboardWebhookPublisher
from .schema import EventPayload, payload_for

__all__ = ["DashboardWebhookPublisher", "EventPayload", "payload_for"]
