"""Live weighing workflow: bridge admission, tickets, quotas and orchestration."""

from __future__ import annotations

from .bridge import Admission, BridgeAdmissionController, BridgeSnapshot, Granted, Queued
from .locks import KeyedLocks
from .orchestrator import OperationalUnitOfWorkFactory, WeighingOrchestrator
from .quota import Available, Blocked, QuotaCheck, QuotaLedger
from .sequence import DEFAULT_TICKET_BASE, SequenceAllocator

__all__ = [
    "DEFAULT_TICKET_BASE",
    "Admission",
    "Available",
    "Blocked",
    "BridgeAdmissionController",
    "BridgeSnapshot",
    "Granted",
    "KeyedLocks",
    "OperationalUnitOfWorkFactory",
    "QuotaCheck",
    "QuotaLedger",
    "Queued",
    "SequenceAllocator",
    "WeighingOrchestrator",
]
