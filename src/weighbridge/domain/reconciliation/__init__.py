"""Reconciliation of completed weighings into the historical store.

Layered flow per session:
1) idempotency check by ticket
2) entity resolution by natural key
3) insert and confirm
4) anything else defers the session to the next sweep
"""

from __future__ import annotations

from .contracts import (
    ExistingRecord,
    HistoricalRecord,
    ResolvedEntities,
    SweepResult,
    TransferOutcome,
    TransferResult,
)
from .engine import HistoricalUnitOfWorkFactory, ReconciliationEngine
from .resolve import EntityResolver
from .scheduler import ReconciliationScheduler

__all__ = [
    "EntityResolver",
    "ExistingRecord",
    "HistoricalRecord",
    "HistoricalUnitOfWorkFactory",
    "ReconciliationEngine",
    "ReconciliationScheduler",
    "ResolvedEntities",
    "SweepResult",
    "TransferOutcome",
    "TransferResult",
]
