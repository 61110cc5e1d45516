"""Domain port definitions for adapters."""

from __future__ import annotations

from .notifications import EventPublisher
from .persistence import (
    ClientRepository,
    PlanningRepository,
    ProductRepository,
    QuotaRepository,
    Repository,
    SessionRepository,
    TruckRepository,
    WeighingRecordRepository,
)
from .unit_of_work import (
    HistoricalRepositories,
    HistoricalUnitOfWork,
    OperationalRepositories,
    OperationalUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "ClientRepository",
    "EventPublisher",
    "HistoricalRepositories",
    "HistoricalUnitOfWork",
    "OperationalRepositories",
    "OperationalUnitOfWork",
    "PlanningRepository",
    "ProductRepository",
    "QuotaRepository",
    "Repository",
    "RepositoryCollection",
    "SessionRepository",
    "TruckRepository",
    "UnitOfWork",
    "WeighingRecordRepository",
]
