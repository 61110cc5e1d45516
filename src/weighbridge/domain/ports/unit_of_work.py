"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from weighbridge.domain.ports.persistence import (
        ClientRepository,
        PlanningRepository,
        ProductRepository,
        QuotaRepository,
        SessionRepository,
        TruckRepository,
        WeighingRecordRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection."""

    @property
    def repositories(self) -> TRepositories: ...  # the repo list itself should be immutable

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class OperationalRepositories(RepositoryCollection):
    """Repositories backing the live workflow."""

    sessions: SessionRepository
    planning: PlanningRepository
    quotas: QuotaRepository


@dataclass(slots=True)
class HistoricalRepositories(RepositoryCollection):
    """Repositories of the long-term historical store."""

    records: WeighingRecordRepository
    trucks: TruckRepository
    clients: ClientRepository
    products: ProductRepository


type OperationalUnitOfWork = UnitOfWork[OperationalRepositories]
type HistoricalUnitOfWork = UnitOfWork[HistoricalRepositories]
