"""SQLAlchemy-backed units of work for the operational and historical stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from weighbridge.adapters.sqlalchemy.mappings import create_historical_schema
from weighbridge.adapters.sqlalchemy.migrations import upgrade_head
from weighbridge.adapters.sqlalchemy.repositories import (
    SqlAlchemyClientRepository,
    SqlAlchemyPlanningRepository,
    SqlAlchemyProductRepository,
    SqlAlchemyQuotaRepository,
    SqlAlchemySessionRepository,
    SqlAlchemyTruckRepository,
    SqlAlchemyWeighingRecordRepository,
    store_errors,
)
from weighbridge.domain.errors import StoreError
from weighbridge.domain.ports.unit_of_work import (
    HistoricalRepositories,
    OperationalRepositories,
    RepositoryCollection,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from sqlalchemy.engine import Engine

    from weighbridge.domain.ports import HistoricalUnitOfWork, OperationalUnitOfWork

log = getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


@dataclass(slots=True)
class StoreHandle:
    """An engine and the session factory bound to it."""

    engine: Engine
    session_factory: sessionmaker[Session] = field(init=False)

    def __post_init__(self) -> None:
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def dispose(self) -> None:
        self.engine.dispose()


def build_engine(database_uri: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""

    if database_uri.startswith("sqlite") and ":memory:" in database_uri:
        engine = create_engine(
            database_uri,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(database_uri)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection: object, connection_record: object) -> None:
    _ = connection_record
    cursor = dbapi_connection.cursor()  # type: ignore[attr-defined]
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def open_operational_store(
    *, engine: Engine | None = None, database_uri: str | None = None
) -> StoreHandle:
    """Bring the operational schema to the latest revision and return a handle."""

    resolved = _resolve_engine(engine, database_uri)
    upgrade_head(engine=resolved)
    log.info(f"Operational store ready at {resolved.url.render_as_string(hide_password=True)}")
    return StoreHandle(resolved)


def open_historical_store(
    *, engine: Engine | None = None, database_uri: str | None = None
) -> StoreHandle:
    """Make sure the historical tables exist and return a handle.

    An unreachable historical store is not fatal: the handle is still returned
    and transfers are deferred until it comes back.
    """

    resolved = _resolve_engine(engine, database_uri)
    try:
        with store_errors():
            create_historical_schema(resolved)
    except StoreError as exc:
        log.warning(f"Historical store not reachable at startup: {exc}")
    return StoreHandle(resolved)


def _resolve_engine(engine: Engine | None, database_uri: str | None) -> Engine:
    if engine is not None:
        return engine
    if database_uri is None:
        raise StartupError("Either an engine or a database URI is required")
    return build_engine(database_uri)


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    Leaving the block without :meth:`commit` rolls back.
    """

    def __init__(self, store: StoreHandle) -> None:
        self.session_factory: sessionmaker[Session] = store.session_factory
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            self.rollback()
        except StoreError:
            if exc_type is None:
                raise
            log.warning("Rollback failed while handling an earlier error", exc_info=True)
        finally:
            self.session.close()
            self.session = None
            self._repositories = None
        return False

    def commit(self) -> None:
        with store_errors():
            self.session.commit()

    def rollback(self) -> None:
        with store_errors():
            self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None or self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyOperationalUnitOfWork(BaseSqlAlchemyUnitOfWork[OperationalRepositories]):
    """Unit of work over sessions, planning entries and quotas."""

    def _build_repositories(self, session: Session) -> OperationalRepositories:
        return OperationalRepositories(
            sessions=SqlAlchemySessionRepository(session),
            planning=SqlAlchemyPlanningRepository(session),
            quotas=SqlAlchemyQuotaRepository(session),
        )


class SqlAlchemyHistoricalUnitOfWork(BaseSqlAlchemyUnitOfWork[HistoricalRepositories]):
    """Unit of work over the historical reference tables and weighing records."""

    def _build_repositories(self, session: Session) -> HistoricalRepositories:
        return HistoricalRepositories(
            records=SqlAlchemyWeighingRecordRepository(session),
            trucks=SqlAlchemyTruckRepository(session),
            clients=SqlAlchemyClientRepository(session),
            products=SqlAlchemyProductRepository(session),
        )


def operational_unit_of_work_factory(store: StoreHandle) -> Callable[[], OperationalUnitOfWork]:
    return partial(SqlAlchemyOperationalUnitOfWork, store)


def historical_unit_of_work_factory(store: StoreHandle) -> Callable[[], HistoricalUnitOfWork]:
    return partial(SqlAlchemyHistoricalUnitOfWork, store)
