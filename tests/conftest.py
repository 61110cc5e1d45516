from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from weighbridge.adapters.sqlalchemy.unit_of_work import (
    StoreHandle,
    build_engine,
    historical_unit_of_work_factory,
    open_historical_store,
    open_operational_store,
    operational_unit_of_work_factory,
)

os.environ.setdefault("OPERATIONAL_DATABASE_URI", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("HISTORICAL_DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from weighbridge.domain.ports import HistoricalUnitOfWork, OperationalUnitOfWork

IN_MEMORY = "sqlite+pysqlite:///:memory:"


@pytest.fixture
def operational_engine() -> Iterator[Engine]:
    engine = build_engine(IN_MEMORY)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def historical_engine() -> Iterator[Engine]:
    engine = build_engine(IN_MEMORY)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def operational_store(operational_engine: Engine) -> StoreHandle:
    return open_operational_store(engine=operational_engine)


@pytest.fixture
def historical_store(historical_engine: Engine) -> StoreHandle:
    return open_historical_store(engine=historical_engine)


@pytest.fixture
def operational_uow(operational_store: StoreHandle) -> Callable[[], OperationalUnitOfWork]:
    return operational_unit_of_work_factory(operational_store)


@pytest.fixture
def historical_uow(historical_store: StoreHandle) -> Callable[[], HistoricalUnitOfWork]:
    return historical_unit_of_work_factory(historical_store)
