"""SQLAlchemy adapter package for the weighbridge stores."""

from __future__ import annotations

from .mappings import (
    create_historical_schema,
    historical_metadata,
    operational_metadata,
)
from .repositories import (
    SqlAlchemyClientRepository,
    SqlAlchemyPlanningRepository,
    SqlAlchemyProductRepository,
    SqlAlchemyQuotaRepository,
    SqlAlchemySessionRepository,
    SqlAlchemyTruckRepository,
    SqlAlchemyWeighingRecordRepository,
)

__all__ = [
    "SqlAlchemyClientRepository",
    "SqlAlchemyPlanningRepository",
    "SqlAlchemyProductRepository",
    "SqlAlchemyQuotaRepository",
    "SqlAlchemySessionRepository",
    "SqlAlchemyTruckRepository",
    "SqlAlchemyWeighingRecordRepository",
    "create_historical_schema",
    "historical_metadata",
    "operational_metadata",
]
