"""Application configuration helpers."""

from __future__ import annotations

from .dashboard import DashboardConfig, get_dashboard_config
from .env import env_bool, env_float, env_int, optional_env
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .workflow import (
    ReconciliationConfig,
    WorkflowConfig,
    get_reconciliation_config,
    get_workflow_config,
)

__all__ = [
    "ConfigurationError",
    "DashboardConfig",
    "DatabaseConfig",
    "RateLimit",
    "ReconciliationConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "WorkflowConfig",
    "configure_logging",
    "env_bool",
    "env_float",
    "env_int",
    "get_dashboard_config",
    "get_database_config",
    "get_reconciliation_config",
    "get_storage_config",
    "get_workflow_config",
    "optional_env",
]
