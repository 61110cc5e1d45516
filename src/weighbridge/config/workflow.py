"""Workflow and reconciliation settings."""

from __future__ import annotations

from dataclasses import dataclass

from weighbridge.domain.workflow.sequence import DEFAULT_TICKET_BASE

from .env import env_bool, env_float, env_int
from .errors import ConfigurationError

DEFAULT_RECONCILIATION_INTERVAL = 5.0
DEFAULT_RECONCILIATION_MAX_BACKOFF = 300.0
DEFAULT_RECONCILIATION_JITTER = 0.1
DEFAULT_RECONCILIATION_BATCH_SIZE = 10


@dataclass(frozen=True, slots=True)
class WorkflowConfig:
    ticket_base: int = DEFAULT_TICKET_BASE
    advance_on_grant: bool = True


@dataclass(frozen=True, slots=True)
class ReconciliationConfig:
    interval_seconds: float = DEFAULT_RECONCILIATION_INTERVAL
    max_backoff_seconds: float = DEFAULT_RECONCILIATION_MAX_BACKOFF
    jitter: float = DEFAULT_RECONCILIATION_JITTER
    batch_size: int = DEFAULT_RECONCILIATION_BATCH_SIZE


def get_workflow_config() -> WorkflowConfig:
    return WorkflowConfig(
        ticket_base=env_int("WEIGHBRIDGE_TICKET_BASE", DEFAULT_TICKET_BASE, minimum=1),
        advance_on_grant=env_bool("WEIGHBRIDGE_ADVANCE_ON_GRANT", True),
    )


def get_reconciliation_config() -> ReconciliationConfig:
    interval = env_float(
        "RECONCILIATION_INTERVAL_SECONDS", DEFAULT_RECONCILIATION_INTERVAL, minimum=0.001
    )
    max_backoff = env_float(
        "RECONCILIATION_MAX_BACKOFF_SECONDS", DEFAULT_RECONCILIATION_MAX_BACKOFF, minimum=0.001
    )
    if max_backoff < interval:
        raise ConfigurationError(
            "RECONCILIATION_MAX_BACKOFF_SECONDS must not be smaller than the interval"
        )
    jitter = env_float("RECONCILIATION_JITTER", DEFAULT_RECONCILIATION_JITTER, minimum=0.0)
    if jitter >= 1:
        raise ConfigurationError(f"RECONCILIATION_JITTER must be below 1, got {jitter}")
    return ReconciliationConfig(
        interval_seconds=interval,
        max_backoff_seconds=max_backoff,
        jitter=jitter,
        batch_size=env_int(
            "RECONCILIATION_BATCH_SIZE", DEFAULT_RECONCILIATION_BATCH_SIZE, minimum=1
        ),
    )
