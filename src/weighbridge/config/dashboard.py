"""Dashboard webhook configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env
from .http_resilience import RateLimit, ResilienceConfig

DASHBOARD_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class DashboardConfig:
    """Where workflow events are pushed for the live dashboard."""

    webhook_url: str
    token: str | None
    resilience: ResilienceConfig


def get_dashboard_config(*, resilience: ResilienceConfig | None = None) -> DashboardConfig | None:
    """Return the webhook settings, or ``None`` when no webhook is configured."""

    url = optional_env("DASHBOARD_WEBHOOK_URL")
    if url is None:
        return None
    token = optional_env("DASHBOARD_WEBHOOK_TOKEN")
    headers = {"Authorization": f"Bearer {token}"} if token else None
    return DashboardConfig(
        webhook_url=url,
        token=token,
        resilience=resilience
        or ResilienceConfig(
            name="dashboard",
            timeout_seconds=DASHBOARD_TIMEOUT_SECONDS,
            ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
            default_headers=headers,
        ),
    )
