from __future__ import annotations

from pathlib import Path

import pytest

from weighbridge.config import (
    ConfigurationError,
    env_bool,
    env_float,
    env_int,
    get_dashboard_config,
    get_database_config,
    get_reconciliation_config,
    get_storage_config,
    get_workflow_config,
    optional_env,
)

_RECONCILIATION_VARS = (
    "RECONCILIATION_INTERVAL_SECONDS",
    "RECONCILIATION_MAX_BACKOFF_SECONDS",
    "RECONCILIATION_JITTER",
    "RECONCILIATION_BATCH_SIZE",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "OPERATIONAL_DATABASE_URI",
        "HISTORICAL_DATABASE_URI",
        "WEIGHBRIDGE_DATA_DIR",
        "WEIGHBRIDGE_TICKET_BASE",
        "WEIGHBRIDGE_ADVANCE_ON_GRANT",
        "DASHBOARD_WEBHOOK_URL",
        "DASHBOARD_WEBHOOK_TOKEN",
        *_RECONCILIATION_VARS,
    ):
        monkeypatch.delenv(name, raising=False)


def test_optional_env_strips_and_treats_blank_as_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PADDED", "  value ")
    monkeypatch.setenv("BLANK", "")

    assert optional_env("PADDED") == "value"
    assert optional_env("BLANK") is None


def test_numeric_env_helpers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SOME_INT", "42")
    monkeypatch.setenv("SOME_FLOAT", "2.5")

    assert env_int("SOME_INT", 1) == 42
    assert env_int("UNSET_INT", 7) == 7
    assert env_float("SOME_FLOAT", 1.0) == 2.5


@pytest.mark.parametrize(
    ("raw", "call"),
    [
        ("many", lambda: env_int("VALUE", 1)),
        ("0", lambda: env_int("VALUE", 1, minimum=1)),
        ("fast", lambda: env_float("VALUE", 1.0)),
        ("maybe", lambda: env_bool("VALUE", True)),
    ],
)
def test_bad_values_raise_configuration_error(
    monkeypatch: pytest.MonkeyPatch, raw: str, call: object
) -> None:
    monkeypatch.setenv("VALUE", raw)

    with pytest.raises(ConfigurationError, match="VALUE"):
        call()  # type: ignore[operator]


@pytest.mark.parametrize(("raw", "expected"), [("yes", True), ("ON", True), ("0", False)])
def test_env_bool(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("FLAG", raw)

    assert env_bool("FLAG", not expected) is expected


def test_database_uris_come_from_the_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OPERATIONAL_DATABASE_URI", "postgresql+psycopg://ops@db/weighing")
    monkeypatch.setenv("HISTORICAL_DATABASE_URI", "mysql+pymysql://hist@legacy/records")

    config = get_database_config()

    assert config.operational_uri == "postgresql+psycopg://ops@db/weighing"
    assert config.historical_uri == "mysql+pymysql://hist@legacy/records"


def test_database_uris_default_to_files_in_the_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("WEIGHBRIDGE_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("HISTORICAL_DATABASE_URI", "sqlite+pysqlite:///legacy.db")

    config = get_database_config()

    expected = (tmp_path / "data").resolve() / "operational.db"
    assert config.operational_uri == f"sqlite+pysqlite:///{expected}"
    assert config.historical_uri == "sqlite+pysqlite:///legacy.db"
    assert expected.parent.is_dir()


def test_storage_config_uses_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WEIGHBRIDGE_DATA_DIR", str(tmp_path))

    storage = get_storage_config()

    assert storage.historical_path(ensure=False) == tmp_path.resolve() / "historical.db"


def test_workflow_defaults_and_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    assert get_workflow_config().ticket_base == 58000
    assert get_workflow_config().advance_on_grant

    monkeypatch.setenv("WEIGHBRIDGE_TICKET_BASE", "1000")
    monkeypatch.setenv("WEIGHBRIDGE_ADVANCE_ON_GRANT", "false")

    config = get_workflow_config()
    assert config.ticket_base == 1000
    assert not config.advance_on_grant


def test_reconciliation_defaults() -> None:
    config = get_reconciliation_config()

    assert config.interval_seconds == 5.0
    assert config.max_backoff_seconds == 300.0
    assert config.jitter == 0.1
    assert config.batch_size == 10


@pytest.mark.parametrize(
    "overrides",
    [
        {"RECONCILIATION_INTERVAL_SECONDS": "60", "RECONCILIATION_MAX_BACKOFF_SECONDS": "30"},
        {"RECONCILIATION_JITTER": "1.5"},
        {"RECONCILIATION_BATCH_SIZE": "0"},
        {"RECONCILIATION_INTERVAL_SECONDS": "0"},
    ],
)
def test_reconciliation_rejects_inconsistent_values(
    monkeypatch: pytest.MonkeyPatch, overrides: dict[str, str]
) -> None:
    for name, value in overrides.items():
        monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_reconciliation_config()


def test_dashboard_is_optional() -> None:
    assert get_dashboard_config() is None


def test_dashboard_token_becomes_a_bearer_header(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DASHBOARD_WEBHOOK_URL", "https://dashboard.example/hooks")
    monkeypatch.setenv("DASHBOARD_WEBHOOK_TOKEN", "s3cret")

    config = get_dashboard_config()

    assert config is not None
    assert config.webhook_url == "https://dashboard.example/hooks"
    assert config.resilience.default_headers == {"Authorization": "Bearer s3cret"}
    assert config.resilience.ratelimit is not None
