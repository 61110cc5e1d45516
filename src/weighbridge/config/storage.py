"""Data storage configuration helpers."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env

APP_DIR_NAME: Final[str] = "weighbridge"
OPERATIONAL_DB_FILENAME: Final[str] = "operational.db"
HISTORICAL_DB_FILENAME: Final[str] = "historical.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    operational_filename: str = OPERATIONAL_DB_FILENAME
    historical_filename: str = HISTORICAL_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def ensure_data_dir(self) -> Path:
        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def operational_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.operational_filename

    def historical_path(self, *, ensure: bool = True) -> Path:
        base = self.ensure_data_dir() if ensure else self.resolve_data_dir()
        return base / self.historical_filename

    def operational_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.operational_path()}"

    def historical_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.historical_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    operational_uri: str
    historical_uri: str


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = optional_env("WEIGHBRIDGE_DATA_DIR")
    data_dir = Path(env_dir) if env_dir else _default_data_dir()
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    operational = optional_env("OPERATIONAL_DATABASE_URI")
    historical = optional_env("HISTORICAL_DATABASE_URI")
    if operational and historical:
        return DatabaseConfig(operational_uri=operational, historical_uri=historical)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(
        operational_uri=operational or storage_config.operational_uri(),
        historical_uri=historical or storage_config.historical_uri(),
    )
