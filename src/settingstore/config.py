"""Configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()

MACHINE_ID_MAX = 0xFFFF


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_machine_id(name: str) -> int | None:
    """Parse the optional 16-bit machine id used by the id generator."""

    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        machine_id = int(raw.strip(), 0)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc
    if not 0 <= machine_id <= MACHINE_ID_MAX:
        raise ValueError(f"{name} must be between 0 and {MACHINE_ID_MAX}, got {machine_id}")
    return machine_id


class BaseConfig:
    """Configuration for binding a settings store from the environment."""

    APP_NAME = "settingstore"
    DB_FILENAME = "settings.db"
    MACHINE_ID_ENV = "SETTINGSTORE_MACHINE_ID"

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("SETTINGSTORE_DEV_MODE", default=True)
        self.AUTO_ID = _env_bool("SETTINGSTORE_AUTO_ID", default=False)
        self.POSTGRES = _env_bool("SETTINGSTORE_POSTGRES", default=False)
        self.SQL_ECHO = _env_bool("SETTINGSTORE_SQL_ECHO", default=False)
        self.MACHINE_ID = _env_machine_id(self.MACHINE_ID_ENV)
        self.DATABASE_URL = os.getenv("SETTINGSTORE_DATABASE_URL", self._build_sqlite_url())

    def _resolve_data_dir(self) -> Path:
        """Return the directory holding the default SQLite file and logs."""

        data_root = os.getenv("SETTINGSTORE_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite:///{db_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for SQLAlchemy to consume."""

        engine_options: dict[str, Any] = {"echo": self.SQL_ECHO}
        if self.is_sqlite:
            # Store calls may arrive from any thread.
            engine_options["connect_args"] = {"check_same_thread": False}
        else:
            engine_options["pool_pre_ping"] = True
        return engine_options
