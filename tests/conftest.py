"""Pytest configuration and shared fixtures for settingstore tests.

Every test gets its own temporary SQLite file, so stores bound in one test
never see another test's rows or cache.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import pytest
from sqlalchemy import event, text
from sqlmodel import create_engine

from settingstore import SettingsStore
from settingstore.store import reset_default_store

# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def db_engine():
    """Create an isolated SQLite database file for each test.

    No tables are created; binding a store is what bootstraps the schema.

    Yields:
        Engine: SQLAlchemy engine connected to the test database
    """
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    engine = create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        connect_args={"check_same_thread": False},
    )

    yield engine

    engine.dispose()
    db_path.unlink(missing_ok=True)


@pytest.fixture
def store(db_engine) -> SettingsStore:
    """A store bound to the test database with backend-assigned ids."""

    return SettingsStore().bind(db_engine)


@pytest.fixture(autouse=True)
def default_store():
    """Give each test a fresh process-wide store."""

    yield reset_default_store()
    reset_default_store()


@pytest.fixture
def statements(db_engine):
    """Record every SQL statement the engine sends to the driver.

    Returns:
        list[str]: statements in execution order
    """
    seen: list[str] = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        seen.append(statement)

    event.listen(db_engine, "before_cursor_execute", _record)
    yield seen
    event.remove(db_engine, "before_cursor_execute", _record)


# =============================================================================
# Helper Utilities
# =============================================================================


@pytest.fixture
def fetch_rows(db_engine):
    """Read (id, name, value) rows for a name straight from the table."""

    def _fetch(name: str) -> list[tuple]:
        with db_engine.connect() as conn:
            return [
                tuple(row)
                for row in conn.execute(
                    text("SELECT id, name, value FROM settings WHERE name = :name"),
                    {"name": name},
                )
            ]

    return _fetch


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point configuration at a temporary data dir and drop inherited overrides."""

    for name in (
        "SETTINGSTORE_DATABASE_URL",
        "SETTINGSTORE_AUTO_ID",
        "SETTINGSTORE_POSTGRES",
        "SETTINGSTORE_MACHINE_ID",
        "SETTINGSTORE_DEV_MODE",
        "SETTINGSTORE_SQL_ECHO",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SETTINGSTORE_DATA_DIR", str(tmp_path / "data"))
    return tmp_path / "data"


@pytest.fixture
def clean_package_logger():
    """Detach handlers that setup_logging attaches to the package logger."""

    yield
    root = logging.getLogger("settingstore")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.NOTSET)
