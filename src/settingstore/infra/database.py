"""Database infrastructure: engine creation and settings schema bootstrap."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator, Optional, Tuple

from sqlalchemy import inspect, literal_column, select, table
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, create_engine

from ..config import BaseConfig
from ..exceptions import SchemaError
from ..logging_config import get_logger
from ..models.settings import NAME_COLUMN, SETTINGS_TABLE, VALUE_COLUMN, settings_table

if TYPE_CHECKING:
    from ..store import SettingsStore

logger = get_logger(__name__)

REQUIRED_COLUMNS = (NAME_COLUMN, VALUE_COLUMN)


def create_db_engine(config: BaseConfig) -> Engine:
    """Create SQLAlchemy engine from configuration."""
    engine_options = config.sqlalchemy_engine_options()
    return create_engine(config.DATABASE_URL, **engine_options)


def table_exists(engine: Engine, table_name: str = SETTINGS_TABLE) -> bool:
    """Ask the backend catalog whether ``table_name`` exists."""

    return inspect(engine).has_table(table_name)


def create_settings_table(engine: Engine) -> None:
    """Create the settings table from the ``Setting`` model."""

    try:
        SQLModel.metadata.create_all(engine, tables=[settings_table])
    except SQLAlchemyError as exc:
        raise SchemaError(f"could not create table {SETTINGS_TABLE!r}: {exc}") from exc
    logger.info(f"Created table {SETTINGS_TABLE!r}")


def result_columns(engine: Engine, table_name: str = SETTINGS_TABLE) -> list[str]:
    """Return the column names of a one-row ``SELECT *`` against ``table_name``."""

    query = select(literal_column("*")).select_from(table(table_name)).limit(1)
    with engine.connect() as connection:
        return list(connection.execute(query).keys())


def ensure_settings_schema(engine: Engine) -> None:
    """Create the settings table when missing and verify its shape.

    Raises:
        SchemaError: creation failed, or the table lacks ``name``/``value``.
    """
    if not table_exists(engine):
        create_settings_table(engine)

    try:
        columns = result_columns(engine)
    except SQLAlchemyError as exc:
        raise SchemaError(f"could not describe table {SETTINGS_TABLE!r}: {exc}") from exc

    missing = [column for column in REQUIRED_COLUMNS if column not in columns]
    if missing:
        raise SchemaError(
            f"table structure for {SETTINGS_TABLE} is not supported: "
            f"missing column(s) {', '.join(missing)}"
        )


@contextmanager
def connection_scope(engine: Engine) -> Iterator[Connection]:
    """Provide a transactional scope around one store operation."""
    connection = engine.connect()
    try:
        yield connection
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def bootstrap_store(
    config: BaseConfig | None = None, store: Optional["SettingsStore"] = None
) -> Tuple[Engine, "SettingsStore"]:
    """Convenience bootstrap for engine + bound store.

    Used by the CLI and by applications that keep their database settings in
    the environment. Returns (engine, store).
    """
    from ..store import SettingsStore

    cfg = config or BaseConfig()
    engine = create_db_engine(cfg)
    target = store if store is not None else SettingsStore()
    target.bind(
        engine,
        auto_id=cfg.AUTO_ID,
        postgres=cfg.POSTGRES,
        machine_id=cfg.MACHINE_ID,
    )
    return engine, target
