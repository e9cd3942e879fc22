"""Statement strategies for the backends the settings store talks to.

Each strategy renders the five statements the store needs as SQLAlchemy Core
constructs with bound parameters. SQLAlchemy compiles the bound parameters to
the driver's own placeholder style (``?`` for sqlite3 and MySQL-style drivers,
``$1, $2`` for asyncpg), so the strategies only differ where the SQL itself
differs: how an insert tolerates a duplicate ``name``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.sql import Executable

from ..models.settings import settings_table


class Operation(str, Enum):
    """Statements issued against the settings table."""

    LOOKUP = "lookup"
    COUNT = "count"
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class SettingsDialect:
    """Generic ANSI statements.

    A plain ``INSERT`` raises ``IntegrityError`` on a duplicate name; the store
    treats that as a lost insert race.
    """

    name = "generic"
    ignores_duplicates = False

    def render(self, operation: Operation, **params: Any) -> Executable:
        """Return the statement for ``operation`` bound to ``params``."""

        if operation is Operation.LOOKUP:
            return self.lookup(params["name"])
        if operation is Operation.COUNT:
            return self.count(params["name"])
        if operation is Operation.INSERT:
            return self.insert(params["name"], params["value"], params.get("id"))
        if operation is Operation.UPDATE:
            return self.update(params["name"], params["value"])
        if operation is Operation.DELETE:
            return self.delete(params["name"])
        raise ValueError(f"Unsupported operation: {operation!r}")

    def lookup(self, name: str) -> Executable:
        return select(settings_table.c.value).where(settings_table.c.name == name)

    def count(self, name: str) -> Executable:
        return (
            select(func.count())
            .select_from(settings_table)
            .where(settings_table.c.name == name)
        )

    def insert(self, name: str, value: str, setting_id: Optional[int] = None) -> Executable:
        return insert(settings_table).values(**self._row(name, value, setting_id))

    def update(self, name: str, value: str) -> Executable:
        return (
            settings_table.update()
            .where(settings_table.c.name == name)
            .values(value=value)
        )

    def delete(self, name: str) -> Executable:
        return settings_table.delete().where(settings_table.c.name == name)

    @staticmethod
    def _row(name: str, value: str, setting_id: Optional[int]) -> dict[str, Any]:
        row: dict[str, Any] = {"name": name, "value": value}
        if setting_id is not None:
            row["id"] = setting_id
        return row


class MySQLDialect(SettingsDialect):
    """MySQL/MariaDB: ``INSERT IGNORE``."""

    name = "mysql"
    ignores_duplicates = True

    def insert(self, name: str, value: str, setting_id: Optional[int] = None) -> Executable:
        return (
            insert(settings_table)
            .values(**self._row(name, value, setting_id))
            .prefix_with("IGNORE")
        )


class PostgresDialect(SettingsDialect):
    """PostgreSQL: ``INSERT ... ON CONFLICT DO NOTHING``."""

    name = "postgresql"
    ignores_duplicates = True

    def insert(self, name: str, value: str, setting_id: Optional[int] = None) -> Executable:
        return (
            postgresql.insert(settings_table)
            .values(**self._row(name, value, setting_id))
            .on_conflict_do_nothing()
        )


class SQLiteDialect(SettingsDialect):
    """SQLite: ``INSERT ... ON CONFLICT DO NOTHING``."""

    name = "sqlite"
    ignores_duplicates = True

    def insert(self, name: str, value: str, setting_id: Optional[int] = None) -> Executable:
        return (
            sqlite.insert(settings_table)
            .values(**self._row(name, value, setting_id))
            .on_conflict_do_nothing()
        )


_DIALECTS: dict[str, type[SettingsDialect]] = {
    "mysql": MySQLDialect,
    "mariadb": MySQLDialect,
    "postgresql": PostgresDialect,
    "sqlite": SQLiteDialect,
}


def resolve_dialect(backend: str, *, postgres: bool = False) -> SettingsDialect:
    """Pick the statement strategy for a SQLAlchemy dialect name.

    ``postgres`` forces the PostgreSQL strategy regardless of ``backend``.
    """

    if postgres:
        return PostgresDialect()
    return _DIALECTS.get(backend, SettingsDialect)()


__all__ = [
    "MySQLDialect",
    "Operation",
    "PostgresDialect",
    "SQLiteDialect",
    "SettingsDialect",
    "resolve_dialect",
]
