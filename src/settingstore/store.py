"""Cache-through access to the ``settings`` table.

A :class:`SettingsStore` binds once to a SQLAlchemy engine, creates or
verifies the settings table, and then serves reads from an in-memory mapping,
falling back to the database on a miss. Writes and deletes update the mapping
first and then the table, all under one lock owned by the store.

The module also keeps a process-wide default store behind ``init``,
``init_v2``, ``get_var``, ``set_var`` and ``del_var`` for callers that do not
want to pass a store around.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional, Protocol, Tuple

from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .exceptions import (
    AlreadyBoundError,
    BackendError,
    ConfigurationError,
    IdGenerationError,
    NotBoundError,
    SettingsStoreError,
)
from .infra.database import connection_scope, ensure_settings_schema
from .infra.dialects import Operation, SettingsDialect, resolve_dialect
from .infra.idgen import SnowflakeIdGenerator
from .logging_config import get_logger

logger = get_logger(__name__)

# Written as the row id when auto-id generation fails.
SENTINEL_ID = 0


class IdGenerator(Protocol):
    """Anything that hands out unique numeric ids."""

    def next_id(self) -> int:  # pragma: no cover - interface
        ...


@dataclass(slots=True)
class WriteResult:
    """Outcome of a write or delete against the settings table."""

    name: str
    action: str
    ok: bool = True
    rowcount: int = 0
    error: Optional[SettingsStoreError] = None

    def __bool__(self) -> bool:
        return self.ok


class SettingsStore:
    """Name/value settings cached in memory and persisted in SQL."""

    def __init__(self) -> None:
        self._cache: dict[str, str] = {}
        self._lock = threading.RLock()
        self._bind_lock = threading.Lock()
        self._engine: Optional[Engine] = None
        self._dialect: Optional[SettingsDialect] = None
        self._id_generator: Optional[IdGenerator] = None
        # Bumped under _lock after every write or delete reaches the table.
        self._generation = 0

    # ------------------------------------------------------------------
    # Binding
    # ------------------------------------------------------------------

    @property
    def is_bound(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> Optional[Engine]:
        return self._engine

    @property
    def dialect(self) -> Optional[SettingsDialect]:
        return self._dialect

    @property
    def auto_id(self) -> bool:
        return self._id_generator is not None

    def bind(
        self,
        engine: Optional[Engine],
        *,
        auto_id: bool = False,
        postgres: bool = False,
        id_generator: Optional[IdGenerator] = None,
        machine_id: Optional[int] = None,
    ) -> "SettingsStore":
        """Bind the store to ``engine``, creating the settings table if needed.

        Binding happens once. ``auto_id`` makes inserts carry ids from
        ``id_generator`` (a :class:`SnowflakeIdGenerator` for ``machine_id``
        when omitted) instead of the backend's autoincrement. ``postgres``
        forces the PostgreSQL statement strategy.

        Raises:
            ConfigurationError: ``engine`` is None, the id generator cannot
                start, or the backend cannot be reached.
            AlreadyBoundError: the store is already bound.
            SchemaError: the table cannot be created or lacks name/value.
        """
        if engine is None:
            raise ConfigurationError("db engine should not be None")

        with self._bind_lock:
            if self._engine is not None:
                raise AlreadyBoundError("settings store already initialized")

            try:
                ensure_settings_schema(engine)
            except SQLAlchemyError as exc:
                raise ConfigurationError(f"could not inspect settings schema: {exc}") from exc

            generator: Optional[IdGenerator] = None
            if auto_id:
                generator = id_generator
                if generator is None:
                    try:
                        generator = SnowflakeIdGenerator(machine_id)
                    except IdGenerationError as exc:
                        raise ConfigurationError(f"auto-id mode unavailable: {exc}") from exc

            backend = engine.dialect.name
            if postgres and backend != "postgresql":
                logger.warning(f"PostgreSQL statements forced on a {backend!r} engine")

            self._dialect = resolve_dialect(backend, postgres=postgres)
            self._id_generator = generator
            self._engine = engine

        logger.info(
            "Settings store bound",
            extra={"backend": backend, "dialect": self._dialect.name, "auto_id": auto_id},
        )
        return self

    def _require_bound(self) -> Tuple[Engine, SettingsDialect]:
        engine, dialect = self._engine, self._dialect
        if engine is None or dialect is None:
            raise NotBoundError("settings store is not initialized")
        return engine, dialect

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def is_cached(self, name: str) -> bool:
        return name in self._cache

    def get(self, name: str) -> str:
        """Return the value for ``name``, or ``""`` when absent or unreadable.

        Raises:
            NotBoundError: the store has not been bound.
        """
        try:
            return self._cache[name]
        except KeyError:
            pass

        engine, dialect = self._require_bound()
        generation = self._generation
        try:
            with engine.connect() as connection:
                value = connection.execute(
                    dialect.render(Operation.LOOKUP, name=name)
                ).scalars().first()
        except SQLAlchemyError:
            logger.error(f"Failed to read setting {name!r}", exc_info=True)
            return ""

        if value is None:
            logger.debug(f"Setting {name!r} not found")
            return ""

        with self._lock:
            if generation != self._generation:
                # A write or delete finished while the row was being read.
                logger.debug(f"Setting {name!r} changed during read, not caching")
                return value
            return self._cache.setdefault(name, value)

    def set(self, name: str, value: str) -> WriteResult:
        """Cache ``value`` for ``name`` and write it through to the table.

        The cache is updated before the database; a failed write leaves the
        new value cached and reports the failure in the result.

        Raises:
            NotBoundError: the store has not been bound.
        """
        engine, dialect = self._require_bound()
        with self._lock:
            self._cache[name] = value
            try:
                with connection_scope(engine) as connection:
                    exists = connection.execute(
                        dialect.render(Operation.COUNT, name=name)
                    ).scalar_one()
                    if exists == 0:
                        action, rowcount = self._insert(connection, dialect, name, value)
                    else:
                        action = "updated"
                        rowcount = connection.execute(
                            dialect.render(Operation.UPDATE, name=name, value=value)
                        ).rowcount
            except SQLAlchemyError as exc:
                logger.error(f"Failed to write setting {name!r}", exc_info=True)
                return WriteResult(
                    name=name, action="set", ok=False, error=BackendError("set", name, exc)
                )
            finally:
                self._generation += 1

        if rowcount == 0:
            logger.warning(f"Setting {name!r} was cached but no row was written")
        else:
            logger.debug(f"Setting {name!r} {action}")
        return WriteResult(name=name, action=action, rowcount=rowcount)

    def _insert(
        self, connection: Connection, dialect: SettingsDialect, name: str, value: str
    ) -> Tuple[str, int]:
        params = {"name": name, "value": value}
        generator = self._id_generator
        if generator is not None:
            params["id"] = self._next_id(generator)

        insert = dialect.render(Operation.INSERT, **params)
        if dialect.ignores_duplicates:
            rowcount = connection.execute(insert).rowcount
        else:
            try:
                with connection.begin_nested():
                    rowcount = connection.execute(insert).rowcount
            except IntegrityError:
                rowcount = 0

        if rowcount:
            return "inserted", rowcount

        # Another writer inserted the name after the count; last write wins.
        logger.debug(f"Insert of setting {name!r} lost a race, updating instead")
        rowcount = connection.execute(
            dialect.render(Operation.UPDATE, name=name, value=value)
        ).rowcount
        return "updated", rowcount

    def _next_id(self, generator: IdGenerator) -> int:
        try:
            return generator.next_id()
        except IdGenerationError:
            logger.error(f"Id generation failed, using sentinel id {SENTINEL_ID}", exc_info=True)
            return SENTINEL_ID

    def delete(self, name: str) -> WriteResult:
        """Drop ``name`` from the cache and the table.

        ``rowcount`` on the result tells whether a row was removed.

        Raises:
            NotBoundError: the store has not been bound.
        """
        engine, dialect = self._require_bound()
        with self._lock:
            self._cache.pop(name, None)
            try:
                with connection_scope(engine) as connection:
                    rowcount = connection.execute(
                        dialect.render(Operation.DELETE, name=name)
                    ).rowcount
            except SQLAlchemyError as exc:
                logger.error(f"Failed to delete setting {name!r}", exc_info=True)
                return WriteResult(
                    name=name, action="deleted", ok=False, error=BackendError("delete", name, exc)
                )
            finally:
                self._generation += 1

        logger.debug(f"Setting {name!r} deleted ({rowcount} row(s))")
        return WriteResult(name=name, action="deleted", rowcount=rowcount)

    # ------------------------------------------------------------------
    # Best-effort wrappers
    # ------------------------------------------------------------------

    def get_var(self, name: str) -> str:
        """Like :meth:`get` but returns ``""`` on an unbound store too."""
        try:
            return self.get(name)
        except NotBoundError:
            logger.error(f"Read of setting {name!r} before the store was initialized")
            return ""

    def set_var(self, name: str, value: str) -> None:
        """Fire-and-forget :meth:`set`; failures are only logged."""
        try:
            self.set(name, value)
        except NotBoundError:
            logger.error(f"Write of setting {name!r} before the store was initialized")

    def del_var(self, name: str) -> None:
        """Fire-and-forget :meth:`delete`; failures are only logged."""
        try:
            self.delete(name)
        except NotBoundError:
            logger.error(f"Delete of setting {name!r} before the store was initialized")


_default_store = SettingsStore()


def get_default_store() -> SettingsStore:
    """Return the process-wide store used by the module-level functions."""
    return _default_store


def reset_default_store() -> SettingsStore:
    """Replace the process-wide store with a fresh, unbound one (tests only)."""
    global _default_store  # noqa: PLW0603
    _default_store = SettingsStore()
    return _default_store


def init(engine: Optional[Engine]) -> SettingsStore:
    """Bind the process-wide store to ``engine``."""
    return _default_store.bind(engine)


def init_v2(
    engine: Optional[Engine], auto_generate_id: bool = False, postgres: bool = False
) -> SettingsStore:
    """Bind the process-wide store, choosing auto-id mode and statement dialect."""
    return _default_store.bind(engine, auto_id=auto_generate_id, postgres=postgres)


def get_var(name: str) -> str:
    return _default_store.get_var(name)


def set_var(name: str, value: str) -> None:
    _default_store.set_var(name, value)


def del_var(name: str) -> None:
    _default_store.del_var(name)


__all__ = [
    "SENTINEL_ID",
    "IdGenerator",
    "SettingsStore",
    "WriteResult",
    "del_var",
    "get_default_store",
    "get_var",
    "init",
    "init_v2",
    "reset_default_store",
    "set_var",
]
