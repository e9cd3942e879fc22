"""Cache-through name/value settings persisted in a SQL table."""

from __future__ import annotations

from .config import BaseConfig
from .exceptions import (
    AlreadyBoundError,
    BackendError,
    ConfigurationError,
    IdGenerationError,
    NotBoundError,
    SchemaError,
    SettingsStoreError,
)
from .store import (
    SettingsStore,
    WriteResult,
    del_var,
    get_default_store,
    get_var,
    init,
    init_v2,
    set_var,
)

__all__ = [
    "AlreadyBoundError",
    "BackendError",
    "BaseConfig",
    "ConfigurationError",
    "IdGenerationError",
    "NotBoundError",
    "SchemaError",
    "SettingsStore",
    "SettingsStoreError",
    "WriteResult",
    "del_var",
    "get_default_store",
    "get_var",
    "init",
    "init_v2",
    "set_var",
]
