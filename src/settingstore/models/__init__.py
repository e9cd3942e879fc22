"""SQLModel table definitions."""

from .settings import (
    NAME_COLUMN,
    NAME_MAX_LENGTH,
    SETTINGS_TABLE,
    VALUE_COLUMN,
    Setting,
    settings_table,
)

__all__ = [
    "NAME_COLUMN",
    "NAME_MAX_LENGTH",
    "SETTINGS_TABLE",
    "VALUE_COLUMN",
    "Setting",
    "settings_table",
]
