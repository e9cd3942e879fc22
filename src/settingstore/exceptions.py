"""Error types raised or reported by the settings store."""

from __future__ import annotations


class SettingsStoreError(Exception):
    """Base class for every settings store failure."""


class ConfigurationError(SettingsStoreError):
    """The store cannot be bound with the supplied engine or options."""


class AlreadyBoundError(ConfigurationError):
    """The store was already bound to an engine."""


class SchemaError(ConfigurationError):
    """The settings table could not be created or has an unsupported shape."""


class NotBoundError(SettingsStoreError):
    """An operation was attempted before the store was bound."""


class BackendError(SettingsStoreError):
    """A database call failed while serving a read, write or delete."""

    def __init__(self, operation: str, name: str, cause: Exception) -> None:
        super().__init__(f"{operation} failed for setting {name!r}: {cause}")
        self.operation = operation
        self.name = name
        self.cause = cause


class IdGenerationError(SettingsStoreError):
    """The distributed id generator could not produce an id."""


__all__ = [
    "AlreadyBoundError",
    "BackendError",
    "ConfigurationError",
    "IdGenerationError",
    "NotBoundError",
    "SchemaError",
    "SettingsStoreError",
]
