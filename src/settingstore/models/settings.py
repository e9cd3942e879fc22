"""Name/value settings persisted in the database."""

from __future__ import annotations

from typing import ClassVar, Optional

from sqlalchemy import BigInteger, Column, Integer, String, Text
from sqlmodel import Field, SQLModel

SETTINGS_TABLE = "settings"
NAME_COLUMN = "name"
VALUE_COLUMN = "value"
NAME_MAX_LENGTH = 200


class Setting(SQLModel, table=True):
    """One named configuration value.

    ``id`` is left to the backend's autoincrement unless the store runs in
    auto-id mode, where a distributed generator supplies it. SQLite only
    autoincrements ``INTEGER PRIMARY KEY`` so the column narrows there.
    """

    __tablename__: ClassVar[str] = SETTINGS_TABLE

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(
            BigInteger().with_variant(Integer, "sqlite"),
            primary_key=True,
            autoincrement=True,
        ),
    )
    name: str = Field(
        sa_column=Column(String(NAME_MAX_LENGTH), nullable=False, unique=True, index=True)
    )
    value: str = Field(sa_column=Column(Text, nullable=False))


settings_table = Setting.__table__  # type: ignore[attr-defined]
