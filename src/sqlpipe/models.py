"""
Core data types shared by the reader, writer and replication engine.

A row is a plain ``dict`` keyed by column name. The values it may hold form a
closed set, classified by ``kind_of`` into a ``ValueKind``; anything outside
the set is treated as text.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Union

# Lower bound used when the destination holds no matcher values yet
EPOCH_FLOOR = "1970-01-01 00:00"

DEFAULT_MATCHER = "updated_at"
DEFAULT_PRIMARY_KEY = "id"

Scalar = Union[int, float, str, bool, date, datetime, Enum, None]
Row = dict[str, Scalar]


class ValueKind(str, Enum):
    """The kinds of value a row field can carry."""

    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    SYMBOL = "symbol"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    NULL = "null"


def kind_of(value: Any) -> ValueKind:
    """Classify a value. Unknown types fall back to TEXT."""
    if value is None:
        return ValueKind.NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return ValueKind.TIMESTAMP
    if isinstance(value, date):
        return ValueKind.DATE
    if isinstance(value, Enum):
        return ValueKind.SYMBOL
    return ValueKind.TEXT


@dataclass(frozen=True)
class TableRef:
    """A table inside a named database (schema)."""

    database: str
    table: str

    @classmethod
    def parse(cls, value: str, default_database: str | None = None) -> "TableRef":
        """
        Parse ``database.table`` (or a bare ``table`` when a default is given).

        Raises:
            ValueError: If no database can be determined
        """
        if "." in value:
            database, table = value.split(".", 1)
        else:
            database, table = default_database or "", value
        if not database or not table:
            raise ValueError(f"Expected database.table, got: {value!r}")
        return cls(database=database, table=table)

    def __str__(self) -> str:
        return f"{self.database}.{self.table}"


@dataclass(frozen=True)
class ColumnSpec:
    """A column name with its inferred SQL type."""

    name: str
    sql_type: str


@dataclass(frozen=True)
class SyncPlan:
    """Parameters of a single replication run. Never persisted."""

    source: TableRef
    destination: TableRef
    matcher: str = DEFAULT_MATCHER
    primary_key: str = DEFAULT_PRIMARY_KEY
