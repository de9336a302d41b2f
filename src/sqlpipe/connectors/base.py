"""
Connector base class.

A connector is the data source/sink the replication engine talks to. It owns
the connection, runs SQL, answers metadata questions (tables, columns) and
knows how its dialect quotes identifiers and literal values. Everything
above it builds SQL text through these hooks and never touches a driver.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator

from sqlpipe.errors import QueryError, TableNotFoundError
from sqlpipe.models import Row, TableRef, ValueKind, kind_of
from sqlpipe.utils.logger import log_sql


class Connector(ABC):
    """
    Base class for database connectors.

    Subclasses implement ``_run`` (execute one statement, translating driver
    errors into ``QueryError``), the metadata lookups and string quoting.
    Each statement commits on its own unless it runs inside ``transaction()``.
    """

    #: Character used to quote identifiers
    identifier_quote = '"'

    def __init__(self, default_database: str = "") -> None:
        self.default_database = default_database

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @abstractmethod
    def _run(self, sql: str) -> tuple[list[Row], int]:
        """Execute one statement. Returns (rows, affected row count)."""

    def query(self, sql: str, database: str | None = None) -> list[Row]:
        """
        Execute a statement and return its rows keyed by column name.

        Args:
            sql: SQL text
            database: Database to switch to first (None = keep current)

        Raises:
            QueryError: If the statement fails
        """
        if database:
            self.use(database)
        log_sql(sql)
        rows, _ = self._run(sql)
        return rows

    def execute(self, sql: str) -> int:
        """Execute a statement and return the affected row count."""
        log_sql(sql)
        _, affected = self._run(sql)
        return affected

    def use(self, database: str) -> None:
        """Make ``database`` the current database for unqualified names."""
        self.default_database = database

    def current_database(self) -> str:
        """Name of the database unqualified table names resolve to."""
        return self.default_database

    @abstractmethod
    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run the enclosed statements in one transaction, rolling back on error."""

    @abstractmethod
    def close(self) -> None:
        """Close the database connection."""

    def __enter__(self) -> "Connector":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    @abstractmethod
    def tables(self, database: str | None = None) -> list[str]:
        """List table names in a database."""

    @abstractmethod
    def columns(self, table: str, database: str | None = None) -> list[str]:
        """List a table's column names in declaration order."""

    # ------------------------------------------------------------------
    # DDL
    # ------------------------------------------------------------------

    def create_table_like(
        self,
        source: TableRef,
        destination: TableRef,
        if_not_exists: bool = False,
    ) -> None:
        """Create ``destination`` with the structure of ``source``."""
        clause = "IF NOT EXISTS " if if_not_exists else ""
        self.execute(
            f"CREATE TABLE {clause}{self.qualify(destination)} LIKE {self.qualify(source)}"
        )

    def drop_table(self, ref: TableRef, if_exists: bool = False) -> None:
        """Drop a table."""
        clause = "IF EXISTS " if if_exists else ""
        self.execute(f"DROP TABLE {clause}{self.qualify(ref)}")

    def truncate_table(self, ref: TableRef) -> None:
        """Remove every row from a table. Raises if it does not exist."""
        self.execute(f"TRUNCATE TABLE {self.qualify(ref)}")

    @abstractmethod
    def surrogate_key_definition(self, name: str) -> str:
        """Column definition for an auto-incrementing integer key."""

    # ------------------------------------------------------------------
    # Quoting
    # ------------------------------------------------------------------

    def quote(self, name: str) -> str:
        """Quote an identifier."""
        q = self.identifier_quote
        return f"{q}{name.replace(q, q + q)}{q}"

    def qualify(self, ref: TableRef) -> str:
        """Fully qualified, quoted table name."""
        return f"{self.quote(ref.database)}.{self.quote(ref.table)}"

    def ref(self, table: str, database: str | None = None) -> TableRef:
        """Build a TableRef, defaulting to the current database."""
        return TableRef(database=database or self.current_database(), table=table)

    @abstractmethod
    def quote_string(self, text: str) -> str:
        """Quote text as a string literal."""

    def literal(self, value: Any) -> str:
        """
        Render a Python value as a SQL literal.

        Args:
            value: Any row value

        Returns:
            SQL literal text
        """
        kind = kind_of(value)

        if kind is ValueKind.NULL:
            return "NULL"
        if kind is ValueKind.BOOLEAN:
            return "1" if value else "0"
        if kind is ValueKind.INTEGER:
            return str(int(value))
        if kind is ValueKind.FLOAT:
            if math.isnan(value) or math.isinf(value):
                return "NULL"
            return repr(float(value))
        if kind in (ValueKind.TIMESTAMP, ValueKind.DATE):
            return self.quote_string(format_temporal(value))
        if kind is ValueKind.SYMBOL:
            return self.quote_string(str(value.value))
        if isinstance(value, (bytes, bytearray)):
            return f"X'{bytes(value).hex()}'"
        return self.quote_string(str(value))


def format_temporal(value: date | datetime) -> str:
    """Database text form of a date or timestamp."""
    if isinstance(value, datetime):
        if value.microsecond:
            return value.strftime("%Y-%m-%d %H:%M:%S.%f")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    return value.isoformat()


def wrap_driver_error(
    exc: Exception,
    sql: str,
    code: int | None = None,
    missing_table: bool = False,
) -> QueryError:
    """Build the QueryError (or TableNotFoundError) for a failed statement."""
    error_cls = TableNotFoundError if missing_table else QueryError
    return error_cls(str(exc), sql=sql, code=code)
