"""
SQLite Database Connector.

Every configured database file is ATTACHed under its own schema name, so
``"source"."sales"`` and ``"warehouse"."sales"`` behave like tables in two
MySQL databases served by one connection. Provides:
- Schema introspection through ``sqlite_master`` and ``table_info``
- ``CREATE TABLE ... LIKE`` emulation from the stored CREATE statement
- ``TRUNCATE`` emulation with ``DELETE``
"""

from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Mapping

from sqlpipe.config import Settings
from sqlpipe.connectors.base import Connector, wrap_driver_error
from sqlpipe.errors import TableNotFoundError
from sqlpipe.models import Row, TableRef

# Leading "CREATE TABLE [IF NOT EXISTS] [schema.]name" of a stored statement
_CREATE_HEAD = re.compile(
    r"""^\s*CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?
        (?:(?:"[^"]+"|`[^`]+`|\[[^\]]+\]|\w+)\s*\.\s*)?
        (?:"[^"]+"|`[^`]+`|\[[^\]]+\]|\w+)""",
    re.IGNORECASE | re.VERBOSE,
)


class SQLiteConnector(Connector):
    """
    Connector for SQLite databases.

    Example:
        connector = SQLiteConnector({
            "source": Path("app.db"),
            "warehouse": Path("warehouse.db"),
        })

        connector.tables("source")
        connector.query('SELECT * FROM "source"."users"')
    """

    def __init__(
        self,
        databases: Mapping[str, Path | str],
        default_database: str | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize SQLite connector.

        Args:
            databases: Schema name -> database file (":memory:" allowed)
            default_database: Schema for unqualified names (default: first)
            settings: Optional settings object
        """
        if not databases:
            raise ValueError("At least one database must be provided")
        self.databases = {name: str(path) for name, path in databases.items()}
        super().__init__(default_database or next(iter(self.databases)))
        self.settings = settings
        self._connection: sqlite3.Connection | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SQLiteConnector":
        """Build a connector from the connection settings."""
        conn = settings.connection
        return cls(
            conn.sqlite_databases,
            default_database=conn.database or None,
            settings=settings,
        )

    @property
    def connection(self) -> sqlite3.Connection:
        """The open connection, created on first use."""
        if self._connection is None:
            self._connection = self._create_connection()
        return self._connection

    def _create_connection(self) -> sqlite3.Connection:
        """Create a new connection with every database attached."""
        for path in self.databases.values():
            if path != ":memory:" and not Path(path).parent.exists():
                raise FileNotFoundError(f"Database directory not found: {path}")

        # isolation_level=None: every statement commits on its own
        conn = sqlite3.connect(
            ":memory:",
            isolation_level=None,
            check_same_thread=False,
            timeout=30.0,
        )
        conn.row_factory = sqlite3.Row

        for name, path in self.databases.items():
            conn.execute(f"ATTACH DATABASE ? AS {self.quote(name)}", (path,))
            if path != ":memory:":
                conn.execute(f"PRAGMA {self.quote(name)}.journal_mode=WAL")

        conn.execute("PRAGMA temp_store=MEMORY")
        return conn

    def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def _run(self, sql: str) -> tuple[list[Row], int]:
        try:
            cursor = self.connection.execute(sql)
            rows = [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise wrap_driver_error(
                e, sql, missing_table="no such table" in str(e)
            ) from e
        return rows, cursor.rowcount

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self.connection
        conn.execute("BEGIN")
        try:
            yield
        except Exception:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def tables(self, database: str | None = None) -> list[str]:
        """Get names of all tables in a database."""
        schema = self.quote(database or self.current_database())
        rows = self.query(
            f"SELECT name FROM {schema}.sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    def columns(self, table: str, database: str | None = None) -> list[str]:
        """Get column names of a table. Raises if it does not exist."""
        ref = self.ref(table, database)
        sql = f"PRAGMA {self.quote(ref.database)}.table_info({self.quote(ref.table)})"
        rows = self.query(sql)
        # table_info answers a missing table with no rows instead of an error
        if not rows:
            raise TableNotFoundError(f"no such table: {ref}", sql=sql)
        return [row["name"] for row in rows]

    def get_create_statement(self, ref: TableRef) -> str:
        """Get the stored CREATE TABLE statement for a table."""
        rows = self.query(
            f"SELECT sql FROM {self.quote(ref.database)}.sqlite_master "
            f"WHERE type = 'table' AND name = {self.literal(ref.table)}"
        )
        return rows[0]["sql"] if rows and rows[0]["sql"] else ""

    def create_table_like(
        self,
        source: TableRef,
        destination: TableRef,
        if_not_exists: bool = False,
    ) -> None:
        """Create ``destination`` from the stored definition of ``source``."""
        create_sql = self.get_create_statement(source)
        if not create_sql:
            raise TableNotFoundError(
                f"no such table: {source}",
                sql=f"CREATE TABLE {self.qualify(destination)} LIKE {self.qualify(source)}",
            )

        clause = "IF NOT EXISTS " if if_not_exists else ""
        head = f"CREATE TABLE {clause}{self.qualify(destination)}"
        self.execute(_CREATE_HEAD.sub(lambda _: head, create_sql, count=1))

    def truncate_table(self, ref: TableRef) -> None:
        """Remove every row from a table. Raises if it does not exist."""
        self.execute(f"DELETE FROM {self.qualify(ref)}")

    def surrogate_key_definition(self, name: str) -> str:
        # INTEGER + PRIMARY KEY makes the column a rowid alias, filled on insert
        return f"{self.quote(name)} INTEGER"

    def quote_string(self, text: str) -> str:
        """
        Single-quote text, doubling embedded quotes.

        A quoted literal ends at the first NUL, so text containing one is sent
        as its UTF-8 bytes cast back to TEXT.
        """
        if "\x00" in text:
            return f"CAST(X'{text.encode('utf-8').hex()}' AS TEXT)"
        escaped = text.replace("'", "''")
        return f"'{escaped}'"
