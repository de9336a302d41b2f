"""
MySQL Database Connector.

Talks to a MySQL server through PyMySQL with a dict cursor and autocommit,
so every statement commits on its own. Tables in other databases on the same
server are addressed as `database`.`table`.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

import pymysql
import pymysql.cursors

from sqlpipe.config import Settings
from sqlpipe.connectors.base import Connector, wrap_driver_error
from sqlpipe.models import Row

# ER_BAD_TABLE_ERROR, ER_NO_SUCH_TABLE
MISSING_TABLE_CODES = {1051, 1146}


class MySQLConnector(Connector):
    """
    Connector for MySQL servers.

    The connection is opened lazily on the first statement and must be
    released with ``close()`` (or by using the connector as a context manager).

    Example:
        with MySQLConnector("localhost", 3306, "root", "secret", "app") as db:
            db.tables()
            db.query("SELECT * FROM `app`.`users`")
    """

    identifier_quote = "`"

    def __init__(
        self,
        host: str = "localhost",
        port: int = 3306,
        user: str = "root",
        password: str = "",
        database: str = "",
        connect_timeout: int = 10,
    ) -> None:
        super().__init__(database)
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.connect_timeout = connect_timeout
        self._connection: pymysql.connections.Connection | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "MySQLConnector":
        """Build a connector from the connection settings."""
        conn = settings.connection
        return cls(
            host=conn.host,
            port=conn.port,
            user=conn.user,
            password=conn.password.get_secret_value(),
            database=conn.database,
            connect_timeout=conn.connect_timeout,
        )

    @property
    def connection(self) -> pymysql.connections.Connection:
        """The open connection, created on first use."""
        if self._connection is None:
            self._connection = pymysql.connect(
                host=self.host,
                port=self.port,
                user=self.user,
                password=self.password,
                database=self.default_database or None,
                connect_timeout=self.connect_timeout,
                autocommit=True,
                charset="utf8mb4",
                cursorclass=pymysql.cursors.DictCursor,
            )
        return self._connection

    def close(self) -> None:
        """Close connection cleanly."""
        if self._connection:
            self._connection.close()
            self._connection = None

    def _run(self, sql: str) -> tuple[list[Row], int]:
        try:
            with self.connection.cursor() as cursor:
                affected = cursor.execute(sql)
                rows = list(cursor.fetchall())
        except pymysql.MySQLError as e:
            code = _error_code(e)
            raise wrap_driver_error(
                e, sql, code=code, missing_table=code in MISSING_TABLE_CODES
            ) from e
        return rows, affected

    def use(self, database: str) -> None:
        self.execute(f"USE {self.quote(database)}")
        super().use(database)

    def current_database(self) -> str:
        rows = self.query("SELECT DATABASE() AS db")
        return (rows[0]["db"] if rows else None) or self.default_database

    @contextmanager
    def transaction(self) -> Iterator[None]:
        conn = self.connection
        conn.begin()
        try:
            yield
        except Exception:
            conn.rollback()
            raise
        conn.commit()

    def tables(self, database: str | None = None) -> list[str]:
        """Get names of all tables in a database."""
        sql = "SHOW TABLES"
        if database:
            sql = f"SHOW TABLES FROM {self.quote(database)}"
        return [next(iter(row.values())) for row in self.query(sql)]

    def columns(self, table: str, database: str | None = None) -> list[str]:
        """Get column names of a table. Raises if it does not exist."""
        ref = self.ref(table, database)
        return [row["Field"] for row in self.query(f"DESCRIBE {self.qualify(ref)}")]

    def surrogate_key_definition(self, name: str) -> str:
        return f"{self.quote(name)} int(11) NOT NULL AUTO_INCREMENT"

    def quote_string(self, text: str) -> str:
        """Double-quote text, escaping backslashes and double quotes."""
        escaped = text.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'


def _error_code(exc: Any) -> int | None:
    """MySQL error number carried in a PyMySQL exception."""
    if exc.args and isinstance(exc.args[0], int):
        return exc.args[0]
    return None
