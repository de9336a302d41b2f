"""
Exceptions raised by sqlpipe.

Connectors translate driver errors into these at their boundary so the
engine and the CLI only need to know one hierarchy.
"""

from __future__ import annotations


class SqlPipeError(Exception):
    """Base exception for sqlpipe errors."""


class QueryError(SqlPipeError):
    """Raised when a statement fails on the database."""

    def __init__(
        self,
        message: str,
        sql: str | None = None,
        code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.sql = sql
        self.code = code


class TableNotFoundError(QueryError):
    """Raised when a statement references a table that does not exist."""

    pass
