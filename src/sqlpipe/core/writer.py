"""
Row Writer - row-at-a-time upserts.

Upserts are a DELETE by primary key followed by an INSERT, one statement
each. Without ``transactional`` a failed INSERT leaves its row deleted.
"""

from __future__ import annotations

from contextlib import nullcontext
from typing import Iterable

from sqlpipe.connectors.base import Connector
from sqlpipe.core.schema import SchemaSynthesizer
from sqlpipe.models import DEFAULT_PRIMARY_KEY, Row, TableRef
from sqlpipe.utils.logger import get_logger

logger = get_logger(__name__)


def clean_to_columns(row: Row, columns: Iterable[str]) -> Row:
    """Drop every key the destination does not have."""
    known = set(columns)
    return {k: v for k, v in row.items() if k in known}


class RowWriter:
    """
    Writes rows into a table, creating it from the rows when missing.

    Example:
        writer = RowWriter(connector)
        writer.write(rows, "events", database="warehouse")
    """

    def __init__(
        self,
        connector: Connector,
        synthesizer: SchemaSynthesizer | None = None,
        transactional: bool = False,
    ) -> None:
        """
        Initialize the writer.

        Args:
            connector: Destination connector
            synthesizer: Builds missing tables (default: one on ``connector``)
            transactional: Wrap each delete+insert pair in a transaction
        """
        self.connector = connector
        self.synthesizer = synthesizer or SchemaSynthesizer(connector)
        self.transactional = transactional

    def write(
        self,
        rows: Iterable[Row],
        table: str,
        upsert: bool = True,
        database: str | None = None,
        primary_key: str = DEFAULT_PRIMARY_KEY,
        lazy_create: bool = True,
        strict: bool = False,
    ) -> int:
        """
        Write rows to ``database.table``.

        Args:
            rows: Rows to write
            table: Destination table
            upsert: Delete existing rows with the same primary key first
            database: Destination database (default: current)
            primary_key: Primary key column
            lazy_create: Create the table from the rows if it is missing
            strict: Keep unknown columns, letting the INSERT fail on them

        Returns:
            Number of rows written

        Raises:
            QueryError: On the first failing statement
        """
        data = [{str(k): v for k, v in row.items()} for row in rows]
        ref = self.connector.ref(table, database)

        if table not in self.connector.tables(ref.database) and lazy_create and data:
            self.synthesizer.create(ref, data, primary_key)

        if not data:
            return 0

        columns = self.connector.columns(ref.table, ref.database)
        target = self.connector.qualify(ref)
        written = 0

        for row in data:
            if not strict:
                row = clean_to_columns(row, columns)
            if not row:
                logger.warning("skipping row with no columns known to %s", target)
                continue

            scope = self.connector.transaction() if self.transactional else nullcontext()
            with scope:
                if upsert and row.get(primary_key) is not None:
                    self.connector.execute(
                        f"DELETE FROM {target} WHERE {self.connector.quote(primary_key)} "
                        f"= {self.connector.literal(row[primary_key])}"
                    )
                self.connector.execute(self.insert_statement(target, row))
            written += 1

        logger.info("wrote %d rows to %s", written, target)
        return written

    def insert_statement(self, target: str, row: Row) -> str:
        """Single-row INSERT for an already qualified table."""
        cols = ", ".join(self.connector.quote(c) for c in row)
        values = ", ".join(self.connector.literal(v) for v in row.values())
        return f"INSERT INTO {target} ({cols}) VALUES ({values})"
