"""
Schema Synthesizer - CREATE TABLE from untyped rows.

Used by the row writer when the destination table does not exist yet.
Column order follows first appearance across the batch; each column's type
comes from its first non-NULL sample. Later samples never change a type that
has already been chosen, so a batch whose first rows carry ints and later rows
carry strings produces an integer column.
"""

from __future__ import annotations

from typing import Sequence

from sqlpipe.connectors.base import Connector
from sqlpipe.core.types import FALLBACK_TYPE, infer_type
from sqlpipe.models import ColumnSpec, DEFAULT_PRIMARY_KEY, Row, TableRef
from sqlpipe.utils.logger import get_logger

logger = get_logger(__name__)


def collect_columns(rows: Sequence[Row]) -> list[ColumnSpec]:
    """Ordered column specs for a batch of rows."""
    types: dict[str, str | None] = {}
    for row in rows:
        for name, value in row.items():
            if types.get(name) is None:
                types[name] = None if value is None else infer_type(value)
    return [ColumnSpec(name, sql_type or FALLBACK_TYPE) for name, sql_type in types.items()]


def needs_surrogate_key(rows: Sequence[Row], primary_key: str) -> bool:
    """True when the rows cannot supply the primary key themselves."""
    return bool(rows) and rows[0].get(primary_key) is None


class SchemaSynthesizer:
    """
    Builds and executes CREATE TABLE statements for lazily created tables.

    Example:
        synthesizer = SchemaSynthesizer(connector)
        synthesizer.create(TableRef("warehouse", "events"), rows, "id")
    """

    def __init__(self, connector: Connector) -> None:
        self.connector = connector

    def build_create_table(
        self,
        ref: TableRef,
        rows: Sequence[Row],
        primary_key: str = DEFAULT_PRIMARY_KEY,
    ) -> str:
        """
        Build the CREATE TABLE statement for ``rows``.

        Args:
            ref: Table to create
            rows: Sample rows (the whole write batch)
            primary_key: Primary key column name

        Returns:
            CREATE TABLE statement
        """
        quote = self.connector.quote
        definitions: list[str] = []

        surrogate = needs_surrogate_key(rows, primary_key)
        if surrogate:
            definitions.append(self.connector.surrogate_key_definition(primary_key))

        for column in collect_columns(rows):
            if column.name == primary_key:
                if surrogate:
                    continue
                # MySQL rejects DEFAULT NULL on key columns
                definitions.append(f"{quote(column.name)} {column.sql_type} NOT NULL")
                continue
            definitions.append(f"{quote(column.name)} {column.sql_type} DEFAULT NULL")

        definitions.append(f"PRIMARY KEY ({quote(primary_key)})")
        return f"CREATE TABLE {self.connector.qualify(ref)} ( {', '.join(definitions)} )"

    def create(
        self,
        ref: TableRef,
        rows: Sequence[Row],
        primary_key: str = DEFAULT_PRIMARY_KEY,
    ) -> None:
        """Create the table on the destination."""
        self.connector.execute(self.build_create_table(ref, rows, primary_key))
        logger.info("lazy-created table %s", self.connector.qualify(ref))
