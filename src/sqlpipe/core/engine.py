"""
Replication Engine - full and incremental table copies.

Coordinates the connector, the row reader and the row writer:
- Full copy (``pipe``): drop, recreate LIKE source, INSERT ... SELECT *
- Incremental copy (``incremental_pipe``): copy only rows whose matcher
  column is newer than the destination's watermark, purging stale copies of
  those rows first
- ``optimistic_pipe`` picks incremental when the source has the matcher column

The watermark is always re-derived from the destination table, so re-running
a copy after a failure is safe. The lower bound is exclusive: rows whose
matcher equals the watermark are never looked at again, and a source row
that shares the boundary timestamp but arrived after the last run is skipped.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Iterator

from sqlpipe.config import ReplicationOptions
from sqlpipe.connectors.base import Connector, format_temporal
from sqlpipe.core.reader import RowReader
from sqlpipe.core.schema import SchemaSynthesizer
from sqlpipe.core.writer import RowWriter
from sqlpipe.errors import TableNotFoundError
from sqlpipe.models import EPOCH_FLOOR, Row, SyncPlan, TableRef
from sqlpipe.utils.logger import get_logger

logger = get_logger(__name__)


class Strategy(str, Enum):
    """How a table gets copied."""

    FULL = "full"
    INCREMENTAL = "incremental"


class EngineState(str, Enum):
    """Where the engine is in the current copy."""

    IDLE = "idle"
    DECIDING = "deciding"
    FULL_COPYING = "full_copying"
    INCREMENTAL_COPYING = "incremental_copying"
    DONE = "done"
    FAILED = "failed"


@dataclass
class CopyStats:
    """Statistics for a copy operation."""

    strategy: Strategy
    source: TableRef
    destination: TableRef
    rows_before: int = 0
    rows_after: int = 0
    stale_candidates: int = 0
    since: str | None = None  # exclusive lower bound used (incremental only)
    watermark: str | None = None  # destination watermark after the copy
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def duration_seconds(self) -> float:
        """Duration in seconds."""
        if self.end_time and self.start_time:
            return self.end_time - self.start_time
        if self.start_time:
            return time.time() - self.start_time
        return 0.0

    @property
    def new_rows(self) -> int:
        """Net rows added to the destination."""
        return self.rows_after - self.rows_before


class ReplicationEngine:
    """
    Copies tables between databases reachable through one connector.

    Example:
        with SQLiteConnector({"app": "app.db", "dw": "dw.db"}) as connector:
            engine = ReplicationEngine(connector)
            stats = engine.optimistic_pipe(
                TableRef("app", "sales"), TableRef("dw", "sales")
            )
            print(stats.new_rows, stats.watermark)
    """

    def __init__(
        self,
        connector: Connector,
        options: ReplicationOptions | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            connector: Connector serving both source and destination
            options: Replication options (matcher, primary key, paging, writer)
        """
        self.connector = connector
        self.options = options or ReplicationOptions()
        self.reader = RowReader(connector, page_size=self.options.page_size)
        self.writer = RowWriter(
            connector,
            SchemaSynthesizer(connector),
            transactional=self.options.transactional_upsert,
        )
        self.state = EngineState.IDLE

    @property
    def default_matcher(self) -> str:
        return self.options.matcher

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def pipe(self, source: TableRef, destination: TableRef) -> CopyStats:
        """
        Replace ``destination`` with a full copy of ``source``.

        Returns:
            CopyStats for the copy
        """
        stats = CopyStats(Strategy.FULL, source, destination, start_time=time.time())
        self.state = EngineState.FULL_COPYING
        src, dest = self.connector.qualify(source), self.connector.qualify(destination)
        logger.info("pipe: %s => %s", src, dest)

        try:
            self.connector.drop_table(destination, if_exists=True)
            self.connector.create_table_like(source, destination)
            self.connector.execute(f"INSERT INTO {dest} SELECT * FROM {src}")
            stats.rows_after = self.count(destination.table, destination.database)
        except Exception:
            self.state = EngineState.FAILED
            raise

        stats.end_time = time.time()
        self.state = EngineState.DONE
        logger.info(
            "  ^ moved %d rows in %ds", stats.rows_after, int(stats.duration_seconds)
        )
        return stats

    def incremental_pipe(
        self,
        source: TableRef,
        destination: TableRef,
        matcher: str | None = None,
        primary_key: str | None = None,
    ) -> CopyStats:
        """
        Copy rows of ``source`` newer than the destination's watermark.

        Args:
            source: Table to copy from
            destination: Table to copy into (created LIKE source if missing)
            matcher: Watermark column (default: options.matcher)
            primary_key: Key used to purge stale rows (default: options.primary_key)

        Returns:
            CopyStats for the copy
        """
        matcher = matcher or self.default_matcher
        primary_key = primary_key or self.options.primary_key
        stats = CopyStats(
            Strategy.INCREMENTAL, source, destination, start_time=time.time()
        )
        self.state = EngineState.INCREMENTAL_COPYING

        q = self.connector.quote
        src, dest = self.connector.qualify(source), self.connector.qualify(destination)
        logger.info("incremental_pipe: %s => %s", src, dest)

        try:
            self.connector.create_table_like(source, destination, if_not_exists=True)

            stats.rows_before = self.count(destination.table, destination.database)
            since = self.max_timestamp(destination.table, matcher, destination.database)
            stats.since = since
            newer = f"{q(matcher)} > {self.connector.literal(since)}"

            # Rows newer than the watermark are either stale copies or new;
            # deleting by key is a no-op for the new ones.
            if stats.rows_before > 0:
                for batch in self.reader.iter_batches(
                    f"SELECT {q(primary_key)} FROM {src} WHERE {newer} ORDER BY {q(matcher)}"
                ):
                    keys = ", ".join(self.connector.literal(row[primary_key]) for row in batch)
                    self.connector.execute(
                        f"DELETE FROM {dest} WHERE {q(primary_key)} IN ({keys})"
                    )
                    stats.stale_candidates += len(batch)
                    logger.info(
                        "  ^ deleted up to %d stale rows from %s", len(batch), dest
                    )

            self.connector.execute(
                f"INSERT INTO {dest} SELECT * FROM {src} WHERE {newer} ORDER BY {q(matcher)}"
            )
            stats.rows_after = self.count(destination.table, destination.database)
            stats.watermark = self.max_timestamp(
                destination.table, matcher, destination.database
            )
        except Exception:
            self.state = EngineState.FAILED
            raise

        stats.end_time = time.time()
        self.state = EngineState.DONE
        logger.info(
            "  ^ created %d new rows in %ds", stats.new_rows, int(stats.duration_seconds)
        )
        return stats

    def can_incremental_pipe(self, source: TableRef, matcher: str | None = None) -> bool:
        """True when ``source`` has the matcher column."""
        matcher = matcher or self.default_matcher
        return matcher in self.columns(source.table, source.database)

    def optimistic_pipe(
        self,
        source: TableRef,
        destination: TableRef,
        matcher: str | None = None,
        primary_key: str | None = None,
    ) -> CopyStats:
        """Incremental copy when possible, full copy otherwise."""
        self.state = EngineState.DECIDING
        try:
            incremental = self.can_incremental_pipe(source, matcher)
        except Exception:
            self.state = EngineState.FAILED
            raise

        if incremental:
            return self.incremental_pipe(source, destination, matcher, primary_key)
        return self.pipe(source, destination)

    def run(self, plan: SyncPlan) -> CopyStats:
        """Execute a SyncPlan with ``optimistic_pipe``."""
        return self.optimistic_pipe(
            plan.source, plan.destination, plan.matcher, plan.primary_key
        )

    # ------------------------------------------------------------------
    # Table helpers
    # ------------------------------------------------------------------

    def max_timestamp(
        self,
        table: str,
        matcher: str | None = None,
        database: str | None = None,
    ) -> str:
        """Highest matcher value in a table, or EPOCH_FLOOR when there is none."""
        matcher = matcher or self.default_matcher
        ref = self.connector.ref(table, database)
        q = self.connector.quote
        rows = self.reader.read(
            f"SELECT MAX({q(matcher)}) AS {q(matcher)} FROM {self.connector.qualify(ref)}",
            looping=False,
        )
        if not rows or rows[0].get(matcher) is None:
            return EPOCH_FLOOR
        return _text(rows[0][matcher])

    def read_since(
        self,
        table: str,
        since: Any,
        matcher: str | None = None,
        database: str | None = None,
    ) -> Iterator[list[Row]]:
        """Batches of rows with ``matcher >= since``, oldest first."""
        matcher = matcher or self.default_matcher
        ref = self.connector.ref(table, database)
        q = self.connector.quote
        query = (
            f"SELECT * FROM {self.connector.qualify(ref)} "
            f"WHERE {q(matcher)} >= {self.connector.literal(since)} "
            f"ORDER BY {q(matcher)} ASC"
        )
        return self.reader.iter_batches(query, database)

    def count(self, table: str, database: str | None = None) -> int:
        """Number of rows in a table."""
        ref = self.connector.ref(table, database)
        rows = self.reader.read(
            f"SELECT COUNT(1) AS {self.connector.quote('count')} "
            f"FROM {self.connector.qualify(ref)}",
            looping=False,
        )
        return int(rows[0]["count"])

    def tables(self, database: str | None = None) -> list[str]:
        return self.connector.tables(database)

    def columns(self, table: str, database: str | None = None) -> list[str]:
        return self.connector.columns(table, database)

    def drop(self, table: str, database: str | None = None) -> None:
        """Drop a table. Raises if it does not exist."""
        self.connector.drop_table(self.connector.ref(table, database))

    def truncate(self, table: str, database: str | None = None) -> None:
        """Remove every row from a table. Raises if it does not exist."""
        self.connector.truncate_table(self.connector.ref(table, database))

    def try_truncate(self, table: str, database: str | None = None) -> bool:
        """
        Like ``truncate``, but a missing table is only logged.

        Returns:
            True if the table was truncated
        """
        try:
            self.truncate(table, database)
        except TableNotFoundError as e:
            logger.debug("truncate skipped: %s", e)
            return False
        return True

    def read(
        self,
        query: str,
        database: str | None = None,
        looping: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Row]:
        return self.reader.read(query, database, looping, limit, offset)

    def write(
        self,
        rows: Iterable[Row],
        table: str,
        upsert: bool | None = None,
        database: str | None = None,
        primary_key: str | None = None,
        lazy_create: bool | None = None,
        strict: bool | None = None,
    ) -> int:
        """Write rows; unset arguments come from the replication options."""
        opts = self.options
        return self.writer.write(
            rows,
            table,
            upsert=opts.upsert if upsert is None else upsert,
            database=database,
            primary_key=primary_key or opts.primary_key,
            lazy_create=opts.lazy_create if lazy_create is None else lazy_create,
            strict=opts.strict if strict is None else strict,
        )

    def exec_script(self, path: Path | str) -> int:
        """
        Run every ``;``-separated statement in a SQL file.

        Returns:
            Number of statements executed
        """
        body = Path(path).read_text()
        executed = 0
        for statement in body.split(";"):
            statement = statement.strip()
            if statement:
                self.connector.execute(statement)
                executed += 1
        return executed


def _text(value: Any) -> str:
    """Watermark text for a value read back from the database."""
    if isinstance(value, (date, datetime)):
        return format_temporal(value)
    return str(value)
