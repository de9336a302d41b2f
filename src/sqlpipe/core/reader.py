"""
Row Reader - paginated reads over arbitrary queries.

A bare SELECT without a LIMIT clause is paged with ``LIMIT n OFFSET m``;
anything else runs once, unmodified. Batches come out of a generator, so
callers can stream them, hand them to a consumer, or collect them all.
"""

from __future__ import annotations

import re
from typing import Callable, Iterator

from sqlpipe.connectors.base import Connector
from sqlpipe.models import Row

DEFAULT_PAGE_SIZE = 1000

_SELECT = re.compile(r"^\s*\(?\s*select\b", re.IGNORECASE)
_LIMIT = re.compile(r"\blimit\b", re.IGNORECASE)

BatchConsumer = Callable[[list[Row]], None]


def is_pageable(query: str) -> bool:
    """True for a SELECT that does not already limit its rows."""
    return bool(_SELECT.match(query)) and not _LIMIT.search(query)


def paginate(query: str, limit: int, offset: int) -> str:
    """Append a LIMIT/OFFSET pair to a query."""
    return f"{query.strip().rstrip(';').rstrip()} LIMIT {limit} OFFSET {offset}"


class RowReader:
    """
    Reads query results in pages.

    Example:
        reader = RowReader(connector, page_size=500)

        for batch in reader.iter_batches("SELECT * FROM `app`.`users`"):
            process(batch)

        rows = reader.read("SELECT id FROM `app`.`users`", looping=False)
    """

    def __init__(self, connector: Connector, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.connector = connector
        self.page_size = page_size

    def iter_batches(
        self,
        query: str,
        database: str | None = None,
        looping: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> Iterator[list[Row]]:
        """
        Yield non-empty batches of rows for ``query``.

        Args:
            query: SQL text
            database: Database to switch to before reading
            looping: Keep paging until a page comes back empty
            limit: Page size (default: reader page size)
            offset: Starting offset

        Yields:
            Lists of rows

        Raises:
            QueryError: If any page fails; nothing is retried
        """
        limit = limit or self.page_size
        paged = is_pageable(query)
        if database:
            self.connector.use(database)

        while True:
            sql = paginate(query, limit, offset) if paged else query
            batch = self.connector.query(sql)
            if not batch:
                return
            yield batch
            if not (looping and paged):
                return
            offset += limit

    def stream(
        self,
        query: str,
        consumer: BatchConsumer,
        database: str | None = None,
        looping: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> int:
        """Hand each batch to ``consumer``. Returns the number of rows read."""
        total = 0
        for batch in self.iter_batches(query, database, looping, limit, offset):
            consumer(batch)
            total += len(batch)
        return total

    def read(
        self,
        query: str,
        database: str | None = None,
        looping: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Row]:
        """Collect every batch into one list."""
        rows: list[Row] = []
        for batch in self.iter_batches(query, database, looping, limit, offset):
            rows.extend(batch)
        return rows
