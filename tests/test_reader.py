"""Tests for the paginated row reader."""

from sqlpipe.connectors.sqlite import SQLiteConnector
from sqlpipe.core.reader import RowReader, is_pageable, paginate

QUERY = 'SELECT id FROM "source"."sales" ORDER BY id'


class TestPaging:
    """Tests for the paging helpers."""

    def test_is_pageable(self) -> None:
        assert is_pageable("SELECT * FROM t")
        assert is_pageable("  (select * from t)")
        assert not is_pageable("SELECT * FROM t LIMIT 5")
        assert not is_pageable("SHOW TABLES")
        assert not is_pageable("DELETE FROM t")

    def test_paginate(self) -> None:
        assert paginate("SELECT * FROM t;", 10, 20) == "SELECT * FROM t LIMIT 10 OFFSET 20"


class TestRowReader:
    """Tests for RowReader."""

    def test_pages_until_empty(self, connector: SQLiteConnector) -> None:
        """Test looping reads every row in page-sized batches."""
        reader = RowReader(connector, page_size=2)
        batches = list(reader.iter_batches(QUERY))
        assert [[r["id"] for r in b] for b in batches] == [[1, 2], [3, 4], [5]]

    def test_single_page(self, connector: SQLiteConnector) -> None:
        """Test looping=False stops after the first page."""
        reader = RowReader(connector, page_size=2)
        assert [r["id"] for r in reader.read(QUERY, looping=False)] == [1, 2]

    def test_limit_and_offset(self, connector: SQLiteConnector) -> None:
        reader = RowReader(connector, page_size=100)
        rows = reader.read(QUERY, looping=False, limit=2, offset=3)
        assert [r["id"] for r in rows] == [4, 5]

    def test_existing_limit_runs_once(self, connector: SQLiteConnector) -> None:
        """Test queries with their own LIMIT are not re-paged."""
        reader = RowReader(connector, page_size=1)
        rows = reader.read(f"{QUERY} LIMIT 3")
        assert [r["id"] for r in rows] == [1, 2, 3]

    def test_empty_result(self, connector: SQLiteConnector) -> None:
        reader = RowReader(connector)
        assert list(reader.iter_batches('SELECT * FROM "source"."sales" WHERE id > 99')) == []

    def test_switches_database(self, connector: SQLiteConnector) -> None:
        """Test the database argument becomes the current database."""
        connector.use("dest")
        reader = RowReader(connector)
        assert len(reader.read('SELECT * FROM "source"."sales"', database="source")) == 5
        assert connector.current_database() == "source"

    def test_stream(self, connector: SQLiteConnector) -> None:
        """Test every batch reaches the consumer."""
        reader = RowReader(connector, page_size=2)
        seen: list[int] = []

        total = reader.stream(QUERY, lambda batch: seen.append(len(batch)))

        assert total == 5
        assert seen == [2, 2, 1]
