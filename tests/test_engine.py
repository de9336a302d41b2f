"""Tests for the replication engine."""

from pathlib import Path

import pytest

from sqlpipe.connectors.sqlite import SQLiteConnector
from sqlpipe.core.engine import EngineState, ReplicationEngine, Strategy
from sqlpipe.errors import TableNotFoundError
from sqlpipe.models import EPOCH_FLOOR, SyncPlan, TableRef


def dest_rows(connector: SQLiteConnector) -> list[dict]:
    return connector.query('SELECT * FROM "dest"."sales" ORDER BY id')


class TestFullCopy:
    """Tests for pipe."""

    def test_copies_every_row(
        self, engine: ReplicationEngine, sales: TableRef, dest_sales: TableRef
    ) -> None:
        stats = engine.pipe(sales, dest_sales)

        assert stats.strategy == Strategy.FULL
        assert stats.rows_after == 5
        assert engine.count("sales", "dest") == 5
        assert engine.state == EngineState.DONE

    def test_replaces_existing_rows(
        self,
        engine: ReplicationEngine,
        connector: SQLiteConnector,
        sales: TableRef,
    ) -> None:
        """Test unrelated destination rows and columns are gone afterwards."""
        connector.execute('CREATE TABLE "dest"."sales" (id INTEGER, legacy TEXT)')
        for i in range(100, 108):
            connector.execute(f"INSERT INTO \"dest\".\"sales\" VALUES ({i}, 'old')")

        engine.pipe(sales, TableRef("dest", "sales"))

        assert engine.count("sales", "dest") == 5
        assert "legacy" not in engine.columns("sales", "dest")

    def test_missing_source(self, engine: ReplicationEngine, dest_sales: TableRef) -> None:
        with pytest.raises(TableNotFoundError):
            engine.pipe(TableRef("source", "nope"), dest_sales)
        assert engine.state == EngineState.FAILED


class TestIncrementalCopy:
    """Tests for incremental_pipe."""

    def test_first_run(
        self, engine: ReplicationEngine, sales: TableRef, dest_sales: TableRef
    ) -> None:
        """Test an empty destination receives every row."""
        stats = engine.incremental_pipe(sales, dest_sales)

        assert stats.strategy == Strategy.INCREMENTAL
        assert stats.since == EPOCH_FLOOR
        assert stats.rows_before == 0
        assert stats.rows_after == 5
        assert stats.new_rows == 5
        assert stats.stale_candidates == 0
        assert stats.watermark == "2014-04-03 11:44:12"
        assert engine.state == EngineState.DONE

    def test_rerun_is_a_no_op(
        self,
        engine: ReplicationEngine,
        connector: SQLiteConnector,
        sales: TableRef,
        dest_sales: TableRef,
    ) -> None:
        engine.incremental_pipe(sales, dest_sales)
        before = dest_rows(connector)

        stats = engine.incremental_pipe(sales, dest_sales)

        assert stats.since == "2014-04-03 11:44:12"
        assert stats.new_rows == 0
        assert stats.stale_candidates == 0
        assert dest_rows(connector) == before

    def test_copies_newer_rows_and_repairs_stale_ones(
        self,
        engine: ReplicationEngine,
        connector: SQLiteConnector,
        sales: TableRef,
        dest_sales: TableRef,
    ) -> None:
        """Test updated source rows replace their old copies."""
        engine.incremental_pipe(sales, dest_sales)
        connector.execute(
            "UPDATE \"source\".\"sales\" SET user_id = 7, updated_at = '2014-04-03 11:50:00' "
            "WHERE id = 2"
        )
        connector.execute(
            "INSERT INTO \"source\".\"sales\" VALUES (6, 3, 3, '2014-04-03 11:45:00')"
        )

        stats = engine.incremental_pipe(sales, dest_sales)

        assert stats.rows_before == 5
        assert stats.rows_after == 6
        assert stats.new_rows == 1
        assert stats.stale_candidates == 2
        assert stats.watermark == "2014-04-03 11:50:00"

        rows = {r["id"]: r for r in dest_rows(connector)}
        assert sorted(rows) == [1, 2, 3, 4, 5, 6]
        assert rows[2]["user_id"] == 7

    def test_stale_repair_spans_pages(
        self,
        engine: ReplicationEngine,
        connector: SQLiteConnector,
        sales: TableRef,
        dest_sales: TableRef,
    ) -> None:
        """Test stale keys spread over several key pages are all replaced once."""
        engine.incremental_pipe(sales, dest_sales)
        for i in range(1, 6):
            connector.execute(
                f"UPDATE \"source\".\"sales\" SET user_id = {100 + i}, "
                f"updated_at = '2014-04-04 10:0{i}:00' WHERE id = {i}"
            )
        connector.execute(
            "INSERT INTO \"source\".\"sales\" VALUES "
            "(6, 6, 6, '2014-04-04 10:06:00'), (7, 7, 7, '2014-04-04 10:07:00')"
        )

        stats = engine.incremental_pipe(sales, dest_sales)

        # page_size=2: keys come back as 2 + 2 + 2 + 1
        assert stats.stale_candidates == 7
        assert stats.rows_before == 5
        assert stats.rows_after == 7
        assert stats.new_rows == 2
        assert stats.watermark == "2014-04-04 10:07:00"

        rows = dest_rows(connector)
        ids = [r["id"] for r in rows]
        assert ids == [1, 2, 3, 4, 5, 6, 7]
        assert len(set(ids)) == len(ids)
        assert [r["user_id"] for r in rows[:5]] == [101, 102, 103, 104, 105]

    def test_watermark_boundary_is_exclusive(
        self,
        engine: ReplicationEngine,
        connector: SQLiteConnector,
        sales: TableRef,
        dest_sales: TableRef,
    ) -> None:
        """Test a row sharing the watermark timestamp is not picked up."""
        engine.incremental_pipe(sales, dest_sales)
        connector.execute(
            "INSERT INTO \"source\".\"sales\" VALUES (6, 3, 3, '2014-04-03 11:44:12')"
        )

        stats = engine.incremental_pipe(sales, dest_sales)

        assert stats.new_rows == 0
        assert [r["id"] for r in dest_rows(connector)] == [1, 2, 3, 4, 5]

    def test_keeps_destination_only_rows(
        self,
        engine: ReplicationEngine,
        connector: SQLiteConnector,
        sales: TableRef,
        dest_sales: TableRef,
    ) -> None:
        """Test rows deleted from the source stay in the destination."""
        engine.incremental_pipe(sales, dest_sales)
        connector.execute('DELETE FROM "source"."sales" WHERE id = 1')

        engine.incremental_pipe(sales, dest_sales)

        assert engine.count("sales", "dest") == 5

    def test_custom_matcher(
        self, engine: ReplicationEngine, connector: SQLiteConnector
    ) -> None:
        """Test a matcher other than updated_at."""
        connector.execute(
            'CREATE TABLE "source"."events" (id INTEGER PRIMARY KEY, modified_at TEXT)'
        )
        connector.execute(
            "INSERT INTO \"source\".\"events\" VALUES "
            "(1, '2014-05-01 00:00:00'), (2, '2014-05-02 00:00:00')"
        )

        stats = engine.incremental_pipe(
            TableRef("source", "events"), TableRef("dest", "events"), matcher="modified_at"
        )

        assert stats.rows_after == 2
        assert stats.watermark == "2014-05-02 00:00:00"
        assert engine.max_timestamp("events", "modified_at", "dest") == stats.watermark


class TestOptimisticCopy:
    """Tests for optimistic_pipe and run."""

    def test_incremental_when_matcher_present(
        self, engine: ReplicationEngine, sales: TableRef, dest_sales: TableRef
    ) -> None:
        assert engine.can_incremental_pipe(sales)
        assert engine.optimistic_pipe(sales, dest_sales).strategy == Strategy.INCREMENTAL

    def test_full_when_matcher_missing(self, engine: ReplicationEngine) -> None:
        users = TableRef("source", "users")
        assert not engine.can_incremental_pipe(users)

        stats = engine.optimistic_pipe(users, TableRef("dest", "users"))

        assert stats.strategy == Strategy.FULL
        assert engine.count("users", "dest") == 5

    def test_missing_source_keeps_destination(
        self, engine: ReplicationEngine, sales: TableRef, dest_sales: TableRef
    ) -> None:
        """Test a misspelled source fails while deciding, before any DDL."""
        engine.pipe(sales, dest_sales)

        with pytest.raises(TableNotFoundError):
            engine.optimistic_pipe(TableRef("source", "salez"), dest_sales)

        assert engine.state == EngineState.FAILED
        assert "sales" in engine.tables("dest")
        assert engine.count("sales", "dest") == 5

    def test_run_plan(
        self, engine: ReplicationEngine, sales: TableRef, dest_sales: TableRef
    ) -> None:
        """Test the sales table scenario end to end."""
        stats = engine.run(SyncPlan(sales, dest_sales))

        assert engine.count("sales", "dest") == 5
        assert stats.watermark == engine.max_timestamp("sales", database="source")


class TestTableHelpers:
    """Tests for the engine's table helpers."""

    def test_max_timestamp(self, engine: ReplicationEngine) -> None:
        assert engine.max_timestamp("sales", database="source") == "2014-04-03 11:44:12"

    def test_max_timestamp_empty(self, engine: ReplicationEngine) -> None:
        engine.truncate("sales", "source")
        assert engine.max_timestamp("sales", database="source") == EPOCH_FLOOR

    def test_read_since_is_inclusive(self, engine: ReplicationEngine) -> None:
        batches = list(engine.read_since("sales", "2014-04-03 11:42:12", database="source"))
        assert [r["id"] for batch in batches for r in batch] == [3, 4, 5]
        assert [len(b) for b in batches] == [2, 1]

    def test_count(self, engine: ReplicationEngine) -> None:
        assert engine.count("users", "source") == 5

    def test_tables_and_columns(self, engine: ReplicationEngine) -> None:
        assert engine.tables("source") == ["sales", "users"]
        assert engine.columns("users", "source") == ["id", "email", "name"]

    def test_drop(self, engine: ReplicationEngine) -> None:
        engine.drop("users", "source")
        assert engine.tables("source") == ["sales"]
        with pytest.raises(TableNotFoundError):
            engine.drop("users", "source")

    def test_truncate_missing_table(self, engine: ReplicationEngine) -> None:
        with pytest.raises(TableNotFoundError):
            engine.truncate("other_table", "source")

    def test_try_truncate(self, engine: ReplicationEngine) -> None:
        """Test a missing table is tolerated."""
        assert engine.try_truncate("users", "source") is True
        assert engine.count("users", "source") == 0
        assert engine.try_truncate("other_table", "source") is False

    def test_read_and_write(self, engine: ReplicationEngine) -> None:
        """Test rows read from one table can be written to a new one."""
        rows = engine.read('SELECT * FROM "source"."users" ORDER BY id')
        assert len(rows) == 5

        assert engine.write(rows, "people", database="dest") == 5
        assert engine.columns("people", "dest") == ["id", "email", "name"]
        assert engine.count("people", "dest") == 5

    def test_exec_script(self, engine: ReplicationEngine, tmp_path: Path) -> None:
        script = tmp_path / "setup.sql"
        script.write_text(
            'CREATE TABLE "dest"."notes" (id INTEGER PRIMARY KEY, body TEXT);\n'
            "INSERT INTO \"dest\".\"notes\" VALUES (1, 'a');\n"
            "INSERT INTO \"dest\".\"notes\" VALUES (2, 'b');\n"
        )

        assert engine.exec_script(script) == 3
        assert engine.count("notes", "dest") == 2
