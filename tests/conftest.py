"""Shared fixtures: a source and a destination SQLite database on one connector."""

from pathlib import Path
from typing import Iterator

import pytest

from sqlpipe.config import ReplicationOptions
from sqlpipe.connectors.sqlite import SQLiteConnector
from sqlpipe.core.engine import ReplicationEngine
from sqlpipe.models import TableRef

SALES = [
    (1, 1, 1, "2014-04-03 11:40:12"),
    (2, 1, 2, "2014-04-03 11:41:12"),
    (3, 4, 5, "2014-04-03 11:42:12"),
    (4, 2, 5, "2014-04-03 11:43:12"),
    (5, 3, 1, "2014-04-03 11:44:12"),
]


def seed(connector: SQLiteConnector) -> None:
    """Create the source tables."""
    connector.execute(
        'CREATE TABLE "source"."sales" ('
        "id INTEGER PRIMARY KEY, user_id INTEGER, product_id INTEGER, updated_at TEXT)"
    )
    for row in SALES:
        connector.execute(
            'INSERT INTO "source"."sales" VALUES '
            f"({row[0]}, {row[1]}, {row[2]}, '{row[3]}')"
        )

    # No updated_at column: only full copies apply
    connector.execute(
        'CREATE TABLE "source"."users" (id INTEGER PRIMARY KEY, email TEXT, name TEXT)'
    )
    for i, name in enumerate(["Evan", "Pablo", "Kevin", "Brian", "Aaron"], start=1):
        connector.execute(
            f"INSERT INTO \"source\".\"users\" VALUES ({i}, '{name.lower()}@example.com', '{name}')"
        )


@pytest.fixture
def connector(tmp_path: Path) -> Iterator[SQLiteConnector]:
    """Connector with "source" (seeded) and "dest" (empty) attached."""
    conn = SQLiteConnector(
        {"source": tmp_path / "source.db", "dest": tmp_path / "dest.db"}
    )
    seed(conn)
    yield conn
    conn.close()


@pytest.fixture
def sqlite_files(tmp_path: Path) -> dict[str, Path]:
    """Seeded database files, closed again, for commands that open their own."""
    files = {"source": tmp_path / "source.db", "dest": tmp_path / "dest.db"}
    with SQLiteConnector(files) as conn:
        seed(conn)
    return files


@pytest.fixture
def engine(connector: SQLiteConnector) -> ReplicationEngine:
    """Engine with small pages so paging paths get exercised."""
    return ReplicationEngine(connector, ReplicationOptions(page_size=2))


@pytest.fixture
def sales() -> TableRef:
    return TableRef("source", "sales")


@pytest.fixture
def dest_sales() -> TableRef:
    return TableRef("dest", "sales")
