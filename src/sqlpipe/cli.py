"""
sqlpipe CLI - Command Line Interface.

Commands:
    pipe         Full copy: replace DEST with SOURCE
    incremental  Copy rows of SOURCE newer than DEST's watermark
    optimistic   Incremental when SOURCE has the matcher column, full otherwise
    tables       List tables in a database
    count        Count rows in a table
    exec         Run a SQL script
    config       Manage configuration

Tables are given as ``database.table``.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import typer
from rich.console import Console
from rich.table import Table

from sqlpipe import __version__
from sqlpipe.config import Driver, Settings, load_settings
from sqlpipe.connectors import create_connector
from sqlpipe.core.engine import CopyStats, ReplicationEngine
from sqlpipe.errors import SqlPipeError
from sqlpipe.models import TableRef
from sqlpipe.utils.display import (
    print_error,
    print_info,
    print_success,
    print_summary,
    print_tables,
    print_warning,
)
from sqlpipe.utils.logger import setup_logging


app = typer.Typer(
    name="sqlpipe",
    help="Full and incremental table replication between relational schemas.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold cyan]sqlpipe[/bold cyan] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """sqlpipe - full and incremental table replication."""
    pass


# Shared options
ConfigOption = typer.Option(
    None, "--config", "-c", help="Path to config file.", exists=True, dir_okay=False
)
DriverOption = typer.Option(None, "--driver", help="Database driver (overrides config).")
SqliteOption = typer.Option(
    None,
    "--sqlite",
    help="Attach a SQLite database as NAME=PATH (can be repeated).",
)
DatabaseOption = typer.Option(
    None, "--database", "-d", help="Default database (overrides config)."
)
QuietOption = typer.Option(False, "--quiet", "-q", help="Minimal output.")
DebugOption = typer.Option(False, "--debug", help="Log executed SQL.")


# =============================================================================
# Copy Commands
# =============================================================================
@app.command()
def pipe(
    source: str = typer.Argument(..., help="Source table (database.table)."),
    destination: str = typer.Argument(..., help="Destination table (database.table)."),
    config_file: Optional[Path] = ConfigOption,
    driver: Optional[Driver] = DriverOption,
    sqlite: Optional[list[str]] = SqliteOption,
    database: Optional[str] = DatabaseOption,
    quiet: bool = QuietOption,
    debug: bool = DebugOption,
) -> None:
    """
    Full copy: drop DEST, recreate it like SOURCE and copy every row.

    Example:
        sqlpipe pipe app.sales warehouse.sales
    """
    settings = _load(config_file, driver=driver, sqlite=sqlite, database=database)
    _copy(settings, quiet, debug, lambda engine: engine.pipe(*_refs(source, destination, settings)))


@app.command()
def incremental(
    source: str = typer.Argument(..., help="Source table (database.table)."),
    destination: str = typer.Argument(..., help="Destination table (database.table)."),
    matcher: Optional[str] = typer.Option(
        None, "--matcher", "-m", help="Watermark column (default: updated_at)."
    ),
    primary_key: Optional[str] = typer.Option(
        None, "--primary-key", "-k", help="Primary key column (default: id)."
    ),
    config_file: Optional[Path] = ConfigOption,
    driver: Optional[Driver] = DriverOption,
    sqlite: Optional[list[str]] = SqliteOption,
    database: Optional[str] = DatabaseOption,
    quiet: bool = QuietOption,
    debug: bool = DebugOption,
) -> None:
    """
    Incremental copy of rows newer than the destination's watermark.

    Example:
        sqlpipe incremental app.sales warehouse.sales --matcher updated_at
    """
    settings = _load(
        config_file,
        driver=driver,
        sqlite=sqlite,
        database=database,
        matcher=matcher,
        primary_key=primary_key,
    )
    _copy(
        settings,
        quiet,
        debug,
        lambda engine: engine.incremental_pipe(*_refs(source, destination, settings)),
    )


@app.command()
def optimistic(
    source: str = typer.Argument(..., help="Source table (database.table)."),
    destination: str = typer.Argument(..., help="Destination table (database.table)."),
    matcher: Optional[str] = typer.Option(
        None, "--matcher", "-m", help="Watermark column (default: updated_at)."
    ),
    primary_key: Optional[str] = typer.Option(
        None, "--primary-key", "-k", help="Primary key column (default: id)."
    ),
    config_file: Optional[Path] = ConfigOption,
    driver: Optional[Driver] = DriverOption,
    sqlite: Optional[list[str]] = SqliteOption,
    database: Optional[str] = DatabaseOption,
    quiet: bool = QuietOption,
    debug: bool = DebugOption,
) -> None:
    """
    Incremental copy when SOURCE has the matcher column, full copy otherwise.

    Example:
        sqlpipe optimistic app.sales warehouse.sales
    """
    settings = _load(
        config_file,
        driver=driver,
        sqlite=sqlite,
        database=database,
        matcher=matcher,
        primary_key=primary_key,
    )
    _copy(
        settings,
        quiet,
        debug,
        lambda engine: engine.optimistic_pipe(*_refs(source, destination, settings)),
    )


# =============================================================================
# Inspection Commands
# =============================================================================
@app.command()
def tables(
    database: Optional[str] = typer.Argument(None, help="Database to list."),
    config_file: Optional[Path] = ConfigOption,
    driver: Optional[Driver] = DriverOption,
    sqlite: Optional[list[str]] = SqliteOption,
) -> None:
    """List tables in a database."""
    settings = _load(config_file, driver=driver, sqlite=sqlite, database=database)
    with _engine(settings) as engine:
        target = database or engine.connector.current_database()
        names = engine.tables(target)
    if not names:
        print_warning(f"No tables in {target}")
        return
    print_tables(target, names)


@app.command()
def count(
    table: str = typer.Argument(..., help="Table (database.table)."),
    config_file: Optional[Path] = ConfigOption,
    driver: Optional[Driver] = DriverOption,
    sqlite: Optional[list[str]] = SqliteOption,
) -> None:
    """Count rows in a table."""
    settings = _load(config_file, driver=driver, sqlite=sqlite)
    with _engine(settings) as engine:
        ref = TableRef.parse(table, settings.connection.database)
        console.print(f"{ref}: {engine.count(ref.table, ref.database):,} rows")


@app.command("exec")
def exec_script(
    script: Path = typer.Argument(
        ..., help="SQL script to run.", exists=True, dir_okay=False
    ),
    config_file: Optional[Path] = ConfigOption,
    driver: Optional[Driver] = DriverOption,
    sqlite: Optional[list[str]] = SqliteOption,
    database: Optional[str] = DatabaseOption,
) -> None:
    """Run every statement of a SQL script."""
    settings = _load(config_file, driver=driver, sqlite=sqlite, database=database)
    setup_logging(settings.logging)
    with _engine(settings) as engine:
        executed = engine.exec_script(script)
    print_success(f"Executed {executed} statements from {script.name}")


# =============================================================================
# CONFIG Command
# =============================================================================
@app.command()
def config(
    show: bool = typer.Option(
        False,
        "--show",
        help="Show current configuration.",
    ),
    init: bool = typer.Option(
        False,
        "--init",
        help="Write a config file with the current settings.",
    ),
    output: Path = typer.Option(
        Path("sqlpipe.toml"),
        "--output",
        "-o",
        help="Output path for config file.",
    ),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """Manage configuration."""
    settings = _load(config_file)

    if init:
        settings.to_file(output)
        print_success(f"Generated config file: {output}")
        return

    if show:
        conn, repl = settings.connection, settings.replication
        table = Table(title="Current Configuration", border_style="cyan")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")

        table.add_row("Driver", conn.driver.value)
        if conn.driver == Driver.SQLITE:
            for name, path in conn.sqlite_databases.items():
                table.add_row(f"SQLite '{name}'", str(path))
        else:
            table.add_row("Server", f"{conn.user}@{conn.host}:{conn.port}")
        table.add_row("Database", conn.database or "[dim]not set[/dim]")
        table.add_row("Matcher", repl.matcher)
        table.add_row("Primary Key", repl.primary_key)
        table.add_row("Page Size", f"{repl.page_size} rows")
        table.add_row("Strict Writes", str(repl.strict))

        console.print(table)
        return

    console.print("Use --show to view config or --init to create config file.")


# =============================================================================
# Helper Functions
# =============================================================================
def _load(config_file: Path | None = None, **overrides: Any) -> Settings:
    """Build settings from config file and CLI overrides."""
    try:
        settings = load_settings(config_file)
        _apply_overrides(settings, **overrides)
    except (ValueError, FileNotFoundError) as e:
        print_error(str(e))
        raise typer.Exit(1)

    errors = settings.validate_connection()
    if errors:
        for err in errors:
            print_error(err)
        print_info("Use --help for configuration options.")
        raise typer.Exit(1)
    return settings


def _apply_overrides(settings: Settings, **overrides: Any) -> None:
    conn, repl = settings.connection, settings.replication

    if overrides.get("sqlite"):
        conn.driver = Driver.SQLITE
        for spec in overrides["sqlite"]:
            name, sep, path = spec.partition("=")
            if not sep or not name or not path:
                raise ValueError(f"Expected NAME=PATH, got: {spec!r}")
            conn.sqlite_databases[name] = Path(path)
    if overrides.get("driver"):
        conn.driver = overrides["driver"]
    if overrides.get("database"):
        conn.database = overrides["database"]
    if conn.driver == Driver.SQLITE and not conn.database and conn.sqlite_databases:
        conn.database = next(iter(conn.sqlite_databases))
    if overrides.get("matcher"):
        repl.matcher = overrides["matcher"]
    if overrides.get("primary_key"):
        repl.primary_key = overrides["primary_key"]


def _refs(source: str, destination: str, settings: Settings) -> tuple[TableRef, TableRef]:
    default = settings.connection.database or None
    return TableRef.parse(source, default), TableRef.parse(destination, default)


@contextmanager
def _engine(settings: Settings) -> Iterator[ReplicationEngine]:
    """Open a connector and engine for the duration of a command."""
    connector = create_connector(settings)
    try:
        yield ReplicationEngine(connector, settings.replication)
    except SqlPipeError as e:
        print_error(str(e))
        raise typer.Exit(1) from e
    finally:
        connector.close()


def _copy(
    settings: Settings,
    quiet: bool,
    debug: bool,
    run: Callable[[ReplicationEngine], CopyStats],
) -> None:
    """Run one copy and report it."""
    if debug:
        settings.logging.echo_sql = True
    setup_logging(settings.logging, quiet=quiet)

    try:
        with _engine(settings) as engine:
            stats = run(engine)
    except ValueError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if not quiet:
        console.print()
        print_summary(stats)
    print_success(f"{stats.strategy.value.capitalize()} copy completed: {stats.destination}")


if __name__ == "__main__":
    app()
