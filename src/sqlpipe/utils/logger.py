"""
Logging setup for sqlpipe.

Two loggers matter:
- ``sqlpipe`` (and its children) carries progress: copy start, rows moved,
  stale rows purged, lazily created tables. Level comes from ``LoggingConfig``.
- ``sqlpipe.sql`` carries every executed statement at DEBUG. It is silenced
  unless ``LoggingConfig.echo_sql`` is set, so SQL can be echoed without
  turning the whole package to DEBUG.
"""

from __future__ import annotations

import json
import logging
import sys
from logging.handlers import RotatingFileHandler

from rich.console import Console
from rich.logging import RichHandler

from sqlpipe.config import LoggingConfig


# Progress and SQL go to stderr; stdout is left to command output
console = Console(stderr=True)

logger = logging.getLogger("sqlpipe")
sql_logger = logging.getLogger("sqlpipe.sql")

LINE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(config: LoggingConfig | None = None, quiet: bool = False) -> None:
    """
    Configure the sqlpipe loggers from settings.

    Args:
        config: Logging settings (default: LoggingConfig())
        quiet: Only show warnings and errors, overriding ``config.level``
    """
    config = config or LoggingConfig()

    logger.handlers.clear()
    logger.setLevel(logging.WARNING if quiet else config.level)
    sql_logger.setLevel(logging.DEBUG if config.echo_sql else logging.WARNING)

    logger.addHandler(_console_handler(config.format))
    if config.file:
        config.file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.file,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(
            JsonFormatter()
            if config.format == "json"
            else logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT)
        )
        logger.addHandler(file_handler)


def _console_handler(format_style: str) -> logging.Handler:
    if format_style == "rich":
        handler: logging.Handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            markup=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        return handler

    handler = logging.StreamHandler(sys.stderr)
    if format_style == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(LINE_FORMAT, datefmt=DATE_FORMAT))
    return handler


class JsonFormatter(logging.Formatter):
    """One JSON object per line; statements logged by ``log_sql`` keep their text under "sql"."""

    def format(self, record: logging.LogRecord) -> str:
        data = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        sql = getattr(record, "sql", None)
        if sql is not None:
            data["sql"] = sql
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        return json.dumps(data)


def log_sql(sql: str) -> None:
    """Echo an executed statement on the SQL logger."""
    sql_logger.debug("SQL: %s", sql, extra={"sql": sql})


def get_logger(name: str = "sqlpipe") -> logging.Logger:
    """Get a logger instance. Names outside the package are nested under it."""
    if name != "sqlpipe" and not name.startswith("sqlpipe."):
        name = f"sqlpipe.{name}"
    return logging.getLogger(name)
