"""
sqlpipe Configuration System.

This module provides a type-safe configuration system using Pydantic.
Settings can be loaded from:
1. Environment variables (prefixed with SQLPIPE_)
2. Config file (TOML or JSON)
3. CLI arguments (highest priority)

Example usage:
    from sqlpipe.config import Settings

    # Load from environment
    settings = Settings()

    # Or with explicit values
    settings = Settings(
        connection={"driver": "mysql", "host": "db", "database": "warehouse"},
        replication={"matcher": "modified_at"},
    )
"""

from __future__ import annotations

import json
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Self

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sqlpipe.models import DEFAULT_MATCHER, DEFAULT_PRIMARY_KEY


class Driver(str, Enum):
    """Database driver used for both source and destination."""

    MYSQL = "mysql"
    SQLITE = "sqlite"


class ConnectionConfig(BaseModel):
    """Database connection configuration."""

    driver: Driver = Field(
        default=Driver.MYSQL,
        description="Database driver (mysql/sqlite)",
    )
    host: str = Field(
        default="localhost",
        description="MySQL server host",
    )
    port: int = Field(
        default=3306,
        ge=1,
        le=65535,
        description="MySQL server port",
    )
    user: str = Field(
        default="root",
        description="MySQL user",
    )
    password: SecretStr = Field(
        default=SecretStr(""),
        description="MySQL password",
    )
    database: str = Field(
        default="",
        description="Default database for unqualified tables",
    )
    connect_timeout: int = Field(
        default=10,
        ge=1,
        le=300,
        description="Connection timeout in seconds",
    )

    # SQLite: every entry is attached under its key as schema name
    sqlite_databases: dict[str, Path] = Field(
        default_factory=dict,
        description="SQLite schema name -> database file",
    )

    @field_validator("password", mode="before")
    @classmethod
    def validate_password(cls, v: Any) -> SecretStr:
        """Handle password from various sources."""
        if isinstance(v, SecretStr):
            return v
        if isinstance(v, str):
            return SecretStr(v)
        return SecretStr("")

    @model_validator(mode="after")
    def default_sqlite_database(self) -> Self:
        """Use the first attached SQLite database when no default is set."""
        if self.driver == Driver.SQLITE and not self.database and self.sqlite_databases:
            self.database = next(iter(self.sqlite_databases))
        return self


class ReplicationOptions(BaseModel):
    """Options controlling replication behaviour."""

    matcher: str = Field(
        default=DEFAULT_MATCHER,
        min_length=1,
        description="Column whose maximum value is the replication watermark",
    )
    primary_key: str = Field(
        default=DEFAULT_PRIMARY_KEY,
        min_length=1,
        description="Primary key column used for stale-row repair and upserts",
    )
    page_size: int = Field(
        default=1000,
        ge=1,
        le=100_000,
        description="Rows per page when reading",
    )

    # Row writer defaults
    upsert: bool = Field(
        default=True,
        description="Delete rows by primary key before inserting them",
    )
    lazy_create: bool = Field(
        default=True,
        description="Create missing destination tables from the written rows",
    )
    strict: bool = Field(
        default=False,
        description="Fail on columns the destination does not have instead of dropping them",
    )
    transactional_upsert: bool = Field(
        default=False,
        description="Wrap each delete+insert pair in a transaction",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Log level",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path (None = console only)",
    )
    format: str = Field(
        default="rich",
        pattern="^(rich|json|simple)$",
        description="Log format: rich (colored), json, or simple",
    )
    max_file_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Max log file size before rotation",
    )
    backup_count: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Number of rotated log files to keep",
    )
    echo_sql: bool = Field(
        default=False,
        description="Log every executed statement, whatever the level",
    )


class Settings(BaseSettings):
    """
    Main settings class for sqlpipe.

    Settings are loaded in this priority (highest first):
    1. Explicit constructor arguments
    2. Environment variables (SQLPIPE_* prefix)
    3. Config file (if specified)
    4. Defaults

    Example:
        # From environment
        export SQLPIPE_CONNECTION__HOST="db.internal"
        export SQLPIPE_CONNECTION__PASSWORD="secret"
        settings = Settings()

        # From config file
        settings = Settings.from_file("sqlpipe.toml")
    """

    model_config = SettingsConfigDict(
        env_prefix="SQLPIPE_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    replication: ReplicationOptions = Field(default_factory=ReplicationOptions)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: Path | str) -> "Settings":
        """Load settings from a TOML or JSON config file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        content = path.read_text()

        if path.suffix in (".toml", ".tml"):
            data = tomllib.loads(content)
        elif path.suffix == ".json":
            data = json.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")

        return cls.model_validate(data)

    def to_file(self, path: Path | str) -> None:
        """Save current settings to a config file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)

        # Mask sensitive data
        if data.get("connection", {}).get("password") is not None:
            data["connection"]["password"] = "***REDACTED***"

        if path.suffix in (".toml", ".tml"):
            lines = []
            for section, value in data.items():
                lines.append(f"\n[{section}]")
                for k, v in value.items():
                    if isinstance(v, dict):
                        continue
                    lines.append(f"{k} = {json.dumps(v)}")
                for k, v in value.items():
                    if isinstance(v, dict):
                        lines.append(f"\n[{section}.{k}]")
                        lines.extend(f"{name} = {json.dumps(p)}" for name, p in v.items())
            path.write_text("\n".join(lines).lstrip() + "\n")
        else:
            path.write_text(json.dumps(data, indent=2))

    def validate_connection(self) -> list[str]:
        """Validate that the connection can be opened. Returns list of errors."""
        errors = []
        conn = self.connection
        if conn.driver == Driver.SQLITE:
            if not conn.sqlite_databases:
                errors.append("sqlite_databases must name at least one database")
        else:
            if not conn.host:
                errors.append("host is required")
            if not conn.user:
                errors.append("user is required")
        return errors


# Convenience function for loading settings
def load_settings(
    config_file: Path | str | None = None,
    **overrides: Any,
) -> Settings:
    """
    Load settings with optional config file and overrides.

    Args:
        config_file: Optional path to config file
        **overrides: Settings to override (highest priority)

    Returns:
        Configured Settings instance
    """
    if config_file:
        settings = Settings.from_file(config_file)
        if overrides:
            data = settings.model_dump()
            data.update(overrides)
            return Settings.model_validate(data)
        return settings
    return Settings(**overrides)
