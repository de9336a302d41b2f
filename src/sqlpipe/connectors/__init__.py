"""Database connectors for sqlpipe."""

from sqlpipe.config import Driver, Settings
from sqlpipe.connectors.base import Connector
from sqlpipe.connectors.mysql import MySQLConnector
from sqlpipe.connectors.sqlite import SQLiteConnector


def create_connector(settings: Settings) -> Connector:
    """Open the connector configured in ``settings.connection``."""
    if settings.connection.driver == Driver.SQLITE:
        return SQLiteConnector.from_settings(settings)
    return MySQLConnector.from_settings(settings)


__all__ = ["Connector", "MySQLConnector", "SQLiteConnector", "create_connector"]
