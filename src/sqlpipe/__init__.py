"""sqlpipe - full and incremental table replication between relational schemas."""

__version__ = "0.1.0"
__author__ = "sqlpipe Contributors"

from sqlpipe.config import Settings, ReplicationOptions
from sqlpipe.models import TableRef, SyncPlan

__all__ = ["Settings", "ReplicationOptions", "TableRef", "SyncPlan", "__version__"]
