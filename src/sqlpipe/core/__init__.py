"""Replication core: type inference, schema synthesis, reading, writing, copying."""

from sqlpipe.core.engine import CopyStats, EngineState, ReplicationEngine, Strategy
from sqlpipe.core.reader import RowReader
from sqlpipe.core.schema import SchemaSynthesizer
from sqlpipe.core.types import infer_type
from sqlpipe.core.writer import RowWriter

__all__ = [
    "CopyStats",
    "EngineState",
    "ReplicationEngine",
    "Strategy",
    "RowReader",
    "SchemaSynthesizer",
    "infer_type",
    "RowWriter",
]
