"""
Infrastructure package for the batch export benchmark.

Centralizes I/O concerns: database connectivity (pool construction, SQL
helpers) and the delimited-text output sink. Keep this layer focused on I/O
and resource management, decoupled from strategy/harness logic.
"""

from src.infrastructure.csv_sink import CsvSink, compare_artifacts, read_artifact
from src.infrastructure.db_factory import (
    apply_statement_timeout,
    build_dsn,
    create_pool,
    get_sync_connection,
    table_identifier,
)

__all__ = [
    "CsvSink",
    "apply_statement_timeout",
    "build_dsn",
    "compare_artifacts",
    "create_pool",
    "get_sync_connection",
    "read_artifact",
    "table_identifier",
]
