"""
Bulk streaming export strategy.

Runs a single `COPY (SELECT ...) TO STDOUT WITH (FORMAT csv)` and streams the
server-formatted chunks straight into the artifact. There is no client batching
loop; the copy protocol decides chunk sizes. This is the practical lower bound
the other strategies are measured against.
"""

from __future__ import annotations

from psycopg import sql
from psycopg_pool import ConnectionPool

from src.domain.models import ExportConfig
from src.infrastructure.csv_sink import CsvSink
from src.infrastructure.db_factory import apply_statement_timeout, table_identifier
from src.strategies.abstract import AbstractExportStrategy
from src.utils.logging import get_logger

log = get_logger(__name__)

_COPY = (
    "COPY (SELECT aid, bid, abalance FROM {table} WHERE aid <= %s ORDER BY aid ASC) "
    "TO STDOUT WITH (FORMAT csv)"
)


class CopyExportStrategy(AbstractExportStrategy):
    """
    psycopg COPY TO STDOUT, written chunk by chunk as it arrives.
    """

    name: str = "copy"
    description: str = "COPY ... TO STDOUT (FORMAT csv) streamed into the artifact."

    def export(self, pool: ConnectionPool, config: ExportConfig, sink: CsvSink) -> None:
        statement = sql.SQL(_COPY).format(table=table_identifier(config.table))
        chunks = 0

        with self.stage("acquire connection"), pool.connection() as conn:
            with self.stage("set statement timeout"):
                apply_statement_timeout(conn, config.statement_timeout_ms)
            with self.stage("stream export"), conn.cursor() as cur:
                # Parameters are merged client-side for COPY.
                with cur.copy(statement, (config.limit,)) as copy:
                    for chunk in copy:
                        with self.stage("write records"):
                            sink.write_chunk(chunk)
                        chunks += 1

        log.debug(
            "Copy stream finished",
            extra={"strategy": self.name, "chunks": chunks, "rows": sink.rows_written},
        )


__all__ = ["CopyExportStrategy"]
