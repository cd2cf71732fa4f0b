"""
Server-side cursor strategy for the batch export benchmark.

Declares a named cursor inside a single transaction and FETCHes `batch_size`
rows at a time until an empty batch comes back. The result set stays on the
server; the client only ever holds one batch.

On failure the transaction is rolled back and the artifact is truncated, so a
non-empty artifact always corresponds to a committed scan.
"""

from __future__ import annotations

from psycopg import sql
from psycopg_pool import ConnectionPool

from src.domain.models import ExportConfig
from src.infrastructure.csv_sink import CsvSink
from src.infrastructure.db_factory import apply_statement_timeout, table_identifier
from src.strategies.abstract import AbstractExportStrategy, StrategyError
from src.utils.logging import get_logger

log = get_logger(__name__)

_SELECT = "SELECT aid, bid, abalance FROM {table} WHERE aid <= %s ORDER BY aid ASC"


class ServerCursorStrategy(AbstractExportStrategy):
    """
    Named psycopg cursor (DECLARE/FETCH/CLOSE) inside one transaction.
    """

    name: str = "cursor"
    description: str = "Transaction-scoped server-side cursor with FETCH batching."

    def __init__(self, cursor_name: str = "export_cursor") -> None:
        self.cursor_name = cursor_name

    def export(self, pool: ConnectionPool, config: ExportConfig, sink: CsvSink) -> None:
        query = sql.SQL(_SELECT).format(table=table_identifier(config.table))
        batches = 0

        with self.stage("acquire connection"), pool.connection() as conn:
            try:
                with self.stage("commit transaction"), conn.transaction():
                    with self.stage("set statement timeout"):
                        apply_statement_timeout(conn, config.statement_timeout_ms)
                    with conn.cursor(name=self.cursor_name) as cur:
                        with self.stage("declare cursor"):
                            cur.execute(query, (config.limit,))
                        while True:
                            with self.stage("fetch data"):
                                batch = cur.fetchmany(config.batch_size)
                            if not batch:
                                break
                            with self.stage("write records"):
                                sink.write_rows(batch)
                            batches += 1
                        with self.stage("close cursor"):
                            cur.close()
            except StrategyError:
                log.warning(
                    "Transaction rolled back; discarding partial artifact",
                    extra={"strategy": self.name, "rows": sink.rows_written},
                )
                sink.discard()
                raise

        log.debug(
            "Cursor scan committed",
            extra={"strategy": self.name, "batches": batches, "rows": sink.rows_written},
        )


__all__ = ["ServerCursorStrategy"]
