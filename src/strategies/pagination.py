"""
Shared loop for the client-driven pagination strategies.

Each page is an independent query on a connection acquired from the pool for
that page alone; there is no transaction spanning pages. A page that comes
back empty ends the scan. Rows already written stay in the artifact if a later
page fails.
"""

from __future__ import annotations

import abc
from typing import Any, Dict, List, Sequence, Tuple

from psycopg import sql
from psycopg_pool import ConnectionPool

from src.domain.models import ExportConfig
from src.infrastructure.csv_sink import CsvSink
from src.infrastructure.db_factory import apply_statement_timeout, table_identifier
from src.strategies.abstract import AbstractExportStrategy
from src.utils.logging import get_logger

log = get_logger(__name__)

Row = Tuple[int, int, int]


class PaginatedExportStrategy(AbstractExportStrategy):
    """
    Template for strategies that page through the table with plain SELECTs.

    Subclasses provide the page query, the parameters for the first page, and
    how to derive the next page's parameters from the rows just read.
    """

    query_template: str

    @abc.abstractmethod
    def first_page(self, config: ExportConfig) -> Dict[str, Any]:
        raise NotImplementedError

    @abc.abstractmethod
    def next_page(
        self, params: Dict[str, Any], rows: Sequence[Row], config: ExportConfig
    ) -> Dict[str, Any]:
        raise NotImplementedError

    def export(self, pool: ConnectionPool, config: ExportConfig, sink: CsvSink) -> None:
        query = sql.SQL(self.query_template).format(table=table_identifier(config.table))
        params = self.first_page(config)
        pages = 0

        while True:
            with self.stage("fetch data"):
                rows = self._fetch_page(pool, config, query, params)
            if not rows:
                break
            with self.stage("write records"):
                sink.write_rows(rows)
            pages += 1
            params = self.next_page(params, rows, config)

        log.debug(
            "Pagination finished",
            extra={"strategy": self.name, "pages": pages, "rows": sink.rows_written},
        )

    @staticmethod
    def _fetch_page(
        pool: ConnectionPool,
        config: ExportConfig,
        query: sql.Composed,
        params: Dict[str, Any],
    ) -> List[Row]:
        with pool.connection() as conn:
            apply_statement_timeout(conn, config.statement_timeout_ms)
            return conn.execute(query, params).fetchall()


__all__ = ["PaginatedExportStrategy", "Row"]
