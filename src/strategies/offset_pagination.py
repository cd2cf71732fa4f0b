"""
OFFSET/LIMIT pagination strategy.

Same bounded, ordered query as the other strategies, paged with
`OFFSET n LIMIT batch_size`. The server has to walk and discard every row
before the offset on each page, so total work grows quadratically with the
number of pages. Kept as the cost baseline for the keyset approach.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence

from src.domain.models import ExportConfig
from src.strategies.pagination import PaginatedExportStrategy, Row


class OffsetPaginationStrategy(PaginatedExportStrategy):
    name: str = "offset_limit"
    description: str = "OFFSET/LIMIT pagination over the ordered, bounded query."

    query_template = (
        "SELECT aid, bid, abalance FROM {table} "
        "WHERE aid <= %(limit)s "
        "ORDER BY aid ASC OFFSET %(offset)s LIMIT %(batch_size)s"
    )

    def first_page(self, config: ExportConfig) -> Dict[str, Any]:
        return {"limit": config.limit, "offset": 0, "batch_size": config.batch_size}

    def next_page(
        self, params: Dict[str, Any], rows: Sequence[Row], config: ExportConfig
    ) -> Dict[str, Any]:
        return {**params, "offset": params["offset"] + config.batch_size}


__all__ = ["OffsetPaginationStrategy"]
