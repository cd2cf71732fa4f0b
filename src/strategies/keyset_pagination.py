"""
Keyset ("custom cursor") pagination strategy.

Keeps the highest key seen so far as a client-side watermark and asks for the
next `batch_size` rows strictly above it. Each page is an index range scan, so
cost per page stays flat however deep the scan goes. Results are consistent
only if nothing rewrites key ranges that were already scanned.
"""

from __future__ import annotations

from typing import Any, Dict, Sequence

from src.domain.models import ExportConfig
from src.strategies.pagination import PaginatedExportStrategy, Row

# Smallest bigint; every key is above it.
MIN_KEY = -(2**63)


class KeysetPaginationStrategy(PaginatedExportStrategy):
    name: str = "custom_cursor"
    description: str = "Client-side keyset pagination (WHERE aid > watermark LIMIT n)."

    query_template = (
        "SELECT aid, bid, abalance FROM {table} "
        "WHERE aid > %(watermark)s AND aid <= %(limit)s "
        "ORDER BY aid ASC LIMIT %(batch_size)s"
    )

    def first_page(self, config: ExportConfig) -> Dict[str, Any]:
        return {"watermark": MIN_KEY, "limit": config.limit, "batch_size": config.batch_size}

    def next_page(
        self, params: Dict[str, Any], rows: Sequence[Row], config: ExportConfig
    ) -> Dict[str, Any]:
        watermark = max(row[0] for row in rows)
        return {**params, "watermark": watermark}


__all__ = ["KeysetPaginationStrategy", "MIN_KEY"]
