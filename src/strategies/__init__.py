"""
Strategies package for the batch export benchmark.

This module re-exports the abstract interfaces and the concrete strategy classes
so downstream code can import from `src.strategies` directly.
"""

from src.strategies.abstract import (
    AbstractExportStrategy,
    ExportStrategy,
    StrategyError,
    StrategyResult,
)
from src.strategies.copy_export import CopyExportStrategy
from src.strategies.keyset_pagination import KeysetPaginationStrategy
from src.strategies.offset_pagination import OffsetPaginationStrategy
from src.strategies.pagination import PaginatedExportStrategy
from src.strategies.server_cursor import ServerCursorStrategy

__all__ = [
    # Abstracts
    "AbstractExportStrategy",
    "ExportStrategy",
    "PaginatedExportStrategy",
    "StrategyError",
    "StrategyResult",
    # Concrete strategies
    "CopyExportStrategy",
    "KeysetPaginationStrategy",
    "OffsetPaginationStrategy",
    "ServerCursorStrategy",
]
