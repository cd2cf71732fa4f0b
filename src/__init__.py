"""
Batch Export Benchmark - compares PostgreSQL bulk-extraction techniques.

This package times four ways of exporting a bounded, key-ordered slice of a
table into CSV, all running concurrently against one connection pool:

- Transaction-scoped server-side cursor (DECLARE/FETCH)
- Keyset pagination with a client-side watermark
- OFFSET/LIMIT pagination
- Bulk streaming export via COPY ... TO STDOUT

Each strategy writes its own artifact and reports one timing result; the
harness prints results in the order strategies finish.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from src.config import (
    ArtifactSettings,
    DatabaseSettings,
    Settings,
    get_settings,
    load_settings,
)
from src.domain.models import AccountRow, ExportConfig
from src.orchestrator import (
    BenchmarkHarness,
    HarnessState,
    available_strategies,
    build_strategies,
    run_benchmark,
)
from src.strategies.abstract import (
    AbstractExportStrategy,
    ExportStrategy,
    StrategyError,
    StrategyResult,
)
from src.utils.logging import configure_logging, get_logger
from src.utils.profiler import ProfileStats, profile_block

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "ArtifactSettings",
    "DatabaseSettings",
    "Settings",
    "get_settings",
    "load_settings",
    # Domain
    "AccountRow",
    "ExportConfig",
    # Orchestration
    "BenchmarkHarness",
    "HarnessState",
    "available_strategies",
    "build_strategies",
    "run_benchmark",
    # Strategy abstractions
    "AbstractExportStrategy",
    "ExportStrategy",
    "StrategyError",
    "StrategyResult",
    # Logging
    "configure_logging",
    "get_logger",
    # Profiling
    "ProfileStats",
    "profile_block",
]
