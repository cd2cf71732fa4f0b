"""
Abstract strategy interfaces and result contracts for the batch export benchmark.

Concrete strategies (server-side cursor, keyset pagination, offset/limit
pagination, bulk COPY export) subclass AbstractExportStrategy and implement
`export`. The base class owns everything the strategies have in common:
opening the strategy's own output artifact, timing the run from its very first
step, translating failures into a StrategyError with stage context, and
producing exactly one StrategyResult per run.
"""

from __future__ import annotations

import abc
import csv
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

import psycopg
from psycopg_pool import ConnectionPool

from src.domain.models import ExportConfig
from src.infrastructure.csv_sink import CsvSink
from src.utils.logging import get_logger
from src.utils.profiler import profile_block

log = get_logger(__name__)


class StrategyError(RuntimeError):
    """
    A failure local to one strategy run.

    The message names the strategy and the step that failed; the underlying
    driver or I/O error is chained as `__cause__`.
    """

    def __init__(self, strategy: str, message: str) -> None:
        super().__init__(f"{strategy} {message}")
        self.strategy = strategy


@dataclass(frozen=True)
class StrategyResult:
    """
    Terminal outcome of one strategy run.

    Exactly one is produced per launched strategy, successful or not.
    """

    strategy: str
    message: str = ""
    error: Optional[BaseException] = None
    rows: int = 0
    duration_seconds: float = 0.0
    output_path: Optional[str] = None
    peak_rss_bytes: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "message": self.message,
            "error": str(self.error) if self.error is not None else None,
            "rows": self.rows,
            "duration_seconds": round(self.duration_seconds, 2),
            "output_path": self.output_path,
            "peak_rss_bytes": self.peak_rss_bytes,
        }


@runtime_checkable
class ExportStrategy(Protocol):
    """
    Common interface all export strategies must implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier; also names the output artifact.
    description : str
        A human-friendly summary of the approach.
    """

    name: str
    description: str

    def execute(self, pool: ConnectionPool, config: ExportConfig) -> StrategyResult:
        """
        Export every row with primary key <= config.limit and report the outcome.

        Must not raise: failures are returned in the result.
        """
        ...


class AbstractExportStrategy(abc.ABC):
    """
    Template for class-based strategies.

    Subclasses set `name` and `description` and implement `export`, which
    pulls rows from the pool in ascending key order and feeds them to the sink.
    """

    name: str
    description: str

    def execute(self, pool: ConnectionPool, config: ExportConfig) -> StrategyResult:
        output_path = config.artifact_path(self.name)
        sink = CsvSink(output_path)
        error: Optional[StrategyError] = None

        log.info(f"[STRATEGY START] {self.name}", extra={"strategy": self.name})
        with profile_block(self.name) as stats:
            try:
                with self.stage("create output file"):
                    sink.open()
                try:
                    self.export(pool, config, sink)
                finally:
                    with self.stage("close output file"):
                        sink.close()
            except StrategyError as exc:
                error = exc
            except Exception as exc:  # noqa: BLE001 - every failure must become a result
                error = StrategyError(self.name, f"failed unexpectedly: {exc}")
                error.__cause__ = exc

        if error is not None:
            log.error(
                f"[STRATEGY FAILED] {self.name}",
                exc_info=error,
                extra={"strategy": self.name, "rows": sink.rows_written},
            )
            return StrategyResult(
                strategy=self.name,
                error=error,
                rows=sink.rows_written,
                duration_seconds=stats.duration_seconds,
                output_path=str(output_path),
                peak_rss_bytes=stats.peak_rss_bytes,
            )

        log.info(
            f"[STRATEGY SUCCESS] {self.name}",
            extra={
                "strategy": self.name,
                "rows": sink.rows_written,
                "duration": round(stats.duration_seconds, 2),
            },
        )
        return StrategyResult(
            strategy=self.name,
            message=(
                f"{self.name} done in {stats.duration_seconds:.2f} second, "
                f"saved to {output_path}"
            ),
            rows=sink.rows_written,
            duration_seconds=stats.duration_seconds,
            output_path=str(output_path),
            peak_rss_bytes=stats.peak_rss_bytes,
        )

    @contextmanager
    def stage(self, action: str) -> Iterator[None]:
        """Wrap driver and I/O errors raised by one step with what was being done."""
        try:
            yield
        except StrategyError:
            raise
        except (psycopg.Error, OSError, csv.Error, ValueError) as exc:
            raise StrategyError(self.name, f"failed to {action}: {exc}") from exc

    @abc.abstractmethod
    def export(
        self, pool: ConnectionPool, config: ExportConfig, sink: CsvSink
    ) -> None:  # pragma: no cover - interface only
        """Stream all bounded rows, in ascending key order, into the sink."""
        raise NotImplementedError


__all__ = [
    "AbstractExportStrategy",
    "ExportStrategy",
    "StrategyError",
    "StrategyResult",
]
