"""
Benchmark harness: runs the export strategies concurrently and collects results.

Usage (example from CLI):
    from src.orchestrator import run_benchmark

    results = run_benchmark(config, pool, strategy_names=["all"], on_result=print)

Every strategy runs in its own worker thread and reports exactly one
StrategyResult on a shared queue. A supervisor thread waits for all workers to
finish and then closes the queue with a sentinel; the caller's thread drains
the queue in arrival order. Optionally the results are saved to `results/`:
- `results/latest.json` (last run)
- `results/run-<timestamp>.json` (timestamped archive)
"""

from __future__ import annotations

import json
import queue
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from psycopg_pool import ConnectionPool

from src.domain.models import ExportConfig
from src.strategies.abstract import ExportStrategy, StrategyError, StrategyResult
from src.strategies.copy_export import CopyExportStrategy
from src.strategies.keyset_pagination import KeysetPaginationStrategy
from src.strategies.offset_pagination import OffsetPaginationStrategy
from src.strategies.server_cursor import ServerCursorStrategy
from src.utils.logging import get_logger

log = get_logger(__name__)

ResultCallback = Callable[[StrategyResult], None]

# Put on the result queue exactly once, after every strategy has reported.
_CHANNEL_CLOSED = object()


class HarnessState(str, Enum):
    INIT = "init"
    LAUNCHED = "launched"
    DRAINING = "draining"
    DONE = "done"


def _strategy_factories() -> Dict[str, Callable[[], ExportStrategy]]:
    """Registry of available strategies."""
    return {
        "cursor": lambda: ServerCursorStrategy(),
        "custom_cursor": lambda: KeysetPaginationStrategy(),
        "offset_limit": lambda: OffsetPaginationStrategy(),
        "copy": lambda: CopyExportStrategy(),
    }


def available_strategies() -> List[str]:
    """List available strategy names."""
    return sorted(_strategy_factories().keys())


def build_strategies(strategy_names: Optional[Iterable[str]] = None) -> List[ExportStrategy]:
    """
    Instantiate strategies by name. None or ["all"] selects every strategy.

    Raises
    ------
    ValueError
        If a name is not registered.
    """
    factories = _strategy_factories()
    names = list(strategy_names) if strategy_names is not None else ["all"]
    if not names or "all" in names:
        names = list(factories)

    unknown = [name for name in names if name not in factories]
    if unknown:
        raise ValueError(
            f"Unknown strategy '{unknown[0]}'. Available: {', '.join(sorted(factories))}"
        )
    # Duplicates would share an artifact.
    return [factories[name]() for name in dict.fromkeys(names)]


class BenchmarkHarness:
    """
    Runs a fixed set of strategies once, concurrently, against a shared pool.

    State machine: INIT -> LAUNCHED -> DRAINING -> DONE. Results are handed
    to `on_result` while draining, in the order strategies finish.
    """

    def __init__(
        self,
        strategies: Sequence[ExportStrategy],
        pool: ConnectionPool,
        config: ExportConfig,
    ) -> None:
        if not strategies:
            raise ValueError("At least one strategy is required")
        names = [strategy.name for strategy in strategies]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"Strategy names must be unique, got duplicates: {duplicates}")

        self.strategies = list(strategies)
        self.pool = pool
        self.config = config
        self.state = HarnessState.INIT

    def run(self, on_result: Optional[ResultCallback] = None) -> List[StrategyResult]:
        if self.state is not HarnessState.INIT:
            raise RuntimeError(f"Harness already used (state={self.state.value})")

        channel: "queue.Queue[object]" = queue.Queue()
        results: List[StrategyResult] = []

        with ThreadPoolExecutor(
            max_workers=len(self.strategies), thread_name_prefix="strategy"
        ) as executor:
            futures = [
                executor.submit(self._run_strategy, strategy, channel)
                for strategy in self.strategies
            ]
            self._transition(HarnessState.LAUNCHED)

            supervisor = threading.Thread(
                target=self._close_when_done,
                args=(futures, channel),
                name="harness-supervisor",
                daemon=True,
            )
            supervisor.start()
            self._transition(HarnessState.DRAINING)

            for result in iter(channel.get, _CHANNEL_CLOSED):
                results.append(result)
                if on_result is not None:
                    self._notify(on_result, result)
            supervisor.join()

        self._transition(HarnessState.DONE)
        return results

    def _run_strategy(self, strategy: ExportStrategy, channel: "queue.Queue[object]") -> None:
        try:
            result = strategy.execute(self.pool, self.config)
        except Exception as exc:  # noqa: BLE001 - a result must be reported regardless
            log.exception(
                f"[STRATEGY CRASHED] {strategy.name}", extra={"strategy": strategy.name}
            )
            error = StrategyError(strategy.name, f"failed unexpectedly: {exc}")
            error.__cause__ = exc
            result = StrategyResult(strategy=strategy.name, error=error)
        channel.put(result)

    @staticmethod
    def _notify(on_result: ResultCallback, result: StrategyResult) -> None:
        try:
            on_result(result)
        except Exception:  # noqa: BLE001 - the remaining results must still be drained
            log.exception(
                f"[HARNESS] result callback failed for {result.strategy}",
                extra={"strategy": result.strategy},
            )

    @staticmethod
    def _close_when_done(futures: Sequence[Future], channel: "queue.Queue[object]") -> None:
        wait(futures)
        channel.put(_CHANNEL_CLOSED)

    def _transition(self, state: HarnessState) -> None:
        log.debug(
            f"[HARNESS] {self.state.value} -> {state.value}",
            extra={"strategies": [s.name for s in self.strategies]},
        )
        self.state = state


def _persist_results(payload: dict, results_dir: Path) -> None:
    results_dir.mkdir(parents=True, exist_ok=True)
    latest_path = results_dir / "latest.json"
    timestamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    archive_path = results_dir / f"run-{timestamp}.json"

    with latest_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)
    with archive_path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, sort_keys=True)

    log.info("Results persisted", extra={"latest": str(latest_path), "archive": str(archive_path)})


def run_benchmark(
    config: ExportConfig,
    pool: ConnectionPool,
    strategy_names: Optional[Iterable[str]] = None,
    on_result: Optional[ResultCallback] = None,
    persist: bool = False,
    results_dir: Path | str = "results",
) -> List[StrategyResult]:
    """
    Run the selected strategies concurrently and return their results.

    Parameters
    ----------
    config : ExportConfig
        Scan parameters shared read-only by every strategy.
    pool : ConnectionPool
        Opened pool; each strategy acquires its own connections from it.
    strategy_names : iterable[str] | None
        Strategy names to execute. If None or ["all"], executes all available.
    on_result : callable, optional
        Invoked with each result as it arrives.
    persist : bool
        Whether to write results to disk.
    results_dir : Path | str
        Directory to store JSON artifacts.

    Returns
    -------
    List[StrategyResult]
        One result per strategy, in completion order.
    """
    strategies = build_strategies(strategy_names)
    names = [strategy.name for strategy in strategies]
    log.info(
        f"[HARNESS START] {len(strategies)} strategies",
        extra={"strategies": names, "limit": config.limit, "batch_size": config.batch_size},
    )

    results = BenchmarkHarness(strategies, pool, config).run(on_result=on_result)

    failed = [result.strategy for result in results if not result.ok]
    log.info(
        f"[HARNESS COMPLETE] {len(results) - len(failed)}/{len(results)} strategies succeeded",
        extra={"strategies": names, "failed": failed},
    )

    if persist:
        payload = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "limit": config.limit,
            "batch_size": config.batch_size,
            "strategies": names,
            "results": [result.to_dict() for result in results],
        }
        _persist_results(payload, Path(results_dir))

    return results


__all__ = [
    "BenchmarkHarness",
    "HarnessState",
    "available_strategies",
    "build_strategies",
    "run_benchmark",
]
