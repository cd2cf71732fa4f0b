from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, List, Optional, Type

import psycopg
import typer
from pydantic import ValidationError

from src.config import ArtifactSettings, DatabaseSettings, Settings, load_settings
from src.domain.models import ExportConfig
from src.infrastructure.csv_sink import compare_artifacts
from src.infrastructure.db_factory import create_pool
from src.orchestrator import available_strategies, build_strategies, run_benchmark
from src.reporter import format_result, print_comparison, print_summary
from src.utils.logging import configure_logging, get_logger

app = typer.Typer(help="Batch Export Benchmark CLI.")
log = get_logger("src.main")

_STRATEGY_OPTION_HELP = (
    "Strategy to run; repeat for several (cursor, custom_cursor, offset_limit, copy, all). "
    "Use 'list' to show the registry."
)


def _settings_or_exit(
    settings_cls: Type[DatabaseSettings] = Settings,
    limit: Optional[int] = None,
    batch_size: Optional[int] = None,
    output_dir: Optional[Path] = None,
) -> Any:
    """Load settings; configuration errors end the process before any strategy runs."""
    configure_logging()
    try:
        settings = load_settings(
            settings_cls,
            data_limit=limit,
            data_batch_size=batch_size,
            output_dir=str(output_dir) if output_dir is not None else None,
        )
    except ValidationError as exc:
        log.critical(f"Invalid configuration: {exc}")
        raise typer.Exit(code=1) from exc
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    return settings


def _strategies_or_exit(strategy: List[str]) -> List[str]:
    try:
        return [s.name for s in build_strategies(strategy)]
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--strategy") from exc


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = _settings_or_exit()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"table={settings.data_table} limit={settings.data_limit} "
        f"batch={settings.data_batch_size} output={settings.output_dir} "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size})"
    )


@app.command("list")
def list_strategies() -> None:
    """
    List registered strategies.
    """
    typer.echo("Available strategies: " + ", ".join(available_strategies()))


@app.command()
def run(
    strategy: List[str] = typer.Option(
        ["all"], "--strategy", "--strategies", "-s", help=_STRATEGY_OPTION_HELP
    ),
    limit: Optional[int] = typer.Option(
        None, "--limit", "-l", help="Override DATA_LIMIT (highest primary key exported)."
    ),
    batch_size: Optional[int] = typer.Option(
        None, "--batch-size", "-b", help="Override DATA_BATCH_SIZE (rows per round-trip)."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Override OUTPUT_DIR for the CSV artifacts."
    ),
    summary: bool = typer.Option(
        False, "--summary/--no-summary", help="Print a results table after all strategies finish."
    ),
    persist: bool = typer.Option(
        False, "--persist/--no-persist", help="Save results as JSON under --results-dir."
    ),
    results_dir: Path = typer.Option(Path("results"), "--results-dir", help="JSON results directory."),
) -> None:
    """
    Run the selected strategies concurrently and print one line per strategy as it finishes.
    """
    if strategy == ["list"]:
        list_strategies()
        return

    names = _strategies_or_exit(strategy)
    settings = _settings_or_exit(limit=limit, batch_size=batch_size, output_dir=output_dir)
    config = ExportConfig.from_settings(settings)

    try:
        pool = create_pool(settings)
    except psycopg.Error as exc:
        log.critical(f"Unable to create connection pool: {exc}")
        raise typer.Exit(code=1) from exc

    try:
        results = run_benchmark(
            config,
            pool,
            strategy_names=names,
            on_result=lambda result: typer.echo(format_result(result)),
            persist=persist,
            results_dir=results_dir,
        )
    finally:
        pool.close()

    if summary:
        print_summary(results)


@app.command()
def verify(
    strategy: List[str] = typer.Option(
        ["all"], "--strategy", "--strategies", "-s", help=_STRATEGY_OPTION_HELP
    ),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", help="Override DATA_LIMIT."),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o", help="Override OUTPUT_DIR."),
) -> None:
    """
    Check the artifacts of a previous run: bounded, ascending, and identical across strategies.
    """
    names = _strategies_or_exit(strategy)
    settings = _settings_or_exit(ArtifactSettings, limit=limit, output_dir=output_dir)
    output = Path(settings.output_dir)

    comparison = compare_artifacts(
        {name: output / f"{name}.csv" for name in names}, limit=settings.data_limit
    )
    print_comparison(comparison)
    if not comparison.ok:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
