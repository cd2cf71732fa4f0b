from __future__ import annotations

from typing import Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from src.infrastructure.csv_sink import ArtifactComparison
from src.strategies.abstract import StrategyResult


def format_result(result: StrategyResult) -> str:
    """One console line per strategy: the error text or the timing message."""
    if result.error is not None:
        return str(result.error)
    return result.message


def print_summary(results: Sequence[StrategyResult], console: Optional[Console] = None) -> None:
    """
    Render benchmark results as a rich table, fastest successful strategy first.

    Failed strategies are listed last with their error.
    """
    console = console or Console()

    if not results:
        console.print("[yellow]No results to display.[/yellow]")
        return

    table = Table(
        title="Batch Export Benchmark Results",
        box=box.ROUNDED,
        caption="Sorted by Duration (ascending)",
    )
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Duration (s)", justify="right", style="green")
    table.add_column("Throughput (rows/s)", justify="right", style="bold green")
    table.add_column("Peak Memory (MB)", justify="right", style="yellow")
    table.add_column("Artifact / Error", overflow="fold")

    def sort_key(r: StrategyResult) -> tuple:
        return (not r.ok, r.duration_seconds)

    for res in sorted(results, key=sort_key):
        throughput = res.rows / res.duration_seconds if res.duration_seconds > 0 else 0.0
        mem_str = "N/A"
        if res.peak_rss_bytes:
            mem_str = f"{res.peak_rss_bytes / (1024 * 1024):.2f}"
        table.add_row(
            res.strategy,
            "[green]ok[/green]" if res.ok else "[red]failed[/red]",
            f"{res.rows:,}",
            f"{res.duration_seconds:.2f}",
            f"{throughput:,.2f}",
            mem_str,
            escape((res.output_path or "") if res.ok else str(res.error)),
        )

    console.print(table)


def print_comparison(comparison: ArtifactComparison, console: Optional[Console] = None) -> None:
    """Render the artifact checks performed by `verify`."""
    console = console or Console()

    table = Table(title="Artifact Verification", box=box.ROUNDED)
    table.add_column("Strategy", style="cyan", no_wrap=True)
    table.add_column("Rows", justify="right", style="magenta")
    table.add_column("Key Range", justify="right")
    table.add_column("Ascending")
    table.add_column("Within Bound")
    table.add_column("Digest", style="dim")

    def flag(value: bool) -> str:
        return "[green]yes[/green]" if value else "[red]no[/red]"

    for name, summary in comparison.artifacts.items():
        key_range = (
            f"{summary.first_key}..{summary.last_key}" if summary.rows else "empty"
        )
        table.add_row(
            name,
            f"{summary.rows:,}",
            key_range,
            flag(summary.ascending),
            flag(summary.within_bound),
            summary.digest[:12],
        )
    for name in comparison.missing:
        table.add_row(name, "-", "missing", "-", "-", "-")

    console.print(table)
    if comparison.ok:
        console.print("[green]All artifacts are ordered, bounded and identical.[/green]")
    else:
        console.print("[red]Artifacts differ or violate ordering/bound checks.[/red]")


__all__ = ["format_result", "print_comparison", "print_summary"]
