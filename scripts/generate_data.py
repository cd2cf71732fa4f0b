"""
Data generation and loading script for the batch export benchmark.

Creates the `pgbench_accounts` table if needed and fills it with rows keyed
1..N using Postgres COPY. Balances come from a seeded RNG so repeated loads are
identical. The layout follows pgbench: 100,000 accounts per branch.
"""

from __future__ import annotations

import csv
import random
import sys
import time
from pathlib import Path
from typing import Iterator, Tuple

import psycopg
import typer
from psycopg import sql

from src.infrastructure.db_factory import build_dsn, get_sync_connection, table_identifier

app = typer.Typer(help="Generate synthetic accounts and load them into Postgres (COPY).")

ACCOUNTS_PER_BRANCH = 100_000
INIT_SQL = Path(__file__).resolve().parent.parent / "db" / "init.sql"


def _build_dsn(dsn_override: str | None) -> str:
    if dsn_override:
        return dsn_override
    return build_dsn()


def _generate_rows(rows: int, seed: int) -> Iterator[Tuple[int, int, int]]:
    rng = random.Random(seed)
    for aid in range(1, rows + 1):
        bid = (aid - 1) // ACCOUNTS_PER_BRANCH + 1
        yield aid, bid, rng.randint(-5_000, 5_000)


def _generate_rows_csv(csv_path: Path, rows: int, seed: int) -> None:
    """Write the generated rows as a header-less CSV (`aid,bid,abalance`)."""
    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f, lineterminator="\n")
        writer.writerows(_generate_rows(rows, seed))


def _ensure_table(conn: psycopg.Connection, table: str) -> None:
    if table == "pgbench_accounts" and INIT_SQL.exists():
        conn.execute(INIT_SQL.read_text(encoding="utf-8"))
        return
    conn.execute(
        sql.SQL(
            "CREATE TABLE IF NOT EXISTS {table} ("
            "aid bigint PRIMARY KEY, bid bigint NOT NULL, abalance bigint NOT NULL)"
        ).format(table=table_identifier(table))
    )


def _copy_into_db(dsn: str, rows: int, seed: int, table: str = "pgbench_accounts") -> int:
    """Replace the table contents with freshly generated rows; returns the row count."""
    with get_sync_connection(dsn) as conn:
        _ensure_table(conn, table)
        target = table_identifier(table)
        conn.execute(sql.SQL("TRUNCATE TABLE {table}").format(table=target))
        with conn.cursor() as cur:
            with cur.copy(
                sql.SQL("COPY {table} (aid, bid, abalance) FROM STDIN").format(table=target)
            ) as copy:
                for row in _generate_rows(rows, seed):
                    copy.write_row(row)
        conn.execute(sql.SQL("ANALYZE {table}").format(table=target))
        conn.commit()
    return rows


@app.command()
def main(
    rows: int = typer.Option(
        10_000,
        "--rows",
        "-r",
        help="Number of rows to generate (keys 1..rows).",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    table: str = typer.Option(
        "pgbench_accounts",
        "--table",
        help="Target table (created if missing).",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Also write the generated rows to this CSV path.",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate CSV; skip loading into Postgres.",
    ),
) -> None:
    """
    Generate accounts and optionally load them into Postgres using COPY.
    """
    start = time.perf_counter()
    if output:
        output.parent.mkdir(parents=True, exist_ok=True)
        _generate_rows_csv(output, rows=rows, seed=seed)
        typer.echo(f"Wrote {rows:,} rows -> {output}")

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    typer.echo(f"Loading {rows:,} rows into {table} via COPY...")
    _copy_into_db(_build_dsn(dsn), rows=rows, seed=seed, table=table)
    duration = time.perf_counter() - start
    typer.echo(f"Load completed in {duration:.2f}s ({rows / duration:,.0f} rows/s).")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
