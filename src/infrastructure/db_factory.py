"""
Database connection factory utilities for the batch export benchmark.

Builds the DSN from Settings, constructs the shared psycopg ConnectionPool the
harness hands to every strategy, and provides small SQL helpers (table
identifiers, statement timeouts). Nothing here is process-global: the pool is
created once by the caller and passed explicitly to whoever needs it.

Includes retry logic for transient connection failures using tenacity.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote

import psycopg
from psycopg import Connection, sql
from psycopg_pool import ConnectionPool, PoolTimeout
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.config import DatabaseSettings, Settings
from src.utils.logging import get_logger

log = get_logger(__name__)


def build_dsn(settings: Optional[DatabaseSettings] = None) -> str:
    """Compose a DSN string from settings; only the connection fields are read."""
    settings = settings or DatabaseSettings()
    return (
        f"postgresql://{quote(settings.db_user, safe='')}:{quote(settings.db_password, safe='')}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
        f"?sslmode={settings.db_sslmode}"
    )


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((PoolTimeout, psycopg.OperationalError)),
    reraise=True,
)
def create_pool(settings: Settings) -> ConnectionPool:
    """
    Create and open the connection pool shared by all strategies.

    Blocks until `min_size` connections are established. Retries up to 3 times
    with exponential backoff; the last error is re-raised so the caller can
    treat it as fatal.

    Parameters
    ----------
    settings : Settings
        Source of connection parameters and pool sizing.

    Returns
    -------
    ConnectionPool
        An opened pool. The caller owns it and must close it.

    Raises
    ------
    psycopg_pool.PoolTimeout
        If the pool cannot reach `min_size` connections in time.
    """
    max_size = max(settings.db_pool_max_size, settings.db_pool_min_size)
    pool = ConnectionPool(
        conninfo=build_dsn(settings),
        min_size=settings.db_pool_min_size,
        max_size=max_size,
        timeout=settings.db_pool_timeout_seconds,
        name="export-pool",
        open=False,
    )
    pool.open()
    try:
        pool.wait(timeout=settings.db_pool_timeout_seconds)
    except PoolTimeout:
        log.warning(
            "Connection pool not ready",
            extra={"host": settings.db_host, "port": settings.db_port},
        )
        pool.close()
        raise
    log.info(
        "Connection pool ready",
        extra={"min_size": settings.db_pool_min_size, "max_size": max_size},
    )
    return pool


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def get_sync_connection(dsn: Optional[str] = None) -> Connection:
    """
    Acquire a dedicated synchronous connection with automatic retry.

    Use this for one-off maintenance work (schema setup, data seeding). The
    benchmark itself always goes through the shared pool.
    """
    return psycopg.connect(dsn or build_dsn())


def table_identifier(name: str) -> sql.Identifier:
    """Quote a possibly schema-qualified table name (`schema.table`)."""
    parts = [part for part in name.split(".") if part]
    if not parts:
        raise ValueError(f"Invalid table name: {name!r}")
    return sql.Identifier(*parts)


def apply_statement_timeout(conn: Connection, timeout_ms: int) -> None:
    """
    Bound statements in the current transaction, if a timeout is configured.

    A value of 0 leaves statements unbounded.
    """
    if timeout_ms <= 0:
        return
    conn.execute(sql.SQL("SET LOCAL statement_timeout = {}").format(sql.Literal(timeout_ms)))


__all__ = [
    "apply_statement_timeout",
    "build_dsn",
    "create_pool",
    "get_sync_connection",
    "table_identifier",
]
