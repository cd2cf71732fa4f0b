"""
Pytest configuration for the batch export benchmark.

Provides fixtures for:
- Settings override for integration tests
- Database connection management and pool creation
- Seeding pgbench_accounts with deterministic data
"""

from __future__ import annotations

import os
from typing import Generator

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.config import Settings, get_settings
from src.infrastructure.db_factory import build_dsn, create_pool

SEEDED_ROWS = 10_000
SEED = 42


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    """CLI code caches Settings; every test starts from the current environment."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        _env_file=None,
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", os.getenv("DB_PASS", "postgres")),
        db_name=os.getenv("DB_NAME", "postgres"),
        db_pool_max_size=8,
        log_level="DEBUG",
        data_limit=5000,
        data_batch_size=500,
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return build_dsn(test_settings)


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def seeded_accounts(db_connection: psycopg.Connection, test_dsn: str) -> int:
    """
    Load 10,000 deterministic accounts (aid 1..10000) into pgbench_accounts.

    Returns the number of rows in the table.
    """
    from scripts.generate_data import _copy_into_db

    _copy_into_db(test_dsn, rows=SEEDED_ROWS, seed=SEED)

    with db_connection.cursor() as cur:
        cur.execute("SELECT COUNT(*) FROM public.pgbench_accounts;")
        count = cur.fetchone()[0]
    db_connection.commit()
    return count


@pytest.fixture(scope="session")
def pool(
    test_settings: Settings, seeded_accounts: int
) -> Generator[ConnectionPool, None, None]:
    """Shared pool handed to every strategy, as the CLI does."""
    del seeded_accounts
    connection_pool = create_pool(test_settings)
    try:
        yield connection_pool
    finally:
        connection_pool.close()
