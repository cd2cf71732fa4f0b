"""
Configuration settings for the batch export benchmark.

Uses Pydantic Settings to load environment variables (and an optional `.env`
file) for database connections, logging, and the export parameters shared by
every strategy. `DATA_LIMIT` and `DATA_BATCH_SIZE` have no defaults: a missing
or unparseable value is a fatal configuration error. The settings are layered
so tools that only talk to the database (seeding) or only read artifacts
(`verify`) do not need the export parameters.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Optional, Type

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field(
        "postgres", validation_alias=AliasChoices("DB_PASSWORD", "DB_PASS")
    )
    db_name: str = Field("postgres", alias="DB_NAME")
    db_sslmode: str = Field("disable", alias="DB_SSLMODE")
    db_pool_min_size: int = Field(1, alias="DB_POOL_MIN_SIZE", ge=1)
    db_pool_max_size: int = Field(8, alias="DB_POOL_MAX_SIZE", ge=1)
    db_pool_timeout_seconds: float = Field(10.0, alias="DB_POOL_TIMEOUT_SECONDS", gt=0)
    db_statement_timeout_ms: int = Field(0, alias="DB_STATEMENT_TIMEOUT_MS", ge=0)

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ArtifactSettings(DatabaseSettings):
    """Where artifacts live and which keys they may hold; enough for `verify`."""

    data_limit: int = Field(..., alias="DATA_LIMIT")
    data_table: str = Field("pgbench_accounts", alias="DATA_TABLE")
    output_dir: str = Field("output", alias="OUTPUT_DIR")


class Settings(ArtifactSettings):
    """Everything a benchmark run needs."""

    data_batch_size: int = Field(..., alias="DATA_BATCH_SIZE", gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


def load_settings(
    settings_cls: Optional[Type[DatabaseSettings]] = None, **overrides: Any
) -> Any:
    """
    Build settings with explicit overrides taking precedence over the environment.

    Overrides whose value is None are ignored so CLI options can be passed
    through unconditionally. `settings_cls` defaults to the full Settings.
    """
    effective = {key: value for key, value in overrides.items() if value is not None}
    if settings_cls is None or settings_cls is Settings:
        if not effective:
            return get_settings()
        return Settings(**effective)
    return settings_cls(**effective)


__all__ = [
    "ArtifactSettings",
    "DatabaseSettings",
    "Settings",
    "get_settings",
    "load_settings",
]
