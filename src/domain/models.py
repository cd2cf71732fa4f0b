"""
Domain models for the batch export benchmark.

`AccountRow` mirrors the fixed three-column benchmark table defined in
`db/init.sql`. `ExportConfig` is the read-only parameter set every strategy
receives by reference; it is built once from Settings at startup.
"""
from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

from pydantic import BaseModel, Field

from src.config import Settings


class AccountRow(BaseModel):
    """
    Representation of a single row in the `pgbench_accounts` table.
    """

    aid: int = Field(..., description="Primary key (account id).")
    bid: int = Field(..., description="Grouping key (branch id).")
    abalance: int = Field(..., description="Account balance.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @classmethod
    def from_record(cls, record: Sequence[str]) -> "AccountRow":
        """Parse one delimited record (`aid,bid,abalance`)."""
        if len(record) != 3:
            raise ValueError(f"expected 3 fields, got {len(record)}: {list(record)!r}")
        aid, bid, abalance = (int(value) for value in record)
        return cls(aid=aid, bid=bid, abalance=abalance)

    def as_record(self) -> List[str]:
        return [str(self.aid), str(self.bid), str(self.abalance)]


class ExportConfig(BaseModel):
    """
    Scan parameters shared read-only by every strategy in a run.
    """

    limit: int = Field(..., description="Only rows with aid <= limit are exported.")
    batch_size: int = Field(..., gt=0, description="Rows requested per round-trip.")
    table: str = Field("pgbench_accounts", min_length=1, description="Source table name.")
    output_dir: Path = Field(Path("output"), description="Directory for the artifacts.")
    statement_timeout_ms: int = Field(
        0, ge=0, description="Per-statement timeout; 0 leaves statements unbounded."
    )

    model_config = {
        "frozen": True,
    }

    @classmethod
    def from_settings(cls, settings: Settings) -> "ExportConfig":
        return cls(
            limit=settings.data_limit,
            batch_size=settings.data_batch_size,
            table=settings.data_table,
            output_dir=Path(settings.output_dir),
            statement_timeout_ms=settings.db_statement_timeout_ms,
        )

    def artifact_path(self, strategy_name: str) -> Path:
        """Fixed output path for a strategy's artifact."""
        return self.output_dir / f"{strategy_name}.csv"


__all__ = ["AccountRow", "ExportConfig"]
