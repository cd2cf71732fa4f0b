from __future__ import annotations

import re
from collections import Counter
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import psycopg
import pytest

from src.domain.models import ExportConfig
from src.infrastructure.csv_sink import read_artifact
from src.orchestrator import BenchmarkHarness, build_strategies
from src.strategies.abstract import StrategyError
from src.strategies.copy_export import CopyExportStrategy
from src.strategies.keyset_pagination import MIN_KEY, KeysetPaginationStrategy
from src.strategies.offset_pagination import OffsetPaginationStrategy
from src.strategies.server_cursor import ServerCursorStrategy

TABLE_ROWS = 100
DEFAULT_LIMIT = 37
DEFAULT_BATCH_SIZE = 10
PAGED_LIMIT = 35
COPY_CHUNK_BYTES = 7

ALL_STRATEGIES = [
    ServerCursorStrategy,
    KeysetPaginationStrategy,
    OffsetPaginationStrategy,
    CopyExportStrategy,
]


def _source_rows(count: int = TABLE_ROWS) -> list[tuple[int, int, int]]:
    return [(aid, (aid - 1) // 10 + 1, (aid * 37) % 101 - 50) for aid in range(1, count + 1)]


class _FakeDatabase:
    """Shared state behind the fake pool: table rows, call log, failure injection."""

    def __init__(
        self,
        rows: list[tuple[int, int, int]],
        fail_on: Optional[str] = None,
        fail_after: int = 0,
    ) -> None:
        self.rows = sorted(rows)
        self.fail_on = fail_on
        self.fail_after = fail_after
        self.calls: Counter[str] = Counter()
        self.page_params: list[dict[str, Any]] = []
        self.statements: list[Any] = []
        self.transactions: list[_FakeTransaction] = []
        self.cursors: list[_FakeServerCursor] = []
        self.connections_acquired = 0

    def maybe_fail(self, kind: str) -> None:
        self.calls[kind] += 1
        if kind == self.fail_on and self.calls[kind] > self.fail_after:
            raise psycopg.OperationalError("server closed the connection unexpectedly")

    def bounded(self, limit: int) -> list[tuple[int, int, int]]:
        return [row for row in self.rows if row[0] <= limit]


class _FakeResult:
    def __init__(self, rows: list[tuple[int, int, int]]) -> None:
        self._rows = rows

    def fetchall(self) -> list[tuple[int, int, int]]:
        return list(self._rows)


class _FakeTransaction:
    def __init__(self) -> None:
        self.state = "new"

    def __enter__(self) -> _FakeTransaction:
        self.state = "open"
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc, tb
        self.state = "rolled_back" if exc_type else "committed"
        return False


class _FakeServerCursor:
    def __init__(self, db: _FakeDatabase, name: str) -> None:
        self._db = db
        self.name = name
        self.closed = False
        self._pending: list[tuple[int, int, int]] = []

    def execute(self, query: Any, params: tuple[Any, ...]) -> None:
        del query
        (limit,) = params
        self._pending = self._db.bounded(limit)

    def fetchmany(self, size: int) -> list[tuple[int, int, int]]:
        self._db.maybe_fail("fetch")
        batch, self._pending = self._pending[:size], self._pending[size:]
        return batch

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> _FakeServerCursor:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        self.close()
        return False


class _FakeCopy:
    def __init__(self, db: _FakeDatabase, limit: int) -> None:
        self._db = db
        text = "".join(f"{a},{b},{c}\n" for a, b, c in db.bounded(limit))
        self._payload = text.encode("utf-8")

    def __iter__(self) -> Iterator[memoryview]:
        for start in range(0, len(self._payload), COPY_CHUNK_BYTES):
            self._db.maybe_fail("copy")
            yield memoryview(self._payload[start : start + COPY_CHUNK_BYTES])

    def __enter__(self) -> _FakeCopy:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False


class _FakeCursor:
    def __init__(self, db: _FakeDatabase) -> None:
        self._db = db

    def copy(self, statement: Any, params: tuple[Any, ...]) -> _FakeCopy:
        del statement
        (limit,) = params
        return _FakeCopy(self._db, limit)

    def __enter__(self) -> _FakeCursor:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        del exc_type, exc, tb
        return False


class _FakeConnection:
    def __init__(self, db: _FakeDatabase) -> None:
        self._db = db

    def transaction(self) -> _FakeTransaction:
        tx = _FakeTransaction()
        self._db.transactions.append(tx)
        return tx

    def cursor(self, name: Optional[str] = None) -> _FakeServerCursor | _FakeCursor:
        if name is None:
            return _FakeCursor(self._db)
        cursor = _FakeServerCursor(self._db, name)
        self._db.cursors.append(cursor)
        return cursor

    def execute(self, query: Any, params: Optional[dict[str, Any]] = None) -> _FakeResult:
        if params is None:
            self._db.statements.append(query)
            return _FakeResult([])

        self._db.page_params.append(dict(params))
        rows = self._db.bounded(params["limit"])
        if "watermark" in params:
            self._db.maybe_fail("keyset")
            rows = [row for row in rows if row[0] > params["watermark"]]
            return _FakeResult(rows[: params["batch_size"]])

        self._db.maybe_fail("offset")
        offset = params["offset"]
        return _FakeResult(rows[offset : offset + params["batch_size"]])


class _FakePool:
    def __init__(self, db: _FakeDatabase) -> None:
        self.db = db

    @contextmanager
    def connection(self) -> Iterator[_FakeConnection]:
        self.db.connections_acquired += 1
        yield _FakeConnection(self.db)


def _config(tmp_path: Path, **overrides: Any) -> ExportConfig:
    values: dict[str, Any] = {
        "limit": DEFAULT_LIMIT,
        "batch_size": DEFAULT_BATCH_SIZE,
        "output_dir": tmp_path,
    }
    values.update(overrides)
    return ExportConfig(**values)


def _artifact_tuples(path: Path) -> list[tuple[int, int, int]]:
    return [(row.aid, row.bid, row.abalance) for row in read_artifact(path)]


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES, ids=lambda cls: cls.name)
def test_strategy_exports_bounded_rows_in_key_order(tmp_path: Path, strategy_cls) -> None:
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path)
    strategy = strategy_cls()

    result = strategy.execute(_FakePool(db), config)

    assert result.ok, result.error
    assert result.strategy == strategy.name
    assert result.rows == DEFAULT_LIMIT
    assert result.output_path == str(tmp_path / f"{strategy.name}.csv")
    assert _artifact_tuples(config.artifact_path(strategy.name)) == db.bounded(DEFAULT_LIMIT)
    assert re.fullmatch(
        rf"{strategy.name} done in \d+\.\d{{2}} second, saved to .*{strategy.name}\.csv",
        result.message,
    )


def test_all_strategies_write_identical_artifacts(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path, batch_size=6)

    for strategy_cls in ALL_STRATEGIES:
        assert strategy_cls().execute(_FakePool(db), config).ok

    contents = {
        cls.name: config.artifact_path(cls.name).read_bytes() for cls in ALL_STRATEGIES
    }
    assert len(set(contents.values())) == 1
    assert contents["cursor"].count(b"\n") == DEFAULT_LIMIT


@pytest.mark.parametrize("strategy_cls", ALL_STRATEGIES, ids=lambda cls: cls.name)
def test_empty_range_produces_empty_artifact_without_error(tmp_path: Path, strategy_cls) -> None:
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path, limit=0)

    result = strategy_cls().execute(_FakePool(db), config)

    assert result.ok
    assert result.rows == 0
    assert config.artifact_path(strategy_cls.name).read_bytes() == b""


@pytest.mark.parametrize(
    "strategy_cls",
    [KeysetPaginationStrategy, OffsetPaginationStrategy, ServerCursorStrategy],
    ids=lambda cls: cls.name,
)
def test_batch_size_of_one_terminates_with_full_ordered_set(tmp_path: Path, strategy_cls) -> None:
    db = _FakeDatabase(_source_rows(20))
    config = _config(tmp_path, limit=15, batch_size=1)

    result = strategy_cls().execute(_FakePool(db), config)

    assert result.ok
    assert [row[0] for row in _artifact_tuples(config.artifact_path(strategy_cls.name))] == list(
        range(1, 16)
    )


def test_keyset_advances_watermark_to_last_key_of_each_page(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path, limit=PAGED_LIMIT)

    KeysetPaginationStrategy().execute(_FakePool(db), config)

    assert [p["watermark"] for p in db.page_params] == [MIN_KEY, 10, 20, 30, 35]
    assert all(p["limit"] == PAGED_LIMIT for p in db.page_params)
    assert all(p["batch_size"] == DEFAULT_BATCH_SIZE for p in db.page_params)
    # One pooled connection per page, no transaction around the scan.
    assert db.connections_acquired == len(db.page_params)
    assert db.transactions == []


def test_keyset_handles_gapped_keys(tmp_path: Path) -> None:
    gapped = [row for row in _source_rows() if row[0] % 3 != 0]
    db = _FakeDatabase(gapped)
    config = _config(tmp_path, limit=50, batch_size=4)

    result = KeysetPaginationStrategy().execute(_FakePool(db), config)

    assert result.ok
    assert _artifact_tuples(config.artifact_path("custom_cursor")) == db.bounded(50)


def test_offset_advances_by_batch_size(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path, limit=PAGED_LIMIT)

    OffsetPaginationStrategy().execute(_FakePool(db), config)

    assert [p["offset"] for p in db.page_params] == [0, 10, 20, 30, 40]
    assert db.transactions == []


def test_cursor_commits_and_closes_named_cursor(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path)

    result = ServerCursorStrategy(cursor_name="probe_cursor").execute(_FakePool(db), config)

    assert result.ok
    assert [tx.state for tx in db.transactions] == ["committed"]
    assert [(c.name, c.closed) for c in db.cursors] == [("probe_cursor", True)]
    # ceil(37 / 10) batches plus the empty fetch that ends the scan.
    assert db.calls["fetch"] == 5


def test_cursor_failure_rolls_back_and_truncates_artifact(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows(), fail_on="fetch", fail_after=2)
    config = _config(tmp_path)

    result = ServerCursorStrategy().execute(_FakePool(db), config)

    assert not result.ok
    assert isinstance(result.error, StrategyError)
    assert "cursor failed to fetch data" in str(result.error)
    assert isinstance(result.error.__cause__, psycopg.OperationalError)
    assert [tx.state for tx in db.transactions] == ["rolled_back"]
    assert result.rows == 0
    assert config.artifact_path("cursor").read_bytes() == b""


@pytest.mark.parametrize(
    ("strategy_cls", "fail_on"),
    [(KeysetPaginationStrategy, "keyset"), (OffsetPaginationStrategy, "offset")],
    ids=["custom_cursor", "offset_limit"],
)
def test_pagination_failure_keeps_rows_written_before_the_failing_page(
    tmp_path: Path, strategy_cls, fail_on: str
) -> None:
    db = _FakeDatabase(_source_rows(), fail_on=fail_on, fail_after=2)
    config = _config(tmp_path)

    result = strategy_cls().execute(_FakePool(db), config)

    assert not result.ok
    assert f"{strategy_cls.name} failed to fetch data" in str(result.error)
    assert result.rows == 2 * DEFAULT_BATCH_SIZE
    assert _artifact_tuples(config.artifact_path(strategy_cls.name)) == db.rows[:20]


def test_copy_failure_reports_transport_error(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows(), fail_on="copy", fail_after=3)
    config = _config(tmp_path)

    result = CopyExportStrategy().execute(_FakePool(db), config)

    assert not result.ok
    assert "copy failed to stream export" in str(result.error)
    assert "server closed the connection unexpectedly" in str(result.error)


def test_output_file_creation_failure_is_reported(tmp_path: Path) -> None:
    blocker = tmp_path / "blocked"
    blocker.write_text("not a directory", encoding="utf-8")
    db = _FakeDatabase(_source_rows())
    config = _config(tmp_path, output_dir=blocker)

    result = KeysetPaginationStrategy().execute(_FakePool(db), config)

    assert not result.ok
    assert "custom_cursor failed to create output file" in str(result.error)
    assert db.connections_acquired == 0


def test_statement_timeout_is_set_per_page_only_when_configured(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows())
    OffsetPaginationStrategy().execute(_FakePool(db), _config(tmp_path))
    assert db.statements == []

    db = _FakeDatabase(_source_rows())
    OffsetPaginationStrategy().execute(
        _FakePool(db), _config(tmp_path, statement_timeout_ms=500)
    )
    assert len(db.statements) == len(db.page_params)


def test_failure_in_one_strategy_does_not_affect_the_others(tmp_path: Path) -> None:
    db = _FakeDatabase(_source_rows(), fail_on="keyset", fail_after=1)
    config = _config(tmp_path)

    results = BenchmarkHarness(build_strategies(["all"]), _FakePool(db), config).run()

    assert sorted(r.strategy for r in results) == sorted(cls.name for cls in ALL_STRATEGIES)
    by_name = {r.strategy: r for r in results}
    assert not by_name["custom_cursor"].ok
    for name in ("cursor", "offset_limit", "copy"):
        assert by_name[name].ok, by_name[name].error
        assert _artifact_tuples(config.artifact_path(name)) == db.bounded(DEFAULT_LIMIT)
