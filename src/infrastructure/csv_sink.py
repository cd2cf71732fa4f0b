"""
Delimited-text output sink for exported rows.

Each strategy owns exactly one `CsvSink`. Records are written as
`aid,bid,abalance` with no header, one record per line (`\\n` terminated),
using the csv module's standard quoting. The bulk export strategy bypasses the
csv writer and streams server-formatted CSV chunks through `write_chunk`; both
paths produce byte-identical files for the benchmark table.
"""

from __future__ import annotations

import codecs
import csv
import hashlib
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Dict, Iterator, List, Mapping, Optional, Sequence

from src.domain.models import AccountRow


class CsvSink:
    """
    Append-only CSV writer bound to a single artifact path.

    Usage:
        with CsvSink(Path("output/cursor.csv")) as sink:
            sink.write_rows(batch)
        print(sink.rows_written)
    """

    def __init__(self, path: Path | str, *, encoding: str = "utf-8") -> None:
        self.path = Path(path)
        self._encoding = encoding
        self._fp: Optional[IO[str]] = None
        self._writer = None
        self._decoder: Optional[codecs.IncrementalDecoder] = None
        self._rows_written = 0

    def __enter__(self) -> "CsvSink":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def rows_written(self) -> int:
        return self._rows_written

    @property
    def closed(self) -> bool:
        return self._fp is None

    def open(self) -> "CsvSink":
        """Create (or truncate) the artifact and prepare the writer."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._fp = self.path.open("w", newline="", encoding=self._encoding)
        self._writer = csv.writer(self._fp, lineterminator="\n")
        self._decoder = codecs.getincrementaldecoder(self._encoding)()
        self._rows_written = 0
        return self

    def write_row(self, row: Sequence[object]) -> None:
        self._require_open().writerow(row)
        self._rows_written += 1

    def write_rows(self, rows: Sequence[Sequence[object]]) -> None:
        self._require_open().writerows(rows)
        self._rows_written += len(rows)

    def write_chunk(self, data: bytes | bytearray | memoryview) -> None:
        """
        Write a chunk of already formatted CSV text.

        Chunks may split records (or multi-byte characters) at arbitrary
        positions; records are counted by their line terminators.
        """
        self._require_open()
        text = self._decoder.decode(bytes(data))
        if text:
            self._fp.write(text)
            self._rows_written += text.count("\n")

    def discard(self) -> None:
        """Drop everything written so far, leaving an empty artifact."""
        self._require_open()
        self._fp.flush()
        self._fp.seek(0)
        self._fp.truncate()
        self._rows_written = 0

    def close(self) -> None:
        if self._fp is None:
            return
        try:
            if self._decoder is not None:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    self._fp.write(tail)
            self._fp.flush()
        finally:
            self._fp.close()
            self._fp = None
            self._writer = None
            self._decoder = None

    def _require_open(self):
        if self._fp is None or self._writer is None:
            raise ValueError(f"Sink for {self.path} is not open")
        return self._writer


def iter_artifact(path: Path | str) -> Iterator[AccountRow]:
    """Yield rows from an artifact in file order."""
    with Path(path).open("r", newline="", encoding="utf-8") as f:
        for record in csv.reader(f):
            if record:
                yield AccountRow.from_record(record)


def read_artifact(path: Path | str) -> List[AccountRow]:
    """Read an artifact back into row models."""
    return list(iter_artifact(path))


@dataclass
class ArtifactSummary:
    """Per-artifact checks used by `verify`."""

    path: Path
    rows: int = 0
    first_key: Optional[int] = None
    last_key: Optional[int] = None
    ascending: bool = True
    within_bound: bool = True
    digest: str = ""


@dataclass
class ArtifactComparison:
    artifacts: Dict[str, ArtifactSummary] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)

    @property
    def equivalent(self) -> bool:
        fingerprints = {(s.rows, s.digest) for s in self.artifacts.values()}
        return not self.missing and len(fingerprints) <= 1

    @property
    def ok(self) -> bool:
        return self.equivalent and all(
            s.ascending and s.within_bound for s in self.artifacts.values()
        )


def summarize_artifact(path: Path | str, limit: Optional[int] = None) -> ArtifactSummary:
    summary = ArtifactSummary(path=Path(path))
    hasher = hashlib.sha256()
    previous: Optional[int] = None
    for row in iter_artifact(path):
        summary.rows += 1
        if summary.first_key is None:
            summary.first_key = row.aid
        if previous is not None and row.aid <= previous:
            summary.ascending = False
        if limit is not None and row.aid > limit:
            summary.within_bound = False
        hasher.update(",".join(row.as_record()).encode("ascii"))
        hasher.update(b"\n")
        previous = row.aid
    summary.last_key = previous
    summary.digest = hasher.hexdigest()
    return summary


def compare_artifacts(
    paths: Mapping[str, Path], limit: Optional[int] = None
) -> ArtifactComparison:
    """
    Check each artifact for bound and ordering, and all of them for equivalence.

    Parameters
    ----------
    paths : Mapping[str, Path]
        Strategy name to artifact path.
    limit : int, optional
        Upper bound every primary key must respect.
    """
    comparison = ArtifactComparison()
    for name, path in paths.items():
        if not Path(path).exists():
            comparison.missing.append(name)
            continue
        comparison.artifacts[name] = summarize_artifact(path, limit=limit)
    return comparison


__all__ = [
    "ArtifactComparison",
    "ArtifactSummary",
    "CsvSink",
    "compare_artifacts",
    "iter_artifact",
    "read_artifact",
    "summarize_artifact",
]
