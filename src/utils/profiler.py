"""
Profiling utilities for the batch export benchmark.

This module provides a context manager that measures:
- Wall-clock time (perf_counter)
- Peak process RSS via a background sampling thread (psutil)

Strategies run concurrently in one process, so the RSS figure describes
the whole process while a strategy was running, not the strategy alone.
Wall-clock duration is exact per block.

Usage example:
    from src.utils.profiler import profile_block

    with profile_block("cursor") as stats:
        run_export()

    print(stats.duration_seconds, stats.peak_rss_bytes)
"""

from __future__ import annotations

import contextlib
import threading
import time
from dataclasses import dataclass, field
from typing import Generator, Optional

import psutil


@dataclass
class ProfileStats:
    """
    Container for profiling measurements.
    """

    label: str
    start_ts: float = field(default=0.0)
    end_ts: float = field(default=0.0)
    duration_seconds: float = field(default=0.0)
    peak_rss_bytes: Optional[int] = field(default=None)


@contextlib.contextmanager
def profile_block(
    label: str, sample_interval_ms: int = 50, sample_memory: bool = True
) -> Generator[ProfileStats, None, None]:
    """
    Context manager to time a block of code and sample peak process memory.

    Parameters
    ----------
    label : str
        Human-friendly label for the profiled block.
    sample_interval_ms : int
        Interval in milliseconds for RSS sampling. Lower = more accurate but higher overhead.
    sample_memory : bool
        Whether to start the RSS sampling thread at all.

    Notes
    -----
    Timing starts before the block's first statement, so any setup inside the
    block (file creation, connection acquisition) counts toward the duration.
    """
    stats = ProfileStats(label=label)
    process = psutil.Process() if sample_memory else None
    peak_rss = 0
    stop_sampling = threading.Event()

    def _sample_memory() -> None:
        nonlocal peak_rss
        while not stop_sampling.is_set():
            try:
                peak_rss = max(peak_rss, process.memory_info().rss)
            except psutil.Error:
                return
            stop_sampling.wait(timeout=sample_interval_ms / 1000.0)

    sampler: Optional[threading.Thread] = None
    if process is not None:
        peak_rss = process.memory_info().rss
        sampler = threading.Thread(
            target=_sample_memory, name=f"rss-sampler-{label}", daemon=True
        )
        sampler.start()

    stats.start_ts = time.perf_counter()
    try:
        yield stats
    finally:
        stats.end_ts = time.perf_counter()
        stats.duration_seconds = stats.end_ts - stats.start_ts

        if sampler is not None and process is not None:
            stop_sampling.set()
            sampler.join(timeout=1.0)
            stats.peak_rss_bytes = peak_rss if peak_rss > 0 else None


__all__ = ["ProfileStats", "profile_block"]
