from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Any

from .reconciliation import ReconciliationDecision
from .statistics import ImportStatistics

"""Commit results, run outcome and batch timing statistics."""

__all__ = [
    "RowCommitFailure",
    "CommitResult",
    "ImportOutcome",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class RowCommitFailure:
    row_number: int
    key: str
    reason: str


@dataclass(frozen=True)
class CommitResult:
    """What the commit executor attempted and what failed (per row)."""
    attempted: int
    succeeded: int
    failures: tuple[RowCommitFailure, ...] = ()
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0  # p95 バッチ時間
    elapsed_seconds: float = 0.0
    created: tuple[object, ...] = field(default=(), repr=False)

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def failed_row_numbers(self) -> frozenset[int]:
        return frozenset(f.row_number for f in self.failures)

    @property
    def message(self) -> str:
        if not self.failures:
            return f"Successfully imported {self.succeeded} row(s)"
        return f"Imported {self.succeeded} of {self.attempted} row(s); {self.failed} failed"


@dataclass(frozen=True)
class ImportOutcome:
    """Everything a caller reports after one import run."""
    format_name: str
    source_name: str
    statistics: ImportStatistics
    state: str
    decision: ReconciliationDecision[Any] | None = None
    commit: CommitResult | None = None
    revenue: CommitResult | None = None
    placeholders: CommitResult | None = None

    @property
    def accepted(self) -> int:
        return len(self.decision.accepted) if self.decision is not None else 0

    @property
    def committed(self) -> int:
        return self.commit.succeeded if self.commit is not None else 0

    @property
    def failed(self) -> int:
        return self.commit.failed if self.commit is not None else 0


class BatchStatsAccumulator:
    """Collects per-batch elapsed times and summarizes them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)
        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            # 20 分位の 19 番目 = p95
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]
        return (total_batches, avg_batch_seconds, p95_batch_seconds)
