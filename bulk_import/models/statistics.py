from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

"""Aggregate statistics over one classified row set."""

__all__ = [
    "ImportStatistics",
    "RowValidationFailure",
    "rate",
]


def rate(count: int, base: int) -> float:
    """Percentage of `count` over `base`; 0.0 when the base is empty."""
    if base <= 0:
        return 0.0
    return count / base * 100


@dataclass(frozen=True)
class RowValidationFailure:
    """Why a row was classified invalid (never raised, only collected)."""
    index: int  # position in the normalized row sequence
    row_number: int  # line in the source file
    key: str
    reason: str


@dataclass(frozen=True)
class ImportStatistics:
    """Counts over all normalized rows plus format specific sums and rates.

    total_rows == valid_rows + invalid_rows + duplicate_rows always holds;
    unknown_reference_rows is informational and overlaps the other buckets.
    """
    total_rows: int
    valid_rows: int
    invalid_rows: int
    duplicate_rows: int
    unknown_reference_rows: int = 0
    metrics: Mapping[str, float] = field(default_factory=dict)

    def metric(self, name: str, default: float = 0) -> float:
        return self.metrics.get(name, default)
