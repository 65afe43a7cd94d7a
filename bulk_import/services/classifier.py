from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from bulk_import.models.rows import NormalizedRow
from bulk_import.models.statistics import ImportStatistics, RowValidationFailure

if TYPE_CHECKING:
    from bulk_import.formats.base import ImportFormat

"""Validation & classification of a normalized row set.

Buckets, per row index:
- invalid: the format's structural check failed (reason kept)
- duplicate: natural key (trimmed, case-insensitive) already seen earlier in
  the file; the first occurrence wins, invalid rows never claim a key
- unknown reference: reference SKU absent from existing inventory
  (informational, overlaps the other buckets)

Pure and deterministic: same rows in, same classification out.
"""

__all__ = [
    "Classification",
    "normalize_key",
    "classify",
]


def normalize_key(value: str) -> str:
    return value.strip().lower()


@dataclass(frozen=True)
class Classification:
    rows: tuple[NormalizedRow, ...]
    invalid: frozenset[int]
    duplicates: frozenset[int]
    unknown_references: frozenset[int]
    failures: tuple[RowValidationFailure, ...]
    statistics: ImportStatistics

    def is_valid(self, index: int) -> bool:
        return index not in self.invalid and index not in self.duplicates

    def default_selection(self) -> list[int]:
        """All valid, non-duplicate row indices (pre-checked import set)."""
        return [i for i in range(len(self.rows)) if self.is_valid(i)]

    def valid_rows(self) -> list[NormalizedRow]:
        return [self.rows[i] for i in self.default_selection()]

    @property
    def unknown_skus(self) -> list[str]:
        """Distinct unknown reference SKUs (lower-cased) in file order."""
        seen: dict[str, None] = {}
        for i in sorted(self.unknown_references):
            seen.setdefault(normalize_key(self.rows[i].reference_sku), None)
        return list(seen)

    @property
    def duplicate_keys(self) -> list[str]:
        seen: dict[str, None] = {}
        for i in sorted(self.duplicates):
            seen.setdefault(self.rows[i].natural_key, None)
        return list(seen)


def classify(
    rows: Sequence[NormalizedRow],
    fmt: ImportFormat,
    existing_skus: Iterable[str] | None = None,
) -> Classification:
    """Classify rows in file order and compute ImportStatistics.

    Parameters
    ----------
    rows: normalized rows (file order)
    fmt: the import format (validation rule + metrics)
    existing_skus: current inventory SKUs; unknown references are only computed
        when given and the format checks them
    """
    rows = tuple(rows)
    invalid: set[int] = set()
    duplicates: set[int] = set()
    failures: list[RowValidationFailure] = []
    seen: set[str] = set()

    for i, row in enumerate(rows):
        reason = fmt.validate_row(row)
        if reason is not None:
            invalid.add(i)
            failures.append(RowValidationFailure(i, row.row_number, row.natural_key, reason))
            continue
        key = normalize_key(row.natural_key)
        if key in seen:
            duplicates.add(i)
            continue
        seen.add(key)

    unknown: set[int] = set()
    if existing_skus is not None and fmt.checks_unknown_references:
        known = {normalize_key(s) for s in existing_skus if s}
        for i, row in enumerate(rows):
            ref = normalize_key(row.reference_sku)
            if ref and ref not in known:
                unknown.add(i)

    valid_rows = [r for i, r in enumerate(rows) if i not in invalid and i not in duplicates]
    stats = ImportStatistics(
        total_rows=len(rows),
        valid_rows=len(valid_rows),
        invalid_rows=len(invalid),
        duplicate_rows=len(duplicates),
        unknown_reference_rows=len(unknown),
        metrics=dict(fmt.compute_metrics(valid_rows)),
    )
    return Classification(
        rows=rows,
        invalid=frozenset(invalid),
        duplicates=frozenset(duplicates),
        unknown_references=frozenset(unknown),
        failures=tuple(failures),
        statistics=stats,
    )
