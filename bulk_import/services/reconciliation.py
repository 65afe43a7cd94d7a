from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from typing import TypeVar

from bulk_import.models.reconciliation import DecisionKind, ReconciliationDecision
from bulk_import.services.classifier import normalize_key

"""Reconciliation gate: persisted duplicates first, then plan quota.

Nothing here writes anything. A decision that needs the user (persisted
duplicates, quota overflow) is returned, never resolved silently; the caller
re-runs the gate with skip_duplicates / truncate once the user chose.
"""

__all__ = [
    "UNLIMITED",
    "QuotaAlreadyExceeded",
    "remaining_capacity",
    "check_quota",
    "truncate_to_capacity",
    "split_persisted_duplicates",
    "reconcile",
]

UNLIMITED = -1

T = TypeVar("T")


class QuotaAlreadyExceeded(Exception):
    """The caller is already at (or over) the plan limit; nothing may be imported."""

    def __init__(self, current: int, limit: int) -> None:
        super().__init__(
            f"You have reached your limit of {limit} items ({current} in use). "
            "Please upgrade your plan to add more."
        )
        self.current = current
        self.limit = limit


def remaining_capacity(current: int, limit: int) -> int | None:
    if limit == UNLIMITED:
        return None
    return max(0, limit - current)


def check_quota(selected: int, current: int, limit: int) -> int | None:
    """Return the remaining capacity when `selected` would overflow the quota, else None.

    Raises QuotaAlreadyExceeded when the quota is already used up.
    """
    if limit == UNLIMITED:
        return None
    if current >= limit:
        raise QuotaAlreadyExceeded(current, limit)
    if current + selected > limit:
        return remaining_capacity(current, limit)
    return None


def truncate_to_capacity(rows: Sequence[T], capacity: int) -> list[T]:
    """First `capacity` rows in original order (idempotent)."""
    return list(rows[:max(0, capacity)])


def split_persisted_duplicates(
    rows: Sequence[T],
    persisted_keys: Iterable[str],
    key: Callable[[T], str],
) -> tuple[list[T], list[T]]:
    """Split rows into (fresh, already persisted), comparing keys case-insensitively."""
    persisted = {normalize_key(k) for k in persisted_keys}
    fresh: list[T] = []
    dupes: list[T] = []
    for row in rows:
        (dupes if normalize_key(key(row)) in persisted else fresh).append(row)
    return fresh, dupes


def reconcile(
    rows: Sequence[T],
    *,
    key: Callable[[T], str],
    current_count: int = 0,
    limit: int = UNLIMITED,
    persisted_keys: Iterable[str] | None = None,
    preview_limit: int = 10,
    skip_duplicates: bool = False,
    truncate: bool = False,
) -> ReconciliationDecision[T]:
    """Decide which of the selected rows may be committed.

    Parameters
    ----------
    rows: selected rows in file order
    key: natural key accessor
    current_count / limit: resource usage and plan quota (-1 = unlimited)
    persisted_keys: keys already stored (None = format has no such check)
    preview_limit: max duplicate keys carried for display
    skip_duplicates: user confirmed "skip duplicates and import the rest"
    truncate: user confirmed "import only the first remaining_capacity rows"

    Raises
    ------
    QuotaAlreadyExceeded: current_count >= limit
    """
    candidates = list(rows)
    dupes: list[T] = []
    if persisted_keys is not None:
        candidates, dupes = split_persisted_duplicates(candidates, persisted_keys, key)
        if dupes and not skip_duplicates:
            return ReconciliationDecision(
                kind=DecisionKind.PERSISTED_DUPLICATES,
                accepted=tuple(candidates),
                rejected_duplicate=tuple(dupes),
                remaining_capacity=remaining_capacity(current_count, limit),
                duplicate_preview=tuple(key(r) for r in dupes[:preview_limit]),
            )

    capacity = check_quota(len(candidates), current_count, limit)
    preview = tuple(key(r) for r in dupes[:preview_limit])
    if capacity is None:
        return ReconciliationDecision(
            kind=DecisionKind.ACCEPTED,
            accepted=tuple(candidates),
            rejected_duplicate=tuple(dupes),
            remaining_capacity=remaining_capacity(current_count, limit),
            duplicate_preview=preview,
        )

    kept = truncate_to_capacity(candidates, capacity)
    return ReconciliationDecision(
        kind=DecisionKind.ACCEPTED if truncate else DecisionKind.QUOTA_WOULD_BE_EXCEEDED,
        accepted=tuple(kept),
        rejected_duplicate=tuple(dupes),
        deferred_quota=tuple(candidates[len(kept):]),
        remaining_capacity=capacity,
        duplicate_preview=preview,
    )
