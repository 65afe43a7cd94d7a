from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

"""Outcome of checking a selection against persisted state and plan quota."""

__all__ = [
    "DecisionKind",
    "ReconciliationDecision",
]

T = TypeVar("T")


class DecisionKind(str, Enum):
    ACCEPTED = "accepted"
    QUOTA_WOULD_BE_EXCEEDED = "quota_would_be_exceeded"
    PERSISTED_DUPLICATES = "persisted_duplicates"


@dataclass(frozen=True)
class ReconciliationDecision(Generic[T]):
    """Partition of the candidate rows.

    For QUOTA_WOULD_BE_EXCEEDED, `accepted` holds what truncation would keep and
    `deferred_quota` the rest; nothing is committed until the caller decides.
    For PERSISTED_DUPLICATES, `accepted` holds the rows that are not yet stored.
    """
    kind: DecisionKind
    accepted: tuple[T, ...]
    rejected_duplicate: tuple[T, ...] = ()
    deferred_quota: tuple[T, ...] = ()
    remaining_capacity: int | None = None  # None = 無制限
    duplicate_preview: tuple[str, ...] = ()

    @property
    def requires_decision(self) -> bool:
        return self.kind is not DecisionKind.ACCEPTED

    @property
    def duplicate_count(self) -> int:
        return len(self.rejected_duplicate)

    def describe(self) -> str:
        if self.kind is DecisionKind.PERSISTED_DUPLICATES:
            preview = ", ".join(self.duplicate_preview)
            more = self.duplicate_count - len(self.duplicate_preview)
            suffix = f" and {more} more" if more > 0 else ""
            return (
                f"{self.duplicate_count} row(s) were already imported: {preview}{suffix}. "
                f"Skip them and import the remaining {len(self.accepted)}?"
            )
        if self.kind is DecisionKind.QUOTA_WOULD_BE_EXCEEDED:
            total = len(self.accepted) + len(self.deferred_quota)
            return (
                f"Importing {total} row(s) would exceed your plan limit. "
                f"Only {self.remaining_capacity} more can be added; import the first "
                f"{self.remaining_capacity} or cancel."
            )
        return f"{len(self.accepted)} row(s) ready to import"
