from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from bulk_import.models.field_spec import FieldMap, FieldSpec, RequiredGroup

"""Header resolution: free-text header row -> FieldMap.

Headers are scanned left to right. Each header is lower-cased and trimmed, then
tested against the format's FieldSpec entries in declared order; the first
matching entry claims the header. A header maps to at most one field and a
field keeps the first header that claimed it.
"""

__all__ = [
    "MissingColumnsError",
    "normalize_header",
    "resolve_headers",
]


class MissingColumnsError(Exception):
    """Raised when required logical fields cannot be found in the header row.

    `missing` lists every unresolved required column label, in declared order.
    """

    def __init__(self, missing: Sequence[str], available: Sequence[str] = ()) -> None:
        super().__init__(f"Required columns not found: {', '.join(missing)}")
        self.missing = list(missing)
        self.available = list(available)


def normalize_header(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split()).lower()


def resolve_headers(
    header: Sequence[Any],
    fields: Sequence[FieldSpec],
    groups: Sequence[RequiredGroup] = (),
) -> FieldMap:
    resolved: dict[str, int] = {}
    for idx, raw in enumerate(header):
        text = normalize_header(raw)
        if not text:
            continue
        spec = next((s for s in fields if s.matches(text)), None)
        if spec is None or spec.name in resolved:
            continue
        resolved[spec.name] = idx

    missing: list[str] = []
    for spec in fields:
        if spec.required and spec.name not in resolved and spec.label not in missing:
            missing.append(spec.label)
    for group in groups:
        if not group.satisfied_by(resolved):
            missing.append(group.label)
    if missing:
        raise MissingColumnsError(missing, [str(h) for h in header])

    return FieldMap(indices=resolved)
