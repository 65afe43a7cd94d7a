from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from bulk_import.models.field_spec import FieldSpec, RequiredGroup
from bulk_import.models.raw_table import FileKind, RawTable
from bulk_import.models.rows import NormalizedRow
from bulk_import.services.normalizer import RowCells

"""ImportFormat: everything that differs between vendor exports, in one table.

The generic pipeline (resolver, normalizer, classifier, gate, executor) only
ever talks to an ImportFormat, never to a vendor module directly.
"""

__all__ = [
    "INVENTORY",
    "REVENUE",
    "SHIPMENT",
    "TRACKING",
    "DEFAULT_REORDER_LEVEL",
    "IMPORTED_LOCATION",
    "ImportFormat",
    "placeholder_inventory_record",
    "now_iso",
]

# record targets (keys of TableConfig)
INVENTORY = "inventory"
REVENUE = "revenue"
SHIPMENT = "shipment"
TRACKING = "tracking"

DEFAULT_REORDER_LEVEL = 10
IMPORTED_LOCATION = "Imported"

Record = dict[str, Any]


def now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


def placeholder_inventory_record(sku: str, source: str) -> Record:
    """Zero-valued inventory item created for a SKU referenced but not stocked."""
    return {
        "product_name": f"Imported from {source} - {sku}",
        "base_sku": sku,
        "category": "Imported",
        "supplier": f"{source} Import",
        "unit_cost": 0.0,
        "selling_price": 0.0,
        "current_stock": 0,
        "reorder_level": DEFAULT_REORDER_LEVEL,
        "description": f"Automatically added from {source} import",
        "location": IMPORTED_LOCATION,
        "sizes": [],
        "colors": [],
    }


@dataclass(frozen=True)
class ImportFormat:
    """Declarative description of one vendor export.

    Attributes:
        name: registry key (e.g. "bosta_shipments")
        title: human readable name
        source: vendor label used in generated records ("Bosta", "Shopify", ...)
        fields: ordered header predicates
        build_row: RowCells + source line number -> NormalizedRow
        validate_row: returns the reason a row is invalid, or None
        to_record: NormalizedRow -> record passed to the store's create call
        compute_metrics: valid rows -> format specific sums and rates
        template: sample RawTable users fill in
        accepted_kinds: file kinds this flow accepts
        target: record target written by the commit executor
        required_groups: disjunctive column requirements
        skip_if_blank: rows blank in any of these fields are dropped during normalization
        checks_unknown_references: compare reference SKUs with existing inventory
        checks_persisted_duplicates: compare natural keys with already stored records
        quota_applies: target counts against the plan quota
        to_revenue_record: optional follow-up revenue record for a committed row
        template_sheet: sheet name used when the template is written to xlsx
    """
    name: str
    title: str
    source: str
    fields: tuple[FieldSpec, ...]
    build_row: Callable[[RowCells, int], NormalizedRow]
    validate_row: Callable[[Any], str | None]
    to_record: Callable[[Any], Record]
    compute_metrics: Callable[[Sequence[Any]], Mapping[str, float]]
    template: Callable[[], RawTable]
    accepted_kinds: frozenset[FileKind]
    target: str
    required_groups: tuple[RequiredGroup, ...] = ()
    skip_if_blank: tuple[str, ...] = ()
    checks_unknown_references: bool = False
    checks_persisted_duplicates: bool = False
    quota_applies: bool = False
    to_revenue_record: Callable[[Any], Record | None] | None = None
    template_sheet: str = "Template"

    @property
    def required_labels(self) -> list[str]:
        labels = [f.label for f in self.fields if f.required]
        labels.extend(g.label for g in self.required_groups)
        return list(dict.fromkeys(labels))
