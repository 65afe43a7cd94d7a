from __future__ import annotations

from collections.abc import Sequence

from bulk_import.formats.base import TRACKING, ImportFormat
from bulk_import.models.field_spec import FieldSpec, RequiredGroup
from bulk_import.models.raw_table import FileKind, RawTable
from bulk_import.models.rows import ShipbluTrackingRow
from bulk_import.services.normalizer import RowCells

"""Shipblu order tracking export.

The CoD / estimated delivery information arrives either as one combined
"CoD Estimated Date" column or as two separate columns; either layout is
accepted and stored as one "{cod} - {date}" value.
"""

__all__ = [
    "FIELDS",
    "GROUPS",
    "SHIPBLU_TRACKING",
]

FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("tracking_number", "Tracking Number", all_of=("tracking",), required=True),
    FieldSpec("pickup_date", "Pickup Date", all_of=("pickup",), required=True),
    FieldSpec("customer_name", "Customer Name", all_of=("customer", "name"), required=True),
    FieldSpec("customer_phone", "Customer Phone", all_of=("customer", "phone"), required=True),
    FieldSpec("customer_zone", "Customer Zone", all_of=("customer", "zone"), required=True),
    FieldSpec("customer_city", "Customer City", all_of=("customer", "city"), required=True),
    # 結合列を個別列より先に評価
    FieldSpec("cod_estimated_date", "CoD Estimated Date", all_of=("cod", "estimated")),
    FieldSpec("cod", "CoD", all_of=("cod",), none_of=("estimated",)),
    FieldSpec("estimated_date", "Estimated Date", all_of=("estimated", "date")),
    FieldSpec("status", "Status", all_of=("status",), required=True),
)

GROUPS: tuple[RequiredGroup, ...] = (
    RequiredGroup(
        "CoD Estimated Date (or separate CoD and Estimated Date)",
        (("cod_estimated_date",), ("cod", "estimated_date")),
    ),
)


def _cod_estimated(cells: RowCells) -> str:
    if cells.has("cod_estimated_date"):
        return cells.text("cod_estimated_date")
    cod = cells.text("cod")
    estimated = cells.text("estimated_date")
    if cod and estimated:
        return f"{cod} - {estimated}"
    return cod or estimated


def build_row(cells: RowCells, row_number: int) -> ShipbluTrackingRow:
    return ShipbluTrackingRow(
        row_number=row_number,
        tracking_number=cells.text("tracking_number"),
        pickup_date=cells.text("pickup_date"),
        customer_name=cells.text("customer_name"),
        customer_phone=cells.text("customer_phone"),
        customer_zone=cells.text("customer_zone"),
        customer_city=cells.text("customer_city"),
        cod_estimated_date=_cod_estimated(cells),
        status=cells.text("status"),
    )


def validate_row(row: ShipbluTrackingRow) -> str | None:
    missing = [
        label
        for label, value in (
            ("tracking number", row.tracking_number),
            ("customer name", row.customer_name),
            ("customer phone", row.customer_phone),
        )
        if not value
    ]
    if missing:
        return "missing " + ", ".join(missing)
    return None


def to_record(row: ShipbluTrackingRow) -> dict:
    return {
        "tracking_number": row.tracking_number,
        "pickup_date": row.pickup_date,
        "customer_name": row.customer_name,
        "customer_phone": row.customer_phone,
        "customer_zone": row.customer_zone,
        "customer_city": row.customer_city,
        "cod_estimated_date": row.cod_estimated_date,
        "status": row.status,
        "source": "Shipblu",
        "description": f"Order tracking from Shipblu - {row.tracking_number}",
    }


def compute_metrics(rows: Sequence[ShipbluTrackingRow]) -> dict[str, float]:
    return {
        "total_orders": len(rows),
        "delivered": sum(1 for r in rows if "delivered" in r.status.lower()),
        "cities": len({r.customer_city.lower() for r in rows if r.customer_city}),
    }


def template() -> RawTable:
    return RawTable(
        header=[
            "Tracking Number", "Pickup Date", "Customer Name", "Customer Phone",
            "Customer Zone", "Customer City", "CoD Estimated Date", "Status",
        ],
        rows=[
            ["SB-100001", "2024-01-10", "Sara Mahmoud", "01200000000", "Nasr City", "Cairo",
             "350 - 2024-01-12", "Delivered"],
            ["SB-100002", "2024-01-11", "Omar Khaled", "01500000000", "Dokki", "Giza",
             "120 - 2024-01-13", "Out for delivery"],
        ],
        source_name="shipblu_tracking_template",
    )


SHIPBLU_TRACKING = ImportFormat(
    name="shipblu_tracking",
    title="Shipblu Tracking",
    source="Shipblu",
    fields=FIELDS,
    build_row=build_row,
    validate_row=validate_row,
    to_record=to_record,
    compute_metrics=compute_metrics,
    template=template,
    accepted_kinds=frozenset({FileKind.XLSX, FileKind.XLS}),
    target=TRACKING,
    required_groups=GROUPS,
    checks_persisted_duplicates=True,
)
