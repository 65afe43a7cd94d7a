from __future__ import annotations

from collections.abc import Sequence

from bulk_import.formats.base import (
    DEFAULT_REORDER_LEVEL,
    IMPORTED_LOCATION,
    INVENTORY,
    SHIPMENT,
    ImportFormat,
    now_iso,
)
from bulk_import.models.field_spec import FieldSpec
from bulk_import.models.raw_table import FileKind, RawTable
from bulk_import.models.rows import (
    DELIVERED,
    IN_PROGRESS,
    RETURNED,
    BostaInventoryRow,
    BostaShipmentRow,
)
from bulk_import.models.statistics import rate
from bulk_import.services.normalizer import RowCells

"""Bosta exports: shipment reports and the inventory (SKU) sheet."""

__all__ = [
    "SHIPMENT_FIELDS",
    "INVENTORY_FIELDS",
    "normalize_delivery_state",
    "BOSTA_SHIPMENTS",
    "BOSTA_INVENTORY",
]

_IN_PROGRESS_MARKERS = (
    "in progress",
    "heading to customer",
    "out for delivery",
    "in transit",
    "picked up",
)

SHIPMENT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("tracking_number", "Tracking Number", all_of=("tracking",), required=True),
    FieldSpec("delivery_state", "Delivery State", all_of=("delivery", "state"), required=True),
    FieldSpec("cod_amount", "COD Amount", all_of=("cod", "amount"), required=True),
    FieldSpec("delivered_at", "Delivered At", all_of=("delivered", "at")),
    FieldSpec("expected_delivery_date", "Expected Delivery Date", all_of=("expected", "delivery")),
    FieldSpec("business_reference", "Business Reference Number", all_of=("business", "reference")),
    FieldSpec("sku", "SKU", all_of=("sku",)),
    FieldSpec("description", "Description", all_of=("description",)),
    FieldSpec("consignee_name", "Consignee Name", all_of=("consignee", "name")),
    FieldSpec("consignee_phone", "Consignee Phone", all_of=("consignee", "phone")),
    FieldSpec("dropoff_first_line", "Dropoff First Line", all_of=("dropoff", "first", "line")),
    FieldSpec("dropoff_city", "Dropoff City", all_of=("dropoff", "city")),
    FieldSpec("updated_at", "Updated At", all_of=("updated", "at")),
    FieldSpec("created_at", "Created At", all_of=("created", "at")),
)

# forecasted+onhand は forecasted 単独より先に評価すること
INVENTORY_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("bosta_sku", "Bosta SKU", all_of=("bosta", "sku"), required=True),
    FieldSpec("product_name", "Product Name", all_of=("product", "name"), none_of=("ar",)),
    FieldSpec("product_name_ar", "Product Name AR", all_of=("product", "name", "ar")),
    FieldSpec("price", "Price", all_of=("price",)),
    FieldSpec("on_hand_quantity", "Forecasted Onhand Quantity", all_of=("forecasted", "onhand")),
    FieldSpec("forecasted", "Forecasted", all_of=("forecasted",)),
    FieldSpec("on_hand_quantity", "Onhand Quantity", any_of=("onhand", "quantity")),
    FieldSpec("internal_reference", "Internal Reference Number", all_of=("internal", "reference")),
)


def normalize_delivery_state(value: str) -> str:
    state = value.strip().lower()
    if "delivered" in state or state == "fulfilled":
        return DELIVERED
    if "return" in state:
        return RETURNED
    if any(marker in state for marker in _IN_PROGRESS_MARKERS):
        return IN_PROGRESS
    return state


# ---- shipments -------------------------------------------------------------

def build_shipment(cells: RowCells, row_number: int) -> BostaShipmentRow:
    return BostaShipmentRow(
        row_number=row_number,
        tracking_number=cells.text("tracking_number"),
        delivery_state=normalize_delivery_state(cells.text("delivery_state")),
        cod_amount=cells.number("cod_amount"),
        sku=cells.text("sku"),
        business_reference=cells.text("business_reference"),
        description=cells.text("description"),
        consignee_name=cells.text("consignee_name"),
        consignee_phone=cells.text("consignee_phone"),
        dropoff_first_line=cells.text("dropoff_first_line"),
        dropoff_city=cells.text("dropoff_city"),
        delivered_at=cells.text("delivered_at"),
        updated_at=cells.text("updated_at"),
        created_at=cells.text("created_at"),
        expected_delivery_date=cells.text("expected_delivery_date"),
    )


def validate_shipment(row: BostaShipmentRow) -> str | None:
    if not row.tracking_number:
        return "missing tracking number"
    if not row.delivery_state:
        return "missing delivery state"
    return None


def shipment_record(row: BostaShipmentRow) -> dict:
    return {
        "tracking_number": row.tracking_number,
        "delivery_state": row.delivery_state,
        "cod_amount": row.cod_amount,
        "sku": row.sku,
        "business_reference": row.business_reference,
        "description": row.description,
        "consignee_name": row.consignee_name,
        "consignee_phone": row.consignee_phone,
        "dropoff_first_line": row.dropoff_first_line,
        "dropoff_city": row.dropoff_city,
        "delivered_at": row.delivered_at or None,
        "updated_at": row.updated_at or None,
        "is_delivered": row.is_delivered,
        "is_returned": row.is_returned,
    }


def shipment_revenue_record(row: BostaShipmentRow) -> dict | None:
    """Revenue entry for a delivered shipment that collected cash."""
    if not row.is_delivered or row.cod_amount <= 0:
        return None
    return {
        "name": f"Bosta Delivery - {row.tracking_number}",
        "amount": row.cod_amount,
        "category": "Delivery",
        "source": "Bosta Import",
        "date": row.delivered_at or row.updated_at or now_iso(),
        "description": f"COD collected for shipment {row.tracking_number}",
        "metadata": None,
    }


def shipment_metrics(rows: Sequence[BostaShipmentRow]) -> dict[str, float]:
    delivered = sum(1 for r in rows if r.delivery_state == DELIVERED)
    returned = sum(1 for r in rows if r.delivery_state == RETURNED)
    in_progress = sum(1 for r in rows if r.delivery_state == IN_PROGRESS)
    # 分母は確定状態 (delivered + returned) のみ
    base = delivered + returned
    expected_cash = sum(
        r.cod_amount for r in rows if r.delivery_state in (DELIVERED, IN_PROGRESS)
    )
    return {
        "total_orders": len(rows),
        "delivered": delivered,
        "returned": returned,
        "in_progress": in_progress,
        "delivery_rate": rate(delivered, base),
        "return_rate": rate(returned, base),
        "expected_cash": expected_cash,
    }


def shipment_template() -> RawTable:
    return RawTable(
        header=[
            "Tracking Number", "Delivery State", "COD Amount", "SKU",
            "Business Reference Number", "Consignee Name", "Consignee Phone",
            "Dropoff City", "Delivered At",
        ],
        rows=[
            ["1234567890", "Delivered", "250.00", "BOS-SHIRT-001", "ORD-1001",
             "Ahmed Ali", "01000000000", "Cairo", "2024-01-15"],
            ["1234567891", "Heading to customer", "180.00", "BOS-SHIRT-002", "ORD-1002",
             "Mona Hassan", "01100000000", "Giza", ""],
        ],
        source_name="bosta_shipments_template",
    )


BOSTA_SHIPMENTS = ImportFormat(
    name="bosta_shipments",
    title="Bosta Shipments",
    source="Bosta",
    fields=SHIPMENT_FIELDS,
    build_row=build_shipment,
    validate_row=validate_shipment,
    to_record=shipment_record,
    compute_metrics=shipment_metrics,
    template=shipment_template,
    accepted_kinds=frozenset({FileKind.XLSX, FileKind.XLS}),
    target=SHIPMENT,
    skip_if_blank=("tracking_number",),
    checks_unknown_references=True,
    checks_persisted_duplicates=True,
    to_revenue_record=shipment_revenue_record,
)


# ---- inventory -------------------------------------------------------------

def build_inventory(cells: RowCells, row_number: int) -> BostaInventoryRow:
    return BostaInventoryRow(
        row_number=row_number,
        bosta_sku=cells.text("bosta_sku"),
        product_name=cells.text("product_name"),
        product_name_ar=cells.text("product_name_ar"),
        price=cells.number("price"),
        forecasted=cells.integer("forecasted"),
        on_hand_quantity=cells.integer("on_hand_quantity"),
        internal_reference=cells.text("internal_reference"),
    )


def validate_inventory(row: BostaInventoryRow) -> str | None:
    sku = row.bosta_sku.lower()
    if not sku:
        return "missing Bosta SKU"
    if "unknown" in sku or "invalid" in sku:
        return f"invalid Bosta SKU '{row.bosta_sku}'"
    return None


def inventory_record(row: BostaInventoryRow) -> dict:
    name = row.product_name or row.product_name_ar or f"Imported from Bosta - {row.bosta_sku}"
    return {
        "product_name": name,
        "base_sku": row.bosta_sku,
        "category": "Imported from Bosta",
        "supplier": "Bosta Import",
        "unit_cost": 0.0,
        "selling_price": row.price,
        "current_stock": row.on_hand_quantity,
        "reorder_level": DEFAULT_REORDER_LEVEL,
        "description": f"Imported from Bosta - {row.internal_reference or row.bosta_sku}",
        "location": IMPORTED_LOCATION,
        "sizes": [],
        "colors": [],
    }


def inventory_metrics(rows: Sequence[BostaInventoryRow]) -> dict[str, float]:
    return {
        "total_items": len(rows),
        "total_stock": sum(r.on_hand_quantity for r in rows),
        "total_value": sum(r.on_hand_quantity * r.price for r in rows),
    }


def inventory_template() -> RawTable:
    return RawTable(
        header=[
            "Bosta SKU", "Product Name", "Product Name AR", "Price",
            "Forecasted Onhand Qua", "Internal Reference Number",
        ],
        rows=[
            ["BOS-SHIRT-001", "Blue Cotton Shirt", "قميص قطني أزرق", "150.00", "50", "REF-001"],
        ],
        source_name="bosta_inventory_template",
    )


BOSTA_INVENTORY = ImportFormat(
    name="bosta_inventory",
    title="Bosta Inventory",
    source="Bosta",
    fields=INVENTORY_FIELDS,
    build_row=build_inventory,
    validate_row=validate_inventory,
    to_record=inventory_record,
    compute_metrics=inventory_metrics,
    template=inventory_template,
    accepted_kinds=frozenset({FileKind.XLSX, FileKind.XLS}),
    target=INVENTORY,
    quota_applies=True,
)
