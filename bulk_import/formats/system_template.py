from __future__ import annotations

from collections.abc import Sequence

from bulk_import.formats.base import DEFAULT_REORDER_LEVEL, INVENTORY, ImportFormat
from bulk_import.models.field_spec import FieldSpec
from bulk_import.models.raw_table import FileKind, RawTable
from bulk_import.models.rows import TemplateInventoryRow
from bulk_import.services.normalizer import RowCells, is_numeric, split_list

"""The platform's own inventory template (what users download and fill in)."""

__all__ = [
    "FIELDS",
    "SYSTEM_TEMPLATE",
]

FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("product_name", "Product Name", all_of=("product", "name"), required=True),
    FieldSpec("base_sku", "Base SKU", all_of=("sku",), required=True),
    FieldSpec("category", "Category", all_of=("category",), required=True),
    FieldSpec("stock", "Stock", all_of=("stock",), required=True),
    FieldSpec("selling_price", "Selling Price", all_of=("selling", "price"), required=True),
    FieldSpec("cost_price", "Cost Price", all_of=("cost",), required=True),
    FieldSpec("supplier", "Supplier", all_of=("supplier",), required=True),
    FieldSpec("location", "Location", all_of=("location",), required=True),
    FieldSpec("description", "Description", all_of=("description",)),
    FieldSpec("sizes", "Sizes", all_of=("size",)),
    FieldSpec("colors", "Colors", any_of=("color", "colour")),
)

_REQUIRED_TEXT = (
    ("product_name", "Product Name"),
    ("base_sku", "Base SKU"),
    ("category", "Category"),
    ("supplier", "Supplier"),
    ("location", "Location"),
)
_REQUIRED_NUMERIC = (
    ("stock_text", "Stock"),
    ("selling_price_text", "Selling Price"),
    ("cost_price_text", "Cost Price"),
)


def build_row(cells: RowCells, row_number: int) -> TemplateInventoryRow:
    return TemplateInventoryRow(
        row_number=row_number,
        product_name=cells.text("product_name"),
        base_sku=cells.text("base_sku"),
        category=cells.text("category"),
        stock_text=cells.text("stock"),
        selling_price_text=cells.text("selling_price"),
        cost_price_text=cells.text("cost_price"),
        supplier=cells.text("supplier"),
        location=cells.text("location"),
        description=cells.text("description"),
        sizes=split_list(cells.raw("sizes")),
        colors=split_list(cells.raw("colors")),
        stock=cells.number("stock"),
        selling_price=cells.number("selling_price"),
        cost_price=cells.number("cost_price"),
    )


def validate_row(row: TemplateInventoryRow) -> str | None:
    missing = [label for attr, label in _REQUIRED_TEXT + _REQUIRED_NUMERIC if not getattr(row, attr)]
    if missing:
        return "missing " + ", ".join(missing)
    bad = [label for attr, label in _REQUIRED_NUMERIC if not is_numeric(getattr(row, attr))]
    if bad:
        return "not a number: " + ", ".join(bad)
    return None


def to_record(row: TemplateInventoryRow) -> dict:
    return {
        "product_name": row.product_name,
        "base_sku": row.base_sku,
        "category": row.category,
        "supplier": row.supplier,
        "unit_cost": row.cost_price,
        "selling_price": row.selling_price,
        "current_stock": int(row.stock),
        "reorder_level": DEFAULT_REORDER_LEVEL,
        "description": row.description,
        "location": row.location,
        "sizes": list(row.sizes),
        "colors": list(row.colors),
    }


def compute_metrics(rows: Sequence[TemplateInventoryRow]) -> dict[str, float]:
    return {
        "total_items": len(rows),
        "total_stock": sum(r.stock for r in rows),
        "total_value": sum(r.stock * r.selling_price for r in rows),
        "total_cost": sum(r.stock * r.cost_price for r in rows),
    }


def template() -> RawTable:
    return RawTable(
        header=[
            "Product Name", "Base SKU", "Category", "Stock", "Selling Price", "Cost Price",
            "Supplier", "Location", "Description", "Sizes", "Colors",
        ],
        rows=[
            ["Wireless Headphones", "SKU-001", "Electronics", 50, 99.99, 60.0,
             "Tech Supplies Co", "Warehouse A", "Bluetooth over-ear headphones", "", "Black, White"],
            ["Cotton T-Shirt", "SKU-002", "Clothing", 120, 19.99, 8.5,
             "Fashion Wholesale", "Warehouse B", "Basic crew neck tee", "S, M, L, XL", "Red, Blue"],
        ],
        source_name="system_template",
    )


SYSTEM_TEMPLATE = ImportFormat(
    name="system_template",
    title="System Inventory Template",
    source="Template",
    fields=FIELDS,
    build_row=build_row,
    validate_row=validate_row,
    to_record=to_record,
    compute_metrics=compute_metrics,
    template=template,
    accepted_kinds=frozenset({FileKind.XLSX, FileKind.XLS, FileKind.CSV}),
    target=INVENTORY,
    checks_unknown_references=False,
    quota_applies=True,
    template_sheet="Inventory Template",
)
