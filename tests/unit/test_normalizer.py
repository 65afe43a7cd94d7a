from __future__ import annotations

import math
from datetime import datetime

import pytest

from bulk_import.formats.bosta import BOSTA_INVENTORY, BOSTA_SHIPMENTS, normalize_delivery_state
from bulk_import.formats.shipblu import SHIPBLU_TRACKING
from bulk_import.formats.shopify import SHOPIFY_ORDERS, SHOPIFY_PRODUCTS, product_record
from bulk_import.formats.system_template import SYSTEM_TEMPLATE
from bulk_import.formats.system_template import to_record as template_record
from bulk_import.models.raw_table import RawTable
from bulk_import.models.rows import DELIVERED, IN_PROGRESS, RETURNED
from bulk_import.services.classifier import classify
from bulk_import.services.header_resolver import resolve_headers
from bulk_import.services.normalizer import (
    cell_text,
    is_numeric,
    normalize_rows,
    parse_number,
    split_list,
    strip_html,
)


def _normalize(fmt, header, rows):
    table = RawTable(header=header, rows=rows, source_name="t")
    fm = resolve_headers(table.header, fmt.fields, fmt.required_groups)
    return normalize_rows(table, fm, fmt)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("1,250.50", 1250.5),
        (" 42 ", 42.0),
        ("12abc", 12.0),
        ("abc", 0.0),
        ("", 0.0),
        (None, 0.0),
        (math.nan, 0.0),
        (7, 7.0),
        ("-3.5", -3.5),
    ],
)
def test_parse_number_is_permissive(raw, expected):
    assert parse_number(raw) == expected


def test_is_numeric_is_strict():
    assert is_numeric("1,000")
    assert is_numeric("19.99")
    assert is_numeric(5)
    assert not is_numeric("12abc")
    assert not is_numeric("")
    assert not is_numeric(True)
    assert not is_numeric("nan")


def test_cell_text_renders_excel_values():
    assert cell_text(1234567890.0) == "1234567890"
    assert cell_text(1.5) == "1.5"
    assert cell_text(datetime(2024, 1, 15)) == "2024-01-15"
    assert cell_text("  x  ") == "x"
    assert cell_text(None) == ""


def test_split_list_and_strip_html():
    assert split_list("S, M ,, L") == ("S", "M", "L")
    assert split_list(None) == ()
    assert strip_html("<p>Soft <b>cotton</b></p>") == "Soft cotton"


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Delivered", DELIVERED),
        ("DELIVERED", DELIVERED),
        ("fulfilled", DELIVERED),
        ("Returned to business", RETURNED),
        ("Return in progress", RETURNED),
        ("Heading to customer", IN_PROGRESS),
        ("Out for delivery", IN_PROGRESS),
        ("Picked up", IN_PROGRESS),
        ("Lost", "lost"),
    ],
)
def test_delivery_state_normalization(raw, expected):
    assert normalize_delivery_state(raw) == expected


def test_bosta_rows_keep_order_and_line_numbers():
    rows = _normalize(
        BOSTA_SHIPMENTS,
        ["Tracking Number", "Delivery State", "COD Amount"],
        [["TN1", "Delivered", "1,100"], [], ["TN2", "Returned", ""], ["", "Delivered", "5"]],
    )
    # 空行と追跡番号なしの行は正規化の段階で除外
    assert [r.tracking_number for r in rows] == ["TN1", "TN2"]
    assert [r.row_number for r in rows] == [2, 4]
    assert rows[0].cod_amount == 1100.0
    assert rows[1].cod_amount == 0.0


def test_bosta_blank_delivery_state_is_emitted_and_classified_invalid():
    rows = _normalize(
        BOSTA_SHIPMENTS,
        ["Tracking Number", "Delivery State", "COD Amount"],
        [["TN1", "Delivered", "100"], ["TN2", "", "50"]],
    )
    assert [r.tracking_number for r in rows] == ["TN1", "TN2"]

    result = classify(rows, BOSTA_SHIPMENTS)
    assert result.statistics.total_rows == 2
    assert result.statistics.invalid_rows == 1
    assert [(f.row_number, f.reason) for f in result.failures] == [(3, "missing delivery state")]


def test_blank_key_rows_are_emitted_for_other_formats():
    rows = _normalize(SHOPIFY_PRODUCTS, ["Handle", "Variant SKU"], [["shirt", ""], ["shirt", "A"]])
    assert [r.variant_sku for r in rows] == ["", "A"]


def test_bosta_inventory_prefers_forecasted_onhand_column():
    rows = _normalize(
        BOSTA_INVENTORY,
        ["Bosta SKU", "Product Name", "Price", "Forecasted", "Forecasted Onhand Quantity"],
        [["BOS-1", "Shirt", "150", "3", "40"]],
    )
    assert rows[0].forecasted == 3
    assert rows[0].on_hand_quantity == 40


def test_shopify_sizes_and_colors_from_options_and_google_columns():
    header = [
        "Handle", "Option1 Name", "Option1 Value", "Option2 Name", "Option2 Value",
        "Option3 Name", "Option3 Value", "Variant SKU",
        "Google Shopping / Color", "Google Shopping / Size",
    ]
    rows = _normalize(
        SHOPIFY_PRODUCTS,
        header,
        [["tee", "Size", "M", "Colour", "Blue", "Material", "Cotton", "TEE-M", "Navy", "Medium"]],
    )
    assert rows[0].sizes == ("M", "Medium")
    assert rows[0].colors == ("Blue", "Navy")


def test_shopify_product_record_defaults():
    rows = _normalize(
        SHOPIFY_PRODUCTS,
        ["Handle", "Body (HTML)", "Variant SKU", "Variant Price", "Variant Inventory Qty"],
        [["tee", "<p>Soft tee</p>", "TEE-1", "19.5", "4"]],
    )
    record = product_record(rows[0])
    assert record["product_name"] == "Imported from Shopify - TEE-1"
    assert record["description"] == "Soft tee"
    assert record["category"] == "Imported from Shopify"
    assert record["reorder_level"] == 10
    assert record["location"] == "Imported"
    assert record["current_stock"] == 4


def test_shopify_order_defaults():
    rows = _normalize(SHOPIFY_ORDERS, ["Name", "Email", "Total"], [["#1001", "", "250"]])
    row = rows[0]
    assert row.email == "no email"
    assert row.financial_status == "unknown"
    assert row.fulfillment_status == "unfulfilled"
    assert row.currency == "USD"
    assert row.total == 250.0


def test_shipblu_separate_cod_columns_are_joined():
    header = [
        "Tracking Number", "Pickup Date", "Customer Name", "Customer Phone",
        "Customer Zone", "Customer City", "CoD", "Estimated Date", "Status",
    ]
    rows = _normalize(
        SHIPBLU_TRACKING,
        header,
        [["SB-1", "2024-01-10", "Sara", "0120", "Dokki", "Giza", "350", "2024-01-12", "Delivered"]],
    )
    assert rows[0].cod_estimated_date == "350 - 2024-01-12"


def test_template_record_applies_defaults():
    header = [
        "Product Name", "Base SKU", "Category", "Stock", "Selling Price", "Cost Price",
        "Supplier", "Location", "Sizes",
    ]
    rows = _normalize(
        SYSTEM_TEMPLATE,
        header,
        [["Tee", "SKU-1", "Clothing", "12", "19.99", "8.5", "Acme", "Shelf 3", "S, M"]],
    )
    row = rows[0]
    assert row.stock_text == "12"
    record = template_record(row)
    assert record["current_stock"] == 12
    assert record["reorder_level"] == 10
    assert record["sizes"] == ["S", "M"]
    assert record["colors"] == []
