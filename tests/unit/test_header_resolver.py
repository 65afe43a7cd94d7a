from __future__ import annotations

import pytest

from bulk_import.formats.bosta import INVENTORY_FIELDS, SHIPMENT_FIELDS
from bulk_import.formats.shipblu import FIELDS as SHIPBLU_FIELDS
from bulk_import.formats.shipblu import GROUPS as SHIPBLU_GROUPS
from bulk_import.formats.shopify import PRODUCT_FIELDS
from bulk_import.models.field_spec import FieldSpec
from bulk_import.services.header_resolver import (
    MissingColumnsError,
    normalize_header,
    resolve_headers,
)


def test_normalize_header_trims_lowers_and_collapses_spaces():
    assert normalize_header("  Tracking   Number ") == "tracking number"
    assert normalize_header(None) == ""
    assert normalize_header(123) == "123"


def test_bosta_headers_resolve_case_and_order_insensitive():
    fm = resolve_headers(["cod amount", "DELIVERY STATE", "Tracking Number"], SHIPMENT_FIELDS)
    assert fm.index_of("cod_amount") == 0
    assert fm.index_of("delivery_state") == 1
    assert fm.index_of("tracking_number") == 2


def test_resolution_is_deterministic():
    header = ["Tracking Number", "Delivery State", "COD Amount", "SKU", "Delivered At"]
    first = resolve_headers(header, SHIPMENT_FIELDS)
    second = resolve_headers(header, SHIPMENT_FIELDS)
    assert dict(first.indices) == dict(second.indices)


def test_missing_required_columns_lists_all_of_them():
    with pytest.raises(MissingColumnsError) as e:
        resolve_headers(["SKU", "Price"], SHIPMENT_FIELDS)
    assert e.value.missing == ["Tracking Number", "Delivery State", "COD Amount"]
    assert str(e.value) == "Required columns not found: Tracking Number, Delivery State, COD Amount"
    assert e.value.available == ["SKU", "Price"]


def test_specific_predicate_declared_first_wins():
    fm = resolve_headers(
        ["Bosta SKU", "Forecasted", "Forecasted Onhand Quantity"], INVENTORY_FIELDS
    )
    assert fm.index_of("forecasted") == 1
    assert fm.index_of("on_hand_quantity") == 2


def test_arabic_name_column_not_taken_as_product_name():
    fm = resolve_headers(["Bosta SKU", "Product Name AR", "Product Name"], INVENTORY_FIELDS)
    assert fm.index_of("product_name_ar") == 1
    assert fm.index_of("product_name") == 2


def test_header_maps_to_single_field_and_first_header_keeps_field():
    fields = (
        FieldSpec("sku", "SKU", all_of=("sku",), required=True),
        FieldSpec("name", "Name", all_of=("name",)),
    )
    # "SKU Name" matches both predicates but only claims the first one
    fm = resolve_headers(["SKU Name", "Other SKU", "Name"], fields)
    assert fm.index_of("sku") == 0
    assert fm.index_of("name") == 2
    assert len(fm) == 2


def test_variant_price_does_not_take_compare_at_price():
    fm = resolve_headers(
        ["Variant SKU", "Variant Compare At Price", "Variant Price"], PRODUCT_FIELDS
    )
    assert fm.index_of("variant_compare_at_price") == 1
    assert fm.index_of("variant_price") == 2


def test_shipblu_combined_cod_column_satisfies_group():
    header = [
        "Tracking Number", "Pickup Date", "Customer Name", "Customer Phone",
        "Customer Zone", "Customer City", "CoD Estimated Date", "Status",
    ]
    fm = resolve_headers(header, SHIPBLU_FIELDS, SHIPBLU_GROUPS)
    assert fm.index_of("cod_estimated_date") == 6
    assert "cod" not in fm


def test_shipblu_separate_cod_columns_satisfy_group():
    header = [
        "Tracking Number", "Pickup Date", "Customer Name", "Customer Phone",
        "Customer Zone", "Customer City", "CoD", "Estimated Date", "Status",
    ]
    fm = resolve_headers(header, SHIPBLU_FIELDS, SHIPBLU_GROUPS)
    assert fm.index_of("cod") == 6
    assert fm.index_of("estimated_date") == 7


def test_shipblu_missing_everything_reports_group_label():
    with pytest.raises(MissingColumnsError) as e:
        resolve_headers(["Tracking Number", "CoD"], SHIPBLU_FIELDS, SHIPBLU_GROUPS)
    missing = e.value.missing
    assert "Pickup Date" in missing
    assert "Status" in missing
    assert missing[-1] == "CoD Estimated Date (or separate CoD and Estimated Date)"
    assert "Tracking Number" not in missing


def test_blank_headers_are_ignored():
    fm = resolve_headers(["", None, "Tracking Number", "Delivery State", "COD Amount"], SHIPMENT_FIELDS)
    assert fm.index_of("tracking_number") == 2
