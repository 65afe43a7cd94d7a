from __future__ import annotations

from collections.abc import Sequence

from bulk_import.formats.base import (
    DEFAULT_REORDER_LEVEL,
    IMPORTED_LOCATION,
    INVENTORY,
    REVENUE,
    ImportFormat,
    now_iso,
)
from bulk_import.models.field_spec import FieldSpec
from bulk_import.models.raw_table import FileKind, RawTable
from bulk_import.models.rows import ShopifyOrderRow, ShopifyProductRow
from bulk_import.services.normalizer import RowCells, strip_html

"""Shopify exports: products (one row per variant) and orders."""

__all__ = [
    "PRODUCT_FIELDS",
    "ORDER_FIELDS",
    "LOW_STOCK_THRESHOLD",
    "SHOPIFY_PRODUCTS",
    "SHOPIFY_ORDERS",
]

LOW_STOCK_THRESHOLD = 10


def _option_fields(n: int) -> tuple[FieldSpec, ...]:
    return (
        FieldSpec(f"option{n}_name", f"Option{n} Name", all_of=(f"option{n}", "name")),
        FieldSpec(f"option{n}_value", f"Option{n} Value", all_of=(f"option{n}", "value")),
    )


PRODUCT_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("handle", "Handle", exact=("handle",)),
    FieldSpec("title", "Title", exact=("title",)),
    FieldSpec("body_html", "Body (HTML)", all_of=("body", "html")),
    FieldSpec("vendor", "Vendor", exact=("vendor",)),
    FieldSpec("product_type", "Type", all_of=("product", "type")),
    FieldSpec("product_type", "Type", exact=("type",)),
    FieldSpec("tags", "Tags", exact=("tags",)),
    FieldSpec("published", "Published", exact=("published",)),
    *_option_fields(1),
    *_option_fields(2),
    *_option_fields(3),
    FieldSpec("variant_sku", "Variant SKU", all_of=("variant", "sku"), required=True),
    FieldSpec("variant_grams", "Variant Grams", all_of=("variant", "grams")),
    FieldSpec(
        "variant_inventory_quantity", "Variant Inventory Qty",
        all_of=("variant", "inventory"), any_of=("qty", "quantity"),
    ),
    FieldSpec("variant_price", "Variant Price", all_of=("variant", "price"), none_of=("compare",)),
    FieldSpec("variant_compare_at_price", "Variant Compare At Price", all_of=("variant", "compare")),
    FieldSpec("variant_barcode", "Variant Barcode", all_of=("variant", "barcode")),
    FieldSpec("image_src", "Image Src", all_of=("image", "src"), none_of=("variant",)),
    FieldSpec("image_alt_text", "Image Alt Text", all_of=("image", "alt")),
    FieldSpec("seo_title", "SEO Title", all_of=("seo", "title")),
    FieldSpec("seo_description", "SEO Description", all_of=("seo", "description")),
    FieldSpec("google_category", "Google Product Category", all_of=("google", "category")),
    FieldSpec("google_gender", "Google Shopping / Gender", all_of=("google", "gender")),
    FieldSpec("google_age_group", "Google Shopping / Age Group", all_of=("google", "age group")),
    FieldSpec("google_color", "Google Shopping / Color", all_of=("google", "color")),
    FieldSpec("google_size", "Google Shopping / Size", all_of=("google", "size")),
    FieldSpec("variant_weight_unit", "Variant Weight Unit", all_of=("variant", "weight")),
    FieldSpec("cost_per_item", "Cost per item", all_of=("cost", "item")),
    FieldSpec("status", "Status", exact=("status",)),
)


# 注文 CSV は列名が固定なので完全一致
ORDER_FIELDS: tuple[FieldSpec, ...] = (
    FieldSpec("name", "Name", exact=("name",), required=True),
    FieldSpec("email", "Email", exact=("email",), required=True),
    FieldSpec("financial_status", "Financial Status", exact=("financial status",)),
    FieldSpec("fulfillment_status", "Fulfillment Status", exact=("fulfillment status",)),
    FieldSpec("currency", "Currency", exact=("currency",)),
    FieldSpec("subtotal", "Subtotal", exact=("subtotal",)),
    FieldSpec("shipping", "Shipping", exact=("shipping",)),
    FieldSpec("tax", "Taxes", exact=("taxes", "tax")),
    FieldSpec("total", "Total", exact=("total",), required=True),
    FieldSpec("discount_code", "Discount Code", exact=("discount code",)),
    FieldSpec("discount_amount", "Discount Amount", exact=("discount amount",)),
    FieldSpec("shipping_method", "Shipping Method", exact=("shipping method",)),
    FieldSpec("created_at", "Created at", exact=("created at",)),
    FieldSpec("updated_at", "Updated at", exact=("updated at",)),
    FieldSpec("cancelled_at", "Cancelled at", exact=("cancelled at",)),
    FieldSpec("cancel_reason", "Cancel Reason", exact=("cancel reason",)),
    FieldSpec("tags", "Tags", exact=("tags",)),
    FieldSpec("note", "Notes", exact=("notes", "note")),
)


# ---- products --------------------------------------------------------------

def _sizes_and_colors(
    options: Sequence[tuple[str, str]], google_size: str, google_color: str
) -> tuple[tuple[str, ...], tuple[str, ...]]:
    sizes: list[str] = []
    colors: list[str] = []
    for name, value in options:
        lowered = name.lower()
        if "size" in lowered:
            sizes.append(value)
        elif "color" in lowered or "colour" in lowered:
            colors.append(value)
    sizes.append(google_size)
    colors.append(google_color)
    return tuple(s for s in sizes if s), tuple(c for c in colors if c)


def build_product(cells: RowCells, row_number: int) -> ShopifyProductRow:
    options = tuple(
        (cells.text(f"option{n}_name"), cells.text(f"option{n}_value")) for n in (1, 2, 3)
    )
    sizes, colors = _sizes_and_colors(
        options, cells.text("google_size"), cells.text("google_color")
    )
    return ShopifyProductRow(
        row_number=row_number,
        handle=cells.text("handle"),
        title=cells.text("title"),
        body_html=cells.text("body_html"),
        vendor=cells.text("vendor"),
        product_type=cells.text("product_type"),
        tags=cells.text("tags"),
        published=cells.text("published"),
        options=options,
        variant_sku=cells.text("variant_sku"),
        variant_grams=cells.number("variant_grams"),
        variant_inventory_quantity=cells.integer("variant_inventory_quantity"),
        variant_price=cells.number("variant_price"),
        variant_compare_at_price=cells.number("variant_compare_at_price"),
        variant_barcode=cells.text("variant_barcode"),
        image_src=cells.text("image_src"),
        image_alt_text=cells.text("image_alt_text"),
        seo_title=cells.text("seo_title"),
        seo_description=cells.text("seo_description"),
        google_category=cells.text("google_category"),
        google_gender=cells.text("google_gender"),
        google_age_group=cells.text("google_age_group"),
        variant_weight_unit=cells.text("variant_weight_unit"),
        cost_per_item=cells.number("cost_per_item"),
        status=cells.text("status"),
        sizes=sizes,
        colors=colors,
    )


def validate_product(row: ShopifyProductRow) -> str | None:
    if not row.variant_sku:
        return "missing Variant SKU"
    return None


def product_record(row: ShopifyProductRow) -> dict:
    description = strip_html(row.body_html) or f"Imported from Shopify - {row.handle}"
    return {
        "product_name": row.title or f"Imported from Shopify - {row.variant_sku}",
        "base_sku": row.variant_sku,
        "category": row.product_type or "Imported from Shopify",
        "supplier": row.vendor or "Shopify Import",
        "unit_cost": row.cost_per_item,
        "selling_price": row.variant_price,
        "current_stock": row.variant_inventory_quantity,
        "reorder_level": DEFAULT_REORDER_LEVEL,
        "description": description,
        "location": IMPORTED_LOCATION,
        "sizes": list(row.sizes),
        "colors": list(row.colors),
    }


def product_metrics(rows: Sequence[ShopifyProductRow]) -> dict[str, float]:
    quantities = [r.variant_inventory_quantity for r in rows]
    return {
        "total_products": len({r.handle for r in rows if r.handle}),
        "total_variants": len(rows),
        "total_value": sum(r.variant_inventory_quantity * r.variant_price for r in rows),
        "in_stock": sum(1 for q in quantities if q > 0),
        "out_of_stock": sum(1 for q in quantities if q == 0),
        "low_stock": sum(1 for q in quantities if 0 < q <= LOW_STOCK_THRESHOLD),
    }


PRODUCT_TEMPLATE_HEADER = [
    "Handle", "Title", "Body (HTML)", "Vendor", "Type", "Tags", "Published",
    "Option1 Name", "Option1 Value", "Option2 Name", "Option2 Value",
    "Option3 Name", "Option3 Value", "Variant SKU", "Variant Grams",
    "Variant Inventory Qty", "Variant Price", "Variant Compare At Price",
    "Variant Barcode", "Image Src", "Image Alt Text", "SEO Title", "SEO Description",
    "Google Shopping / Google Product Category", "Google Shopping / Gender",
    "Google Shopping / Age Group", "Google Shopping / Color", "Google Shopping / Size",
    "Variant Weight Unit", "Cost per item", "Status",
]


def product_template() -> RawTable:
    return RawTable(
        header=list(PRODUCT_TEMPLATE_HEADER),
        rows=[[
            "sample-product", "Sample Product", "<p>Sample description</p>", "Sample Vendor",
            "Clothing", "sample, product", "TRUE", "Size", "M", "Color", "Blue", "", "",
            "SAMPLE-SKU-001", "200", "25", "29.99", "39.99", "", "", "", "Sample Product",
            "Sample SEO description", "Apparel & Accessories", "Unisex", "Adult", "Blue", "M",
            "kg", "12.50", "active",
        ]],
        source_name="shopify_products_template",
    )


SHOPIFY_PRODUCTS = ImportFormat(
    name="shopify_products",
    title="Shopify Products",
    source="Shopify",
    fields=PRODUCT_FIELDS,
    build_row=build_product,
    validate_row=validate_product,
    to_record=product_record,
    compute_metrics=product_metrics,
    template=product_template,
    accepted_kinds=frozenset({FileKind.CSV, FileKind.XLSX, FileKind.XLS}),
    target=INVENTORY,
    checks_unknown_references=True,
    quota_applies=True,
)


# ---- orders ----------------------------------------------------------------

def build_order(cells: RowCells, row_number: int) -> ShopifyOrderRow:
    return ShopifyOrderRow(
        row_number=row_number,
        name=cells.text("name"),
        email=cells.text("email", "no email"),
        financial_status=cells.text("financial_status", "unknown").lower(),
        fulfillment_status=cells.text("fulfillment_status", "unfulfilled").lower(),
        currency=cells.text("currency", "USD"),
        subtotal=cells.number("subtotal"),
        shipping=cells.number("shipping"),
        tax=cells.number("tax"),
        total=cells.number("total"),
        discount_code=cells.text("discount_code"),
        discount_amount=cells.number("discount_amount"),
        shipping_method=cells.text("shipping_method"),
        created_at=cells.text("created_at"),
        updated_at=cells.text("updated_at"),
        cancelled_at=cells.text("cancelled_at"),
        cancel_reason=cells.text("cancel_reason"),
        tags=cells.text("tags"),
        note=cells.text("note"),
    )


def validate_order(row: ShopifyOrderRow) -> str | None:
    if not row.name:
        return "missing order name"
    if row.total == 0:
        return f"order {row.name} has no total"
    return None


def order_record(row: ShopifyOrderRow) -> dict:
    return {
        "name": f"Order {row.name}",
        "amount": row.total,
        "category": "Sales",
        "source": "Shopify",
        "date": row.created_at or now_iso(),
        "description": f"Shopify order {row.name} ({row.email})",
        "metadata": {
            "order_name": row.name,
            "email": row.email,
            "financial_status": row.financial_status,
            "fulfillment_status": row.fulfillment_status,
            "currency": row.currency,
            "subtotal": row.subtotal,
            "shipping": row.shipping,
            "tax": row.tax,
            "discount_code": row.discount_code,
            "discount_amount": row.discount_amount,
            "shipping_method": row.shipping_method,
            "cancelled_at": row.cancelled_at or None,
            "cancel_reason": row.cancel_reason or None,
            "tags": row.tags,
        },
    }


def order_metrics(rows: Sequence[ShopifyOrderRow]) -> dict[str, float]:
    total_revenue = sum(r.total for r in rows)
    return {
        "total_orders": len(rows),
        "total_revenue": total_revenue,
        "total_tax": sum(r.tax for r in rows),
        "total_shipping": sum(r.shipping for r in rows),
        "total_discount": sum(r.discount_amount for r in rows),
        "paid_orders": sum(1 for r in rows if r.financial_status == "paid"),
        "pending_orders": sum(1 for r in rows if r.financial_status == "pending"),
        "cancelled_orders": sum(
            1 for r in rows if r.cancelled_at or r.financial_status in ("voided", "cancelled")
        ),
        "fulfilled_orders": sum(1 for r in rows if r.fulfillment_status == "fulfilled"),
        "unfulfilled_orders": sum(1 for r in rows if r.fulfillment_status == "unfulfilled"),
        "average_order_value": total_revenue / len(rows) if rows else 0.0,
        "unique_customers": len({r.email.lower() for r in rows}),
    }


def order_template() -> RawTable:
    return RawTable(
        header=[
            "Name", "Email", "Financial Status", "Fulfillment Status", "Currency",
            "Subtotal", "Shipping", "Taxes", "Total", "Discount Code", "Discount Amount",
            "Shipping Method", "Created at",
        ],
        rows=[
            ["#1001", "customer@example.com", "paid", "fulfilled", "EGP", "450.00", "50.00",
             "0.00", "500.00", "", "0.00", "Standard", "2024-01-15 10:30:00 +0200"],
            ["#1002", "other@example.com", "pending", "unfulfilled", "EGP", "300.00", "50.00",
             "0.00", "320.00", "WELCOME10", "30.00", "Express", "2024-01-16 12:00:00 +0200"],
        ],
        source_name="shopify_orders_template",
    )


SHOPIFY_ORDERS = ImportFormat(
    name="shopify_orders",
    title="Shopify Orders",
    source="Shopify",
    fields=ORDER_FIELDS,
    build_row=build_order,
    validate_row=validate_order,
    to_record=order_record,
    compute_metrics=order_metrics,
    template=order_template,
    accepted_kinds=frozenset({FileKind.CSV}),
    target=REVENUE,
)
