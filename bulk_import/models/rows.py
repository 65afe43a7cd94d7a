from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar

"""Normalized row variants, one per vendor format.

Rows are immutable. Classification never edits a row; it only builds index
sets over the original sequence.
"""

__all__ = [
    "NormalizedRow",
    "BostaShipmentRow",
    "BostaInventoryRow",
    "ShopifyProductRow",
    "ShopifyOrderRow",
    "ShipbluTrackingRow",
    "TemplateInventoryRow",
    "DELIVERED",
    "RETURNED",
    "IN_PROGRESS",
]

DELIVERED = "delivered"
RETURNED = "returned"
IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class NormalizedRow:
    row_number: int  # 元ファイルの行番号 (ヘッダ=1)

    kind: ClassVar[str] = "row"

    @property
    def natural_key(self) -> str:
        raise NotImplementedError

    @property
    def reference_sku(self) -> str:
        """SKU checked against existing inventory ("" when the row carries none)."""
        return ""


@dataclass(frozen=True)
class BostaShipmentRow(NormalizedRow):
    tracking_number: str = ""
    delivery_state: str = ""  # delivered / returned / in_progress / raw lower-cased text
    cod_amount: float = 0.0
    sku: str = ""
    business_reference: str = ""
    description: str = ""
    consignee_name: str = ""
    consignee_phone: str = ""
    dropoff_first_line: str = ""
    dropoff_city: str = ""
    delivered_at: str = ""
    updated_at: str = ""
    created_at: str = ""
    expected_delivery_date: str = ""

    kind: ClassVar[str] = "bosta_shipment"

    @property
    def natural_key(self) -> str:
        return self.tracking_number

    @property
    def reference_sku(self) -> str:
        return self.sku or self.business_reference or self.description

    @property
    def is_delivered(self) -> bool:
        return self.delivery_state == DELIVERED

    @property
    def is_returned(self) -> bool:
        return self.delivery_state == RETURNED


@dataclass(frozen=True)
class BostaInventoryRow(NormalizedRow):
    bosta_sku: str = ""
    product_name: str = ""
    product_name_ar: str = ""
    price: float = 0.0
    forecasted: int = 0
    on_hand_quantity: int = 0
    internal_reference: str = ""

    kind: ClassVar[str] = "bosta_inventory"

    @property
    def natural_key(self) -> str:
        return self.bosta_sku

    @property
    def reference_sku(self) -> str:
        return self.bosta_sku


@dataclass(frozen=True)
class ShopifyProductRow(NormalizedRow):
    handle: str = ""
    title: str = ""
    body_html: str = ""
    vendor: str = ""
    product_type: str = ""
    tags: str = ""
    published: str = ""
    options: tuple[tuple[str, str], ...] = ()  # (option name, option value) x 3
    variant_sku: str = ""
    variant_grams: float = 0.0
    variant_inventory_quantity: int = 0
    variant_price: float = 0.0
    variant_compare_at_price: float = 0.0
    variant_barcode: str = ""
    image_src: str = ""
    image_alt_text: str = ""
    seo_title: str = ""
    seo_description: str = ""
    google_category: str = ""
    google_gender: str = ""
    google_age_group: str = ""
    variant_weight_unit: str = ""
    cost_per_item: float = 0.0
    status: str = ""
    sizes: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()

    kind: ClassVar[str] = "shopify_product"

    @property
    def natural_key(self) -> str:
        return self.variant_sku

    @property
    def reference_sku(self) -> str:
        return self.variant_sku


@dataclass(frozen=True)
class ShopifyOrderRow(NormalizedRow):
    name: str = ""
    email: str = ""
    financial_status: str = ""
    fulfillment_status: str = ""
    currency: str = ""
    subtotal: float = 0.0
    shipping: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    discount_code: str = ""
    discount_amount: float = 0.0
    shipping_method: str = ""
    created_at: str = ""
    updated_at: str = ""
    cancelled_at: str = ""
    cancel_reason: str = ""
    tags: str = ""
    note: str = ""

    kind: ClassVar[str] = "shopify_order"

    @property
    def natural_key(self) -> str:
        return self.name


@dataclass(frozen=True)
class ShipbluTrackingRow(NormalizedRow):
    tracking_number: str = ""
    pickup_date: str = ""
    customer_name: str = ""
    customer_phone: str = ""
    customer_zone: str = ""
    customer_city: str = ""
    cod_estimated_date: str = ""
    status: str = ""

    kind: ClassVar[str] = "shipblu_tracking"

    @property
    def natural_key(self) -> str:
        return self.tracking_number


@dataclass(frozen=True)
class TemplateInventoryRow(NormalizedRow):
    """System template row.

    Numeric columns keep their source text next to the parsed value so the
    classifier can tell "0" apart from "abc".
    """
    product_name: str = ""
    base_sku: str = ""
    category: str = ""
    stock_text: str = ""
    selling_price_text: str = ""
    cost_price_text: str = ""
    supplier: str = ""
    location: str = ""
    description: str = ""
    sizes: tuple[str, ...] = ()
    colors: tuple[str, ...] = ()
    stock: float = 0.0
    selling_price: float = 0.0
    cost_price: float = 0.0

    kind: ClassVar[str] = "template_inventory"

    @property
    def natural_key(self) -> str:
        return self.base_sku

    @property
    def reference_sku(self) -> str:
        return self.base_sku
