"""Vendor format registry."""

from __future__ import annotations

from .base import ImportFormat
from .bosta import BOSTA_INVENTORY, BOSTA_SHIPMENTS
from .shipblu import SHIPBLU_TRACKING
from .shopify import SHOPIFY_ORDERS, SHOPIFY_PRODUCTS
from .system_template import SYSTEM_TEMPLATE

__all__ = [
    "FORMATS",
    "ImportFormat",
    "UnknownFormatError",
    "get_format",
]

FORMATS: dict[str, ImportFormat] = {
    fmt.name: fmt
    for fmt in (
        BOSTA_SHIPMENTS,
        BOSTA_INVENTORY,
        SHOPIFY_PRODUCTS,
        SHOPIFY_ORDERS,
        SHIPBLU_TRACKING,
        SYSTEM_TEMPLATE,
    )
}


class UnknownFormatError(KeyError):
    pass


def get_format(name: str | ImportFormat) -> ImportFormat:
    if isinstance(name, ImportFormat):
        return name
    try:
        return FORMATS[name]
    except KeyError:
        raise UnknownFormatError(
            f"unknown format '{name}' (choose from {', '.join(sorted(FORMATS))})"
        ) from None
