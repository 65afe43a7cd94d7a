from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the bulk import tool.

Produced by bulk_import.config.loader after schema validation; the rest of the
package only ever sees these frozen objects.
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_PREVIEW_LIMIT",
    "DatabaseConfig",
    "TableConfig",
    "ImportConfig",
]

DEFAULT_BATCH_SIZE = 10
DEFAULT_PREVIEW_LIMIT = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class TableConfig:
    """Target table per record kind (inventory items, revenues, shipments, tracking)."""
    inventory: str
    revenue: str
    shipment: str
    tracking: str

    def for_target(self, target: str) -> str:
        try:
            return getattr(self, target)
        except AttributeError:
            raise KeyError(f"no table configured for target '{target}'") from None


@dataclass(frozen=True)
class ImportConfig:
    """Top level configuration.

    Attributes:
        brand_id: tenant the imported records belong to
        tables: target table names
        batch_size: rows per concurrent commit batch
        duplicate_preview_limit: max persisted duplicate keys shown to the user
        inventory_limit: plan quota for inventory items (-1 = unlimited)
        database: connection fallback values
    """
    brand_id: str
    tables: TableConfig
    batch_size: int = DEFAULT_BATCH_SIZE
    duplicate_preview_limit: int = DEFAULT_PREVIEW_LIMIT
    inventory_limit: int = -1
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
