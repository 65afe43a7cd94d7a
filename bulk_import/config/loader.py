from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from bulk_import.models.config_models import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_PREVIEW_LIMIT,
    DatabaseConfig,
    ImportConfig,
    TableConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against the packaged config_schema.json
- Apply defaults (batch_size=10, duplicate_preview_limit=10, inventory_limit=-1)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)

    db_raw = data.get("database", {})
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    tables = TableConfig(**data["tables"])
    return ImportConfig(
        brand_id=data["brand_id"],
        tables=tables,
        batch_size=data.get("batch_size", DEFAULT_BATCH_SIZE),
        duplicate_preview_limit=data.get("duplicate_preview_limit", DEFAULT_PREVIEW_LIMIT),
        inventory_limit=data.get("inventory_limit", -1),
        database=db,
    )
