# Shared pytest fixtures
from __future__ import annotations

import io
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from bulk_import.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """brand_id: brand-001
batch_size: 10
duplicate_preview_limit: 5
inventory_limit: 100
tables:
  inventory: inventory_items
  revenue: revenues
  shipment: bosta_shipments
  tracking: shipblu_orders
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def xlsx_bytes(rows: list[list[object]], sheet_name: str = "Sheet1") -> bytes:
    """Build an in-memory .xlsx whose first row is the header."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return buf.getvalue()


def csv_bytes(lines: list[str]) -> bytes:
    return ("\n".join(lines) + "\n").encode("utf-8")


@pytest.fixture()
def make_xlsx():
    return xlsx_bytes


@pytest.fixture()
def make_csv():
    return csv_bytes


@pytest.fixture()
def bosta_rows() -> list[list[object]]:
    return [
        ["Tracking Number", "Delivery State", "COD Amount"],
        ["TN1", "Delivered", "100"],
        ["TN2", "Returned", "50"],
        ["TN3", "Heading to customer", "75"],
    ]
