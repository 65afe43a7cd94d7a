from __future__ import annotations

from pathlib import Path

import pandas as pd
import pytest

from bulk_import.excel.reader import decode_file
from bulk_import.excel.templates import template_for, write_template
from bulk_import.formats import FORMATS
from bulk_import.services.classifier import classify
from bulk_import.services.header_resolver import resolve_headers
from bulk_import.services.normalizer import normalize_rows


@pytest.mark.parametrize("name", sorted(FORMATS))
def test_template_round_trips_through_pipeline(name):
    """Every template resolves all required columns and classifies as valid."""
    fmt = FORMATS[name]
    table = template_for(name)
    assert 1 <= table.data_row_count <= 2

    fm = resolve_headers(table.header, fmt.fields, fmt.required_groups)
    result = classify(normalize_rows(table, fm, fmt), fmt)
    assert result.statistics.total_rows == table.data_row_count
    assert result.statistics.invalid_rows == 0
    assert result.statistics.duplicate_rows == 0


def test_write_template_xlsx(tmp_path: Path):
    out = write_template("system_template", tmp_path / "out" / "inventory.xlsx")
    df = pd.read_excel(out, sheet_name="Inventory Template")
    assert list(df.columns)[:3] == ["Product Name", "Base SKU", "Category"]
    assert len(df) == 2

    table = decode_file(out.read_bytes(), out.name, FORMATS["system_template"].accepted_kinds)
    assert table.header[1] == "Base SKU"


def test_write_template_csv(tmp_path: Path):
    out = write_template("shopify_orders", tmp_path / "orders.csv")
    raw = out.read_bytes()
    assert raw.startswith(b"\xef\xbb\xbf")
    table = decode_file(raw, out.name, FORMATS["shopify_orders"].accepted_kinds)
    assert table.header[0] == "Name"
    assert table.rows[0][0] == "#1001"


def test_write_template_rejects_other_suffix(tmp_path: Path):
    with pytest.raises(ValueError):
        write_template("bosta_shipments", tmp_path / "x.json")
