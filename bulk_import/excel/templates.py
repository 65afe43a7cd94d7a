from __future__ import annotations

import csv
from pathlib import Path

import pandas as pd

from bulk_import.formats import ImportFormat, get_format
from bulk_import.models.raw_table import RawTable

"""Template download: write a format's sample RawTable to .xlsx or .csv."""

__all__ = [
    "template_for",
    "write_template",
]


def template_for(fmt: str | ImportFormat) -> RawTable:
    return get_format(fmt).template()


def write_template(fmt: str | ImportFormat, path: Path) -> Path:
    """Write the template for `fmt` to `path` (.xlsx or .csv by suffix)."""
    fmt = get_format(fmt)
    table = fmt.template()
    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix == ".csv":
        with path.open("w", encoding="utf-8-sig", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(table.header)
            writer.writerows(table.rows)
    elif suffix == ".xlsx":
        df = pd.DataFrame(table.rows, columns=table.header)
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=fmt.template_sheet, index=False)
    else:
        raise ValueError(f"template must be .xlsx or .csv: {path}")
    return path
