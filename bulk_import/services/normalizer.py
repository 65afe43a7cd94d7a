from __future__ import annotations

import math
import re
from collections.abc import Callable, Sequence
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from bulk_import.excel.reader import is_blank_cell, is_blank_row
from bulk_import.models.field_spec import FieldMap
from bulk_import.models.raw_table import RawTable
from bulk_import.models.rows import NormalizedRow

if TYPE_CHECKING:
    from bulk_import.formats.base import ImportFormat

"""Row normalization: raw cells -> typed, trimmed NormalizedRow.

Coercion never raises. Numbers are parsed permissively (thousands separators
stripped, leading numeric prefix accepted, anything else -> 0). Whether a row
is *valid* is decided later by the classifier.
"""

__all__ = [
    "cell_text",
    "parse_number",
    "parse_int",
    "is_numeric",
    "split_list",
    "strip_html",
    "RowCells",
    "normalize_rows",
]

_NUMBER_PREFIX = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_HTML_TAG = re.compile(r"<[^>]*>")


def cell_text(value: Any) -> str:
    """Cell value as trimmed text ("" for missing / NaN)."""
    if is_blank_cell(value):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        # Excel は整数 SKU / 電話番号も float で返す
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, datetime):
        if value.time() == datetime.min.time():
            return value.date().isoformat()
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def parse_number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        f = float(value)
        return 0.0 if math.isnan(f) or math.isinf(f) else f
    text = cell_text(value).replace(",", "").replace(" ", "")
    m = _NUMBER_PREFIX.match(text)
    if not m:
        return 0.0
    f = float(m.group(0))
    return 0.0 if math.isinf(f) else f


def parse_int(value: Any) -> int:
    return int(parse_number(value))


def is_numeric(value: Any) -> bool:
    """Strict check: the whole cell must be a number (thousands separators allowed)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return not math.isnan(float(value))
    text = cell_text(value).replace(",", "")
    if not text:
        return False
    try:
        f = float(text)
    except ValueError:
        return False
    return not (math.isnan(f) or math.isinf(f))


def split_list(value: Any) -> tuple[str, ...]:
    return tuple(part.strip() for part in cell_text(value).split(",") if part.strip())


def strip_html(value: str) -> str:
    return " ".join(_HTML_TAG.sub(" ", value).split())


class RowCells:
    """Access one raw row by logical field name."""

    def __init__(self, row: Sequence[Any], field_map: FieldMap) -> None:
        self._row = row
        self._map = field_map

    def has(self, name: str) -> bool:
        return name in self._map

    def raw(self, name: str) -> Any:
        return self._map.value(self._row, name)

    def text(self, name: str, default: str = "") -> str:
        return cell_text(self.raw(name)) or default

    def number(self, name: str) -> float:
        return parse_number(self.raw(name))

    def integer(self, name: str) -> int:
        return parse_int(self.raw(name))


def normalize_rows(table: RawTable, field_map: FieldMap, fmt: ImportFormat) -> list[NormalizedRow]:
    """Build one NormalizedRow per qualifying data row, in file order.

    Entirely blank rows are skipped, as are rows with a blank value in any of
    the format's `skip_if_blank` fields.
    """
    build: Callable[[RowCells, int], NormalizedRow] = fmt.build_row
    out: list[NormalizedRow] = []
    for i, raw in enumerate(table.rows):
        if is_blank_row(raw):
            continue
        cells = RowCells(raw, field_map)
        if any(not cells.text(name) for name in fmt.skip_if_blank):
            continue
        out.append(build(cells, table.line_number(i)))
    return out
