from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Decoded cell grid of one uploaded file."""

__all__ = [
    "FileKind",
    "RawTable",
]


class FileKind(str, Enum):
    XLSX = "xlsx"
    XLS = "xls"
    CSV = "csv"


@dataclass(frozen=True)
class RawTable:
    """Header row + data rows exactly as decoded (cells untyped).

    `rows[i]` corresponds to line `first_line + i` of the source file.
    Rows may be shorter than the header; missing cells read as None. Blank rows
    may be present and are skipped during normalization.
    """
    header: list[str]
    rows: list[list[Any]] = field(default_factory=list)
    source_name: str = ""
    first_line: int = 2

    @property
    def data_row_count(self) -> int:
        return len(self.rows)

    def line_number(self, row_index: int) -> int:
        return self.first_line + row_index

    def cell(self, row_index: int, column: int) -> Any:
        row = self.rows[row_index]
        if column < 0 or column >= len(row):
            return None
        return row[column]
