from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence
from pathlib import PurePath
from typing import Any

import pandas as pd

from bulk_import.models.raw_table import FileKind, RawTable

"""Uploaded file decoding.

xlsx / xls are read with pandas (first sheet, no header inference, every cell
kept as-is). CSV goes through the csv module so quoted fields with embedded
commas and doubled quotes survive. Leading blank lines are dropped and the first
remaining row is the header; blank data rows stay so line numbers hold.
"""

__all__ = [
    "UnsupportedFileType",
    "EmptyOrHeaderOnlyFile",
    "detect_kind",
    "decode_file",
    "parse_csv",
    "is_blank_cell",
    "is_blank_row",
]

_ENGINES = {
    FileKind.XLSX: "openpyxl",
    FileKind.XLS: "xlrd",
}


class UnsupportedFileType(Exception):
    """Raised when the file extension is not accepted or the bytes cannot be decoded."""

    def __init__(self, filename: str, accepted: Iterable[FileKind] = ()) -> None:
        kinds = ", ".join(f".{k.value}" for k in sorted(accepted, key=lambda k: k.value))
        msg = f"unsupported file type: {filename}"
        if kinds:
            msg += f" (expected {kinds})"
        super().__init__(msg)
        self.filename = filename


class EmptyOrHeaderOnlyFile(Exception):
    """Raised when a file has no header row or no data row."""


def is_blank_cell(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):  # pragma: no cover - array-like cell
        return False


def is_blank_row(row: Sequence[Any]) -> bool:
    return all(is_blank_cell(v) for v in row)


def detect_kind(filename: str) -> FileKind | None:
    suffix = PurePath(filename).suffix.lower().lstrip(".")
    try:
        return FileKind(suffix)
    except ValueError:
        return None


def parse_csv(text: str, delimiter: str = ",") -> list[list[str]]:
    """Split CSV text into trimmed fields.

    Handles quoted fields containing the delimiter, "" escapes inside quotes and
    \\r\\n, \\n or \\r line endings.
    """
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter, skipinitialspace=True)
    return [[field.strip() for field in row] for row in reader]


def _read_spreadsheet(data: bytes, kind: FileKind, filename: str) -> list[list[Any]]:
    try:
        df = pd.read_excel(
            io.BytesIO(data),
            sheet_name=0,
            header=None,
            dtype=object,
            keep_default_na=False,
            engine=_ENGINES[kind],
        )
    except Exception as e:
        # 破損ファイル / 拡張子詐称
        raise UnsupportedFileType(filename, [kind]) from e
    return [list(r) for r in df.itertuples(index=False, name=None)]


def decode_file(data: bytes, filename: str, accepted: Iterable[FileKind]) -> RawTable:
    """Decode uploaded bytes into a RawTable.

    Parameters
    ----------
    data: raw file content
    filename: original name; the extension decides the decoder
    accepted: kinds the chosen import flow allows

    Raises
    ------
    UnsupportedFileType: extension not accepted, or the content is unreadable
    EmptyOrHeaderOnlyFile: fewer than two non-blank rows
    """
    accepted = frozenset(accepted)
    kind = detect_kind(filename)
    if kind is None or kind not in accepted:
        raise UnsupportedFileType(filename, accepted)

    if kind is FileKind.CSV:
        rows: list[list[Any]] = parse_csv(data.decode("utf-8-sig", errors="replace"))
    else:
        rows = _read_spreadsheet(data, kind, filename)

    # 先頭の空行はスキップ。データ部の空行は行番号維持のため残し normalizer で除外
    header_at = next((i for i, r in enumerate(rows) if not is_blank_row(r)), None)
    if header_at is None or all(is_blank_row(r) for r in rows[header_at + 1:]):
        raise EmptyOrHeaderOnlyFile(
            f"{filename}: file must contain a header row and at least one data row"
        )

    header = ["" if is_blank_cell(v) else str(v).strip() for v in rows[header_at]]
    return RawTable(
        header=header,
        rows=rows[header_at + 1:],
        source_name=filename,
        first_line=header_at + 2,
    )
