from __future__ import annotations

import math

import pytest

from bulk_import.excel.reader import (
    EmptyOrHeaderOnlyFile,
    UnsupportedFileType,
    decode_file,
    detect_kind,
    is_blank_cell,
    parse_csv,
)
from bulk_import.models.raw_table import FileKind

ALL_KINDS = {FileKind.CSV, FileKind.XLSX, FileKind.XLS}


def test_csv_quoted_field_with_comma():
    assert parse_csv('A,"B, with comma",C') == [["A", "B, with comma", "C"]]


def test_csv_escaped_quotes_and_trimming():
    rows = parse_csv('  x , "say ""hi""" ,z\r\n1,2,3')
    assert rows == [["x", 'say "hi"', "z"], ["1", "2", "3"]]


def test_csv_bare_carriage_return_line_endings():
    assert parse_csv("a,b\rc,d\r") == [["a", "b"], ["c", "d"]]


def test_detect_kind():
    assert detect_kind("orders.CSV") is FileKind.CSV
    assert detect_kind("report.xlsx") is FileKind.XLSX
    assert detect_kind("legacy.xls") is FileKind.XLS
    assert detect_kind("notes.txt") is None


def test_unsupported_extension_rejected_before_parsing():
    with pytest.raises(UnsupportedFileType) as e:
        decode_file(b"garbage", "orders.xlsx", {FileKind.CSV})
    assert "orders.xlsx" in str(e.value)
    assert ".csv" in str(e.value)


def test_corrupt_spreadsheet_is_unsupported():
    with pytest.raises(UnsupportedFileType):
        decode_file(b"not a zip file", "report.xlsx", ALL_KINDS)


def test_header_only_file_rejected(make_csv):
    with pytest.raises(EmptyOrHeaderOnlyFile):
        decode_file(make_csv(["Name,Email,Total"]), "o.csv", ALL_KINDS)


def test_empty_file_rejected():
    with pytest.raises(EmptyOrHeaderOnlyFile):
        decode_file(b"", "o.csv", ALL_KINDS)


def test_header_plus_blank_lines_rejected(make_csv):
    with pytest.raises(EmptyOrHeaderOnlyFile):
        decode_file(make_csv(["Name,Email", "", " , "]), "o.csv", ALL_KINDS)


def test_csv_decode_strips_bom_and_keeps_line_numbers():
    data = "\ufeffName,Email\n#1001,a@x.com\n\n#1002,b@x.com\n".encode("utf-8")
    table = decode_file(data, "orders.csv", ALL_KINDS)
    assert table.header == ["Name", "Email"]
    assert table.source_name == "orders.csv"
    # blank line stays in place so line numbers remain accurate
    assert table.rows[0] == ["#1001", "a@x.com"]
    assert table.rows[2] == ["#1002", "b@x.com"]
    assert table.line_number(2) == 4


def test_leading_blank_rows_skipped_before_header(make_csv):
    table = decode_file(make_csv(["", "Name,Email", "#1,a@x.com"]), "o.csv", ALL_KINDS)
    assert table.header == ["Name", "Email"]
    assert table.first_line == 3


def test_xlsx_decoding(make_xlsx, bosta_rows):
    table = decode_file(make_xlsx(bosta_rows), "bosta.xlsx", {FileKind.XLSX})
    assert table.header == ["Tracking Number", "Delivery State", "COD Amount"]
    assert table.data_row_count == 3
    assert table.rows[0][0] == "TN1"


def test_is_blank_cell():
    assert is_blank_cell(None)
    assert is_blank_cell("   ")
    assert is_blank_cell(math.nan)
    assert not is_blank_cell(0)
    assert not is_blank_cell("x")
