"""Spreadsheet / CSV decoding and template export."""
