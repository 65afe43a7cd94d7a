from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import Json, execute_values

"""INSERT helper on psycopg2.extras.execute_values.

Records are dicts keyed by column name. dict values are wrapped in Json so
they land in json/jsonb columns; lists are adapted to PostgreSQL arrays by
psycopg2 itself.
"""

__all__ = [
    "InsertError",
    "InsertResult",
    "validate_identifier",
    "insert_records",
]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class InsertError(Exception):
    pass


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def validate_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise InsertError(f"invalid identifier: {name!r}")
    return name


def _adapt(value: Any) -> Any:
    if isinstance(value, Mapping):
        return Json(dict(value))
    return value


def insert_records(
    cursor: Any,
    table: str,
    records: Sequence[Mapping[str, Any]],
    returning: str | None = None,
    page_size: int = 100,
) -> InsertResult:
    """Insert records sharing the column set of the first record.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table (validated identifier)
    records: column -> value mappings
    returning: column to return (e.g. "id"); None for no RETURNING clause
    """
    if not records:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    columns = list(records[0].keys())
    for col in columns:
        validate_identifier(col)
    cols_sql = ",".join(f'"{c}"' for c in columns)
    sql = f"INSERT INTO {validate_identifier(table)} ({cols_sql}) VALUES %s"
    if returning:
        sql += f' RETURNING "{validate_identifier(returning)}"'

    rows = [tuple(_adapt(rec.get(c)) for c in columns) for rec in records]
    try:
        returned = execute_values(cursor, sql, rows, page_size=page_size, fetch=bool(returning))
    except Exception as e:
        raise InsertError(str(e)) from e

    return InsertResult(inserted_rows=len(rows), returned_values=returned if returning else None)
