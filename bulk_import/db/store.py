from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from bulk_import.db.insert import insert_records, validate_identifier
from bulk_import.models.config_models import TableConfig

"""Persistence collaborators used by an import session.

Both stores expose the same surface:

- existing_skus() -> set[str]                       inventory SKUs of the brand
- existing_keys(target, keys) -> set[str]           stored natural keys (case-insensitive)
- resource_usage(target) -> (count, limit)          quota lookup, -1 = unlimited
- await create(target, record) -> Any               one atomic single-row create

PostgresStore borrows an autocommit connection per call, so every
create is its own transaction and a failing row does not poison the rest.
InMemoryStore backs mock mode (DISABLE_DB_CONNECT=1) and the tests.
"""

__all__ = [
    "KEY_COLUMNS",
    "PostgresStore",
    "InMemoryStore",
]

logger = logging.getLogger(__name__)

# persisted-duplicate lookup column per target
KEY_COLUMNS = {
    "inventory": "base_sku",
    "shipment": "tracking_number",
    "tracking": "tracking_number",
    "revenue": "name",
}


def _fold(key: str) -> str:
    return key.strip().lower()


class PostgresStore:
    """Store backed by a psycopg2 connection pool.

    Every call borrows its own autocommit connection, so the creates of one
    batch run concurrently in worker threads (psycopg2 cursors are not
    thread-safe) and a failing row does not poison the rest. Size the pool's
    maxconn to at least the batch size.
    """

    def __init__(
        self,
        pool: Any,
        tables: TableConfig,
        brand_id: str,
        *,
        inventory_limit: int = -1,
    ) -> None:
        self.pool = pool
        self.tables = tables
        self.brand_id = brand_id
        self.inventory_limit = inventory_limit

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self.pool.getconn()
        try:
            conn.autocommit = True
            with conn.cursor() as cur:
                yield cur
        finally:
            self.pool.putconn(conn)

    def _table(self, target: str) -> str:
        return validate_identifier(self.tables.for_target(target))

    def existing_skus(self) -> set[str]:
        table = self._table("inventory")
        with self._cursor() as cur:
            cur.execute(f"SELECT base_sku FROM {table} WHERE brand_id = %s", (self.brand_id,))
            return {row[0] for row in cur.fetchall() if row[0]}

    def existing_keys(self, target: str, keys: Iterable[str]) -> set[str]:
        keys = [k for k in keys if k]
        if not keys:
            return set()
        table = self._table(target)
        column = validate_identifier(KEY_COLUMNS[target])
        with self._cursor() as cur:
            cur.execute(
                f'SELECT "{column}" FROM {table} WHERE brand_id = %s AND lower(trim("{column}")) = ANY(%s)',
                (self.brand_id, sorted({_fold(k) for k in keys})),
            )
            return {row[0] for row in cur.fetchall()}

    def resource_usage(self, target: str) -> tuple[int, int]:
        if target != "inventory":
            return (0, -1)
        table = self._table(target)
        with self._cursor() as cur:
            cur.execute(f"SELECT COUNT(*) FROM {table} WHERE brand_id = %s", (self.brand_id,))
            (count,) = cur.fetchone()
        return (int(count), self.inventory_limit)

    def _insert_one(self, table: str, record: dict[str, Any]) -> Any:
        with self._cursor() as cur:
            result = insert_records(cur, table, [record], returning="id")
        returned = result.returned_values or []
        return returned[0][0] if returned else None

    async def create(self, target: str, record: Mapping[str, Any]) -> Any:
        # 同期ドライバはワーカースレッドで実行 (イベントループを塞がない)
        return await asyncio.to_thread(
            self._insert_one, self._table(target), {**record, "brand_id": self.brand_id}
        )


class InMemoryStore:
    """Dict-backed store.

    `fail_when` lets tests make selected creates fail; `delay` yields to the
    event loop inside create so batch concurrency is observable.
    """

    def __init__(
        self,
        *,
        inventory_skus: Iterable[str] = (),
        persisted_keys: Mapping[str, Iterable[str]] | None = None,
        inventory_count: int | None = None,
        inventory_limit: int = -1,
        fail_when: Callable[[str, Mapping[str, Any]], bool] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.records: dict[str, list[dict[str, Any]]] = {}
        self._skus = {s for s in inventory_skus if s}
        self._persisted = {t: set(keys) for t, keys in (persisted_keys or {}).items()}
        self._inventory_count = inventory_count
        self.inventory_limit = inventory_limit
        self._fail_when = fail_when
        self._delay = delay
        self._next_id = 1
        self.in_flight = 0
        self.max_in_flight = 0

    def existing_skus(self) -> set[str]:
        created = {r.get("base_sku") for r in self.records.get("inventory", [])}
        return self._skus | {s for s in created if s}

    def existing_keys(self, target: str, keys: Iterable[str]) -> set[str]:
        column = KEY_COLUMNS[target]
        stored = {_fold(k) for k in self._persisted.get(target, ())}
        stored |= {_fold(r[column]) for r in self.records.get(target, []) if r.get(column)}
        return {k for k in keys if k and _fold(k) in stored}

    def resource_usage(self, target: str) -> tuple[int, int]:
        if target != "inventory":
            return (0, -1)
        base = self._inventory_count if self._inventory_count is not None else len(self._skus)
        return (base + len(self.records.get("inventory", [])), self.inventory_limit)

    async def create(self, target: str, record: Mapping[str, Any]) -> Any:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self._delay)
            if self._fail_when is not None and self._fail_when(target, record):
                raise RuntimeError(f"create rejected for {target}")
            stored = {**record, "id": self._next_id}
            self._next_id += 1
            self.records.setdefault(target, []).append(stored)
            logger.debug(f"mock create {target} id={stored['id']}")
            return stored["id"]
        finally:
            self.in_flight -= 1
