from __future__ import annotations

import asyncio

import pytest

from bulk_import.db.store import InMemoryStore
from bulk_import.logging.error_log import ErrorLogBuffer
from bulk_import.models.error_record import ROW_COMMIT_FAILURE
from bulk_import.models.rows import ShopifyProductRow
from bulk_import.services.commit import BatchMetrics, commit_records


def _rows(n: int) -> list[ShopifyProductRow]:
    return [ShopifyProductRow(row_number=i + 2, variant_sku=f"SKU-{i}") for i in range(n)]


def _to_record(row: ShopifyProductRow) -> dict:
    return {"base_sku": row.variant_sku}


def _commit(store: InMemoryStore, rows, **kwargs):
    return asyncio.run(commit_records(
        rows,
        _to_record,
        lambda rec: store.create("inventory", rec),
        show_progress=False,
        **kwargs,
    ))


def test_all_rows_created_in_file_order():
    store = InMemoryStore()
    result = _commit(store, _rows(23))
    assert result.attempted == 23
    assert result.succeeded == 23
    assert result.failed == 0
    assert result.total_batches == 3
    assert [r["base_sku"] for r in store.records["inventory"]] == [f"SKU-{i}" for i in range(23)]
    assert result.message == "Successfully imported 23 row(s)"


def test_concurrency_bounded_by_batch_size():
    store = InMemoryStore(delay=0.01)
    _commit(store, _rows(35), batch_size=10)
    assert store.max_in_flight == 10


def test_failures_do_not_abort_later_batches():
    store = InMemoryStore(fail_when=lambda target, rec: rec["base_sku"] in {"SKU-1", "SKU-14"})
    log = ErrorLogBuffer()
    result = _commit(store, _rows(20), error_log=log, source_name="p.csv", format_name="shopify_products")

    assert result.succeeded == 18
    assert [f.row_number for f in result.failures] == [3, 16]
    assert result.failures[0].key == "SKU-1"
    assert "create rejected" in result.failures[0].reason
    assert len(store.records["inventory"]) == 18
    assert result.message == "Imported 18 of 20 row(s); 2 failed"

    records = log.records
    assert [r.row for r in records] == [3, 16]
    assert {r.error_type for r in records} == {ROW_COMMIT_FAILURE}
    assert records[0].file == "p.csv"


def test_record_conversion_errors_count_as_row_failures():
    store = InMemoryStore()

    def to_record(row):
        if row.variant_sku == "SKU-0":
            raise ValueError("bad row")
        return _to_record(row)

    result = asyncio.run(commit_records(
        _rows(3), to_record, lambda rec: store.create("inventory", rec), show_progress=False,
    ))
    assert result.failed_row_numbers == frozenset({2})
    assert result.failures[0].reason == "bad row"


def test_metrics_callback_per_batch():
    seen: list[BatchMetrics] = []
    _commit(InMemoryStore(), _rows(12), batch_size=5, metrics_callback=seen.append)
    assert [m.batch_size for m in seen] == [5, 5, 2]
    assert all(m.end_time >= m.start_time for m in seen)


def test_empty_selection():
    result = _commit(InMemoryStore(), [])
    assert result.attempted == 0
    assert result.total_batches == 0


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        _commit(InMemoryStore(), _rows(1), batch_size=0)
