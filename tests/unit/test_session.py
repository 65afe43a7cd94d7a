from __future__ import annotations

import asyncio

import pytest

from bulk_import.db.store import InMemoryStore
from bulk_import.excel.reader import UnsupportedFileType
from bulk_import.logging.error_log import ErrorLogBuffer
from bulk_import.models.error_record import FILE_LEVEL, ROW_VALIDATION_FAILURE
from bulk_import.models.reconciliation import DecisionKind
from bulk_import.models.session_state import InvalidTransition, SessionState
from bulk_import.services.header_resolver import MissingColumnsError
from bulk_import.services.orchestrator import (
    DecisionRequired,
    ImportAborted,
    ImportSession,
    run_import,
)
from bulk_import.services.reconciliation import QuotaAlreadyExceeded

SHIPMENTS = [
    ["Tracking Number", "Delivery State", "COD Amount", "SKU"],
    ["TN1", "Delivered", "100", "SHIRT-1"],
    ["TN2", "Returned", "50", "SHIRT-2"],
    ["TN3", "Heading to customer", "75", "HAT-9"],
]


def _products_csv(make_csv, n: int) -> bytes:
    lines = ["Handle,Title,Variant SKU,Variant Price,Variant Inventory Qty"]
    lines += [f"p{i},Product {i},SKU-{i},10,{i}" for i in range(n)]
    return make_csv(lines)


def _session(fmt, store, **kwargs) -> ImportSession:
    return ImportSession(fmt, store, show_progress=False, **kwargs)


class TestHappyPath:
    def test_load_review_commit(self, make_csv):
        store = InMemoryStore()
        session = _session("shopify_products", store)
        classification = session.load(_products_csv(make_csv, 4), "products.csv")

        assert session.state is SessionState.PREVIEWING
        assert classification.statistics.valid_rows == 4
        assert session.review().kind is DecisionKind.ACCEPTED
        assert session.state is SessionState.PREVIEWING

        result = asyncio.run(session.commit())
        assert session.state is SessionState.DONE
        assert result.succeeded == 4
        assert [r["base_sku"] for r in store.records["inventory"]] == [f"SKU-{i}" for i in range(4)]

        outcome = session.outcome()
        assert outcome.accepted == 4
        assert outcome.committed == 4
        assert outcome.state == "done"

    def test_commit_runs_gate_when_not_reviewed(self, make_csv):
        store = InMemoryStore()
        session = _session("shopify_products", store)
        session.load(_products_csv(make_csv, 2), "products.csv")
        asyncio.run(session.commit())
        assert len(store.records["inventory"]) == 2

    def test_deselected_rows_are_not_written(self, make_csv):
        store = InMemoryStore()
        session = _session("shopify_products", store)
        session.load(_products_csv(make_csv, 3), "products.csv")
        session.deselect([1])
        asyncio.run(session.commit())
        assert [r["base_sku"] for r in store.records["inventory"]] == ["SKU-0", "SKU-2"]


class TestSelection:
    def test_invalid_row_cannot_be_selected(self, make_csv):
        data = make_csv(["Handle,Variant SKU", "a,SKU-1", "b,"])
        session = _session("shopify_products", InMemoryStore())
        session.load(data, "p.csv")
        with pytest.raises(ValueError):
            session.select([1])
        with pytest.raises(IndexError):
            session.select([9])

    def test_duplicate_row_may_be_selected_explicitly(self, make_csv):
        data = make_csv(["Handle,Variant SKU", "a,SKU-1", "b,SKU-1"])
        session = _session("shopify_products", InMemoryStore())
        session.load(data, "p.csv")
        assert session.selection == {0}
        session.select([1])
        assert len(session.selected_rows()) == 2
        session.clear_selection()
        assert session.selected_rows() == []
        session.select_all_valid()
        assert session.selection == {0}

    def test_selection_requires_preview(self):
        session = _session("shopify_products", InMemoryStore())
        with pytest.raises(InvalidTransition):
            session.select([0])

    def test_validation_failures_go_to_error_log(self, make_csv):
        log = ErrorLogBuffer()
        data = make_csv(["Name,Email,Total", "#1,a@x.com,10", "#2,b@x.com,0"])
        session = _session("shopify_orders", InMemoryStore(), error_log=log)
        session.load(data, "orders.csv")
        assert [(r.row, r.error_type) for r in log.records] == [(3, ROW_VALIDATION_FAILURE)]


class TestPreflight:
    def test_missing_columns_fail_session(self, make_xlsx):
        log = ErrorLogBuffer()
        session = _session("bosta_shipments", InMemoryStore(), error_log=log)
        with pytest.raises(MissingColumnsError):
            session.load(make_xlsx([["SKU", "Price"], ["A", "1"]]), "bosta.xlsx")
        assert session.state is SessionState.FAILED
        assert "Tracking Number" in session.error
        assert log.records[0].row == -1
        assert log.records[0].error_type == FILE_LEVEL

    def test_wrong_file_kind(self, make_csv):
        session = _session("bosta_shipments", InMemoryStore())
        with pytest.raises(UnsupportedFileType):
            session.load(make_csv(["Tracking Number"]), "bosta.csv")
        assert session.state is SessionState.FAILED

    def test_reupload_after_failure(self, make_xlsx):
        session = _session("bosta_shipments", InMemoryStore())
        with pytest.raises(MissingColumnsError):
            session.load(make_xlsx([["SKU"], ["A"]]), "bad.xlsx")
        session.load(make_xlsx(SHIPMENTS), "good.xlsx")
        assert session.state is SessionState.PREVIEWING
        assert session.error is None


class TestQuota:
    def test_quota_decision_then_truncation(self, make_csv):
        store = InMemoryStore(inventory_count=95, inventory_limit=100)
        session = _session("shopify_products", store)
        session.load(_products_csv(make_csv, 10), "products.csv")

        decision = session.review()
        assert decision.kind is DecisionKind.QUOTA_WOULD_BE_EXCEEDED
        assert decision.remaining_capacity == 5
        assert session.state is SessionState.AWAITING_QUOTA_DECISION
        with pytest.raises(DecisionRequired):
            asyncio.run(session.commit())
        assert "inventory" not in store.records

        session.accept_truncation()
        result = asyncio.run(session.commit())
        assert result.succeeded == 5
        assert [r["base_sku"] for r in store.records["inventory"]] == [f"SKU-{i}" for i in range(5)]

    def test_cancel_returns_to_preview_without_writes(self, make_csv):
        store = InMemoryStore(inventory_count=95, inventory_limit=100)
        session = _session("shopify_products", store)
        session.load(_products_csv(make_csv, 10), "products.csv")
        session.review()
        session.cancel()
        assert session.state is SessionState.PREVIEWING
        assert session.decision is None

        session.deselect(range(5, 10))
        assert session.review().kind is DecisionKind.ACCEPTED
        asyncio.run(session.commit())
        assert len(store.records["inventory"]) == 5

    def test_quota_already_exceeded(self, make_csv):
        store = InMemoryStore(inventory_count=100, inventory_limit=100)
        session = _session("shopify_products", store)
        session.load(_products_csv(make_csv, 1), "products.csv")
        with pytest.raises(QuotaAlreadyExceeded):
            session.review()
        assert session.state is SessionState.FAILED


class TestDuplicatesAndFollowUps:
    def test_skip_persisted_duplicates(self, make_xlsx):
        store = InMemoryStore(persisted_keys={"shipment": {"TN2"}})
        session = _session("bosta_shipments", store)
        session.load(make_xlsx(SHIPMENTS), "bosta.xlsx")

        decision = session.review()
        assert decision.kind is DecisionKind.PERSISTED_DUPLICATES
        assert decision.duplicate_preview == ("TN2",)
        assert session.state is SessionState.AWAITING_DUPLICATE_DECISION

        assert session.skip_duplicates().kind is DecisionKind.ACCEPTED
        asyncio.run(session.commit(create_revenue=True))
        assert [r["tracking_number"] for r in store.records["shipment"]] == ["TN1", "TN3"]
        revenue = store.records["revenue"]
        assert len(revenue) == 1
        assert revenue[0]["name"] == "Bosta Delivery - TN1"
        assert revenue[0]["amount"] == 100.0

    def test_persisted_duplicates_ignore_case(self, make_xlsx):
        store = InMemoryStore(persisted_keys={"shipment": ["tn1", " Tn3 "]})
        session = _session("bosta_shipments", store)
        session.load(make_xlsx(SHIPMENTS), "bosta.xlsx")

        decision = session.review()
        assert decision.kind is DecisionKind.PERSISTED_DUPLICATES
        assert [r.tracking_number for r in decision.rejected_duplicate] == ["TN1", "TN3"]
        assert decision.duplicate_preview == ("TN1", "TN3")

    def test_revenue_skipped_for_failed_rows(self, make_xlsx):
        store = InMemoryStore(
            fail_when=lambda target, rec: target == "shipment" and rec["tracking_number"] == "TN1",
        )
        session = _session("bosta_shipments", store)
        session.load(make_xlsx(SHIPMENTS), "bosta.xlsx")
        result = asyncio.run(session.commit(create_revenue=True))
        assert result.failed == 1
        assert session.state is SessionState.DONE
        assert "revenue" not in store.records

    def test_placeholders_for_unknown_skus(self, make_xlsx):
        store = InMemoryStore(inventory_skus={"shirt-1"})
        session = _session("bosta_shipments", store)
        classification = session.load(make_xlsx(SHIPMENTS), "bosta.xlsx")
        assert classification.unknown_skus == ["shirt-2", "hat-9"]

        asyncio.run(session.commit(create_missing_skus=True))
        placeholders = store.records["inventory"]
        assert [p["base_sku"] for p in placeholders] == ["SHIRT-2", "HAT-9"]
        assert placeholders[0]["current_stock"] == 0
        assert placeholders[0]["product_name"] == "Imported from Bosta - SHIRT-2"
        assert session.outcome().placeholders.succeeded == 2

    def test_reset_discards_everything(self, make_xlsx):
        session = _session("bosta_shipments", InMemoryStore())
        session.load(make_xlsx(SHIPMENTS), "bosta.xlsx")
        session.reset()
        assert session.state is SessionState.UPLOADING
        assert session.classification is None
        assert session.selection == set()


class TestRunImport:
    def test_waits_for_duplicate_decision_without_flag(self, make_xlsx):
        store = InMemoryStore(persisted_keys={"shipment": {"TN1"}})
        outcome = asyncio.run(run_import(
            "bosta_shipments", make_xlsx(SHIPMENTS), "b.xlsx", store, show_progress=False,
        ))
        assert outcome.state == "awaiting_duplicate_decision"
        assert outcome.committed == 0
        assert "shipment" not in store.records

    def test_flags_answer_the_questions(self, make_csv):
        store = InMemoryStore(inventory_count=95, inventory_limit=100)
        outcome = asyncio.run(run_import(
            "shopify_products", _products_csv(make_csv, 10), "p.csv", store,
            truncate=True, show_progress=False,
        ))
        assert outcome.state == "done"
        assert outcome.committed == 5

    def test_preflight_error_aborts(self, make_xlsx):
        with pytest.raises(ImportAborted) as e:
            asyncio.run(run_import(
                "bosta_shipments", make_xlsx([["SKU"], ["A"]]), "b.xlsx", InMemoryStore(),
                show_progress=False,
            ))
        assert "Required columns not found" in str(e.value)
