from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from ..excel.reader import EmptyOrHeaderOnlyFile, UnsupportedFileType, decode_file
from ..formats import ImportFormat, get_format
from ..formats.base import INVENTORY, REVENUE, placeholder_inventory_record
from ..logging.error_log import ErrorLogBuffer
from ..models.commit_result import CommitResult, ImportOutcome
from ..models.config_models import DEFAULT_BATCH_SIZE, DEFAULT_PREVIEW_LIMIT
from ..models.error_record import FILE_LEVEL, ROW_VALIDATION_FAILURE, ErrorRecord
from ..models.reconciliation import DecisionKind, ReconciliationDecision
from ..models.rows import NormalizedRow
from ..models.session_state import InvalidTransition, SessionState, ensure_transition
from ..models.statistics import ImportStatistics
from .classifier import Classification, classify, normalize_key
from .commit import commit_records
from .header_resolver import MissingColumnsError, resolve_headers
from .normalizer import normalize_rows
from .reconciliation import QuotaAlreadyExceeded, reconcile

logger = logging.getLogger(__name__)

"""Import session orchestration.

An ImportSession walks one uploaded file through the pipeline under an explicit
state machine (see models.session_state):

    UPLOADING --load--> PREVIEWING --review--> AWAITING_DUPLICATE_DECISION
                                           \\-> AWAITING_QUOTA_DECISION
                                           \\-> (ready) --commit--> COMMITTING -> DONE

Nothing is written to the store before commit(); cancel() and reset() are
therefore always side-effect free.
"""

__all__ = [
    "ImportAborted",
    "DecisionRequired",
    "ImportSession",
    "run_import",
]

_PREFLIGHT_ERRORS = (UnsupportedFileType, EmptyOrHeaderOnlyFile, MissingColumnsError)


class ImportAborted(Exception):
    """Import stopped before anything was written (preflight error or quota exhausted)."""


class DecisionRequired(Exception):
    """commit() was called while the gate still waits for the user."""

    def __init__(self, decision: ReconciliationDecision[Any]) -> None:
        super().__init__(decision.describe())
        self.decision = decision


class ImportSession:
    """Request-scoped state of one import.

    Parameters
    ----------
    fmt: format name or ImportFormat
    store: persistence collaborator (see bulk_import.db.store)
    batch_size: concurrent creates per batch
    preview_limit: max persisted duplicate keys carried in a decision
    error_log: receives validation, commit and file-level errors
    show_progress: tqdm bar during commit (TTY only)
    """

    def __init__(
        self,
        fmt: str | ImportFormat,
        store: Any,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        preview_limit: int = DEFAULT_PREVIEW_LIMIT,
        error_log: ErrorLogBuffer | None = None,
        show_progress: bool = True,
    ) -> None:
        self.format = get_format(fmt)
        self.store = store
        self.batch_size = batch_size
        self.preview_limit = preview_limit
        self.error_log = error_log
        self.show_progress = show_progress
        self.state = SessionState.UPLOADING
        self._clear()

    def _clear(self) -> None:
        self.source_name = ""
        self.classification: Classification | None = None
        self.selection: set[int] = set()
        self.decision: ReconciliationDecision[NormalizedRow] | None = None
        self.result: CommitResult | None = None
        self.revenue_result: CommitResult | None = None
        self.placeholder_result: CommitResult | None = None
        self.error: str | None = None
        self._skip_duplicates = False
        self._truncate = False

    # ---- state helpers -----------------------------------------------------

    def _move(self, target: SessionState) -> None:
        ensure_transition(self.state, target)
        logger.debug(f"session {self.format.name}: {self.state.value} -> {target.value}")
        self.state = target

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            raise InvalidTransition(self.state, states[0])

    def _fail(self, exc: Exception) -> None:
        self.error = str(exc)
        logger.error(f"{self.source_name or self.format.name}: {exc}")
        if self.error_log is not None:
            self.error_log.append(ErrorRecord.create(
                self.source_name, self.format.name, -1, FILE_LEVEL, str(exc),
            ))
        self._move(SessionState.FAILED)

    def _classified(self) -> Classification:
        if self.classification is None:
            raise InvalidTransition(self.state, SessionState.PREVIEWING)
        return self.classification

    # ---- upload / preview --------------------------------------------------

    def load(self, data: bytes, filename: str) -> Classification:
        """Decode, resolve, normalize and classify an uploaded file.

        Preflight errors (UnsupportedFileType, EmptyOrHeaderOnlyFile,
        MissingColumnsError) move the session to FAILED and are re-raised
        unchanged so their message can be shown verbatim.
        """
        if self.state is not SessionState.UPLOADING:
            self.reset()
        fmt = self.format
        self.source_name = filename
        try:
            table = decode_file(data, filename, fmt.accepted_kinds)
            field_map = resolve_headers(table.header, fmt.fields, fmt.required_groups)
        except _PREFLIGHT_ERRORS as e:
            self._fail(e)
            raise

        rows = normalize_rows(table, field_map, fmt)
        existing = self.store.existing_skus() if fmt.checks_unknown_references else None
        classification = classify(rows, fmt, existing)

        if self.error_log is not None:
            for failure in classification.failures:
                self.error_log.append(ErrorRecord.create(
                    filename, fmt.name, failure.row_number, ROW_VALIDATION_FAILURE, failure.reason,
                ))

        stats = classification.statistics
        logger.info(
            f"{filename}: format={fmt.name} rows={stats.total_rows} valid={stats.valid_rows} "
            f"invalid={stats.invalid_rows} duplicates={stats.duplicate_rows} "
            f"unknown={stats.unknown_reference_rows}"
        )
        if stats.unknown_reference_rows:
            logger.warning(
                f"{filename}: {len(classification.unknown_skus)} SKU(s) not found in inventory"
            )

        self.classification = classification
        self.selection = set(classification.default_selection())
        self._move(SessionState.PREVIEWING)
        return classification

    def load_path(self, path: Path) -> Classification:
        return self.load(path.read_bytes(), path.name)

    @property
    def statistics(self) -> ImportStatistics:
        return self._classified().statistics

    def selected_rows(self) -> list[NormalizedRow]:
        rows = self._classified().rows
        return [rows[i] for i in sorted(self.selection)]

    def _selection_changed(self) -> None:
        self.decision = None
        self._skip_duplicates = False
        self._truncate = False

    def select(self, indices: Iterable[int]) -> None:
        """Add rows to the selection (invalid rows cannot be selected)."""
        self._require(SessionState.PREVIEWING)
        classification = self._classified()
        indices = list(indices)
        for i in indices:
            if i < 0 or i >= len(classification.rows):
                raise IndexError(f"row index out of range: {i}")
            if i in classification.invalid:
                raise ValueError(f"row {classification.rows[i].row_number} is invalid")
        self.selection.update(indices)
        self._selection_changed()

    def deselect(self, indices: Iterable[int]) -> None:
        self._require(SessionState.PREVIEWING)
        self.selection.difference_update(indices)
        self._selection_changed()

    def select_all_valid(self) -> None:
        self._require(SessionState.PREVIEWING)
        self.selection = set(self._classified().default_selection())
        self._selection_changed()

    def clear_selection(self) -> None:
        self._require(SessionState.PREVIEWING)
        self.selection = set()
        self._selection_changed()

    # ---- reconciliation ----------------------------------------------------

    def _evaluate(self) -> ReconciliationDecision[NormalizedRow]:
        fmt = self.format
        rows = self.selected_rows()
        persisted = None
        if fmt.checks_persisted_duplicates:
            persisted = self.store.existing_keys(fmt.target, [r.natural_key for r in rows])
        current, limit = self.store.resource_usage(fmt.target) if fmt.quota_applies else (0, -1)
        try:
            decision = reconcile(
                rows,
                key=lambda r: r.natural_key,
                current_count=current,
                limit=limit,
                persisted_keys=persisted,
                preview_limit=self.preview_limit,
                skip_duplicates=self._skip_duplicates,
                truncate=self._truncate,
            )
        except QuotaAlreadyExceeded as e:
            self._fail(e)
            raise
        self.decision = decision
        return decision

    def review(self) -> ReconciliationDecision[NormalizedRow]:
        """Run the gate on the current selection.

        Moves to AWAITING_DUPLICATE_DECISION or AWAITING_QUOTA_DECISION when the
        user has to choose; stays in PREVIEWING when the selection is ready.
        """
        self._require(SessionState.PREVIEWING)
        decision = self._evaluate()
        if decision.kind is DecisionKind.PERSISTED_DUPLICATES:
            logger.warning(f"{self.source_name}: {decision.describe()}")
            self._move(SessionState.AWAITING_DUPLICATE_DECISION)
        elif decision.kind is DecisionKind.QUOTA_WOULD_BE_EXCEEDED:
            logger.warning(f"{self.source_name}: {decision.describe()}")
            self._move(SessionState.AWAITING_QUOTA_DECISION)
        return decision

    def skip_duplicates(self) -> ReconciliationDecision[NormalizedRow]:
        """User chose "skip duplicates and import the rest"."""
        self._require(SessionState.AWAITING_DUPLICATE_DECISION)
        self._skip_duplicates = True
        decision = self._evaluate()
        if decision.kind is DecisionKind.QUOTA_WOULD_BE_EXCEEDED:
            self._move(SessionState.AWAITING_QUOTA_DECISION)
        return decision

    def accept_truncation(self) -> ReconciliationDecision[NormalizedRow]:
        """User chose to import only the first `remaining_capacity` rows."""
        self._require(SessionState.AWAITING_QUOTA_DECISION)
        self._truncate = True
        return self._evaluate()

    def cancel(self) -> None:
        """Back out of a pending decision; nothing has been written."""
        self._move(SessionState.PREVIEWING)
        self._selection_changed()

    def reset(self) -> None:
        """Discard everything (re-upload)."""
        self._move(SessionState.UPLOADING)
        self._clear()

    # ---- commit ------------------------------------------------------------

    async def _create_placeholders(self, rows: list[NormalizedRow]) -> CommitResult | None:
        classification = self._classified()
        if self.format.target == INVENTORY:
            # 取り込み行そのものが SKU を作成する
            logger.info("create_missing_skus ignored: rows already create inventory items")
            return None
        unknown_lines = {classification.rows[i].row_number for i in classification.unknown_references}
        firsts: dict[str, NormalizedRow] = {}
        for row in rows:
            if row.row_number in unknown_lines:
                firsts.setdefault(normalize_key(row.reference_sku), row)
        if not firsts:
            return None
        source = self.format.source
        return await commit_records(
            list(firsts.values()),
            lambda r: placeholder_inventory_record(r.reference_sku, source),
            lambda rec: self.store.create(INVENTORY, rec),
            batch_size=self.batch_size,
            error_log=self.error_log,
            source_name=self.source_name,
            format_name=self.format.name,
            show_progress=False,
        )

    async def _create_revenue(self, rows: list[NormalizedRow], result: CommitResult) -> CommitResult | None:
        to_revenue = self.format.to_revenue_record
        if to_revenue is None:
            logger.info(f"{self.format.name}: no revenue entries for this format")
            return None
        failed = result.failed_row_numbers
        eligible = [r for r in rows if r.row_number not in failed and to_revenue(r) is not None]
        if not eligible:
            return None
        return await commit_records(
            eligible,
            to_revenue,
            lambda rec: self.store.create(REVENUE, rec),
            batch_size=self.batch_size,
            error_log=self.error_log,
            source_name=self.source_name,
            format_name=self.format.name,
            show_progress=False,
        )

    async def commit(
        self, *, create_revenue: bool = False, create_missing_skus: bool = False
    ) -> CommitResult:
        """Write the accepted rows.

        Runs the gate first when review() was not called. Raises DecisionRequired
        while a duplicate or quota decision is still open.
        """
        self._require(
            SessionState.PREVIEWING,
            SessionState.AWAITING_DUPLICATE_DECISION,
            SessionState.AWAITING_QUOTA_DECISION,
        )
        decision = self.decision if self.decision is not None else self.review()
        if decision.requires_decision:
            raise DecisionRequired(decision)

        self._move(SessionState.COMMITTING)
        rows = list(decision.accepted)
        try:
            if create_missing_skus:
                self.placeholder_result = await self._create_placeholders(rows)
            result = await commit_records(
                rows,
                self.format.to_record,
                lambda rec: self.store.create(self.format.target, rec),
                batch_size=self.batch_size,
                error_log=self.error_log,
                source_name=self.source_name,
                format_name=self.format.name,
                show_progress=self.show_progress,
            )
            self.result = result
            if create_revenue:
                self.revenue_result = await self._create_revenue(rows, result)
        except Exception as e:
            self._fail(e)
            raise

        if result.failures:
            logger.warning(f"{self.source_name}: {result.message}")
        else:
            logger.info(f"{self.source_name}: {result.message}")
        self._move(SessionState.DONE)
        return result

    def outcome(self) -> ImportOutcome:
        stats = (
            self.classification.statistics
            if self.classification is not None
            else ImportStatistics(0, 0, 0, 0)
        )
        return ImportOutcome(
            format_name=self.format.name,
            source_name=self.source_name,
            statistics=stats,
            state=self.state.value,
            decision=self.decision,
            commit=self.result,
            revenue=self.revenue_result,
            placeholders=self.placeholder_result,
        )


async def run_import(
    fmt: str | ImportFormat,
    data: bytes,
    filename: str,
    store: Any,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    preview_limit: int = DEFAULT_PREVIEW_LIMIT,
    skip_duplicates: bool = False,
    truncate: bool = False,
    create_revenue: bool = False,
    create_missing_skus: bool = False,
    error_log: ErrorLogBuffer | None = None,
    show_progress: bool = True,
) -> ImportOutcome:
    """Non-interactive driver: pre-answers the gate's questions with the flags.

    Returns with state awaiting_* when a decision is needed and the matching
    flag was not given. Raises ImportAborted for preflight errors and an
    exhausted quota.
    """
    session = ImportSession(
        fmt,
        store,
        batch_size=batch_size,
        preview_limit=preview_limit,
        error_log=error_log,
        show_progress=show_progress,
    )
    try:
        session.load(data, filename)
        decision = session.review()
        if decision.kind is DecisionKind.PERSISTED_DUPLICATES:
            if not skip_duplicates:
                return session.outcome()
            decision = session.skip_duplicates()
        if decision.kind is DecisionKind.QUOTA_WOULD_BE_EXCEEDED:
            if not truncate:
                return session.outcome()
            session.accept_truncation()
    except (*_PREFLIGHT_ERRORS, QuotaAlreadyExceeded) as e:
        raise ImportAborted(str(e)) from e

    await session.commit(create_revenue=create_revenue, create_missing_skus=create_missing_skus)
    return session.outcome()
