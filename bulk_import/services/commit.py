from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from bulk_import.logging.error_log import ErrorLogBuffer
from bulk_import.models.commit_result import (
    BatchStatsAccumulator,
    CommitResult,
    RowCommitFailure,
)
from bulk_import.models.error_record import ROW_COMMIT_FAILURE, ErrorRecord
from bulk_import.models.rows import NormalizedRow
from bulk_import.services.progress import ProgressTracker

"""Commit executor.

Rows are written in fixed-size batches in file order. All creates inside a
batch run concurrently; batch i+1 starts only after every write of batch i has
settled. A failing row is logged and reported, never retried, and never
aborts the run. There is no rollback of rows already written.
"""

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "BatchMetrics",
    "CreateOne",
    "commit_records",
]

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10

CreateOne = Callable[[dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of one settled batch."""
    batch_size: int
    failed: int
    elapsed_seconds: float
    start_time: float
    end_time: float


def _chunks(rows: Sequence[NormalizedRow], size: int) -> list[Sequence[NormalizedRow]]:
    return [rows[i:i + size] for i in range(0, len(rows), size)]


async def commit_records(
    rows: Sequence[NormalizedRow],
    to_record: Callable[[NormalizedRow], dict[str, Any]],
    create_one: CreateOne,
    *,
    batch_size: int = DEFAULT_BATCH_SIZE,
    error_log: ErrorLogBuffer | None = None,
    source_name: str = "",
    format_name: str = "",
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
    show_progress: bool = True,
) -> CommitResult:
    """Create every row through `create_one`, best-effort.

    Parameters
    ----------
    rows: accepted rows, file order
    to_record: row -> record for the store (errors count as row failures)
    create_one: async single-row create
    batch_size: max concurrent creates
    error_log: failed rows are appended as ROW_COMMIT_FAILURE records
    metrics_callback: receives BatchMetrics after each batch settles
    """
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    async def _create(row: NormalizedRow) -> Any:
        return await create_one(to_record(row))

    accumulator = BatchStatsAccumulator()
    failures: list[RowCommitFailure] = []
    created: list[Any] = []
    started = time.perf_counter()

    progress = ProgressTracker(len(rows)) if show_progress else None
    try:
        for batch in _chunks(rows, batch_size):
            if progress is not None:
                progress.start_batch(len(batch))
            t0 = time.perf_counter()
            results = await asyncio.gather(*(_create(r) for r in batch), return_exceptions=True)
            t1 = time.perf_counter()

            batch_failed = 0
            for row, outcome in zip(batch, results, strict=True):
                if isinstance(outcome, BaseException):
                    if not isinstance(outcome, Exception):
                        # KeyboardInterrupt / CancelledError は握りつぶさない
                        raise outcome
                    batch_failed += 1
                    reason = str(outcome) or type(outcome).__name__
                    logger.error(f"row {row.row_number} ({row.natural_key}): create failed: {reason}")
                    failures.append(RowCommitFailure(row.row_number, row.natural_key, reason))
                    if error_log is not None:
                        error_log.append(ErrorRecord.create(
                            source_name, format_name, row.row_number, ROW_COMMIT_FAILURE, reason,
                        ))
                else:
                    created.append(outcome)

            accumulator.add_batch_time(t1 - t0)
            if metrics_callback is not None:
                metrics_callback(BatchMetrics(
                    batch_size=len(batch),
                    failed=batch_failed,
                    elapsed_seconds=t1 - t0,
                    start_time=t0,
                    end_time=t1,
                ))
            if progress is not None:
                progress.finish_batch(len(batch), batch_failed)
    finally:
        if progress is not None:
            progress.close()

    total_batches, avg_batch, p95_batch = accumulator.get_stats()
    return CommitResult(
        attempted=len(rows),
        succeeded=len(rows) - len(failures),
        failures=tuple(failures),
        total_batches=total_batches,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
        elapsed_seconds=time.perf_counter() - started,
        created=tuple(created),
    )
