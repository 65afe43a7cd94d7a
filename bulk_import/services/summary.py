from __future__ import annotations

from bulk_import.models.commit_result import ImportOutcome

"""SUMMARY line rendering.

Format:
SUMMARY format={name} rows={total} valid={valid} invalid={invalid}
duplicates={dup} unknown={unknown} accepted={accepted} committed={ok}
failed={failed} state={state} elapsed_sec={elapsed} throughput_rps={rps}
"""

__all__ = [
    "format_number",
    "render_summary_line",
    "render_metrics_line",
]


def format_number(value: float) -> str:
    """Integers without a decimal point, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip('0').rstrip('.')
    return str(round(value, 4))


def render_summary_line(outcome: ImportOutcome) -> str:
    """Render a SUMMARY line for one import run.

    Examples:
        >>> from bulk_import.models.statistics import ImportStatistics
        >>> stats = ImportStatistics(total_rows=3, valid_rows=2, invalid_rows=1, duplicate_rows=0)
        >>> render_summary_line(ImportOutcome("shopify_orders", "o.csv", stats, "previewing"))
        'SUMMARY format=shopify_orders rows=3 valid=2 invalid=1 duplicates=0 unknown=0 accepted=0 committed=0 failed=0 state=previewing elapsed_sec=0 throughput_rps=0'
    """
    stats = outcome.statistics
    elapsed = outcome.commit.elapsed_seconds if outcome.commit is not None else 0.0
    throughput = outcome.committed / elapsed if elapsed > 0 else 0.0
    return (
        f"SUMMARY format={outcome.format_name} "
        f"rows={stats.total_rows} "
        f"valid={stats.valid_rows} "
        f"invalid={stats.invalid_rows} "
        f"duplicates={stats.duplicate_rows} "
        f"unknown={stats.unknown_reference_rows} "
        f"accepted={outcome.accepted} "
        f"committed={outcome.committed} "
        f"failed={outcome.failed} "
        f"state={outcome.state} "
        f"elapsed_sec={format_number(elapsed)} "
        f"throughput_rps={format_number(throughput)}"
    )


def render_metrics_line(outcome: ImportOutcome) -> str:
    """`key=value` pairs of the format specific metrics, sorted by key."""
    return " ".join(
        f"{k}={format_number(float(v))}" for k, v in sorted(outcome.statistics.metrics.items())
    )
