from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

"""Commit progress display with tqdm (TTY only).

One bar per commit run, advanced once per row when its batch settles. In
non-TTY environments (CI, piped output) no bar is created.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Row progress for the commit executor."""

    def __init__(self, total_rows: int, *, description: str = "Importing rows") -> None:
        self.total_rows = total_rows
        self.description = description
        self.current_batch = 0
        self.failed_rows = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_rows,
                desc=description,
                unit="row",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_batch(self, batch_size: int) -> None:
        self.current_batch += 1
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} (batch {self.current_batch})")

    def finish_batch(self, processed: int, failed: int = 0) -> None:
        self.failed_rows += failed
        if self.enabled and self.pbar is not None:
            self.pbar.update(processed)
            if self.failed_rows:
                self.pbar.set_postfix(failed=self.failed_rows)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
