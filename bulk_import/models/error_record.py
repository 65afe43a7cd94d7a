from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for error logging.

One JSON Lines record per failed row or failed file. `row = -1` marks a
file-level error (unsupported type, missing columns, quota exhausted) where no
single row is to blame.
"""

__all__ = [
    "ErrorRecord",
    "FILE_LEVEL",
    "ROW_VALIDATION_FAILURE",
    "ROW_COMMIT_FAILURE",
]

FILE_LEVEL = "FILE_LEVEL"
ROW_VALIDATION_FAILURE = "ROW_VALIDATION_FAILURE"
ROW_COMMIT_FAILURE = "ROW_COMMIT_FAILURE"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: uploaded file name
        format: import format name (e.g. bosta_shipments)
        row: source line number (header = 1). -1 for file-level errors
        error_type: classification in UPPER_SNAKE_CASE
        message: human readable description or store error text
    """
    timestamp: str  # ISO8601 UTC
    file: str
    format: str
    row: int  # 行番号。不明な場合 -1 許容
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(file: str, format: str, row: int, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            format=format,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
