from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines error log.

One record per failed or deferred document. ``row`` is the destination row
(1-based) when it was resolved, or -1 for document-level failures where no
row could be determined (parse errors, missing id, no matching row).
"""

__all__ = [
    "ErrorRecord",
    "ErrorType",
]


class ErrorType:
    """error_type values (UPPER_SNAKE)."""
    PARSE_ERROR = "PARSE_ERROR"
    MISSING_FILE_ID = "MISSING_FILE_ID"
    TARGET_ROW_NOT_FOUND = "TARGET_ROW_NOT_FOUND"
    WRITE_FAILED = "WRITE_FAILED"
    RATE_LIMITED = "RATE_LIMITED"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source document name
        sheet: destination tab ("" for the default tab)
        row: destination row (1-based), -1 when unknown
        error_type: one of ErrorType
        message: error description
    """
    timestamp: str
    file: str
    sheet: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, sheet: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            sheet=sheet,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
