from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the JSON Lines import error log.

Row -1 is the sentinel for errors that do not belong to a single
spreadsheet line (batch failures, structural errors).
"""

__all__ = [
    "ErrorRecord",
    "ROW_UNKNOWN",
]

ROW_UNKNOWN = -1


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: name of the imported workbook
        row: spreadsheet line (header = 1), or -1 when unknown
        error_type: classification in UPPER_SNAKE_CASE
        message: human readable description
    """
    timestamp: str
    file: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
