from __future__ import annotations

import statistics
from dataclasses import dataclass, field

"""Import result models and batch timing statistics.

ImportResult is what callers use to tell "partial success" (added > 0 with
errors) from "total failure" (added == 0 with errors).
"""

__all__ = [
    "ImportResult",
    "BatchStatsAccumulator",
]


@dataclass(frozen=True)
class ImportResult:
    added: int
    skipped: int
    errors: list[str] = field(default_factory=list)
    total_rows: int = 0  # valid source lines
    total_units: int = 0  # physical units expected
    elapsed_seconds: float = 0.0
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def is_total_failure(self) -> bool:
        return self.added == 0 and self.skipped == 0 and self.has_errors


class BatchStatsAccumulator:
    """Collects per-batch write timings and summarises them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Return (total_batches, avg_batch_seconds, p95_batch_seconds)."""
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total = len(self.batch_times)
        avg = statistics.mean(self.batch_times)
        if total == 1:
            p95 = self.batch_times[0]
        else:
            # 19th of 20 inclusive quantiles
            p95 = statistics.quantiles(self.batch_times, n=20, method="inclusive")[18]
        return (total, avg, p95)
