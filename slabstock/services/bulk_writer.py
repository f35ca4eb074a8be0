from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from ..db.batch_insert import BatchInsertError, BatchMetrics
from ..db.store import SlabStore, StoreError
from ..models.processing_result import BatchStatsAccumulator
from ..models.slab import SlabInsert

"""Batched slab insertion with bounded retry.

The insert queue is cut into batches of ``batch_size`` units. Each batch is
one store call (one transaction) and is attempted up to ``max_attempts``
times, waiting ``base_delay * attempt`` seconds after failed attempt
``attempt``. A batch that exhausts its attempts contributes exactly one
error and the writer moves on to the next batch.
"""

__all__ = [
    "BatchOutcome",
    "WriteReport",
    "BulkWriter",
    "ProgressCallback",
]

logger = logging.getLogger(__name__)

# (processed_units, inserted_units, errors so far)
ProgressCallback = Callable[[int, int, list[str]], None]


@dataclass(frozen=True)
class BatchOutcome:
    index: int  # 1-based
    size: int
    inserted: int
    attempts: int
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class WriteReport:
    inserted: int = 0
    processed: int = 0
    errors: list[str] = field(default_factory=list)
    outcomes: list[BatchOutcome] = field(default_factory=list)
    cancelled: bool = False


class BulkWriter:
    def __init__(
        self,
        store: SlabStore,
        *,
        batch_size: int = 200,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        stats: BatchStatsAccumulator | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.batch_size = batch_size
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep
        self.stats = stats or BatchStatsAccumulator()

    def batches(self, rows: Sequence[SlabInsert]) -> list[Sequence[SlabInsert]]:
        return [rows[i:i + self.batch_size] for i in range(0, len(rows), self.batch_size)]

    def _record_metrics(self, metrics: BatchMetrics) -> None:
        self.stats.add_batch_time(metrics.elapsed_seconds)

    def write_batch(self, index: int, batch: Sequence[SlabInsert]) -> BatchOutcome:
        last_error = ""
        for attempt in range(1, self.max_attempts + 1):
            try:
                inserted = self.store.insert_slabs(batch, metrics_callback=self._record_metrics)
                return BatchOutcome(index=index, size=len(batch), inserted=inserted, attempts=attempt)
            except (BatchInsertError, StoreError) as e:
                last_error = str(e)
                logger.warning(
                    "batch %d attempt %d/%d failed: %s", index, attempt, self.max_attempts, last_error
                )
                if attempt < self.max_attempts:
                    self.sleep(self.base_delay * attempt)
        return BatchOutcome(
            index=index,
            size=len(batch),
            inserted=0,
            attempts=self.max_attempts,
            error=f"batch {index}: {last_error}",
        )

    def write(
        self,
        rows: Sequence[SlabInsert],
        on_progress: ProgressCallback | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> WriteReport:
        """Insert ``rows`` batch by batch.

        ``should_stop`` is polled before each batch; once it returns True no
        further batch is written and the report is marked cancelled.
        """
        report = WriteReport()
        for index, batch in enumerate(self.batches(rows), start=1):
            if should_stop is not None and should_stop():
                report.cancelled = True
                logger.info("write stopped before batch %d", index)
                break
            outcome = self.write_batch(index, batch)
            report.outcomes.append(outcome)
            report.processed += outcome.size
            report.inserted += outcome.inserted
            if outcome.error is not None:
                report.errors.append(outcome.error)
            logger.debug(
                "batch %d size=%d inserted=%d attempts=%d", index, outcome.size, outcome.inserted, outcome.attempts
            )
            if on_progress is not None:
                on_progress(report.processed, report.inserted, list(report.errors))
        return report
