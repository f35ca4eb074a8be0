from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

from ..db.store import SlabStore, StoreError, read_all
from ..excel.reader import MissingColumnsError, SpreadsheetReadError, WorkbookSource, parse_slab_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import ImportSettings
from ..models.error_record import ROW_UNKNOWN, ErrorRecord
from ..models.import_progress import ImportPhase, ImportProgress
from ..models.parsed_row import ParsedSlabRow
from ..models.processing_result import BatchStatsAccumulator, ImportResult
from ..models.slab import SlabInsert, SlabStatus
from .auth import require_store_user
from .bulk_writer import BulkWriter
from .dedup import DedupLedger, expand_units
from .reconciler import MaterialCache, MaterialCreationError, MaterialReconciler

"""Slab import orchestration.

One run goes through the phases

    parsing -> checking -> materials -> inserting -> done

and produces an ImportResult. Only one run may be active per importer;
a second concurrent ``run`` fails immediately with ImportInProgressError.

Fatal problems (unreadable workbook, missing column, store unavailable while
loading reference data) raise FatalImportError. Everything else (bad rows,
material creation failures, exhausted batches) is collected in the result.
"""

__all__ = [
    "FatalImportError",
    "ImportInProgressError",
    "LiveUpdates",
    "ProgressListener",
    "SlabImporter",
    "CANCELLED_MESSAGE",
]

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "import cancelled"

ProgressListener = Callable[[ImportProgress | None], None]


class FatalImportError(Exception):
    """The run cannot proceed; nothing was written."""


class ImportInProgressError(Exception):
    """Another import is already running on this importer."""


class LiveUpdates(Protocol):
    """Change feed subscription to silence while a bulk write is running."""

    def pause(self) -> None: ...

    def resume(self) -> None: ...


class SlabImporter:
    def __init__(
        self,
        store: SlabStore,
        user_id: str | None,
        *,
        settings: ImportSettings | None = None,
        live_updates: LiveUpdates | None = None,
        on_reload: Callable[[], None] | None = None,
        on_progress: ProgressListener | None = None,
        error_log: ErrorLogBuffer | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.store = store
        self.user_id = user_id
        self.settings = settings or ImportSettings()
        self.live_updates = live_updates
        self.on_reload = on_reload
        self.on_progress = on_progress
        self.error_log = error_log if error_log is not None else ErrorLogBuffer()
        self.sleep = sleep

        self._lock = threading.Lock()
        self._cancel = threading.Event()
        self._progress: ImportProgress | None = None
        self._clear_timer: threading.Timer | None = None
        self._file_name = ""

    # -- state -----------------------------------------------------------

    @property
    def progress(self) -> ImportProgress | None:
        """Latest snapshot; None when idle."""
        return self._progress

    @property
    def is_importing(self) -> bool:
        return self._lock.locked()

    def cancel(self) -> None:
        """Ask the running import to stop before its next batch."""
        self._cancel.set()

    def close(self) -> None:
        """Cancel a pending progress clear."""
        if self._clear_timer is not None:
            self._clear_timer.cancel()
            self._clear_timer = None

    def _publish(self, snapshot: ImportProgress | None) -> None:
        self._progress = snapshot
        if self.on_progress is not None:
            self.on_progress(snapshot)

    def _clear_progress(self) -> None:
        self._clear_timer = None
        self._publish(None)

    def _schedule_clear(self) -> None:
        self.close()
        delay = self.settings.progress_clear_delay
        if delay <= 0:
            self._clear_progress()
            return
        timer = threading.Timer(delay, self._clear_progress)
        timer.daemon = True
        self._clear_timer = timer
        timer.start()

    def _record(self, row: int, error_type: str, message: str) -> None:
        self.error_log.append(ErrorRecord.create(self._file_name, row, error_type, message))

    # -- run -------------------------------------------------------------

    def run(self, source: WorkbookSource, file_name: str = "") -> ImportResult:
        """Import one workbook.

        Raises:
            AuthenticationError: no acting user, or a store scoped to another user
            ImportInProgressError: another run is active
            FatalImportError: the workbook or the reference data cannot be read
        """
        user = require_store_user(self.store.user_id, self.user_id)
        if not self._lock.acquire(blocking=False):
            raise ImportInProgressError("an import is already in progress")

        self._cancel.clear()
        self.close()
        self._file_name = file_name or getattr(source, "name", "") or "<upload>"
        if self.live_updates is not None:
            self.live_updates.pause()
        try:
            return self._run(user, source)
        finally:
            if self.live_updates is not None:
                self.live_updates.resume()
            try:
                path = self.error_log.flush()
                if path is not None:
                    logger.info("error log written to %s", path)
            except OSError as e:
                logger.warning("could not write error log: %s", e)
            self._lock.release()

    def _run(self, user: str, source: WorkbookSource) -> ImportResult:
        start = time.monotonic()
        progress = ImportProgress()
        self._publish(progress)

        # parsing
        try:
            parsed = parse_slab_workbook(source)
        except (SpreadsheetReadError, MissingColumnsError) as e:
            self._record(ROW_UNKNOWN, "FATAL", str(e))
            self._publish(None)
            raise FatalImportError(str(e)) from e

        decode_errors = [err.format() for err in parsed.errors]
        for err in parsed.errors:
            self._record(err.row, "ROW_ERROR", err.message)
        logger.info(
            "parsed file=%s total=%d valid=%d skipped=%d errors=%d",
            self._file_name,
            parsed.stats.total,
            parsed.stats.valid,
            parsed.stats.skipped,
            parsed.stats.errors_count,
        )

        if not parsed.rows and decode_errors:
            progress = progress.update(errors=decode_errors)
            self._publish(progress)
            self._schedule_clear()
            return ImportResult(
                added=0,
                skipped=0,
                errors=decode_errors,
                elapsed_seconds=time.monotonic() - start,
            )

        # checking
        total_units = parsed.total_units
        progress = progress.advance(ImportPhase.CHECKING).update(
            total_rows=len(parsed.rows), total_units=total_units
        )
        self._publish(progress)
        page_size = self.settings.page_size
        try:
            ledger = DedupLedger(read_all(self.store.fetch_entry_numbers, page_size))
            cache = MaterialCache(read_all(self.store.fetch_materials, page_size))
        except StoreError as e:
            self._record(ROW_UNKNOWN, "FATAL", str(e))
            self._publish(None)
            raise FatalImportError(f"cannot load reference data: {e}") from e
        logger.debug("loaded entry_numbers=%d materials=%d", len(ledger), len(cache))

        # materials
        progress = progress.advance(ImportPhase.MATERIALS)
        self._publish(progress)
        run_errors: list[str] = []
        queue: list[SlabInsert] = []
        skipped = 0
        dropped_units = 0
        reconciler = MaterialReconciler(self.store, cache)
        for row in parsed.rows:
            try:
                material = reconciler.resolve(row)
            except MaterialCreationError as e:
                message = f"Line {row.row_number}: {e}"
                run_errors.append(message)
                self._record(row.row_number, "MATERIAL_ERROR", str(e))
                dropped_units += row.quantity
                continue
            for key in expand_units(row.entry_number, row.quantity):
                if not ledger.claim(key):
                    skipped += 1
                    continue
                queue.append(self._to_insert(user, row, material.name, key))
        logger.info(
            "queued units=%d skipped=%d materials_created=%d",
            len(queue),
            skipped,
            len(reconciler.created),
        )

        # inserting
        already_processed = skipped + dropped_units
        progress = progress.advance(ImportPhase.INSERTING).update(
            processed_units=already_processed,
            skipped_units=skipped,
            errors=run_errors + decode_errors,
        )
        self._publish(progress)

        def on_batch(processed: int, inserted: int, batch_errors: list[str]) -> None:
            nonlocal progress
            progress = progress.update(
                processed_units=already_processed + processed,
                inserted_units=inserted,
                errors=run_errors + batch_errors + decode_errors,
            )
            self._publish(progress)

        stats = BatchStatsAccumulator()
        writer = BulkWriter(
            self.store,
            batch_size=self.settings.batch_size,
            max_attempts=self.settings.max_attempts,
            base_delay=self.settings.retry_base_delay,
            sleep=self.sleep,
            stats=stats,
        )
        report = writer.write(queue, on_progress=on_batch, should_stop=self._cancel.is_set)
        for message in report.errors:
            self._record(ROW_UNKNOWN, "BATCH_INSERT_ERROR", message)
        run_errors.extend(report.errors)
        if report.cancelled:
            run_errors.append(CANCELLED_MESSAGE)
            self._record(ROW_UNKNOWN, "CANCELLED", CANCELLED_MESSAGE)
            logger.warning("import cancelled after %d of %d units", report.processed, len(queue))

        # done
        errors = run_errors + decode_errors
        progress = progress.advance(ImportPhase.DONE).update(
            inserted_units=report.inserted,
            errors=errors,
        )
        self._publish(progress)
        if self.on_reload is not None:
            self.on_reload()
        self._schedule_clear()

        total_batches, avg_batch, p95_batch = stats.get_stats()
        return ImportResult(
            added=report.inserted,
            skipped=skipped,
            errors=errors,
            total_rows=len(parsed.rows),
            total_units=total_units,
            elapsed_seconds=time.monotonic() - start,
            total_batches=total_batches,
            avg_batch_seconds=avg_batch,
            p95_batch_seconds=p95_batch,
        )

    @staticmethod
    def _to_insert(user: str, row: ParsedSlabRow, material_name: str, entry_number: str | None) -> SlabInsert:
        price = row.value / row.quantity if row.value is not None else None
        return SlabInsert(
            user_id=user,
            position=row.position,
            material=material_name,
            length=row.length,
            width=row.width,
            thickness=row.thickness,
            entry_number=entry_number,
            price_estimate=price,
            status=SlabStatus.AVAILABLE,
            quantity=1,
            row_number=row.row_number,
        )
