from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.import_progress import ImportProgress

"""Import progress bar with tqdm (TTY only).

The bar is driven by ImportProgress snapshots: it is sized on the first
snapshot that knows the unit total, the description follows the phase and
the postfix shows inserted/skipped/error counts. In non-TTY environments
(CI, redirected output) nothing is drawn.
"""

__all__ = [
    "ImportProgressBar",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ImportProgressBar:
    """Listener rendering ImportProgress snapshots on a single tqdm bar."""

    def __init__(self, *, description: str = "Importing slabs", enabled: bool | None = None) -> None:
        self.description = description
        self.enabled = is_tty_enabled() if enabled is None else enabled
        self.pbar: TqdmType[Any] | None = None

    def _ensure_bar(self, total: int) -> TqdmType[Any]:
        if self.pbar is None:
            self.pbar = tqdm(
                total=total,
                desc=self.description,
                unit="slab",
                leave=True,
                ncols=80,
                ascii=True,
            )
        elif self.pbar.total != total:
            self.pbar.total = total
            self.pbar.refresh()
        return self.pbar

    def __call__(self, snapshot: ImportProgress | None) -> None:
        if not self.enabled or snapshot is None:
            return
        pbar = self._ensure_bar(snapshot.total_units)
        pbar.set_description(f"{self.description} [{snapshot.phase.value}]")
        delta = snapshot.processed_units - pbar.n
        if delta > 0:
            pbar.update(delta)
        pbar.set_postfix(
            inserted=snapshot.inserted_units,
            skipped=snapshot.skipped_units,
            errors=len(snapshot.errors),
        )
        if snapshot.is_done:
            self.close()

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ImportProgressBar:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
