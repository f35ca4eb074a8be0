from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

"""Import progress snapshot and phase state machine.

State transitions (strictly ordered, never revisited):
    parsing → checking → materials → inserting → done

The importer is the single writer. Each update produces a new frozen
snapshot, so a reader always sees a consistent view of phase and counters.
"""

__all__ = [
    "ImportPhase",
    "ImportProgress",
]


class ImportPhase(Enum):
    PARSING = "parsing"
    CHECKING = "checking"
    MATERIALS = "materials"
    INSERTING = "inserting"
    DONE = "done"

    @property
    def order(self) -> int:
        return _PHASE_ORDER.index(self)


_PHASE_ORDER = list(ImportPhase)


@dataclass(frozen=True)
class ImportProgress:
    phase: ImportPhase = ImportPhase.PARSING
    total_rows: int = 0  # valid source lines
    total_units: int = 0  # physical units expected (sum of quantities)
    processed_units: int = 0
    inserted_units: int = 0
    skipped_units: int = 0
    errors: tuple[str, ...] = ()

    @property
    def percent(self) -> int:
        if self.total_units <= 0:
            return 0
        return round(self.processed_units / self.total_units * 100)

    @property
    def is_done(self) -> bool:
        return self.phase is ImportPhase.DONE

    def advance(self, phase: ImportPhase) -> ImportProgress:
        """Return a snapshot moved forward to ``phase``.

        Raises:
            ValueError: if ``phase`` is not strictly after the current phase
        """
        if phase.order <= self.phase.order:
            raise ValueError(f"cannot move import from {self.phase.value} to {phase.value}")
        return replace(self, phase=phase)

    def update(self, **changes: object) -> ImportProgress:
        if "phase" in changes:
            raise ValueError("use advance() to change phase")
        if "errors" in changes:
            changes["errors"] = tuple(changes["errors"])  # type: ignore[arg-type]
        return replace(self, **changes)  # type: ignore[arg-type]
