from __future__ import annotations

from dataclasses import dataclass, field

"""Transient rows produced by the slab spreadsheet decoder.

A ParsedSlabRow is created once per valid spreadsheet line, consumed once by
the import orchestrator and then discarded.
"""

__all__ = [
    "ParsedSlabRow",
    "RowError",
    "ParseStats",
    "ParseResult",
]


@dataclass(frozen=True)
class ParsedSlabRow:
    row_number: int  # spreadsheet line (header = line 1)
    entry_number: str | None  # raw, not yet suffixed per unit
    material: str
    position: str
    length: float
    width: float
    thickness: float
    quantity: int
    ref: str
    value: float | None = None
    cmup: float | None = None


@dataclass(frozen=True)
class RowError:
    row: int
    message: str

    def format(self) -> str:
        return f"Line {self.row}: {self.message}"


@dataclass(frozen=True)
class ParseStats:
    total: int  # data lines below the header
    valid: int
    skipped: int  # structurally empty lines
    errors_count: int


@dataclass(frozen=True)
class ParseResult:
    rows: list[ParsedSlabRow] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    stats: ParseStats = field(default_factory=lambda: ParseStats(0, 0, 0, 0))

    @property
    def total_units(self) -> int:
        return sum(r.quantity for r in self.rows)
