from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

"""Slab domain model for the slab stock park.

A Slab is one physical stone piece stored at one of the 96 park positions
(rows A-L, columns 1-8). Imports expand multi-unit spreadsheet lines so that
every persisted slab row has quantity 1.
"""

__all__ = [
    "PARK_ROWS",
    "PARK_COLUMNS",
    "TOTAL_POSITIONS",
    "SlabStatus",
    "Slab",
    "SlabInsert",
    "is_valid_position",
]

PARK_ROWS = ("A", "B", "C", "D", "E", "F", "G", "H", "I", "J", "K", "L")
PARK_COLUMNS = (1, 2, 3, 4, 5, 6, 7, 8)
TOTAL_POSITIONS = len(PARK_ROWS) * len(PARK_COLUMNS)


class SlabStatus(Enum):
    """Availability of a slab.

    Values are the ones stored in the ``slabs.status`` column.
    """
    AVAILABLE = "dispo"
    RESERVED = "réservé"


def is_valid_position(code: str) -> bool:
    code = code.strip().upper()
    if len(code) < 2 or code[0] not in PARK_ROWS:
        return False
    try:
        return int(code[1:]) in PARK_COLUMNS
    except ValueError:
        return False


@dataclass(frozen=True)
class Slab:
    """A persisted slab row."""
    id: str
    user_id: str
    position: str
    material: str  # denormalized material name at write time
    length: float  # cm
    width: float  # cm
    thickness: float  # cm
    status: SlabStatus = SlabStatus.AVAILABLE
    quantity: int = 1
    entry_number: str | None = None  # "<source entry>-<unit index>"
    debit_sheet_id: str | None = None
    price_estimate: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def area_m2(self) -> float:
        return self.length * self.width * self.quantity / 10000

    @property
    def volume_m3(self) -> float:
        return self.length * self.width * self.thickness * self.quantity / 1000000


@dataclass(frozen=True)
class SlabInsert:
    """A slab prepared for insertion (one physical unit).

    ``row_number`` is the originating spreadsheet line, kept for error
    reporting only and never written to the store.
    """
    user_id: str
    position: str
    material: str
    length: float
    width: float
    thickness: float
    entry_number: str | None = None
    price_estimate: float | None = None
    status: SlabStatus = SlabStatus.AVAILABLE
    quantity: int = 1
    row_number: int = -1

    def to_record(self) -> dict[str, object]:
        """Column name -> value mapping for the ``slabs`` table."""
        return {
            "user_id": self.user_id,
            "position": self.position,
            "material": self.material,
            "length": self.length,
            "width": self.width,
            "thickness": self.thickness,
            "quantity": self.quantity,
            "status": self.status.value,
            "entry_number": self.entry_number,
            "price_estimate": self.price_estimate,
        }
