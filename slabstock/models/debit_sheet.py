from __future__ import annotations

from dataclasses import dataclass, field

"""Production debit sheet models ("fiche de débit").

A debit sheet lists the pieces to cut for one work order. Surfaces and
volumes are derived per item from its thickness.
"""

__all__ = [
    "DebitItem",
    "DebitSheet",
]


@dataclass(frozen=True)
class DebitItem:
    row_number: int
    description: str
    quantity: int
    length: float
    width: float
    thickness: float
    m2: float
    m3: float
    appliance_number: str | None = None
    material: str | None = None
    finish: str | None = None


@dataclass(frozen=True)
class DebitSheet:
    commercial: str
    client: str
    order_number: str  # N°OS, often incomplete in the source file
    site: str | None
    supply: str  # deduced from item materials
    thickness: str  # deduced from item thicknesses
    m2: float
    m3: float
    items: list[DebitItem] = field(default_factory=list)
