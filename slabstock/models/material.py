from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

"""Material reference model.

Materials are looked up during import by their ``ref`` (short code,
case-insensitive). The type and thickness of a new material are derived from
its name: a trailing ``K<digits>`` marks slab stock of that thickness.
"""

__all__ = [
    "MaterialType",
    "Material",
    "THICKNESS_CODE_PATTERN",
    "infer_material_type",
    "extract_thickness",
]

THICKNESS_CODE_PATTERN = re.compile(r"K(\d+)$")


class MaterialType(Enum):
    SLAB = "tranche"
    BLOCK = "bloc"
    BOTH = "both"  # stocked as blocks and as slabs

    @property
    def stocks_slabs(self) -> bool:
        return self is not MaterialType.BLOCK


@dataclass(frozen=True)
class Material:
    id: str | None
    name: str
    ref: str | None = None
    type: MaterialType = MaterialType.BLOCK
    thickness: float | None = None
    cmup: float | None = None  # cost per m2
    is_active: bool = True

    @property
    def ref_key(self) -> str | None:
        """Lookup key used by the import cache (lowercased ref)."""
        if self.ref is None:
            return None
        key = self.ref.strip().lower()
        return key or None


def infer_material_type(name: str) -> MaterialType:
    if THICKNESS_CODE_PATTERN.search(name.strip().upper()):
        return MaterialType.SLAB
    return MaterialType.BLOCK


def extract_thickness(name: str) -> float | None:
    m = THICKNESS_CODE_PATTERN.search(name.strip().upper())
    if m is None:
        return None
    return float(m.group(1))
