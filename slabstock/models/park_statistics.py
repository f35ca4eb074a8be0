from __future__ import annotations

from dataclasses import dataclass, field

from .slab import TOTAL_POSITIONS

"""Occupancy and valuation statistics for the slab park."""

__all__ = [
    "ParkStatistics",
]


@dataclass(frozen=True)
class ParkStatistics:
    total_slabs: int
    available_slabs: int
    reserved_slabs: int
    occupied_positions: int
    total_surface_m2: float
    total_volume_m3: float
    total_estimated_value: float
    old_slabs_count: int
    materials: list[str] = field(default_factory=list)

    @property
    def occupation_rate(self) -> float:
        return self.occupied_positions / TOTAL_POSITIONS * 100

    @property
    def availability_rate(self) -> float:
        if self.total_slabs == 0:
            return 0.0
        return self.available_slabs / self.total_slabs * 100
