from __future__ import annotations

from dataclasses import dataclass

from .slab import Slab

"""Dimensional matching query and result models."""

__all__ = [
    "MatchCriteria",
    "DimensionMatch",
    "SlabMatchResult",
]


@dataclass(frozen=True)
class MatchCriteria:
    """Fuzzy requirement. Unset dimensions match any slab on that axis."""
    length: float | None = None
    width: float | None = None
    thickness: float | None = None
    material: str | None = None
    tolerance: float = 5


@dataclass(frozen=True)
class DimensionMatch:
    """Signed differences, candidate minus required (0 when not required)."""
    length_diff: float
    width_diff: float
    thickness_diff: float


@dataclass(frozen=True)
class SlabMatchResult:
    slab: Slab
    compatibility_score: int
    dimension_match: DimensionMatch
