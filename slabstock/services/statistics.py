from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime, timedelta

from ..models.material import Material
from ..models.park_statistics import ParkStatistics
from ..models.slab import Slab, SlabStatus


def compute_park_statistics(
    slabs: Iterable[Slab],
    materials: Iterable[Material] = (),
    *,
    old_slab_days: int = 180,
    now: datetime | None = None,
) -> ParkStatistics:
    """Occupancy, surface, volume and value of the park.

    Value uses the cmup of the material with the same (case-insensitive)
    name; slabs of unknown materials are counted at 0. A slab is old when it
    was created more than ``old_slab_days`` days before ``now``.
    """
    now = now or datetime.now(UTC)
    cutoff = now - timedelta(days=old_slab_days)
    cmup_by_name: dict[str, float] = {}
    for m in materials:
        cmup_by_name.setdefault(m.name.lower(), m.cmup or 0.0)

    total = available = reserved = old = 0
    surface = volume = value = 0.0
    positions: set[str] = set()
    names: set[str] = set()
    for slab in slabs:
        total += 1
        if slab.status is SlabStatus.AVAILABLE:
            available += 1
        elif slab.status is SlabStatus.RESERVED:
            reserved += 1
        positions.add(slab.position.strip().upper())
        names.add(slab.material)
        surface += slab.area_m2
        volume += slab.volume_m3
        value += slab.area_m2 * cmup_by_name.get(slab.material.lower(), 0.0)
        created = slab.created_at
        if created is not None:
            if created.tzinfo is None:
                created = created.replace(tzinfo=UTC)
            if created < cutoff:
                old += 1

    return ParkStatistics(
        total_slabs=total,
        available_slabs=available,
        reserved_slabs=reserved,
        occupied_positions=len(positions),
        total_surface_m2=surface,
        total_volume_m3=volume,
        total_estimated_value=value,
        old_slabs_count=old,
        materials=sorted(names),
    )
