from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

from ..db.store import SlabStore
from ..models.match_result import DimensionMatch, MatchCriteria, SlabMatchResult
from ..models.slab import Slab, SlabStatus
from .auth import require_user

"""Dimensional matching of available slabs against a fuzzy requirement.

Score of a candidate (0-100):

    sub(d) = max(0, 100 - 100 * |candidate - required| / required)
    score  = round(0.3 * sub(length) + 0.3 * sub(width) + 0.4 * sub(thickness))

A specified dimension deviating by more than the tolerance eliminates the
candidate. An unspecified dimension counts as a perfect match.
"""

__all__ = [
    "LENGTH_WEIGHT",
    "WIDTH_WEIGHT",
    "THICKNESS_WEIGHT",
    "validate_tolerance",
    "dimension_diffs",
    "score_candidate",
    "match_slabs",
    "find_compatible_slabs",
]

logger = logging.getLogger(__name__)

LENGTH_WEIGHT = 0.3
WIDTH_WEIGHT = 0.3
THICKNESS_WEIGHT = 0.4


def validate_tolerance(tolerance: float, max_tolerance: float = 20) -> float:
    if tolerance < 0 or tolerance > max_tolerance:
        raise ValueError(f"tolerance must be between 0 and {max_tolerance:g}, got {tolerance:g}")
    return tolerance


def _sub_score(candidate: float, required: float | None) -> float:
    if required is None:
        return 100.0
    if required <= 0:
        return 100.0 if candidate == required else 0.0
    return max(0.0, 100 - 100 * abs(candidate - required) / required)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def dimension_diffs(slab: Slab, criteria: MatchCriteria) -> DimensionMatch:
    """Signed candidate - required differences, 0 for unspecified dimensions."""
    return DimensionMatch(
        length_diff=0.0 if criteria.length is None else slab.length - criteria.length,
        width_diff=0.0 if criteria.width is None else slab.width - criteria.width,
        thickness_diff=0.0 if criteria.thickness is None else slab.thickness - criteria.thickness,
    )


def score_candidate(slab: Slab, criteria: MatchCriteria) -> int | None:
    """Score of ``slab`` for ``criteria``, or None when it is out of tolerance."""
    pairs = (
        (slab.length, criteria.length),
        (slab.width, criteria.width),
        (slab.thickness, criteria.thickness),
    )
    for candidate, required in pairs:
        if required is not None and abs(candidate - required) > criteria.tolerance:
            return None

    score = (
        LENGTH_WEIGHT * _sub_score(slab.length, criteria.length)
        + WIDTH_WEIGHT * _sub_score(slab.width, criteria.width)
        + THICKNESS_WEIGHT * _sub_score(slab.thickness, criteria.thickness)
    )
    return _round_half_up(score)


def _material_matches(slab: Slab, material: str | None) -> bool:
    if not material:
        return True
    return slab.material.strip().lower() == material.strip().lower()


def match_slabs(
    slabs: Iterable[Slab],
    criteria: MatchCriteria,
    *,
    max_tolerance: float = 20,
) -> list[SlabMatchResult]:
    """Rank available slabs for ``criteria``, best score first.

    Ties keep the input order.
    """
    validate_tolerance(criteria.tolerance, max_tolerance)
    results: list[SlabMatchResult] = []
    for slab in slabs:
        if slab.status is not SlabStatus.AVAILABLE or not _material_matches(slab, criteria.material):
            continue
        score = score_candidate(slab, criteria)
        if score is None:
            continue
        results.append(
            SlabMatchResult(
                slab=slab,
                compatibility_score=score,
                dimension_match=dimension_diffs(slab, criteria),
            )
        )
    results.sort(key=lambda r: r.compatibility_score, reverse=True)
    return results


def _slab_from_candidate(rec: dict[str, Any], user_id: str) -> Slab:
    return Slab(
        id=str(rec["slab_id"]),
        user_id=user_id,
        position=rec["slab_position"],
        material=rec["slab_material"],
        length=float(rec["slab_length"]),
        width=float(rec["slab_width"]),
        thickness=float(rec["slab_thickness"]),
        status=SlabStatus(rec.get("slab_status") or SlabStatus.AVAILABLE.value),
    )


def find_compatible_slabs(
    store: SlabStore,
    user_id: str | None,
    criteria: MatchCriteria,
    *,
    max_tolerance: float = 20,
) -> list[SlabMatchResult]:
    """Run the matching query in the store; diffs are computed locally.

    Raises:
        AuthenticationError: no user id (nothing is sent to the store)
        ValueError: tolerance out of range
    """
    user = require_user(user_id)
    validate_tolerance(criteria.tolerance, max_tolerance)

    recs = store.find_compatible_slabs(
        user,
        criteria.length,
        criteria.width,
        criteria.thickness,
        criteria.material or None,
        criteria.tolerance,
    )
    logger.debug("find_compatible_slabs user=%s candidates=%d", user, len(recs))

    results = []
    for rec in recs:
        slab = _slab_from_candidate(rec, user)
        results.append(
            SlabMatchResult(
                slab=slab,
                compatibility_score=int(rec["compatibility_score"]),
                dimension_match=dimension_diffs(slab, criteria),
            )
        )
    results.sort(key=lambda r: r.compatibility_score, reverse=True)
    return results
