from __future__ import annotations

import pytest

from conftest import FakeStore, make_slab
from slabstock.models.match_result import MatchCriteria
from slabstock.models.slab import SlabStatus
from slabstock.services.auth import AuthenticationError
from slabstock.services.matcher import find_compatible_slabs, match_slabs, score_candidate


def test_candidate_out_of_tolerance_is_eliminated():
    slab = make_slab(length=306, width=150, thickness=2)
    criteria = MatchCriteria(length=300, width=150, thickness=2, tolerance=5)
    assert score_candidate(slab, criteria) is None
    assert match_slabs([slab], criteria) == []


def test_exact_candidate_scores_100():
    slab = make_slab(length=300, width=150, thickness=2)
    [result] = match_slabs([slab], MatchCriteria(length=300, width=150, thickness=2))
    assert result.compatibility_score == 100
    assert result.dimension_match.length_diff == 0
    assert result.dimension_match.thickness_diff == 0


def test_thickness_weighs_forty_percent():
    # thickness 1 vs 2 -> sub-score 50, length/width perfect
    slab = make_slab(length=300, width=150, thickness=1)
    criteria = MatchCriteria(length=300, width=150, thickness=2)
    assert score_candidate(slab, criteria) == 80


def test_length_deviation_lowers_score():
    # |303-300|/300 -> sub 99 -> 0.3*99 + 30 + 40 = 99.7 -> 100
    slab = make_slab(length=303, width=150, thickness=2)
    assert score_candidate(slab, MatchCriteria(length=300, width=150, thickness=2)) == 100
    # 0.3*95.24 + 30 + 40 = 98.57 -> 99
    slab = make_slab(length=100, width=150, thickness=2)
    assert score_candidate(slab, MatchCriteria(length=105, width=150, thickness=2, tolerance=5)) == 99


def test_signed_diffs_are_candidate_minus_required():
    slab = make_slab(length=298, width=153, thickness=2)
    [result] = match_slabs([slab], MatchCriteria(length=300, width=150))
    d = result.dimension_match
    assert (d.length_diff, d.width_diff, d.thickness_diff) == (-2, 3, 0)


def test_unspecified_query_returns_every_available_slab_of_material():
    slabs = [
        make_slab(ident="1", material="Granit Blanc K2"),
        make_slab(ident="2", material="Noir Zimbabwe K3"),
        make_slab(ident="3", material="granit blanc k2", status=SlabStatus.RESERVED),
    ]
    results = match_slabs(slabs, MatchCriteria(material="GRANIT BLANC K2"))
    assert [r.slab.id for r in results] == ["1"]
    assert results[0].compatibility_score == 100


def test_results_sorted_by_score_descending():
    slabs = [
        make_slab(ident="far", width=146),
        make_slab(ident="exact", length=300),
        make_slab(ident="thin", thickness=1.5, length=300),
    ]
    results = match_slabs(slabs, MatchCriteria(length=300, width=150, thickness=2))
    assert [r.slab.id for r in results] == ["exact", "far", "thin"]


@pytest.mark.parametrize("tolerance", [-1, 21])
def test_tolerance_outside_range_is_rejected(tolerance):
    with pytest.raises(ValueError):
        match_slabs([], MatchCriteria(tolerance=tolerance))


def test_store_query_without_user_does_no_io():
    store = FakeStore()
    with pytest.raises(AuthenticationError):
        find_compatible_slabs(store, None, MatchCriteria(length=300))
    assert store.compatible_calls == []


def test_store_query_builds_results_with_local_diffs():
    store = FakeStore()
    store.compatible_rows = [
        {
            "slab_id": 7, "slab_position": "C2", "slab_material": "Granit", "slab_length": 302,
            "slab_width": 148, "slab_thickness": 2, "slab_status": "dispo", "compatibility_score": 96,
        },
        {
            "slab_id": 8, "slab_position": "C3", "slab_material": "Granit", "slab_length": 300,
            "slab_width": 150, "slab_thickness": 2, "slab_status": "dispo", "compatibility_score": 100,
        },
    ]
    results = find_compatible_slabs(store, "user-1", MatchCriteria(length=300, width=150, material=""))
    assert store.compatible_calls == [("user-1", 300, 150, None, None, 5)]
    assert [r.slab.id for r in results] == ["8", "7"]
    assert results[1].dimension_match.length_diff == 2
    assert results[1].dimension_match.width_diff == -2
    assert results[1].dimension_match.thickness_diff == 0
