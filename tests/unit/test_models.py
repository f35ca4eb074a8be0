from __future__ import annotations

import pytest

from conftest import make_slab
from slabstock.models.material import Material, MaterialType, extract_thickness, infer_material_type
from slabstock.models.park_statistics import ParkStatistics
from slabstock.models.processing_result import BatchStatsAccumulator, ImportResult
from slabstock.models.slab import TOTAL_POSITIONS, is_valid_position


@pytest.mark.parametrize(
    "name,kind,thickness",
    [
        ("Granit Blanc K2", MaterialType.SLAB, 2.0),
        ("marbre k30", MaterialType.SLAB, 30.0),
        ("Bloc Calcaire", MaterialType.BLOCK, None),
        ("K2 Granit", MaterialType.BLOCK, None),
    ],
)
def test_type_and_thickness_from_name(name, kind, thickness):
    assert infer_material_type(name) is kind
    assert extract_thickness(name) == thickness


def test_block_stock_is_the_only_type_without_slabs():
    assert MaterialType("both") is MaterialType.BOTH
    assert [t for t in MaterialType if not t.stocks_slabs] == [MaterialType.BLOCK]


def test_ref_key():
    assert Material(id=None, name="x", ref=" BLC ").ref_key == "blc"
    assert Material(id=None, name="x", ref="  ").ref_key is None
    assert Material(id=None, name="x").ref_key is None


def test_slab_area_and_volume():
    slab = make_slab(length=200, width=100, thickness=3)
    assert slab.area_m2 == pytest.approx(2.0)
    assert slab.volume_m3 == pytest.approx(0.06)


def test_park_positions():
    assert TOTAL_POSITIONS == 96
    assert is_valid_position("A1")
    assert is_valid_position("L8")
    assert is_valid_position(" c4 ")
    assert not is_valid_position("M1")
    assert not is_valid_position("A9")
    assert not is_valid_position("A")


def test_park_statistics_rates():
    st = ParkStatistics(
        total_slabs=4, available_slabs=3, reserved_slabs=1, occupied_positions=24,
        total_surface_m2=0, total_volume_m3=0, total_estimated_value=0, old_slabs_count=0,
    )
    assert st.occupation_rate == 25
    assert st.availability_rate == 75


def test_import_result_outcome_flags():
    assert ImportResult(added=0, skipped=0, errors=["x"]).is_total_failure
    assert not ImportResult(added=1, skipped=0, errors=["x"]).is_total_failure
    assert not ImportResult(added=0, skipped=3).has_errors


def test_batch_stats():
    acc = BatchStatsAccumulator()
    assert acc.get_stats() == (0, 0.0, 0.0)
    acc.add_batch_time(0.5)
    assert acc.get_stats() == (1, 0.5, 0.5)
    for t in (0.1, 0.2, 0.3):
        acc.add_batch_time(t)
    total, avg, p95 = acc.get_stats()
    assert total == 4
    assert avg == pytest.approx(0.275)
    assert 0.3 < p95 <= 0.5
