from __future__ import annotations

import math

import numpy as np
import pandas as pd
import pytest

from timespace.geodesy.constants import DEG2RAD, TWO_PI
from timespace.fusion.network_fusion import fuse
from timespace.geometry.angle_profile import AngleProfileSolver, complex_profile, fill_wide_gaps
from timespace.geometry.clock_grid import APEX_SENTINEL, ClockGrid
from timespace.geometry.cone_angles import ConeAngleItem, ConeAngles, cone_angles_for_year
from timespace.geometry.parameters import ConeShape

ROAD_ALPHA = 0.9


def _make_angles() -> ConeAngles:
    return ConeAngles(
        road_alpha=ROAD_ALPHA,
        fastest_terrestrial_alpha=0.1,
        items=[ConeAngleItem(clock=math.pi / 2, alpha=0.1), ConeAngleItem(clock=math.pi, alpha=0.3)],
    )


def _make_solver(policy: ConeShape) -> AngleProfileSolver:
    return AngleProfileSolver(ClockGrid(15 * DEG2RAD), policy)


def test_clock_grid_layout():
    grid = ClockGrid(15 * DEG2RAD)

    assert grid.width == 25
    assert grid.clocks[-1] == APEX_SENTINEL
    assert grid.ring_clocks[1] == pytest.approx(15 * DEG2RAD)
    assert grid.index.size == 24 * 12
    assert grid.index.dtype == np.uint16
    assert grid.index.max() == 2 * grid.width - 1


def test_clock_grid_rejects_bad_step():
    with pytest.raises(ValueError):
        ClockGrid(0.0)


def test_road_policy_is_constant():
    profile = _make_solver(ConeShape.BASED_ON_ROAD).profile("A", 2000, _make_angles())
    assert profile.dtype == np.float32
    assert np.allclose(profile, ROAD_ALPHA)


def test_city_without_connections_is_constant_under_every_policy():
    angles = ConeAngles(road_alpha=0.4, fastest_terrestrial_alpha=0.4, items=[])
    for policy in ConeShape:
        assert np.allclose(_make_solver(policy).profile("A", 2000, angles), 0.4)


def test_fastest_terrestrial_policy_is_constant():
    profile = _make_solver(ConeShape.BASED_ON_FASTEST_TERRESTRIAL_MODE).profile("A", 2000, _make_angles())
    assert np.allclose(profile, 0.1)


def test_complex_policy_passes_through_destinations():
    solver = _make_solver(ConeShape.COMPLEX)
    profile = solver.profile("A", 2000, _make_angles())
    clocks = solver.grid.clocks

    east = int(np.argmin(np.abs(clocks - math.pi / 2)))
    south = int(np.argmin(np.abs(clocks - math.pi)))
    assert profile[east] == pytest.approx(0.1, abs=1e-5)
    assert profile[south] == pytest.approx(0.3, abs=1e-5)
    assert profile.max() <= ROAD_ALPHA + 1e-6


def test_complex_profile_is_periodic():
    function = complex_profile(_make_angles(), minimum_gap=30 * DEG2RAD)
    clocks = np.linspace(0.0, TWO_PI, 73)
    assert np.allclose(function(clocks), function(clocks + TWO_PI))
    assert np.allclose(function(clocks), function(clocks - TWO_PI))


def test_fill_wide_gaps_inserts_road_midpoints():
    xs, ys = fill_wide_gaps(np.array([0.0, 1.0, 4.0]), np.array([0.1, 0.2, 0.3]), road_alpha=0.9, minimum_gap=2.0)

    assert xs.tolist() == [0.0, 1.0, 2.5, 4.0]
    assert ys.tolist() == [0.1, 0.2, 0.9, 0.3]


def test_fill_wide_gaps_does_not_recheck_inserted_anchors():
    xs, ys = fill_wide_gaps(np.array([0.0, 10.0]), np.array([0.1, 0.1]), road_alpha=0.9, minimum_gap=1.0)

    assert xs.tolist() == [0.0, 5.0, 10.0]
    assert ys.tolist() == [0.1, 0.9, 0.1]


def test_cache_is_dropped_on_policy_and_discriminant_changes():
    solver = _make_solver(ConeShape.COMPLEX)
    solver.profile("A", 2000, _make_angles())
    assert solver.is_cached("A", 2000)
    assert not solver.is_cached("A", 2001)

    solver.discriminant = 3
    assert not solver.is_cached("A", 2000)
    assert solver.minimum_gap == pytest.approx(3 * 15 * DEG2RAD)

    solver.profile("A", 2000, _make_angles())
    solver.policy = ConeShape.BASED_ON_ROAD
    assert not solver.is_cached("A", 2000)


def test_cached_profile_is_reused():
    solver = _make_solver(ConeShape.COMPLEX)
    first = solver.profile("A", 2000, _make_angles())
    second = solver.profile("A", 2000, ConeAngles(road_alpha=0.0))
    assert second is first


def test_cone_angles_keep_faster_terrestrial_modes():
    cities = pd.DataFrame(
        [
            {"cityCode": "A", "latitude": 0.0, "longitude": 0.0, "radius": 1.0},
            {"cityCode": "B", "latitude": 0.0, "longitude": 10.0, "radius": 1.0},
            {"cityCode": "C", "latitude": 10.0, "longitude": 0.0, "radius": 1.0},
        ]
    )
    modes = pd.DataFrame(
        [
            {"code": 1, "name": "Road", "yearBegin": 1900},
            {"code": 2, "name": "Rail", "yearBegin": 1900},
            {"code": 3, "name": "Air", "yearBegin": 1900},
        ]
    )
    speeds = pd.DataFrame(
        [
            {"transportModeCode": 1, "year": 2000, "speedKPH": 100.0},
            {"transportModeCode": 2, "year": 2000, "speedKPH": 200.0},
            {"transportModeCode": 3, "year": 2000, "speedKPH": 800.0},
        ]
    )
    network = pd.DataFrame(
        [
            {"idOri": "A", "idDes": "B", "transportMode": 1, "yearBegin": 1990, "yearEnd": 2010},
            {"idOri": "A", "idDes": "B", "transportMode": 2, "yearBegin": 1990, "yearEnd": 2010},
            {"idOri": "A", "idDes": "C", "transportMode": 3, "yearBegin": 1990, "yearEnd": 2010},
        ]
    )
    lookup = fuse(cities, pd.DataFrame({"cityCode": []}), modes, speeds, network, current_year=2020)

    angles = cone_angles_for_year(lookup["A"], 2000, lookup.terrestrial_mode_names())

    assert angles.road_alpha == pytest.approx(math.atan(math.sqrt(63.0)))
    assert [item.clock for item in angles.items] == [pytest.approx(math.pi / 2)]
    assert angles.fastest_terrestrial_alpha == pytest.approx(math.atan(math.sqrt(15.0)))

    lonely = cone_angles_for_year(lookup["B"], 2000, lookup.terrestrial_mode_names())
    assert lonely.items == []
    assert lonely.fastest_terrestrial_alpha == lonely.road_alpha
