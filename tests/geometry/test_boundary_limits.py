from __future__ import annotations

import json

import numpy as np
import pytest
from shapely.geometry import MultiPolygon, Polygon, box

from timespace.geodesy.constants import DEG2RAD
from timespace.geodesy.referential import GeodeticReferential, LatLonH
from timespace.geometry.boundary_limits import (
    UNBOUNDED_DISTANCE,
    BoundaryLimitSolver,
    envelope,
    load_boundaries,
    matching_boundaries,
    raw_limits,
)
from timespace.geometry.clock_grid import ClockGrid


def _make_referential() -> GeodeticReferential:
    return GeodeticReferential(LatLonH.from_degrees(0.0, 0.0))


def _make_country() -> Polygon:
    return Polygon([(-2.0, -1.0), (3.0, -1.0), (3.0, 2.0), (-2.0, 2.0)])


def test_matching_boundaries_uses_bounding_boxes():
    position = LatLonH.from_degrees(0.0, 0.0)
    with_hole = Polygon(
        [(-5.0, -5.0), (5.0, -5.0), (5.0, 5.0), (-5.0, 5.0)],
        holes=[[(1.0, 1.0), (2.0, 1.0), (2.0, 2.0)]],
    )
    far_away = box(40.0, 40.0, 50.0, 50.0)
    islands = MultiPolygon([box(-1.0, -1.0, 1.0, 1.0), box(-3.0, -3.0, -2.0, -2.0)])

    rings = matching_boundaries(position, [with_hole, far_away, islands])

    assert len(rings) == 4
    assert rings[0][0].longitude_degrees == pytest.approx(-5.0)


def test_raw_limits_are_periodic_and_positive():
    rings = matching_boundaries(LatLonH.from_degrees(0.0, 0.0), [_make_country()])
    clocks, distances = raw_limits(rings, _make_referential())

    assert clocks.size == 3 * sum(len(ring) for ring in rings)
    assert np.all(np.diff(clocks) >= 0)
    assert np.all(distances > 0)


def test_envelope_takes_class_minimum():
    clocks = np.array([0.1, 0.2, 1.1, 1.3])
    distances = np.array([5.0, 3.0, 7.0, 9.0])

    class_clocks, class_distances = envelope(clocks, distances, 1.0)

    assert class_clocks.tolist() == [0.0, 1.0]
    assert class_distances.tolist() == [3.0, 7.0]


def test_coarser_classes_never_exceed_finer_ones():
    rings = matching_boundaries(LatLonH.from_degrees(0.0, 0.0), [_make_country()])
    clocks, distances = raw_limits(rings, _make_referential())
    fine_step = 5 * DEG2RAD
    coarse_step = 4 * fine_step

    fine_clocks, fine_distances = envelope(clocks, distances, fine_step)
    coarse_clocks, coarse_distances = envelope(clocks, distances, coarse_step)
    coarse_by_class = dict(zip(np.round(coarse_clocks / coarse_step).astype(int), coarse_distances))

    for clock, distance in zip(fine_clocks, fine_distances):
        coarse_class = int(np.floor(round(clock / fine_step) / 4))
        assert coarse_by_class[coarse_class] <= distance + 1e-6


def test_solver_samples_envelope_on_grid():
    grid = ClockGrid(15 * DEG2RAD)
    solver = BoundaryLimitSolver(grid)
    referential = _make_referential()
    solver.register("A", referential, [_make_country()])

    limits = solver.limits("A")
    rings = matching_boundaries(referential.origin, [_make_country()])
    _, distances = raw_limits(rings, referential)

    assert limits.shape == (grid.width,)
    assert limits.dtype == np.float32
    assert np.all(limits > 0)
    assert limits.min() >= distances.min() - 1.0
    assert limits.max() <= distances.max() + 1.0


def test_city_without_boundary_is_unbounded():
    solver = BoundaryLimitSolver(ClockGrid(15 * DEG2RAD))
    solver.register("A", _make_referential(), [box(40.0, 40.0, 50.0, 50.0)])

    assert np.allclose(solver.limits("A"), UNBOUNDED_DISTANCE)
    assert np.allclose(solver.limits("unknown"), UNBOUNDED_DISTANCE)


def test_grid_change_resamples():
    solver = BoundaryLimitSolver(ClockGrid(15 * DEG2RAD))
    solver.register("A", _make_referential(), [_make_country()])
    assert solver.limits("A").size == 25

    solver.grid = ClockGrid(30 * DEG2RAD)

    assert solver.limits("A").size == 13


def test_load_boundaries_reads_feature_collection(tmp_path):
    path = tmp_path / "countries.geojson"
    payload = {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"name": "Here"}, "geometry": box(-1.0, -1.0, 1.0, 1.0).__geo_interface__},
            {"type": "Feature", "properties": {"name": "Nowhere"}, "geometry": None},
        ],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")

    boundaries = load_boundaries(path)

    assert len(boundaries) == 1
    assert boundaries[0].bounds == (-1.0, -1.0, 1.0, 1.0)


def test_load_boundaries_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_boundaries(tmp_path / "missing.geojson")
