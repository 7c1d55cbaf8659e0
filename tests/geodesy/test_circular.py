from __future__ import annotations

import numpy as np
import pytest

from timespace.geodesy.circular import (
    circular_interpolator,
    extend_across_seam,
    interpolator,
    periodic_copies,
    wrap_clock,
)
from timespace.geodesy.constants import TWO_PI


def test_extend_across_seam_adds_shifted_neighbours():
    xs, ys = extend_across_seam([1.0, 2.0, 5.0], [10.0, 20.0, 50.0])

    assert xs.tolist() == pytest.approx([5.0 - TWO_PI, 1.0, 2.0, 5.0, 1.0 + TWO_PI])
    assert ys.tolist() == [50.0, 10.0, 20.0, 50.0, 10.0]


def test_extend_across_seam_of_empty_input():
    xs, ys = extend_across_seam([], [])
    assert xs.size == 0 and ys.size == 0


def test_periodic_copies_are_sorted_triplicates():
    xs, ys = periodic_copies([3.0, 0.5], [30.0, 5.0])

    assert xs.size == 6
    assert np.all(np.diff(xs) >= 0)
    assert xs[0] == pytest.approx(0.5 - TWO_PI)
    assert ys.tolist() == [5.0, 30.0, 5.0, 30.0, 5.0, 30.0]


def test_interpolator_clamps_outside_samples():
    function = interpolator([2.0, 0.0], [20.0, 0.0])

    assert function(-1.0) == pytest.approx(0.0)
    assert function(1.0) == pytest.approx(10.0)
    assert function(5.0) == pytest.approx(20.0)


def test_interpolator_rejects_empty_samples():
    with pytest.raises(ValueError):
        interpolator([], [])


def test_circular_interpolator_is_periodic():
    xs, ys = extend_across_seam([0.5, 2.0, 4.0], [0.1, 0.4, 0.2])
    function = circular_interpolator(xs, ys)

    clocks = np.linspace(-TWO_PI, 2 * TWO_PI, 97)
    assert np.allclose(function(clocks), function(clocks + TWO_PI))


def test_circular_interpolator_is_continuous_at_seam():
    xs, ys = extend_across_seam([1.0, 5.0], [0.0, 1.0])
    function = circular_interpolator(xs, ys)

    assert function(0.0) == pytest.approx(function(TWO_PI - 1e-12), abs=1e-9)


def test_wrap_clock_maps_into_turn():
    assert wrap_clock(-0.5) == pytest.approx(TWO_PI - 0.5)
    assert wrap_clock(TWO_PI + 0.25) == pytest.approx(0.25)
