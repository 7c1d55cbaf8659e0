"""Piecewise-linear interpolation over polar angles.

Profiles indexed by clock (bearing) live on a circle.  To interpolate them
with a plain linear interpolant the samples are copied across the 0/2π seam
and queries are wrapped into ``[0, 2π)``.  Both the cone angle profiles and
the boundary envelopes use the helpers below.
"""

from __future__ import annotations

from typing import Callable, Sequence, Tuple, Union

import numpy as np

from .constants import TWO_PI

Interpolant = Callable[[Union[np.ndarray, float]], Union[np.ndarray, float]]


def wrap_clock(clock: np.ndarray | float) -> np.ndarray | float:
    """Map any angle onto ``[0, 2π)``."""
    return np.mod(clock, TWO_PI)


def extend_across_seam(
    clocks: Sequence[float], values: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray]:
    """Prepend the last sample shifted by -2π and append the first one shifted by +2π.

    ``clocks`` must already be sorted ascending inside ``[0, 2π)``.
    """
    xs = np.asarray(clocks, dtype=float)
    ys = np.asarray(values, dtype=float)
    if xs.size == 0:
        return xs, ys
    xs = np.concatenate(([xs[-1] - TWO_PI], xs, [xs[0] + TWO_PI]))
    ys = np.concatenate(([ys[-1]], ys, [ys[0]]))
    return xs, ys


def periodic_copies(
    clocks: Sequence[float], values: Sequence[float]
) -> Tuple[np.ndarray, np.ndarray]:
    """Return every sample three times (clock-2π, clock, clock+2π), sorted by clock."""
    xs = np.asarray(clocks, dtype=float)
    ys = np.asarray(values, dtype=float)
    all_x = np.concatenate((xs, xs + TWO_PI, xs - TWO_PI))
    all_y = np.concatenate((ys, ys, ys))
    order = np.argsort(all_x, kind="stable")
    return all_x[order], all_y[order]


def interpolator(xs: Sequence[float], ys: Sequence[float]) -> Interpolant:
    """Linear interpolant clamped to the end values outside ``[xs[0], xs[-1]]``."""
    x_arr = np.asarray(xs, dtype=float)
    y_arr = np.asarray(ys, dtype=float)
    if x_arr.size == 0:
        raise ValueError("Cannot interpolate an empty sample set.")
    order = np.argsort(x_arr, kind="stable")
    x_arr = x_arr[order]
    y_arr = y_arr[order]

    def _interpolate(x):
        return np.interp(x, x_arr, y_arr)

    return _interpolate


def circular_interpolator(clocks: Sequence[float], values: Sequence[float]) -> Interpolant:
    """Periodic interpolant over clock samples already extended across the seam.

    Queries are wrapped into ``[0, 2π)`` so ``f(c) == f(c + 2π)``.
    """
    linear = interpolator(clocks, values)

    def _interpolate(clock):
        return linear(wrap_clock(clock))

    return _interpolate
