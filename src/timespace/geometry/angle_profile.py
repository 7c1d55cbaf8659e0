"""Clock -> slope profiles of the cones, sampled on the shared clock grid."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import numpy as np

from timespace.geodesy.circular import Interpolant, circular_interpolator, extend_across_seam

from .clock_grid import ClockGrid
from .cone_angles import ConeAngles
from .parameters import ConeShape

logger = logging.getLogger(__name__)

DEFAULT_DISCRIMINANT = 2.0


def fill_wide_gaps(
    clocks: np.ndarray, alphas: np.ndarray, road_alpha: float, minimum_gap: float
) -> Tuple[np.ndarray, np.ndarray]:
    """Insert a Road-slope anchor in the middle of every gap wider than ``minimum_gap``.

    The sweep runs backward over the gaps of the input sequence; anchors
    inserted during the sweep are not checked again.
    """
    xs = [float(value) for value in clocks]
    ys = [float(value) for value in alphas]
    for i in range(len(xs) - 1, 0, -1):
        clock_a = xs[i - 1]
        clock_b = xs[i]
        if clock_b - clock_a > minimum_gap:
            xs.insert(i, clock_a + (clock_b - clock_a) / 2.0)
            ys.insert(i, road_alpha)
    return np.asarray(xs), np.asarray(ys)


def complex_profile(angles: ConeAngles, minimum_gap: float) -> Interpolant:
    """Periodic slope function built from every significant bearing of a city."""
    clocks = np.array([item.clock for item in angles.items], dtype=float)
    alphas = np.array([item.alpha for item in angles.items], dtype=float)
    xs, ys = extend_across_seam(clocks, alphas)
    xs, ys = fill_wide_gaps(xs, ys, angles.road_alpha, minimum_gap)
    return circular_interpolator(xs, ys)


class AngleProfileSolver:
    """Samples cone slope profiles on a clock grid, memoized per (city, year).

    The cache is dropped whenever the grid, the shape policy or the gap
    discriminant changes.
    """

    def __init__(
        self,
        grid: ClockGrid,
        policy: ConeShape = ConeShape.BASED_ON_ROAD,
        discriminant: float = DEFAULT_DISCRIMINANT,
    ) -> None:
        self._grid = grid
        self._policy = ConeShape(policy)
        self._discriminant = float(discriminant)
        self._cache: Dict[Tuple[str, int], np.ndarray] = {}

    @property
    def grid(self) -> ClockGrid:
        return self._grid

    @grid.setter
    def grid(self, value: ClockGrid) -> None:
        self._grid = value
        self.clear()

    @property
    def policy(self) -> ConeShape:
        return self._policy

    @policy.setter
    def policy(self, value: ConeShape) -> None:
        value = ConeShape(value)
        if value != self._policy:
            self._policy = value
            self.clear()

    @property
    def discriminant(self) -> float:
        return self._discriminant

    @discriminant.setter
    def discriminant(self, value: float) -> None:
        self._discriminant = float(value)
        self.clear()

    @property
    def minimum_gap(self) -> float:
        return self._discriminant * self._grid.step

    def clear(self) -> None:
        if self._cache:
            logger.debug("Dropping %d cached angle profiles", len(self._cache))
        self._cache.clear()

    def is_cached(self, city_code: str, year: int) -> bool:
        return (city_code, int(year)) in self._cache

    def cached(self, city_code: str, year: int) -> Optional[np.ndarray]:
        """Memoized profile of ``city_code`` for ``year``, or ``None``."""
        return self._cache.get((city_code, int(year)))

    def profile(self, city_code: str, year: int, angles: ConeAngles) -> np.ndarray:
        """Slopes of ``city_code`` for ``year`` at every grid clock (float32, grid width)."""
        key = (city_code, int(year))
        cached = self._cache.get(key)
        if cached is None:
            cached = self._sample(angles)
            self._cache[key] = cached
        return cached

    def _sample(self, angles: ConeAngles) -> np.ndarray:
        clocks = self._grid.clocks
        if not angles.items or self._policy == ConeShape.BASED_ON_ROAD:
            return np.full(clocks.shape, angles.road_alpha, dtype=np.float32)
        if self._policy == ConeShape.BASED_ON_FASTEST_TERRESTRIAL_MODE:
            return np.full(clocks.shape, angles.fastest_terrestrial_alpha, dtype=np.float32)
        function = complex_profile(angles, self.minimum_gap)
        return np.asarray(function(clocks.astype(float)), dtype=np.float32)
