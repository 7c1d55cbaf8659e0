"""Fixed clock grid shared by every cone and its triangle topology."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from timespace.geodesy.constants import TWO_PI

# Marks the apex column of the grid; the kernel turns it into the cone summit.
APEX_SENTINEL = -1.0


@dataclass(frozen=True, eq=False)
class ClockGrid:
    """Clocks ``0, step, 2·step, ... < 2π`` followed by the apex sentinel.

    ``index`` holds the triangle list of one cone whose vertex buffer is laid
    out as two rows of ``width`` vertices: the upper ring (with its apex) and
    the base ring (with its own centre).
    """

    step: float
    clocks: np.ndarray = field(init=False, repr=False)
    index: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not 0.0 < self.step < TWO_PI:
            raise ValueError(f"Clock step must be in (0, 2π), got {self.step}")
        count = int(math.ceil(TWO_PI / self.step - 1e-9))
        ring = np.arange(count, dtype=float) * self.step
        ring = ring[ring < TWO_PI]
        clocks = np.append(ring, APEX_SENTINEL).astype(np.float32)
        object.__setattr__(self, "clocks", clocks)
        object.__setattr__(self, "index", self._build_index(clocks.size))

    @property
    def width(self) -> int:
        return int(self.clocks.size)

    @property
    def ring_clocks(self) -> np.ndarray:
        return self.clocks[:-1]

    @property
    def vertex_count(self) -> int:
        return 2 * self.width

    @staticmethod
    def _build_index(width: int) -> np.ndarray:
        ring_size = width - 1
        triangles = []
        for ia in range(ring_size):
            ib = (ia + 1) % ring_size
            iab = ia + width
            ibb = ib + width
            triangles.extend((ia, ib, width - 1))
            triangles.extend((iab, ibb, 2 * width - 1))
            triangles.extend((ia, ib, iab, iab, ibb, ib))
        dtype = np.uint16 if 2 * width <= np.iinfo(np.uint16).max else np.uint32
        return np.asarray(triangles, dtype=dtype)
