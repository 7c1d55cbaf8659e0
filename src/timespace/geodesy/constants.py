"""Angular and Earth constants shared by the fusion engine and the geometry layer."""

from __future__ import annotations

import math

TWO_PI = 2.0 * math.pi
DEG2RAD = math.pi / 180.0
RAD2DEG = 180.0 / math.pi

# Spherical Earth used by both the referential and the geometry kernels.
EARTH_RADIUS_METERS = 6371e3

# Below this cos(latitude) the local north direction is undefined.
POLE_EPSILON = 1e-9
