"""Geodesy package exports."""

from .circular import (
    circular_interpolator,
    extend_across_seam,
    interpolator,
    periodic_copies,
    wrap_clock,
)
from .constants import DEG2RAD, EARTH_RADIUS_METERS, RAD2DEG, TWO_PI
from .referential import (
    Coordinate,
    DegenerateReferentialError,
    GeodeticReferential,
    LatLonH,
    great_circle_point,
)

__all__ = [
    "Coordinate",
    "DEG2RAD",
    "DegenerateReferentialError",
    "EARTH_RADIUS_METERS",
    "GeodeticReferential",
    "LatLonH",
    "RAD2DEG",
    "TWO_PI",
    "circular_interpolator",
    "great_circle_point",
    "extend_across_seam",
    "interpolator",
    "periodic_copies",
    "wrap_clock",
]
