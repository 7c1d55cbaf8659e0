"""Local North-East-Down referential attached to a geodetic position.

The referential is the only place where city positions are turned into
Cartesian coordinates.  Everything downstream (bearings used by the fusion
engine, boundary envelopes, GPU textures) goes through it.

Conventions
-----------
* Geodetic positions are ``LatLonH`` in radians / metres on a sphere of
  radius :data:`EARTH_RADIUS_METERS`.
* ECEF: origin at the Earth centre, X through (0°, 0°), Y through (0°, 90°E),
  Z through the North Pole.
* NED: x points North, y points East, z points Down.  The *clock* of a point
  is ``atan2(y, x)`` normalised to ``[0, 2π)``, i.e. a bearing measured
  clockwise from North.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .constants import DEG2RAD, EARTH_RADIUS_METERS, POLE_EPSILON, RAD2DEG, TWO_PI


class DegenerateReferentialError(ValueError):
    """Raised when a bearing cannot be defined from a referential."""


@dataclass(frozen=True)
class LatLonH:
    """Geodetic position (radians, radians, metres)."""

    latitude: float
    longitude: float
    height: float = 0.0

    @classmethod
    def from_degrees(cls, latitude: float, longitude: float, height: float = 0.0) -> "LatLonH":
        return cls(
            latitude=float(latitude) * DEG2RAD,
            longitude=float(longitude) * DEG2RAD,
            height=float(height),
        )

    @property
    def latitude_degrees(self) -> float:
        return self.latitude * RAD2DEG

    @property
    def longitude_degrees(self) -> float:
        return self.longitude * RAD2DEG

    def to_ecef(self, radius: float = EARTH_RADIUS_METERS) -> np.ndarray:
        """Return the ECEF position in metres."""
        r = radius + self.height
        cos_lat = math.cos(self.latitude)
        return np.array(
            [
                r * cos_lat * math.cos(self.longitude),
                r * cos_lat * math.sin(self.longitude),
                r * math.sin(self.latitude),
            ]
        )

    @classmethod
    def from_ecef(cls, xyz: np.ndarray, radius: float = EARTH_RADIUS_METERS) -> "LatLonH":
        x, y, z = (float(v) for v in xyz)
        r = math.sqrt(x * x + y * y + z * z)
        if r == 0.0:
            raise DegenerateReferentialError("Cannot convert the Earth centre to a geodetic position.")
        latitude = math.asin(max(-1.0, min(1.0, z / r)))
        longitude = math.atan2(y, x)
        return cls(latitude=latitude, longitude=longitude, height=r - radius)


@dataclass(frozen=True)
class Coordinate:
    """Cartesian coordinate in a local NED frame (metres)."""

    x: float
    y: float
    z: float

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z])


def _ecef_to_ned_matrix(origin: LatLonH) -> np.ndarray:
    sin_lat = math.sin(origin.latitude)
    cos_lat = math.cos(origin.latitude)
    sin_lon = math.sin(origin.longitude)
    cos_lon = math.cos(origin.longitude)
    return np.array(
        [
            [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
            [-sin_lon, cos_lon, 0.0],
            [-cos_lat * cos_lon, -cos_lat * sin_lon, -sin_lat],
        ]
    )


@dataclass(frozen=True)
class GeodeticReferential:
    """NED tangent-plane frame centred on ``origin``.

    Instances are immutable and compare by origin, which keeps fused lookups
    comparable across runs.
    """

    origin: LatLonH
    radius: float = EARTH_RADIUS_METERS

    # ----------------------------------------------------------------- matrices
    @property
    def ecef_to_ned(self) -> np.ndarray:
        return _ecef_to_ned_matrix(self.origin)

    @property
    def ned_to_ecef(self) -> np.ndarray:
        return self.ecef_to_ned.T

    @property
    def summit(self) -> np.ndarray:
        """ECEF position of the origin, i.e. the apex of the city's cone."""
        return self.origin.to_ecef(self.radius)

    def basis_rows(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Rows of the NED->ECEF rotation, as uploaded to the cone kernel."""
        matrix = self.ned_to_ecef
        return matrix[0].copy(), matrix[1].copy(), matrix[2].copy()

    # -------------------------------------------------------------- transforms
    def to_local_frame(self, point: LatLonH) -> Coordinate:
        delta = point.to_ecef(self.radius) - self.summit
        ned = self.ecef_to_ned @ delta
        return Coordinate(float(ned[0]), float(ned[1]), float(ned[2]))

    def from_local_frame(self, coordinate: Coordinate) -> LatLonH:
        ecef = self.summit + self.ned_to_ecef @ coordinate.as_array()
        return LatLonH.from_ecef(ecef, self.radius)

    # ---------------------------------------------------------------- angles
    def bearing_to(self, point: LatLonH) -> float:
        """Clock of ``point`` seen from the origin, in ``[0, 2π)``."""
        if abs(math.cos(self.origin.latitude)) < POLE_EPSILON:
            raise DegenerateReferentialError(
                f"Origin latitude {self.origin.latitude_degrees:.6f} is at a pole; bearing undefined."
            )
        local = self.to_local_frame(point)
        if math.hypot(local.x, local.y) < POLE_EPSILON * self.radius:
            raise DegenerateReferentialError("Target coincides with the origin; bearing undefined.")
        clock = math.atan2(local.y, local.x)
        if clock < 0.0:
            clock += TWO_PI
        return clock % TWO_PI

    def elevation_to(self, point: LatLonH) -> float:
        """Angle of ``point`` above the local horizon (negative below it)."""
        local = self.to_local_frame(point)
        horizontal = math.hypot(local.x, local.y)
        if horizontal == 0.0 and local.z == 0.0:
            raise DegenerateReferentialError("Target coincides with the origin; elevation undefined.")
        return math.atan2(-local.z, horizontal)

    def central_angle_to(self, point: LatLonH) -> float:
        """Great-circle opening between the origin and ``point``."""
        a = LatLonH(self.origin.latitude, self.origin.longitude).to_ecef(1.0)
        b = LatLonH(point.latitude, point.longitude).to_ecef(1.0)
        return float(math.atan2(np.linalg.norm(np.cross(a, b)), float(np.dot(a, b))))


def great_circle_point(start: LatLonH, end: LatLonH, fraction: float) -> LatLonH:
    """Point at ``fraction`` of the great-circle arc from ``start`` to ``end`` (height 0)."""
    a = LatLonH(start.latitude, start.longitude).to_ecef(1.0)
    b = LatLonH(end.latitude, end.longitude).to_ecef(1.0)
    theta = math.atan2(float(np.linalg.norm(np.cross(a, b))), float(np.dot(a, b)))
    sin_theta = math.sin(theta)
    if sin_theta < POLE_EPSILON:
        if theta > math.pi / 2:
            raise DegenerateReferentialError("Antipodal points do not define a unique great circle.")
        return LatLonH(start.latitude, start.longitude)
    point = (math.sin((1.0 - fraction) * theta) * a + math.sin(fraction * theta) * b) / sin_theta
    return LatLonH.from_ecef(point, radius=1.0)
