"""Clock -> distance envelopes used to crop cones at political boundaries."""

from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from shapely.geometry import MultiPolygon, Polygon, shape
from shapely.geometry.base import BaseGeometry

from timespace.geodesy.circular import interpolator, periodic_copies
from timespace.geodesy.constants import EARTH_RADIUS_METERS
from timespace.geodesy.referential import GeodeticReferential, LatLonH

from .clock_grid import ClockGrid

logger = logging.getLogger(__name__)

# Envelope of a city without any matching boundary: half the Earth's circumference.
UNBOUNDED_DISTANCE = math.pi * EARTH_RADIUS_METERS


def load_boundaries(path: str | Path) -> List[BaseGeometry]:
    """Read the (multi)polygons of a GeoJSON feature collection, lon/lat in degrees."""
    geojson_path = Path(path)
    if not geojson_path.exists():
        raise FileNotFoundError(f"Boundary GeoJSON not found at {geojson_path}")
    with geojson_path.open("r", encoding="utf-8") as handle:
        payload = json.load(handle)

    boundaries: List[BaseGeometry] = []
    for feature in payload.get("features") or []:
        geometry = feature.get("geometry")
        if not geometry:
            continue
        geom = shape(geometry)
        if geom.is_empty:
            continue
        boundaries.append(geom)
    logger.info("Loaded %d boundaries from %s", len(boundaries), geojson_path)
    return boundaries


def _polygons(geometry: BaseGeometry) -> List[Polygon]:
    if isinstance(geometry, Polygon):
        return [geometry]
    if isinstance(geometry, MultiPolygon):
        return list(geometry.geoms)
    return [part for sub in getattr(geometry, "geoms", []) for part in _polygons(sub)]


def boundary_rings(geometry: BaseGeometry) -> List[List[LatLonH]]:
    """Exterior and interior rings of a lon/lat (degrees) geometry as geodetic positions."""
    rings: List[List[LatLonH]] = []
    for polygon in _polygons(geometry):
        if polygon.is_empty:
            continue
        for ring in (polygon.exterior, *polygon.interiors):
            rings.append([LatLonH.from_degrees(lat, lon) for lon, lat, *_ in ring.coords])
    return rings


def matching_boundaries(position: LatLonH, boundaries: Iterable[BaseGeometry]) -> List[List[LatLonH]]:
    """Rings of every boundary whose bounding box contains ``position``."""
    lon = position.longitude_degrees
    lat = position.latitude_degrees
    rings: List[List[LatLonH]] = []
    for geometry in boundaries:
        min_x, min_y, max_x, max_y = geometry.bounds
        if min_x <= lon <= max_x and min_y <= lat <= max_y:
            rings.extend(boundary_rings(geometry))
    return rings


def raw_limits(rings: Sequence[Sequence[LatLonH]], referential: GeodeticReferential):
    """(clock, distance) samples of every ring vertex, copied at ±2π and sorted by clock."""
    points = [referential.to_local_frame(position).as_array() for ring in rings for position in ring]
    if not points:
        return np.empty(0), np.empty(0)
    local = np.vstack(points)
    clocks = np.arctan2(local[:, 1], local[:, 0])
    distances = np.linalg.norm(local, axis=1)
    return periodic_copies(clocks, distances)


def envelope(clocks: np.ndarray, distances: np.ndarray, step: float):
    """Minimum distance per clock class of width ``step``, as sorted arrays."""
    classes: Dict[float, float] = {}
    for clock, distance in zip(clocks, distances):
        clock_class = math.floor(clock / step) * step
        current = classes.get(clock_class)
        classes[clock_class] = distance if current is None else min(current, distance)
    keys = sorted(classes)
    return np.asarray(keys, dtype=float), np.asarray([classes[key] for key in keys], dtype=float)


class BoundaryLimitSolver:
    """Per-city boundary envelopes resampled on the clock grid.

    The projected boundary samples are computed once per city; the resampled
    envelopes are dropped when the grid changes.
    """

    def __init__(self, grid: ClockGrid) -> None:
        self._grid = grid
        self._raw: Dict[str, tuple] = {}
        self._sampled: Dict[str, np.ndarray] = {}

    @property
    def grid(self) -> ClockGrid:
        return self._grid

    @grid.setter
    def grid(self, value: ClockGrid) -> None:
        self._grid = value
        self._sampled.clear()

    def clear(self) -> None:
        self._raw.clear()
        self._sampled.clear()

    def register(
        self,
        city_code: str,
        referential: GeodeticReferential,
        boundaries: Optional[Iterable[BaseGeometry]] = None,
    ) -> None:
        rings = matching_boundaries(referential.origin, boundaries or ())
        self._raw[city_code] = raw_limits(rings, referential)
        self._sampled.pop(city_code, None)
        logger.debug("City %s matched %d boundary rings", city_code, len(rings))

    def limits(self, city_code: str) -> np.ndarray:
        """Envelope distances of ``city_code`` at every grid clock (float32, grid width)."""
        sampled = self._sampled.get(city_code)
        if sampled is None:
            sampled = self._sample(city_code)
            self._sampled[city_code] = sampled
        return sampled

    def _sample(self, city_code: str) -> np.ndarray:
        clocks = self._grid.clocks
        raw_clocks, raw_distances = self._raw.get(city_code, (np.empty(0), np.empty(0)))
        if raw_clocks.size == 0:
            return np.full(clocks.shape, UNBOUNDED_DISTANCE, dtype=np.float32)
        class_clocks, class_distances = envelope(raw_clocks, raw_distances, self._grid.step)
        function = interpolator(class_clocks, class_distances)
        return np.asarray(function(clocks.astype(float)), dtype=np.float32)
