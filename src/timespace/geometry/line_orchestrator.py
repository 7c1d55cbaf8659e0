"""Batched computation of the Bézier arcs joining connected cities."""

from __future__ import annotations

import logging
import math
from typing import Dict, List

import numpy as np

from timespace.fusion.domain_types import CityTransportLookup
from timespace.geodesy.referential import DegenerateReferentialError, LatLonH, great_circle_point

from .entities import LineEntity
from .executor import ExecutorFactory, KernelExecutor, TextureInput
from .orchestrator import GeometryOrchestrator, OrchestratorState
from .parameters import ParameterBus

logger = logging.getLogger(__name__)

DEFAULT_COEFFICIENT = 1.25


def arc_height(ratio: float, theta: float, radius: float) -> float:
    """Height of the middle control point of an arc of opening ``theta``.

    The arc length grows with ``ratio`` (fastest speed / mode speed), so
    slower modes get higher arcs.
    """
    semi_theta = theta / 2.0
    sin_semi = math.sin(semi_theta)
    return (math.cos(semi_theta) + math.sqrt(abs(ratio * ratio - sin_semi * sin_semi))) * radius


def control_points(begin: LatLonH, end: LatLonH) -> List[np.ndarray]:
    """Origin, 1/3, 2/3 of the great circle and destination, as ``[lon, lat, height]``."""
    points = [
        begin,
        great_circle_point(begin, end, 1.0 / 3.0),
        great_circle_point(begin, end, 2.0 / 3.0),
        end,
    ]
    return [np.array([point.longitude, point.latitude, point.height], dtype=np.float32) for point in points]


class LineOrchestrator(GeometryOrchestrator):
    """Keeps one arc per (origin, destination, mode) in sync with the parameter bus.

    Arcs of a mode that does not serve the pair in the selected year get a
    zero draw range.
    """

    shader_id = "lineMeshShader"
    channels = {
        "u_tSample": "R32F",
        "u_PControls0": "RGB32F",
        "u_PControls1": "RGB32F",
        "u_PControls2": "RGB32F",
        "u_PControls3": "RGB32F",
        "u_height": "R32F",
    }
    output_count = 1
    tracked_events = (
        "height_ratio",
        "intruded_height_ratio",
        "reference_equirectangular",
        "three_earth_radius",
        "projection_begin",
        "projection_end",
        "projection_percent",
        "year",
        "points_per_line",
    )

    def __init__(
        self,
        bus: ParameterBus,
        executor_factory: ExecutorFactory,
        coefficient: float = DEFAULT_COEFFICIENT,
    ) -> None:
        self._coefficient = float(coefficient)
        self._lines: List[LineEntity] = []
        self._hidden: set[int] = set()
        self._samples = np.zeros(0, dtype=np.float32)
        self._heights = np.zeros(0, dtype=np.float32)
        super().__init__(bus, executor_factory)

    @property
    def coefficient(self) -> float:
        return self._coefficient

    @coefficient.setter
    def coefficient(self, value: float) -> None:
        self._coefficient = float(value)
        for row, line in enumerate(self._lines):
            self._heights[row] = arc_height(line.ratio, line.opening, self._bus.earth_radius)
        if self._state is OrchestratorState.READY and self._lines:
            self._compute()

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    @property
    def heights(self) -> np.ndarray:
        return self._heights

    # --------------------------------------------------------------- build
    def _build(self, executor: KernelExecutor, lookup: CityTransportLookup, **extra) -> List[LineEntity]:
        self._lines = []
        self._hidden = set()
        controls: Dict[int, List[np.ndarray]] = {0: [], 1: [], 2: [], 3: []}
        for origin, city_transport in lookup.items():
            begin = city_transport.referential.origin
            for destination, modes in city_transport.destinations.items():
                if destination not in lookup:
                    continue
                end = lookup[destination].referential.origin
                try:
                    points = control_points(begin, end)
                except DegenerateReferentialError as exc:
                    logger.warning("No arc from %s to %s: %s", origin, destination, exc)
                    continue
                opening = city_transport.referential.central_angle_to(end)
                for transport_name, speeds in modes.items():
                    ratios = {
                        year: lookup.speed_max_per_year.get(year, speed) / speed
                        for year, speed in speeds.items()
                    }
                    self._lines.append(LineEntity(origin, destination, transport_name, opening, ratios))
                    for slot, point in enumerate(points):
                        controls[slot].append(point)

        height = len(self._lines)
        self._heights = np.zeros(height, dtype=np.float32)
        if not height:
            logger.warning("No connected city pair to draw lines for")
            return []
        executor.update_textures(
            {
                f"u_PControls{slot}": TextureInput(np.vstack(points).ravel(), 1, height)
                for slot, points in controls.items()
            }
        )
        self._regenerate_samples()
        self._update_year()
        self._compute()
        return list(self._lines)

    def _discard(self) -> None:
        self._lines = []
        self._hidden = set()
        self._heights = np.zeros(0, dtype=np.float32)

    # ------------------------------------------------------------- events
    def _handle(self, name: str, value: object) -> None:
        if not self._lines:
            return
        if name == "points_per_line":
            self._regenerate_samples()
            self._update_year()
            self._compute()
        elif name == "year":
            self._update_year()
            self._compute()
        else:
            self._compute()

    # -------------------------------------------------------------- steps
    def _regenerate_samples(self) -> None:
        count = self._bus.points_per_line
        self._samples = np.append(np.arange(count, dtype=float) / count, 1.0).astype(np.float32)
        self.executor.update_textures(
            {"u_tSample": TextureInput(self._samples, self._samples.size, 1)}
        )

    def _update_year(self) -> None:
        year = self._bus.year
        radius = self._bus.earth_radius
        self._hidden = set()
        for row, line in enumerate(self._lines):
            if line.is_available(year):
                self._heights[row] = arc_height(line.ratio, line.opening, radius)
            else:
                self._hidden.add(row)

    def _uniforms(self) -> Dict[str, object]:
        bus = self._bus
        return {
            "extrudedHeight": bus.extruded_height,
            "threeRadius": bus.three_earth_radius,
            "earthRadius": bus.earth_radius,
            "referenceEquiRectangular": bus.reference_equirectangular_array,
            "representationInit": int(bus.projection_begin),
            "representationEnd": int(bus.projection_end),
            "percentRepresentation": bus.projection_percent,
            "standardParallel1": bus.standard_parallel_1,
            "standardParallel2": bus.standard_parallel_2,
            "coefficient": self._coefficient,
        }

    def _compute(self) -> None:
        executor = self.executor
        width = self._samples.size
        height = len(self._lines)
        executor.update_uniforms(self._uniforms())
        executor.update_textures({"u_height": TextureInput(self._heights, 1, height)})
        positions = np.asarray(executor.calculate(width, height)[0], dtype=np.float32)
        positions = positions.reshape(height, width * 4)
        for row, line in enumerate(self._lines):
            line.set_geometry(positions[row], 0 if row in self._hidden else width)
