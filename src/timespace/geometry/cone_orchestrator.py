"""Batched computation of the per-city cone meshes."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

import numpy as np
from shapely.geometry.base import BaseGeometry

from timespace.fusion.domain_types import CityTransport, CityTransportLookup

from .angle_profile import DEFAULT_DISCRIMINANT, AngleProfileSolver
from .boundary_limits import BoundaryLimitSolver
from .clock_grid import ClockGrid
from .cone_angles import cone_angles_for_year
from .entities import ConeEntity
from .executor import ExecutorFactory, KernelExecutor, TextureInput
from .orchestrator import GeometryOrchestrator, OrchestratorState
from .parameters import ConeShape, ParameterBus

logger = logging.getLogger(__name__)

# Ticks to wait before applying accumulated apply_limits toggles.
TICK_COALESCE_THRESHOLD = 10


class ConeOrchestrator(GeometryOrchestrator):
    """Keeps one cone per city in sync with the parameter bus.

    Per event:

    * ``cone_step``: new grid, angle and boundary resampling, full compute
    * ``year``: angle profiles of the new year, compute
    * ``cones_shape``: angle cache dropped, profiles recomputed, compute
    * ``tick``: pending apply_limits toggles flushed once more than
      ``TICK_COALESCE_THRESHOLD`` ticks went by
    * anything else: compute only
    """

    shader_id = "coneMeshShader"
    channels = {
        "u_clocks": "R32F",
        "u_alphas": "R32F",
        "u_boundaryLimits": "R32F",
        "u_summits": "RGB32F",
        "u_ned2ECEF0s": "RGB32F",
        "u_ned2ECEF1s": "RGB32F",
        "u_ned2ECEF2s": "RGB32F",
        "u_withLimits": "R32F",
    }
    output_count = 3
    tracked_events = (
        "height_ratio",
        "intruded_height_ratio",
        "cone_step",
        "reference_equirectangular",
        "three_earth_radius",
        "projection_begin",
        "projection_end",
        "projection_percent",
        "year",
        "tick",
        "cones_shape",
        "z_coeff",
    )

    def __init__(
        self,
        bus: ParameterBus,
        executor_factory: ExecutorFactory,
        discriminant: float = DEFAULT_DISCRIMINANT,
    ) -> None:
        self._grid = ClockGrid(bus.cone_step)
        self._angles = AngleProfileSolver(self._grid, bus.cones_shape, discriminant)
        self._limits = BoundaryLimitSolver(self._grid)
        self._cones: List[ConeEntity] = []
        self._transports: Dict[str, CityTransport] = {}
        self._terrestrial_modes: set[str] = set()
        self._dirty_limits = False
        self._tick_count = 0
        super().__init__(bus, executor_factory)

    @property
    def grid(self) -> ClockGrid:
        return self._grid

    @property
    def angle_solver(self) -> AngleProfileSolver:
        return self._angles

    @property
    def limit_solver(self) -> BoundaryLimitSolver:
        return self._limits

    @property
    def discriminant(self) -> float:
        return self._angles.discriminant

    @discriminant.setter
    def discriminant(self, value: float) -> None:
        self._angles.discriminant = value
        if self._state is OrchestratorState.READY:
            self._update_angles()
            self._compute()

    async def generate(
        self, lookup: CityTransportLookup, boundaries: Optional[Iterable[BaseGeometry]] = None
    ) -> List[ConeEntity]:
        """Build one cone per city of ``lookup``.

        ``boundaries`` are lon/lat polygons; a city is cropped by every
        boundary whose bounding box contains it.
        """
        return await super().generate(lookup, boundaries=boundaries)

    # --------------------------------------------------------------- build
    def _build(
        self,
        executor: KernelExecutor,
        lookup: CityTransportLookup,
        boundaries: Optional[Iterable[BaseGeometry]] = None,
    ) -> List[ConeEntity]:
        boundaries = list(boundaries or ())
        self._angles.clear()
        self._limits.clear()
        self._dirty_limits = False
        self._tick_count = 0
        self._terrestrial_modes = lookup.terrestrial_mode_names()
        self._transports = dict(lookup.items())
        self._cones = []

        summits, basis0, basis1, basis2 = [], [], [], []
        for city_code, city_transport in self._transports.items():
            referential = city_transport.referential
            self._limits.register(city_code, referential, boundaries)
            self._cones.append(
                ConeEntity(
                    city_code,
                    referential.origin,
                    other_properties={
                        "city": city_transport.city,
                        "transports": city_transport.transports,
                        "destinations": city_transport.destinations,
                    },
                    on_limits_changed=self._mark_limits_dirty,
                )
            )
            row0, row1, row2 = referential.basis_rows()
            summits.append(referential.summit)
            basis0.append(row0)
            basis1.append(row1)
            basis2.append(row2)

        height = len(self._cones)
        if height:
            executor.update_textures(
                {
                    "u_summits": TextureInput(np.vstack(summits).ravel(), 1, height),
                    "u_ned2ECEF0s": TextureInput(np.vstack(basis0).ravel(), 1, height),
                    "u_ned2ECEF1s": TextureInput(np.vstack(basis1).ravel(), 1, height),
                    "u_ned2ECEF2s": TextureInput(np.vstack(basis2).ravel(), 1, height),
                }
            )
            self._regenerate_grid()
            self._update_angles()
            self._update_limit_flags()
            self._compute()
        else:
            logger.warning("No city to build cones for")
        return list(self._cones)

    def _discard(self) -> None:
        self._cones = []
        self._transports = {}
        self._dirty_limits = False

    # ------------------------------------------------------------- events
    def _handle(self, name: str, value: object) -> None:
        if not self._cones:
            return
        if name == "cone_step":
            self._regenerate_grid()
            self._update_angles()
            self._update_limit_flags()
            self._compute()
        elif name == "year":
            self._update_angles()
            self._update_limit_flags()
            self._compute()
        elif name == "cones_shape":
            self._angles.policy = ConeShape(value)
            self._angles.clear()
            self._update_angles()
            self._update_limit_flags()
            self._compute()
        elif name == "tick":
            if self._dirty_limits and self._tick_count > TICK_COALESCE_THRESHOLD:
                logger.debug("Applying coalesced apply_limits changes")
                self._update_limit_flags()
                self._compute()
                self._tick_count = 0
                self._dirty_limits = False
            else:
                self._tick_count += 1
        else:
            self._compute()

    def _mark_limits_dirty(self) -> None:
        self._dirty_limits = True

    # -------------------------------------------------------------- steps
    def _regenerate_grid(self) -> None:
        self._grid = ClockGrid(self._bus.cone_step)
        self._angles.grid = self._grid
        self._limits.grid = self._grid
        width = self._grid.width
        limits = np.vstack([self._limits.limits(cone.city_code) for cone in self._cones])
        self.executor.update_textures(
            {
                "u_clocks": TextureInput(self._grid.clocks, width, 1),
                "u_boundaryLimits": TextureInput(limits.ravel(), width, len(self._cones)),
            }
        )
        logger.debug("Clock grid rebuilt with %d columns", width)

    def _update_angles(self) -> None:
        year = self._bus.year
        self._angles.policy = self._bus.cones_shape
        rows = []
        for cone in self._cones:
            row = self._angles.cached(cone.city_code, year)
            if row is None:
                angles = cone_angles_for_year(self._transports[cone.city_code], year, self._terrestrial_modes)
                row = self._angles.profile(cone.city_code, year, angles)
            rows.append(row)
        alphas = np.vstack(rows)
        self.executor.update_textures(
            {"u_alphas": TextureInput(alphas.ravel(), self._grid.width, len(self._cones))}
        )

    def _update_limit_flags(self) -> None:
        flags = np.array([1.0 if cone.apply_limits else 0.0 for cone in self._cones], dtype=np.float32)
        self.executor.update_textures({"u_withLimits": TextureInput(flags, 1, len(self._cones))})

    def _uniforms(self) -> Dict[str, object]:
        bus = self._bus
        return {
            "extrudedHeight": bus.extruded_height,
            "threeRadius": bus.three_earth_radius,
            "earthRadius": bus.earth_radius,
            "referenceEquiRectangular": bus.reference_equirectangular_array,
            "projectionInit": int(bus.projection_begin),
            "projectionEnd": int(bus.projection_end),
            "percentProjection": bus.projection_percent,
            "conesShape": int(bus.cones_shape),
            "standardParallel1": bus.standard_parallel_1,
            "standardParallel2": bus.standard_parallel_2,
            "zCoeff": bus.z_coeff,
        }

    def _compute(self) -> None:
        executor = self.executor
        width = self._grid.width
        height = len(self._cones)
        executor.update_uniforms(self._uniforms())
        begins, uvs, bases = executor.calculate(width, height)[:3]
        begins = np.asarray(begins, dtype=np.float32).reshape(height, width * 4)
        uvs = np.asarray(uvs, dtype=np.float32).reshape(height, width * 4)
        bases = np.asarray(bases, dtype=np.float32).reshape(height, width * 4)
        positions = np.hstack((begins, bases))
        doubled_uvs = np.hstack((uvs, uvs))
        index = self._grid.index
        for row, cone in enumerate(self._cones):
            cone.set_geometry(positions[row], doubled_uvs[row], index)
