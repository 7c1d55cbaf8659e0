"""Cone and line geometry generation driven by the parameter bus."""

from .angle_profile import AngleProfileSolver, complex_profile, fill_wide_gaps
from .boundary_limits import UNBOUNDED_DISTANCE, BoundaryLimitSolver, load_boundaries, matching_boundaries
from .clock_grid import APEX_SENTINEL, ClockGrid
from .cone_angles import ConeAngleItem, ConeAngles, cone_angles_for_year
from .cone_orchestrator import ConeOrchestrator
from .entities import ConeEntity, LineEntity, RenderTarget
from .executor import ExecutorFactory, ExecutorInitError, KernelExecutor, TextureInput
from .line_orchestrator import LineOrchestrator, arc_height
from .orchestrator import GeometryOrchestrator, OrchestratorState
from .parameters import ConeShape, ParameterBus, Projection, ReferencePoint

__all__ = [
    "APEX_SENTINEL",
    "AngleProfileSolver",
    "BoundaryLimitSolver",
    "ClockGrid",
    "ConeAngleItem",
    "ConeAngles",
    "ConeEntity",
    "ConeOrchestrator",
    "ConeShape",
    "ExecutorFactory",
    "ExecutorInitError",
    "GeometryOrchestrator",
    "KernelExecutor",
    "LineEntity",
    "LineOrchestrator",
    "OrchestratorState",
    "ParameterBus",
    "Projection",
    "ReferencePoint",
    "RenderTarget",
    "TextureInput",
    "UNBOUNDED_DISTANCE",
    "arc_height",
    "complex_profile",
    "cone_angles_for_year",
    "fill_wide_gaps",
    "load_boundaries",
    "matching_boundaries",
]
