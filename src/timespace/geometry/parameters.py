"""Global parameter bus shared by the geometry orchestrators.

Every parameter is a property; writing an accepted value stores it and fires
``(name, value)`` synchronously to the subscribers of that name, in
registration order.  Out-of-range writes are ignored (logged at DEBUG) so an
interactive control can never push the bus into an invalid state.  The
``update`` method and the mapping/YAML loaders are strict instead and raise
``ValueError`` naming the offending field.
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import numpy as np
import yaml

from timespace.geodesy.constants import DEG2RAD, EARTH_RADIUS_METERS, RAD2DEG, TWO_PI

logger = logging.getLogger(__name__)

ParameterCallback = Callable[[str, object], None]


class Projection(IntEnum):
    NONE = 0
    EQUIRECTANGULAR = 1
    MERCATOR = 2
    WINKEL = 3
    ECKERT = 4
    VAN_DER_GRINTEN = 5
    CONIC_EQUIDISTANT = 6


class ConeShape(IntEnum):
    BASED_ON_ROAD = 0
    BASED_ON_FASTEST_TERRESTRIAL_MODE = 1
    COMPLEX = 2


@dataclass(frozen=True)
class ReferencePoint:
    """Origin of the flat projections (radians, radians, metres)."""

    latitude: float = 0.0
    longitude: float = 0.0
    height: float = 0.0

    def as_array(self) -> np.ndarray:
        # shader convention: longitude first
        return np.array([self.longitude, self.latitude, self.height], dtype=np.float32)


EVENT_NAMES: Tuple[str, ...] = (
    "height_ratio",
    "intruded_height_ratio",
    "cone_step",
    "tween_timing",
    "reference_equirectangular",
    "three_earth_radius",
    "projection_begin",
    "projection_end",
    "projection_percent",
    "year",
    "tick",
    "points_per_line",
    "cones_shape",
    "z_coeff",
)

_PARALLEL_TOLERANCE = 1e-8


def _coerce_enum(enum_cls, value, field_name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        if isinstance(value, str):
            return enum_cls[value.strip().upper()]
        return enum_cls(int(value))
    except (KeyError, ValueError) as exc:
        raise ValueError(f"{field_name} must be one of {[member.name for member in enum_cls]}") from exc


class ParameterBus:
    """Observable store of the global rendering parameters."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Tuple[str, ParameterCallback]]] = {name: [] for name in EVENT_NAMES}
        self._cone_step = 15.0 * DEG2RAD
        self._height_ratio = 0.01
        self._intruded_height_ratio = 0.6
        self._three_earth_radius = 100.0
        self._tween_timing = 1000.0
        self._reference = ReferencePoint()
        self._standard_parallel_1 = 30.0 * DEG2RAD
        self._standard_parallel_2 = 45.0 * DEG2RAD
        self._projection_begin = Projection.NONE
        self._projection_end = Projection.NONE
        self._projection_percent = 0.0
        self._year = 1980
        self._cones_shape = ConeShape.BASED_ON_ROAD
        self._z_coeff = 1.0
        self._points_per_line = 50

    # ------------------------------------------------------------ listeners
    def subscribe(
        self,
        names: Union[str, Iterable[str]],
        callback: ParameterCallback,
        token: Optional[str] = None,
    ) -> str:
        """Register ``callback`` for the given event names; returns the subscription token.

        ``names`` is either an iterable or a whitespace separated string.
        Unknown names are ignored.
        """
        token = token or str(uuid.uuid4())
        if isinstance(names, str):
            names = names.split()
        for name in names:
            if name in self._listeners:
                self._listeners[name].append((token, callback))
            else:
                logger.debug("Ignoring subscription to unknown parameter %r", name)
        return token

    def unsubscribe(self, token: str) -> None:
        for name, entries in self._listeners.items():
            self._listeners[name] = [entry for entry in entries if entry[0] != token]

    def _fire(self, name: str, value: object) -> None:
        for _, callback in list(self._listeners[name]):
            callback(name, value)

    def tick(self) -> None:
        self._fire("tick", 0)

    # ----------------------------------------------------------- constants
    @property
    def earth_radius(self) -> float:
        return EARTH_RADIUS_METERS

    @property
    def extruded_height(self) -> float:
        return EARTH_RADIUS_METERS * self._intruded_height_ratio

    @property
    def hat_height(self) -> float:
        return EARTH_RADIUS_METERS * self._height_ratio

    # ---------------------------------------------------------- parameters
    @property
    def cone_step(self) -> float:
        return self._cone_step

    @cone_step.setter
    def cone_step(self, value: float) -> None:
        self._assign("cone_step", float(value))

    @property
    def height_ratio(self) -> float:
        return self._height_ratio

    @height_ratio.setter
    def height_ratio(self, value: float) -> None:
        self._assign("height_ratio", float(value))

    @property
    def intruded_height_ratio(self) -> float:
        return self._intruded_height_ratio

    @intruded_height_ratio.setter
    def intruded_height_ratio(self, value: float) -> None:
        self._assign("intruded_height_ratio", float(value))

    @property
    def three_earth_radius(self) -> float:
        return self._three_earth_radius

    @three_earth_radius.setter
    def three_earth_radius(self, value: float) -> None:
        self._assign("three_earth_radius", float(value))

    @property
    def tween_timing(self) -> float:
        return self._tween_timing

    @tween_timing.setter
    def tween_timing(self, value: float) -> None:
        self._assign("tween_timing", float(value))

    @property
    def reference_equirectangular(self) -> ReferencePoint:
        return self._reference

    @reference_equirectangular.setter
    def reference_equirectangular(self, value: Union[ReferencePoint, Mapping[str, float]]) -> None:
        """Accept a full :class:`ReferencePoint` or a partial mapping of its fields."""
        if isinstance(value, ReferencePoint):
            self._reference = value
        else:
            known = {key: float(value[key]) for key in ("latitude", "longitude", "height") if key in value}
            if not known:
                return
            self._reference = ReferencePoint(
                latitude=known.get("latitude", self._reference.latitude),
                longitude=known.get("longitude", self._reference.longitude),
                height=known.get("height", self._reference.height),
            )
        self._fire("reference_equirectangular", self._reference)

    @property
    def reference_equirectangular_array(self) -> np.ndarray:
        return self._reference.as_array()

    @property
    def standard_parallel_1(self) -> float:
        return self._standard_parallel_1

    @standard_parallel_1.setter
    def standard_parallel_1(self, value: float) -> None:
        self.set_standard_parallels(float(value), self._standard_parallel_2)

    @property
    def standard_parallel_2(self) -> float:
        return self._standard_parallel_2

    @standard_parallel_2.setter
    def standard_parallel_2(self, value: float) -> None:
        self.set_standard_parallels(self._standard_parallel_1, float(value))

    def set_standard_parallels(self, first: float, second: float) -> bool:
        """Set both conic standard parallels at once; fires ``reference_equirectangular``."""
        if not self._parallels_valid(first, second):
            logger.debug("Ignoring invalid standard parallels %s / %s", first, second)
            return False
        self._standard_parallel_1 = first
        self._standard_parallel_2 = second
        self._fire("reference_equirectangular", self._reference)
        return True

    @property
    def projection_begin(self) -> Projection:
        return self._projection_begin

    @projection_begin.setter
    def projection_begin(self, value: Union[Projection, int, str]) -> None:
        self._assign("projection_begin", _coerce_enum(Projection, value, "projection_begin"))

    @property
    def projection_end(self) -> Projection:
        return self._projection_end

    @projection_end.setter
    def projection_end(self, value: Union[Projection, int, str]) -> None:
        self._assign("projection_end", _coerce_enum(Projection, value, "projection_end"))

    @property
    def projection_percent(self) -> float:
        return self._projection_percent

    @projection_percent.setter
    def projection_percent(self, value: float) -> None:
        self._assign("projection_percent", float(value))

    @property
    def year(self) -> int:
        return self._year

    @year.setter
    def year(self, value: Union[int, str]) -> None:
        self._assign("year", int(value))

    @property
    def cones_shape(self) -> ConeShape:
        return self._cones_shape

    @cones_shape.setter
    def cones_shape(self, value: Union[ConeShape, int, str]) -> None:
        self._assign("cones_shape", _coerce_enum(ConeShape, value, "cones_shape"))

    @property
    def z_coeff(self) -> float:
        return self._z_coeff

    @z_coeff.setter
    def z_coeff(self, value: float) -> None:
        self._assign("z_coeff", float(value))

    @property
    def points_per_line(self) -> int:
        return self._points_per_line

    @points_per_line.setter
    def points_per_line(self, value: int) -> None:
        self._assign("points_per_line", int(value))

    # ---------------------------------------------------------- validation
    def _parallels_valid(self, first: float, second: float) -> bool:
        return (
            abs(first) < math.pi / 2
            and abs(second) < math.pi / 2
            and abs(first - second) > _PARALLEL_TOLERANCE
        )

    @staticmethod
    def accepts(name: str, value: object) -> bool:
        """Whether ``value`` (already coerced) is in range for parameter ``name``."""
        if name == "cone_step":
            return DEG2RAD <= value < TWO_PI
        if name == "projection_percent":
            return 0.0 <= value <= 100.0
        if name == "points_per_line":
            return 1 <= value <= 200
        if name in ("three_earth_radius", "z_coeff"):
            return value > 0
        if name in ("height_ratio", "intruded_height_ratio", "tween_timing"):
            return value >= 0
        return True

    def _assign(self, name: str, value: object) -> None:
        if not self.accepts(name, value):
            logger.debug("Ignoring out-of-range %s=%r", name, value)
            return
        setattr(self, f"_{name}", value)
        self._fire(name, value)

    def update(self, **values: object) -> None:
        """Strictly set several parameters; raises ``ValueError`` on unknown or invalid values."""
        for name, raw in values.items():
            if name in ("standard_parallel_1", "standard_parallel_2", "reference_equirectangular"):
                setattr(self, name, raw)
                if name.startswith("standard_parallel") and getattr(self, name) != float(raw):
                    raise ValueError(f"{name} must be within (-pi/2, pi/2) and differ from the other parallel")
                continue
            if name not in EVENT_NAMES or name == "tick":
                raise ValueError(f"Unknown parameter {name!r}")
            coerced = self._coerce(name, raw)
            if not self.accepts(name, coerced):
                raise ValueError(f"{name}={raw!r} is out of range")
            setattr(self, name, coerced)

    @staticmethod
    def _coerce(name: str, raw: object) -> object:
        if name in ("projection_begin", "projection_end"):
            return _coerce_enum(Projection, raw, name)
        if name == "cones_shape":
            return _coerce_enum(ConeShape, raw, name)
        if name in ("year", "points_per_line"):
            return int(raw)
        return float(raw)

    # ------------------------------------------------------------- config
    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> "ParameterBus":
        """Build a bus from a configuration mapping (angles given in degrees)."""
        bus = cls()
        values = dict(data)
        first = values.pop("standard_parallel_1_degrees", None)
        second = values.pop("standard_parallel_2_degrees", None)
        if first is not None or second is not None:
            first_rad = float(first) * DEG2RAD if first is not None else bus.standard_parallel_1
            second_rad = float(second) * DEG2RAD if second is not None else bus.standard_parallel_2
            if not bus.set_standard_parallels(first_rad, second_rad):
                raise ValueError("standard parallels must be within (-90, 90) degrees and distinct")
        reference = values.pop("reference_equirectangular", None)
        if reference is not None:
            if not isinstance(reference, Mapping):
                raise TypeError("'reference_equirectangular' must be a mapping")
            bus.reference_equirectangular = ReferencePoint(
                latitude=float(reference.get("latitude_degrees", 0.0)) * DEG2RAD,
                longitude=float(reference.get("longitude_degrees", 0.0)) * DEG2RAD,
                height=float(reference.get("height", 0.0)),
            )
        cone_step = values.pop("cone_step_degrees", None)
        if cone_step is not None:
            values["cone_step"] = float(cone_step) * DEG2RAD
        bus.update(**values)
        return bus

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ParameterBus":
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Parameter YAML not found at {config_path}")
        with config_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if not isinstance(data, Mapping):
            raise TypeError("Parameter YAML must contain a mapping at the top level")
        return cls.from_mapping(data)

    def to_mapping(self) -> Dict[str, object]:
        return {
            "cone_step_degrees": self._cone_step * RAD2DEG,
            "height_ratio": self._height_ratio,
            "intruded_height_ratio": self._intruded_height_ratio,
            "three_earth_radius": self._three_earth_radius,
            "tween_timing": self._tween_timing,
            "reference_equirectangular": {
                "latitude_degrees": self._reference.latitude * RAD2DEG,
                "longitude_degrees": self._reference.longitude * RAD2DEG,
                "height": self._reference.height,
            },
            "standard_parallel_1_degrees": self._standard_parallel_1 * RAD2DEG,
            "standard_parallel_2_degrees": self._standard_parallel_2 * RAD2DEG,
            "projection_begin": self._projection_begin.name,
            "projection_end": self._projection_end.name,
            "projection_percent": self._projection_percent,
            "year": self._year,
            "cones_shape": self._cones_shape.name,
            "z_coeff": self._z_coeff,
            "points_per_line": self._points_per_line,
        }

    def to_yaml(self, path: str | Path) -> None:
        dest = Path(path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with dest.open("w", encoding="utf-8") as handle:
            yaml.safe_dump(self.to_mapping(), handle, sort_keys=True)


__all__ = ["ConeShape", "EVENT_NAMES", "ParameterBus", "ParameterCallback", "Projection", "ReferencePoint"]
