"""Renderable entities produced by the orchestrators.

Entities hold data only.  A rendering layer that wants to display them
attaches a :class:`RenderTarget` adapter; without one the last computed
buffers stay available on the entity itself.
"""

from __future__ import annotations

from typing import Callable, Dict, Mapping, Optional, Protocol

import numpy as np

from timespace.geodesy.referential import LatLonH


class RenderTarget(Protocol):
    def set_geometry(self, positions: np.ndarray, uvs: Optional[np.ndarray]) -> None:
        ...

    def set_index(self, index: np.ndarray) -> None:
        ...

    def set_draw_range(self, count: int) -> None:
        ...

    def dispose(self) -> None:
        ...


class _Entity:
    def __init__(self) -> None:
        self._target: Optional[RenderTarget] = None
        self.positions = np.empty(0, dtype=np.float32)
        self.uvs: Optional[np.ndarray] = None
        self.index: Optional[np.ndarray] = None
        self.draw_count = 0

    @property
    def target(self) -> Optional[RenderTarget]:
        return self._target

    def attach(self, target: RenderTarget) -> None:
        self._target = target
        if self.positions.size:
            target.set_geometry(self.positions, self.uvs)
            if self.index is not None:
                target.set_index(self.index)
            target.set_draw_range(self.draw_count)

    def dispose(self) -> None:
        if self._target is not None:
            self._target.dispose()
            self._target = None


class ConeEntity(_Entity):
    """Cone of one city.

    Toggling :attr:`apply_limits` only marks the owning orchestrator dirty;
    the crop is applied on a later coalesced tick.
    """

    def __init__(
        self,
        city_code: str,
        position: LatLonH,
        other_properties: Optional[Mapping[str, object]] = None,
        on_limits_changed: Optional[Callable[[], None]] = None,
    ) -> None:
        super().__init__()
        self._city_code = city_code
        self._position = position
        self.other_properties: Dict[str, object] = dict(other_properties or {})
        self._apply_limits = True
        self._on_limits_changed = on_limits_changed

    @property
    def city_code(self) -> str:
        return self._city_code

    @property
    def position(self) -> LatLonH:
        return self._position

    @property
    def apply_limits(self) -> bool:
        return self._apply_limits

    @apply_limits.setter
    def apply_limits(self, value: bool) -> None:
        value = bool(value)
        if value != self._apply_limits:
            self._apply_limits = value
            if self._on_limits_changed is not None:
                self._on_limits_changed()

    def set_geometry(self, positions: np.ndarray, uvs: np.ndarray, index: np.ndarray) -> None:
        self.positions = positions
        self.uvs = uvs
        self.index = index
        index_changed = self.draw_count != index.size
        self.draw_count = int(index.size)
        if self._target is None:
            return
        self._target.set_geometry(positions, uvs)
        if index_changed:
            self._target.set_index(index)
            self._target.set_draw_range(self.draw_count)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"ConeEntity({self._city_code!r}, apply_limits={self._apply_limits})"


class LineEntity(_Entity):
    """Arc between two cities for one transport mode.

    ``years`` maps every year the mode serves the pair to the speed ratio
    ``fastest speed / mode speed`` of that year.  The line kernel has no
    crop channel, so :attr:`apply_limits` is only stored.
    """

    def __init__(
        self,
        begin: str,
        end: str,
        transport_name: str,
        opening: float,
        years: Mapping[int, float],
    ) -> None:
        super().__init__()
        self._begin = begin
        self._end = end
        self._transport_name = transport_name
        self.opening = float(opening)
        self.years: Dict[int, float] = {int(year): float(ratio) for year, ratio in years.items()}
        self.ratio = 0.0
        self._apply_limits = True

    @property
    def begin(self) -> str:
        return self._begin

    @property
    def end(self) -> str:
        return self._end

    @property
    def transport_name(self) -> str:
        return self._transport_name

    @property
    def apply_limits(self) -> bool:
        return self._apply_limits

    @apply_limits.setter
    def apply_limits(self, value: bool) -> None:
        self._apply_limits = bool(value)

    def is_available(self, year: int) -> bool:
        ratio = self.years.get(int(year))
        if ratio is None:
            return False
        self.ratio = ratio
        return True

    def set_geometry(self, positions: np.ndarray, point_count: int) -> None:
        """Display ``point_count`` vertices, or nothing when ``point_count`` is zero."""
        self.draw_count = int(point_count)
        if point_count:
            self.positions = positions
        if self._target is None:
            return
        if point_count:
            self._target.set_geometry(positions, None)
        self._target.set_draw_range(self.draw_count)

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"LineEntity({self._begin!r}->{self._end!r}, {self._transport_name!r})"
