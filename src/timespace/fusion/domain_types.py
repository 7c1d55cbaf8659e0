"""Core dataclasses shared across the fusion package."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple

from timespace.geodesy.constants import RAD2DEG
from timespace.geodesy.referential import GeodeticReferential, LatLonH

ROAD_MODE_NAME = "Road"


@dataclass(frozen=True)
class NetworkEdge:
    """Directed connection between two cities served by one transport mode."""

    origin: str
    destination: str
    transport_mode: str
    year_begin: Optional[int] = None
    year_end: Optional[int] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.origin}->{self.destination} [{self.transport_mode}]"


@dataclass(frozen=True)
class City:
    """A city as read from the cities table, joined with its populations and edges."""

    code: str
    position: LatLonH
    radius: Optional[float] = None
    populations: Dict[str, object] = field(default_factory=dict)
    edges: Tuple[NetworkEdge, ...] = ()
    properties: Dict[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class TransportMode:
    """Transport mode definition with its (year, km/h) speed samples sorted by year."""

    code: str
    name: str
    year_begin: int
    year_end: Optional[int] = None
    speeds: Tuple[Tuple[int, float], ...] = ()
    terrestrial: bool = True

    @property
    def is_road(self) -> bool:
        return self.name == ROAD_MODE_NAME


@dataclass(frozen=True)
class DirectionRecord:
    """One timed, bearing-tagged direction from an origin city."""

    clock: float
    elevation: float
    speed: float
    year: int
    transport: str
    destination: Optional[str] = None

    @property
    def clock_degree(self) -> float:
        return self.clock * RAD2DEG

    @property
    def elevation_degree(self) -> float:
        return self.elevation * RAD2DEG


# mode name -> year -> records sorted by clock
TransportBuckets = Dict[str, Dict[int, List[DirectionRecord]]]
# destination code -> mode name -> year -> speed
DestinationSpeeds = Dict[str, Dict[str, Dict[int, float]]]


@dataclass(frozen=True)
class CityTransport:
    """Everything the geometry layer needs about one origin city."""

    referential: GeodeticReferential
    transports: TransportBuckets
    destinations: DestinationSpeeds
    city: City

    def records(self, transport: str, year: int) -> List[DirectionRecord]:
        return self.transports.get(transport, {}).get(int(year), [])


@dataclass(frozen=True)
class CityTransportLookup(Mapping):
    """Read-only mapping of origin city code to :class:`CityTransport`.

    Besides the per-city data it keeps the fastest speed per year, the fused
    transport modes (by name) and the ``[min_year, max_year]`` window.
    """

    cities: Dict[str, CityTransport] = field(default_factory=dict)
    speed_max_per_year: Dict[int, float] = field(default_factory=dict)
    modes: Dict[str, TransportMode] = field(default_factory=dict)
    min_year: Optional[int] = None
    max_year: Optional[int] = None

    def __getitem__(self, city_code: str) -> CityTransport:
        return self.cities[city_code]

    def __iter__(self) -> Iterator[str]:
        return iter(self.cities)

    def __len__(self) -> int:
        return len(self.cities)

    def terrestrial_mode_names(self) -> set[str]:
        return {name for name, mode in self.modes.items() if mode.terrestrial}
