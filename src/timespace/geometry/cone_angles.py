"""Per city and year slope data feeding the angle profile solver."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import AbstractSet, Dict, List

from timespace.fusion.domain_types import ROAD_MODE_NAME, CityTransport


@dataclass(frozen=True)
class ConeAngleItem:
    clock: float
    alpha: float


@dataclass(frozen=True)
class ConeAngles:
    """Slopes of one city for one year.

    ``items`` lists, sorted by clock, the directions served by a terrestrial
    mode faster than Road; when several such modes share a clock the
    smallest slope (fastest mode) wins.
    """

    road_alpha: float = 0.0
    fastest_terrestrial_alpha: float = 0.0
    items: List[ConeAngleItem] = field(default_factory=list)


def cone_angles_for_year(
    city_transport: CityTransport, year: int, terrestrial_modes: AbstractSet[str]
) -> ConeAngles:
    road_records = city_transport.records(ROAD_MODE_NAME, year)
    road_alpha = road_records[0].elevation if road_records else 0.0
    road_speed = road_records[0].speed if road_records else 0.0

    by_clock: Dict[float, float] = {}
    for transport in city_transport.transports:
        if transport == ROAD_MODE_NAME or transport not in terrestrial_modes:
            continue
        for record in city_transport.records(transport, year):
            if record.speed <= road_speed:
                continue
            current = by_clock.get(record.clock)
            if current is None or record.elevation < current:
                by_clock[record.clock] = record.elevation

    items = [ConeAngleItem(clock=clock, alpha=alpha) for clock, alpha in sorted(by_clock.items())]
    fastest = min((item.alpha for item in items), default=road_alpha)
    return ConeAngles(road_alpha=road_alpha, fastest_terrestrial_alpha=fastest, items=items)
