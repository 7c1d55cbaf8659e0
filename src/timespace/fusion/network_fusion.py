"""Relational fusion of the five input tables into a per-city transport lookup.

``fuse`` is a pure function: it takes the cities, populations, transport-mode
codes, transport-mode speeds and network tables as pandas DataFrames and
returns a :class:`CityTransportLookup`.

Steps
-----
1. Year window: ``min_year`` is the earliest edge ``yearBegin`` (never later
   than the current year); ``max_year`` is the latest speed sample year,
   pushed to the current year when an edge has no ``yearEnd``.
2. Each mode gets a per-year speed table over
   ``[max(yearBegin, min_year), max(yearEnd or current year, last sample)]``
   through :func:`extrapolator`; the fastest speed per year is tracked.
3. Each origin city gets a referential; every outgoing edge whose
   destination has a defined bearing yields one :class:`DirectionRecord`
   per year of its validity window where the mode has a speed.  The
   elevation is ``atan(sqrt((v_max / v)^2 - 1))``.
4. Years where a city has no Road record receive a Road baseline record at
   clock 0, so every city has a cone for every year Road exists.
5. Every (mode, year) bucket is sorted by clock.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import pandas as pd

from timespace.geodesy.referential import DegenerateReferentialError, GeodeticReferential, LatLonH

from .domain_types import (
    ROAD_MODE_NAME,
    City,
    CityTransport,
    CityTransportLookup,
    DestinationSpeeds,
    DirectionRecord,
    NetworkEdge,
    TransportBuckets,
    TransportMode,
)
from .extrapolation import speed_table
from .table_schema import normalize_code, optional_int

logger = logging.getLogger(__name__)

_TRUE_TOKENS = {"1", "true", "yes", "y", "t"}


def _clean_value(value: object) -> object:
    if isinstance(value, float) and math.isnan(value):
        return None
    return value


def _parse_flag(value: object, default: bool) -> bool:
    value = _clean_value(value)
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TOKENS
    return bool(value)


def elevation_from_speeds(max_speed: float, speed: float) -> float:
    """Slope angle of a direction travelled at ``speed`` when ``max_speed`` is possible."""
    ratio = max_speed / speed
    # ratio ~ 1 can land a hair below 1 through float rounding
    return math.atan(math.sqrt(max(ratio * ratio - 1.0, 0.0)))


# ------------------------------------------------------------------ builders
def build_transport_modes(
    mode_codes: pd.DataFrame, mode_speeds: pd.DataFrame
) -> Dict[str, TransportMode]:
    """Join the transport-mode definitions with their speed samples, keyed by mode code."""
    samples: Dict[str, List[Tuple[int, float]]] = defaultdict(list)
    for row in mode_speeds.itertuples(index=False):
        code = normalize_code(getattr(row, "transportModeCode"))
        year = optional_int(getattr(row, "year"))
        speed = _clean_value(getattr(row, "speedKPH"))
        if code is None or year is None or speed is None:
            continue
        speed = float(speed)
        if speed <= 0.0:
            logger.warning("Ignoring non-positive speed %s for mode %s in %d", speed, code, year)
            continue
        samples[code].append((year, speed))

    has_terrestrial = "terrestrial" in mode_codes.columns
    modes: Dict[str, TransportMode] = {}
    for record in mode_codes.to_dict(orient="records"):
        code = normalize_code(record.get("code"))
        year_begin = optional_int(record.get("yearBegin"))
        if code is None or year_begin is None:
            logger.warning("Skipping transport mode row without code or yearBegin: %s", record)
            continue
        name = str(_clean_value(record.get("name")) or code).strip()
        default_terrestrial = not name.lower().startswith("air")
        terrestrial = (
            _parse_flag(record.get("terrestrial"), default_terrestrial)
            if has_terrestrial
            else default_terrestrial
        )
        modes[code] = TransportMode(
            code=code,
            name=name,
            year_begin=year_begin,
            year_end=optional_int(record.get("yearEnd")),
            speeds=tuple(sorted(samples.get(code, []), key=lambda item: item[0])),
            terrestrial=terrestrial,
        )
    return modes


def build_edges(network: pd.DataFrame) -> List[NetworkEdge]:
    edges: List[NetworkEdge] = []
    for record in network.to_dict(orient="records"):
        origin = normalize_code(record.get("idOri"))
        destination = normalize_code(record.get("idDes"))
        transport_mode = normalize_code(record.get("transportMode"))
        if origin is None or destination is None or transport_mode is None:
            logger.warning("Skipping incomplete network row: %s", record)
            continue
        edges.append(
            NetworkEdge(
                origin=origin,
                destination=destination,
                transport_mode=transport_mode,
                year_begin=optional_int(record.get("yearBegin")),
                year_end=optional_int(record.get("yearEnd")),
            )
        )
    return edges


def _population_lookup(populations: pd.DataFrame) -> Dict[str, Dict[str, object]]:
    lookup: Dict[str, Dict[str, object]] = {}
    for record in populations.to_dict(orient="records"):
        code = normalize_code(record.get("cityCode"))
        if code is None:
            continue
        if code in lookup:
            logger.warning("Duplicated population row for city %s; keeping the first one.", code)
            continue
        lookup[code] = {
            str(key): _clean_value(value) for key, value in record.items() if key != "cityCode"
        }
    return lookup


def build_cities(
    cities: pd.DataFrame, populations: pd.DataFrame, edges: List[NetworkEdge]
) -> Dict[str, City]:
    """Join cities with their population series and outgoing edges."""
    population_by_city = _population_lookup(populations)
    edges_by_origin: Dict[str, List[NetworkEdge]] = defaultdict(list)
    for edge in edges:
        edges_by_origin[edge.origin].append(edge)

    reserved = {"cityCode", "latitude", "longitude", "radius", "height"}
    result: Dict[str, City] = {}
    for record in cities.to_dict(orient="records"):
        code = normalize_code(record.get("cityCode"))
        latitude = _clean_value(record.get("latitude"))
        longitude = _clean_value(record.get("longitude"))
        if code is None or latitude is None or longitude is None:
            logger.warning("Skipping city row without code or coordinates: %s", record)
            continue
        radius = _clean_value(record.get("radius"))
        height = _clean_value(record.get("height")) or 0.0
        result[code] = City(
            code=code,
            position=LatLonH.from_degrees(float(latitude), float(longitude), float(height)),
            radius=float(radius) if radius is not None else None,
            populations=population_by_city.get(code, {}),
            edges=tuple(edges_by_origin.get(code, [])),
            properties={
                str(key): _clean_value(value) for key, value in record.items() if key not in reserved
            },
        )
    return result


# ---------------------------------------------------------------- year logic
def year_window(
    modes: Dict[str, TransportMode], edges: List[NetworkEdge], current_year: int
) -> Tuple[int, int]:
    begins = [edge.year_begin for edge in edges if edge.year_begin is not None]
    min_year = min([current_year, *begins])
    max_year = max((year for mode in modes.values() for year, _ in mode.speeds), default=0)
    if any(edge.year_end is None for edge in edges):
        max_year = max(max_year, current_year)
    return min_year, max_year


def build_speed_tables(
    modes: Dict[str, TransportMode], min_year: int, current_year: int
) -> Tuple[Dict[str, Dict[int, float]], Dict[int, float]]:
    """Per-mode per-year speeds and the fastest speed per year."""
    tables: Dict[str, Dict[int, float]] = {}
    speed_max_per_year: Dict[int, float] = {}
    for code, mode in modes.items():
        if not mode.speeds:
            logger.warning("Transport mode %s (%s) has no speed samples; it is ignored.", code, mode.name)
            tables[code] = {}
            continue
        first_year = max(mode.year_begin, min_year)
        last_sample_year = mode.speeds[-1][0]
        last_year = max(mode.year_end if mode.year_end is not None else current_year, last_sample_year)
        table = speed_table(mode.speeds, first_year, last_year)
        for year, speed in table.items():
            if speed > speed_max_per_year.get(year, float("-inf")):
                speed_max_per_year[year] = speed
        tables[code] = table
    return tables, speed_max_per_year


# ---------------------------------------------------------------------- fuse
def fuse(
    cities: pd.DataFrame,
    populations: pd.DataFrame,
    mode_codes: pd.DataFrame,
    mode_speeds: pd.DataFrame,
    network: pd.DataFrame,
    *,
    current_year: Optional[int] = None,
) -> CityTransportLookup:
    """Fuse the five input tables into a :class:`CityTransportLookup`."""
    current_year = int(current_year) if current_year is not None else datetime.now().year

    modes = build_transport_modes(mode_codes, mode_speeds)
    edges = build_edges(network)
    city_map = build_cities(cities, populations, edges)
    min_year, max_year = year_window(modes, edges, current_year)
    tables, speed_max_per_year = build_speed_tables(modes, min_year, current_year)
    logger.info(
        "Fusing %d cities, %d edges, %d transport modes over years %d-%d",
        len(city_map),
        len(edges),
        len(modes),
        min_year,
        max_year,
    )

    road_mode = next((mode for mode in modes.values() if mode.is_road), None)
    if road_mode is None:
        logger.warning("No '%s' transport mode defined; cities get no cone baseline.", ROAD_MODE_NAME)

    referentials = {code: GeodeticReferential(city.position) for code, city in city_map.items()}
    result: Dict[str, CityTransport] = {}
    skipped_edges = 0
    for code, city in city_map.items():
        referential = referentials[code]
        transports: TransportBuckets = {}
        destinations: DestinationSpeeds = {}
        bearing_cache: Dict[str, Optional[float]] = {}

        for edge in city.edges:
            mode = modes.get(edge.transport_mode)
            if mode is None:
                logger.warning("Edge %s uses unknown transport mode %s; skipped.", edge, edge.transport_mode)
                skipped_edges += 1
                continue
            bearing = _cached_bearing(referential, edge.destination, referentials, bearing_cache)
            if bearing is None:
                skipped_edges += 1
                continue

            first = max(edge.year_begin if edge.year_begin is not None else min_year, min_year)
            last = edge.year_end if edge.year_end is not None else max_year
            table = tables[mode.code]
            for year in range(first, last + 1):
                speed = table.get(year)
                if speed is None:
                    continue
                record = DirectionRecord(
                    clock=bearing,
                    elevation=elevation_from_speeds(speed_max_per_year[year], speed),
                    speed=speed,
                    year=year,
                    transport=mode.name,
                    destination=edge.destination,
                )
                transports.setdefault(mode.name, {}).setdefault(year, []).append(record)
                destinations.setdefault(edge.destination, {}).setdefault(mode.name, {})[year] = speed

        if road_mode is not None:
            _add_road_baseline(
                transports,
                tables[road_mode.code],
                max(road_mode.year_begin, min_year),
                max_year,
                speed_max_per_year,
            )

        for buckets in transports.values():
            for year, records in buckets.items():
                buckets[year] = sorted(records, key=lambda item: item.clock)

        result[code] = CityTransport(
            referential=referential,
            transports=transports,
            destinations=destinations,
            city=city,
        )

    if skipped_edges:
        logger.warning("Skipped %d edges without a usable mode or bearing.", skipped_edges)
    logger.info("Fusion produced a lookup for %d cities", len(result))
    return CityTransportLookup(
        cities=result,
        speed_max_per_year=speed_max_per_year,
        modes={mode.name: mode for mode in modes.values()},
        min_year=min_year,
        max_year=max_year,
    )


def _cached_bearing(
    referential: GeodeticReferential,
    destination: str,
    referentials: Dict[str, GeodeticReferential],
    cache: Dict[str, Optional[float]],
) -> Optional[float]:
    if destination in cache:
        return cache[destination]
    target = referentials.get(destination)
    bearing: Optional[float] = None
    if target is None:
        logger.warning("Destination %s is not a known city; its edges are skipped.", destination)
    else:
        try:
            bearing = referential.bearing_to(target.origin)
        except DegenerateReferentialError as exc:
            logger.warning("No bearing towards %s: %s", destination, exc)
    cache[destination] = bearing
    return bearing


def _add_road_baseline(
    transports: TransportBuckets,
    road_table: Dict[int, float],
    first_year: int,
    last_year: int,
    speed_max_per_year: Dict[int, float],
) -> None:
    road_buckets = transports.setdefault(ROAD_MODE_NAME, {})
    for year in range(first_year, last_year + 1):
        speed = road_table.get(year)
        if speed is None:
            continue
        bucket = road_buckets.setdefault(year, [])
        if bucket:
            continue
        max_speed = speed_max_per_year.get(year, speed)
        bucket.append(
            DirectionRecord(
                clock=0.0,
                elevation=elevation_from_speeds(max_speed, speed),
                speed=speed,
                year=year,
                transport=ROAD_MODE_NAME,
            )
        )


def lookup_to_dataframe(lookup: CityTransportLookup) -> pd.DataFrame:
    """Flatten every direction record of a lookup into a tidy DataFrame."""
    columns = [
        "origin",
        "destination",
        "transport",
        "year",
        "clock",
        "clock_degree",
        "elevation",
        "elevation_degree",
        "speed",
    ]
    rows = []
    for origin, city_transport in lookup.items():
        for transport, buckets in city_transport.transports.items():
            for year in sorted(buckets):
                for record in buckets[year]:
                    rows.append(
                        {
                            "origin": origin,
                            "destination": record.destination,
                            "transport": transport,
                            "year": year,
                            "clock": record.clock,
                            "clock_degree": record.clock_degree,
                            "elevation": record.elevation,
                            "elevation_degree": record.elevation_degree,
                            "speed": record.speed,
                        }
                    )
    return pd.DataFrame(rows, columns=columns)
