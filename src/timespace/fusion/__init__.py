"""Fusion of the raw network tables into a per-city transport lookup."""

from .domain_types import (
    ROAD_MODE_NAME,
    City,
    CityTransport,
    CityTransportLookup,
    DirectionRecord,
    NetworkEdge,
    TransportMode,
)
from .extrapolation import extrapolator, speed_table
from .merger import MergerState, NetworkMerger, NotReadyError
from .network_fusion import elevation_from_speeds, fuse, lookup_to_dataframe
from .table_schema import TableKind, UnrecognizedSchemaError, identify_table, read_table

__all__ = [
    "City",
    "CityTransport",
    "CityTransportLookup",
    "DirectionRecord",
    "MergerState",
    "NetworkEdge",
    "NetworkMerger",
    "NotReadyError",
    "ROAD_MODE_NAME",
    "TableKind",
    "TransportMode",
    "UnrecognizedSchemaError",
    "elevation_from_speeds",
    "extrapolator",
    "fuse",
    "identify_table",
    "lookup_to_dataframe",
    "read_table",
    "speed_table",
]
