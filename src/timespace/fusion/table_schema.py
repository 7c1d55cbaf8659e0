"""Schema fingerprints for the five input tables and text-block ingestion."""

from __future__ import annotations

import io
import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

logger = logging.getLogger(__name__)


class UnrecognizedSchemaError(ValueError):
    """Raised when a text block's header matches none of the known tables."""


class TableKind(str, Enum):
    CITIES = "cities"
    TRANSPORT_MODE_SPEED = "transportModeSpeed"
    TRANSPORT_MODE_CODE = "transportModeCode"
    TRANSPORT_NETWORK = "transportNetwork"
    POPULATIONS = "populations"


# Checked in order: the populations fingerprint is a subset of the cities one.
TABLE_FINGERPRINTS: Tuple[Tuple[TableKind, Tuple[str, ...]], ...] = (
    (TableKind.CITIES, ("cityCode", "latitude", "longitude", "radius")),
    (TableKind.TRANSPORT_MODE_SPEED, ("transportModeCode", "year", "speedKPH")),
    (TableKind.TRANSPORT_MODE_CODE, ("code", "name", "yearBegin")),
    (TableKind.TRANSPORT_NETWORK, ("transportMode", "idDes", "idOri")),
    (TableKind.POPULATIONS, ("cityCode",)),
)

# Columns whose empty cells mean "open-ended".
OPTIONAL_YEAR_COLUMNS = ("yearEnd",)

_DELIMITERS: Sequence[str] = (",", ";", "\t", "|")


def _header_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line
    return ""


def _detect_delimiter(header: str) -> str:
    counts = {delimiter: header.count(delimiter) for delimiter in _DELIMITERS}
    best = max(counts, key=lambda delimiter: counts[delimiter])
    return best if counts[best] > 0 else ","


def _header_columns(header: str, delimiter: str) -> List[str]:
    return [column.strip().strip('"').strip("'") for column in header.split(delimiter)]


def identify_table(text: str) -> TableKind:
    """Return the kind of table a delimited text block holds."""
    header = _header_line(text)
    columns = set(_header_columns(header, _detect_delimiter(header)))
    for kind, required in TABLE_FINGERPRINTS:
        if all(column in columns for column in required):
            return kind
    raise UnrecognizedSchemaError(f"Header does not match any known table: {header[:120]!r}")


def read_table(text: str) -> Tuple[TableKind, pd.DataFrame]:
    """Identify and parse a delimited text block into a DataFrame."""
    kind = identify_table(text)
    delimiter = _detect_delimiter(_header_line(text))
    frame = pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        skip_blank_lines=True,
        skipinitialspace=True,
    )
    frame.columns = [str(column).strip() for column in frame.columns]
    frame = frame.dropna(how="all")
    for column in OPTIONAL_YEAR_COLUMNS:
        if column in frame.columns:
            frame[column] = pd.to_numeric(frame[column], errors="coerce")
    logger.debug("Parsed %s table with %d rows and columns %s", kind.value, len(frame), list(frame.columns))
    return kind, frame


def normalize_code(value: object) -> Optional[str]:
    """Normalise a city/mode code to a string key; ``None`` for missing values."""
    if value is None:
        return None
    if isinstance(value, float):
        if pd.isna(value):
            return None
        if value.is_integer():
            return str(int(value))
    text = str(value).strip()
    return text or None


def optional_int(value: object) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    if pd.isna(value):
        return None
    return int(float(value))


def empty_tables() -> Dict[TableKind, pd.DataFrame]:
    return {kind: pd.DataFrame() for kind, _ in TABLE_FINGERPRINTS}
