"""Stateful front-end that collects the five input tables and runs the fusion."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, Optional

import pandas as pd

from .domain_types import CityTransportLookup
from .network_fusion import fuse
from .table_schema import TableKind, empty_tables, read_table

logger = logging.getLogger(__name__)


class NotReadyError(RuntimeError):
    """Raised by ``merge(strict=True)`` when some tables are still missing."""


class MergerState(str, Enum):
    MISSING = "missing"
    READY = "ready"
    PENDING = "pending"
    COMPLETE = "complete"


class NetworkMerger:
    """Accumulate delimited text blocks and fuse them once every table is present.

    Blocks may arrive in any order and several blocks of the same kind are
    concatenated.  Adding a block after a merge drops the previous output, so
    the next ``merge`` reflects every block received so far.
    """

    def __init__(self, current_year: Optional[int] = None) -> None:
        self.current_year = current_year
        self._tables: Dict[TableKind, pd.DataFrame] = empty_tables()
        self._lookup: Optional[CityTransportLookup] = None
        self._state = MergerState.MISSING

    @property
    def state(self) -> MergerState:
        return self._state

    @property
    def datas(self) -> CityTransportLookup:
        """Last fused lookup; empty until a merge completed."""
        return self._lookup if self._lookup is not None else CityTransportLookup()

    def table(self, kind: TableKind) -> pd.DataFrame:
        return self._tables[kind].copy()

    def missing_tables(self) -> list[TableKind]:
        return [kind for kind, frame in self._tables.items() if frame.empty]

    def clear(self) -> None:
        self._tables = empty_tables()
        self._lookup = None
        self._state = MergerState.MISSING

    def add(self, text: str) -> TableKind:
        """Identify ``text`` by its header and append its rows to the matching table.

        Raises :class:`UnrecognizedSchemaError` without touching any table when
        the header matches no known fingerprint.
        """
        kind, frame = read_table(text)
        current = self._tables[kind]
        self._tables[kind] = frame if current.empty else pd.concat([current, frame], ignore_index=True)
        self._lookup = None
        logger.info("Added %d rows to the %s table", len(frame), kind.value)
        self._check_state()
        return kind

    def merge(self, strict: bool = False) -> Optional[CityTransportLookup]:
        """Fuse the collected tables when the merger is ready.

        Returns the new lookup, or ``None`` when the merger was not ready.
        """
        if self._state is not MergerState.READY:
            if strict:
                missing = ", ".join(kind.value for kind in self.missing_tables())
                raise NotReadyError(f"Merger is {self._state.value}; missing tables: {missing or 'none'}")
            logger.debug("merge() ignored in state %s", self._state.value)
            return None

        self._state = MergerState.PENDING
        try:
            self._lookup = fuse(
                self._tables[TableKind.CITIES],
                self._tables[TableKind.POPULATIONS],
                self._tables[TableKind.TRANSPORT_MODE_CODE],
                self._tables[TableKind.TRANSPORT_MODE_SPEED],
                self._tables[TableKind.TRANSPORT_NETWORK],
                current_year=self.current_year,
            )
        finally:
            self._state = MergerState.MISSING
            self._check_state()
        return self._lookup

    def _check_state(self) -> None:
        if self._state is MergerState.PENDING:
            return
        state = MergerState.MISSING
        if not self.missing_tables():
            state = MergerState.COMPLETE if self._lookup is not None else MergerState.READY
        self._state = state
