from __future__ import annotations

import math
import textwrap

import pytest

from timespace.fusion.domain_types import ROAD_MODE_NAME
from timespace.fusion.merger import MergerState, NetworkMerger, NotReadyError
from timespace.fusion.table_schema import TableKind, UnrecognizedSchemaError

CITIES = textwrap.dedent(
    """
    cityCode,latitude,longitude,radius
    A,0,0,10
    B,0,10,12
    """
).lstrip()

POPULATIONS = textwrap.dedent(
    """
    cityCode,pop2000
    A,120
    B,55
    """
).lstrip()

MODES = textwrap.dedent(
    """
    code;name;yearBegin;yearEnd
    1;Road;1900;
    """
).lstrip()

SPEEDS = textwrap.dedent(
    """
    transportModeCode,year,speedKPH
    1,2000,100
    """
).lstrip()

NETWORK = textwrap.dedent(
    """
    idOri,idDes,transportMode,yearBegin,yearEnd
    A,B,1,1990,2010
    """
).lstrip()

RAIL_MODE = "code,name,yearBegin\n2,Rail,1900\n"
RAIL_SPEED = "transportModeCode,year,speedKPH\n2,2000,200\n"
RAIL_EDGE = "idOri,idDes,transportMode,yearBegin,yearEnd\nA,B,2,1990,2010\n"


def _make_merger(*blocks: str) -> NetworkMerger:
    merger = NetworkMerger(current_year=2020)
    for block in blocks:
        merger.add(block)
    return merger


def test_merger_states():
    merger = _make_merger(CITIES, POPULATIONS, MODES, SPEEDS)
    assert merger.state is MergerState.MISSING
    assert merger.missing_tables() == [TableKind.TRANSPORT_NETWORK]

    merger.add(NETWORK)
    assert merger.state is MergerState.READY

    lookup = merger.merge()
    assert lookup is not None
    assert merger.state is MergerState.COMPLETE
    assert merger.datas is lookup


def test_merge_before_ready_is_a_noop():
    merger = _make_merger(CITIES, SPEEDS)

    assert merger.merge() is None
    assert merger.state is MergerState.MISSING
    assert len(merger.datas) == 0


def test_strict_merge_before_ready_raises():
    merger = _make_merger(CITIES)
    with pytest.raises(NotReadyError, match="transportNetwork"):
        merger.merge(strict=True)


def test_unknown_block_leaves_tables_untouched():
    merger = _make_merger(CITIES, POPULATIONS, MODES, SPEEDS, NETWORK)
    before = merger.table(TableKind.CITIES)

    with pytest.raises(UnrecognizedSchemaError):
        merger.add("alpha,beta\n1,2\n")

    assert merger.state is MergerState.READY
    assert merger.table(TableKind.CITIES).equals(before)


def test_blocks_can_arrive_in_any_order():
    merger = _make_merger(NETWORK, SPEEDS, MODES, POPULATIONS, CITIES)
    lookup = merger.merge()

    record = lookup["A"].records(ROAD_MODE_NAME, 2000)[0]
    assert record.clock == pytest.approx(math.pi / 2)
    assert record.elevation == pytest.approx(0.0)
    assert lookup["A"].city.populations == {"pop2000": 120}


def test_adding_blocks_after_merge_allows_a_new_merge():
    merger = _make_merger(CITIES, POPULATIONS, MODES, SPEEDS, NETWORK)
    merger.merge()
    assert merger.merge() is None

    for block in (RAIL_MODE, RAIL_SPEED, RAIL_EDGE):
        merger.add(block)
    assert merger.state is MergerState.READY

    lookup = merger.merge()
    road = lookup["A"].records(ROAD_MODE_NAME, 2000)[0]
    assert road.elevation == pytest.approx(math.atan(math.sqrt(3.0)))


def test_clear_resets_everything():
    merger = _make_merger(CITIES, POPULATIONS, MODES, SPEEDS, NETWORK)
    merger.merge()

    merger.clear()

    assert merger.state is MergerState.MISSING
    assert len(merger.datas) == 0
    assert len(merger.missing_tables()) == 5
