from __future__ import annotations

import pytest

from timespace.fusion.extrapolation import extrapolator, speed_table


def test_extrapolator_passes_through_samples():
    function = extrapolator([(1950, 40.0), (2000, 100.0), (1980, 70.0)])

    assert function(1950) == pytest.approx(40.0)
    assert function(1980) == pytest.approx(70.0)
    assert function(2000) == pytest.approx(100.0)


def test_extrapolator_holds_end_values():
    function = extrapolator([(1950, 40.0), (2000, 100.0)])

    assert function(1900) == pytest.approx(40.0)
    assert function(2030) == pytest.approx(100.0)


def test_extrapolator_is_linear_and_monotone_between_samples():
    function = extrapolator([(1950, 40.0), (2000, 100.0)])

    assert function(1975) == pytest.approx(70.0)
    values = [function(year) for year in range(1950, 2001)]
    assert all(a <= b for a, b in zip(values, values[1:]))


def test_extrapolator_single_sample_is_constant():
    function = extrapolator([(1990, 55.0)])
    assert function(1800) == function(2100) == pytest.approx(55.0)


def test_extrapolator_duplicate_year_keeps_last_value():
    function = extrapolator([(2000, 10.0), (2000, 30.0)])
    assert function(2000) == pytest.approx(30.0)


def test_extrapolator_requires_samples():
    with pytest.raises(ValueError):
        extrapolator([])


def test_speed_table_covers_every_year():
    table = speed_table([(2000, 100.0), (2010, 200.0)], 1998, 2012)

    assert sorted(table) == list(range(1998, 2013))
    assert table[1998] == pytest.approx(100.0)
    assert table[2005] == pytest.approx(150.0)
    assert table[2012] == pytest.approx(200.0)


def test_speed_table_of_inverted_range_is_empty():
    assert speed_table([(2000, 100.0)], 2010, 2000) == {}
