"""Year-indexed speed extrapolation for transport modes."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Sequence, Tuple

import numpy as np


def extrapolator(samples: Iterable[Tuple[float, float]]) -> Callable[[float], float]:
    """Return ``f(year)`` built from ``(year, value)`` samples.

    * year at or before the first sample -> first sample value
    * year at or after the last sample -> last sample value
    * otherwise linear interpolation between the two bracketing samples

    Samples are sorted by year; duplicated years keep the last value given.
    """
    by_year: Dict[float, float] = {}
    for year, value in samples:
        by_year[float(year)] = float(value)
    if not by_year:
        raise ValueError("extrapolator requires at least one sample.")
    years = np.array(sorted(by_year), dtype=float)
    values = np.array([by_year[year] for year in years], dtype=float)

    def _evaluate(year: float) -> float:
        return float(np.interp(float(year), years, values))

    return _evaluate


def speed_table(
    samples: Sequence[Tuple[int, float]], first_year: int, last_year: int
) -> Dict[int, float]:
    """Evaluate the extrapolator on every integer year of ``[first_year, last_year]``."""
    if last_year < first_year:
        return {}
    evaluate = extrapolator(samples)
    return {year: evaluate(year) for year in range(int(first_year), int(last_year) + 1)}
