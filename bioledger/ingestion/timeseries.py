"""
Deterministic timeseries generator.

Produces one sample row per elapsed hour of a run. The pseudo-random
stream is seeded by the run's seed, so repeated calls return identical
values and re-ingestion never drifts.
"""

import math
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Callable

from pydantic import BaseModel

from bioledger.core.models import RunDefinition

# Park-Miller minimal standard generator
_MODULUS = 2147483647
_MULTIPLIER = 16807


def seeded_prng(seed: int) -> Callable[[], float]:
    """
    Minimal-standard Lehmer generator returning floats in [0, 1).

    Args:
        seed: Positive integer seed

    Returns:
        Zero-argument callable yielding the next value
    """
    state = seed % _MODULUS or 1

    def next_value() -> float:
        nonlocal state
        state = (state * _MULTIPLIER) % _MODULUS
        return (state - 1) / (_MODULUS - 1)

    return next_value


class TimeseriesPoint(BaseModel):
    """One hourly sample row: elapsed hour, wall-clock time and parameter values."""

    elapsed_h: int
    timestamp: datetime
    values: dict[str, float]

    class Config:
        frozen = True

    def value(self, parameter_code: str) -> float | None:
        return self.values.get(parameter_code)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@lru_cache(maxsize=64)
def generate_timeseries(run: RunDefinition) -> tuple[TimeseriesPoint, ...]:
    """
    Generate the full hourly profile of a run.

    The profile models a fed-batch CHO culture: temperature shift after
    72 h, logistic-ish cell growth, slowly drifting volume and osmolality,
    and a daily glucose oscillation from bolus feeding.

    Args:
        run: Run definition (seed, start and end time)

    Returns:
        Tuple of points for elapsed hours 0..duration inclusive
    """
    rand = seeded_prng(run.seed)

    def r() -> float:
        return rand() - 0.5

    total_h = (run.end_time - run.start_time).total_seconds() / 3600
    vcd_max = 14 + (run.seed % 10) * 0.4
    points: list[TimeseriesPoint] = []

    h = 0
    while h <= total_h:
        t = h / total_h
        temp_shift = 0.0 if h < 72 else min(1.0, (h - 72) / 12)
        cell_growth = min(1.0, h / 120)

        # Evaluation order matters: every r() call advances the stream
        values: dict[str, float] = {}
        values["TEMP"] = 37.0 - temp_shift * 4.0 + r() * 0.3
        values["PH"] = 7.0 + math.sin(h / 48) * 0.03 + r() * 0.1
        values["DO"] = max(20.0, 50 - cell_growth * 18 + (8 if h > 72 else 0) + r() * 4)
        values["AGIT"] = 80 + cell_growth * 70 + r() * 5
        values["AIR_VVM"] = max(0.0, 0.05 + cell_growth * 0.05 + r() * 0.01)
        values["O2_PCT"] = _clamp(cell_growth * 15 + r() * 2, 0.0, 25.0)
        values["N2_PCT"] = max(0.0, 3 - cell_growth * 2 + r() * 0.5)
        values["CO2_PCT"] = max(0.0, 2 + cell_growth * 1.5 + r() * 0.3)
        values["VOLUME"] = 1.0 + t * 0.15 + r() * 0.005
        values["VCD"] = max(
            0.0,
            vcd_max * (1 - math.exp(-0.025 * h)) * max(0.7, 1 - max(0.0, (h - 260) / 200)),
        )
        values["VIAB"] = min(100.0, 98 - max(0.0, (h - 168) / 168) * 15 + r() * 1)
        values["GLU"] = _clamp(
            6 - t * 3.5 + math.sin((h / 24) * math.pi * 2) * 1.5 + r() * 0.5, 2.0, 8.0
        )
        values["LAC"] = _clamp(t * 3.2 + r() * 0.3, 0.0, 4.0)
        values["OSMO"] = 300 + t * 90 + r() * 8

        points.append(
            TimeseriesPoint(
                elapsed_h=h,
                timestamp=run.start_time + timedelta(hours=h),
                values=values,
            )
        )
        h += 1

    return tuple(points)
