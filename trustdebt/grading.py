"""Calibrated grade bands for total Trust Debt."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .models import Grade


@dataclass(frozen=True)
class GradeBand:
    grade: Grade
    upper: Optional[float]
    label: str


# Upper bounds are inclusive; bands are checked in order.
GRADE_BANDS: Tuple[GradeBand, ...] = (
    GradeBand(Grade.A, 500.0, "Excellent alignment"),
    GradeBand(Grade.B, 1500.0, "Good, minor attention"),
    GradeBand(Grade.C, 3000.0, "Needs attention"),
    GradeBand(Grade.D, None, "Requires systematic work"),
)


def band_for(total_units: float) -> GradeBand:
    if math.isnan(total_units) or total_units < 0:
        raise ValueError(f"Trust Debt units must be a non-negative number, got {total_units!r}")
    for band in GRADE_BANDS:
        if band.upper is None or total_units <= band.upper:
            return band
    return GRADE_BANDS[-1]


def assign(total_units: float) -> Grade:
    """Map a total score to its grade; larger totals never grade better."""
    return band_for(total_units).grade


def label_for(grade: Grade) -> str:
    for band in GRADE_BANDS:
        if band.grade is grade:
            return band.label
    raise KeyError(grade)


__all__ = ["GRADE_BANDS", "GradeBand", "assign", "band_for", "label_for"]
