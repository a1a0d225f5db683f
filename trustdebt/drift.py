"""Trust Debt aggregation over the Intent/Reality matrix."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from . import grading
from .config import DriftConfig
from .matrix import Matrix
from .models import Corpus, TrustDebtResult
from .taxonomy import Taxonomy

_SECONDS_PER_DAY = 86400.0

REALITY_DOMINANT_RATIO = 1.5
INTENT_DOMINANT_RATIO = 0.7


@dataclass(frozen=True)
class TimeMeta:
    """When each category was last seen in each corpus.

    ``reference_time`` is the newest timestamp in either corpus, so elapsed
    times depend only on the analysed data. A category never seen in a corpus
    is treated as absent since that corpus' oldest entry.
    """

    reference_time: float
    intent_last_seen: Tuple[Optional[float], ...]
    reality_last_seen: Tuple[Optional[float], ...]
    intent_origin: Optional[float] = None
    reality_origin: Optional[float] = None

    @classmethod
    def from_corpora(cls, intent: Corpus, reality: Corpus, size: int) -> "TimeMeta":
        stamps = [entry.document.timestamp for entry in intent.entries + reality.entries]
        return cls(
            reference_time=max(stamps) if stamps else 0.0,
            intent_last_seen=_last_seen(intent, size),
            reality_last_seen=_last_seen(reality, size),
            intent_origin=min((e.document.timestamp for e in intent.entries), default=None),
            reality_origin=min((e.document.timestamp for e in reality.entries), default=None),
        )

    @classmethod
    def fresh(cls, size: int) -> "TimeMeta":
        """No elapsed time anywhere; every multiplier is 1."""
        return cls(reference_time=0.0, intent_last_seen=(0.0,) * size, reality_last_seen=(0.0,) * size)

    def reality_days(self, index: int) -> float:
        return self._days(self.reality_last_seen[index], self.reality_origin)

    def intent_days(self, index: int) -> float:
        return self._days(self.intent_last_seen[index], self.intent_origin)

    def _days(self, seen: Optional[float], origin: Optional[float]) -> float:
        anchor = seen if seen is not None else origin
        if anchor is None:
            return 0.0
        return max(0.0, self.reference_time - anchor) / _SECONDS_PER_DAY


class DriftCalculator:
    """Aggregates matrix cells into per-category and total Trust Debt.

    ``cellDebt(i, j) = (intent - reality)^2 * categoryWeight(i, j)
    * timeDecay(j) * specAge(i)``, where both time multipliers grow linearly
    with the days since the category was last seen and never drop below 1.
    """

    def __init__(self, config: DriftConfig | None = None) -> None:
        self.config = config or DriftConfig()

    def time_decay(self, time_meta: TimeMeta, index: int) -> float:
        return 1.0 + self.config.reality_decay_per_day * time_meta.reality_days(index)

    def spec_age(self, time_meta: TimeMeta, index: int) -> float:
        return 1.0 + self.config.intent_decay_per_day * time_meta.intent_days(index)

    def cell_debts(self, matrix: Matrix, taxonomy: Taxonomy, time_meta: TimeMeta) -> np.ndarray:
        """Flat array of per-cell debt, indexed like the matrix."""
        size = matrix.size
        if len(taxonomy) != size:
            raise ValueError(f"Taxonomy has {len(taxonomy)} categories but matrix is {size}x{size}")
        ids = taxonomy.ids
        weights = np.array(
            [self.config.category_weight(ids[i], ids[j]) for i in range(size) for j in range(size)],
            dtype=float,
        )
        decay = np.array([self.time_decay(time_meta, j) for j in range(size)], dtype=float)
        age = np.array([self.spec_age(time_meta, i) for i in range(size)], dtype=float)
        drift = matrix.intent - matrix.reality
        return drift * drift * weights * np.tile(decay, size) * np.repeat(age, size)

    def calculate(self, matrix: Matrix, taxonomy: Taxonomy, time_meta: TimeMeta) -> TrustDebtResult:
        debts = self.cell_debts(matrix, taxonomy, time_meta)
        size = matrix.size

        upper = math.fsum(debts[matrix.upper_mask()])
        lower = math.fsum(debts[matrix.lower_mask()])
        diagonal = math.fsum(debts[matrix.diagonal_mask()])
        total = math.fsum(debts)

        grid = debts.reshape(size, size) if size else np.zeros((0, 0))
        per_category: Dict[str, float] = {}
        for index, category_id in enumerate(taxonomy.ids):
            touching: List[float] = list(grid[index, :]) + list(grid[:, index])
            per_category[category_id] = max(0.0, math.fsum(touching) - float(grid[index, index]))

        ratio = upper / lower if lower > 0 else None
        band = grading.band_for(total)
        return TrustDebtResult(
            total_units=total,
            grade=band.grade,
            grade_label=band.label,
            asymmetry_ratio=ratio,
            orthogonality_fraction=diagonal / total if total > 0 else 0.0,
            per_category=per_category,
            upper_sum=upper,
            lower_sum=lower,
            diagonal_sum=diagonal,
            asymmetry_interpretation=interpret_asymmetry(ratio),
        )


def interpret_asymmetry(ratio: Optional[float]) -> str:
    if ratio is None:
        return "undetermined"
    if ratio > REALITY_DOMINANT_RATIO:
        return "reality-dominant"
    if ratio < INTENT_DOMINANT_RATIO:
        return "intent-dominant"
    return "balanced"


def _last_seen(corpus: Corpus, size: int) -> Tuple[Optional[float], ...]:
    seen: List[Optional[float]] = [None] * size
    for entry in corpus.entries:
        stamp = entry.document.timestamp
        for index, count in enumerate(entry.counts[:size]):
            if count and (seen[index] is None or stamp > seen[index]):  # type: ignore[operator]
                seen[index] = stamp
    return tuple(seen)


__all__ = [
    "DriftCalculator",
    "INTENT_DOMINANT_RATIO",
    "REALITY_DOMINANT_RATIO",
    "TimeMeta",
    "interpret_asymmetry",
]
