"""Process Health: an independent audit of the measurement itself.

The validator only looks at the taxonomy, the raw matrix and the corpora. It
never sees a TrustDebtResult, so a faulty drift aggregation cannot raise its
own legitimacy.
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import numpy as np

from .config import HealthConfig
from .logging import get_logger
from .matching import vocabulary
from .matrix import Matrix
from .models import Corpora, CorrelatedPair, Legitimacy, ProcessHealthReport
from .taxonomy import Taxonomy, pairs_above

logger = get_logger("health")

ORTHOGONALITY_WEIGHT = 0.40
UNIFORMITY_WEIGHT = 0.35
COVERAGE_WEIGHT = 0.25

LEGITIMATE_ABOVE = 0.70
QUESTIONABLE_FROM = 0.50

# Relative to the mean per-category total.
OVERLOAD_FACTOR = 2.0
UNDERREPRESENTED_FACTOR = 0.3


def overall_score(orthogonality: float, uniformity: float, coverage: float) -> float:
    return (
        ORTHOGONALITY_WEIGHT * orthogonality
        + UNIFORMITY_WEIGHT * uniformity
        + COVERAGE_WEIGHT * coverage
    )


def classify_legitimacy(score: float) -> Legitimacy:
    if score > LEGITIMATE_ABOVE:
        return Legitimacy.LEGITIMATE
    if score >= QUESTIONABLE_FROM:
        return Legitimacy.QUESTIONABLE
    return Legitimacy.INVALID


def orthogonality_score(correlations: np.ndarray) -> float:
    """``1 - max(0, off-diagonal correlation)``; a single category scores 1."""
    size = correlations.shape[0]
    if size < 2:
        return 1.0
    off_diagonal = np.clip(correlations[~np.eye(size, dtype=bool)], 0.0, None)
    return float(min(1.0, max(0.0, 1.0 - float(off_diagonal.max()))))


def uniformity_score(totals: Sequence[float]) -> float:
    """``1 - coefficient of variation``, clamped to [0, 1]; no signal scores 0."""
    values = np.asarray(totals, dtype=float)
    if values.size == 0:
        return 0.0
    mean = float(values.mean())
    if mean <= 0:
        return 0.0
    variation = float(values.std()) / mean
    return float(min(1.0, max(0.0, 1.0 - variation)))


def coverage_score(corpora: Corpora) -> float:
    total = len(corpora.intent) + len(corpora.reality)
    if total == 0:
        return 0.0
    mapped = corpora.intent.matched_count + corpora.reality.matched_count
    return mapped / total


class ProcessHealthValidator:
    """Scores orthogonality, uniformity and coverage of a measurement."""

    def __init__(self, config: HealthConfig | None = None) -> None:
        self.config = config or HealthConfig()

    def validate(self, taxonomy: Taxonomy, matrix: Matrix, corpora: Corpora) -> ProcessHealthReport:
        texts = [entry.document.text for entry in corpora.intent.entries + corpora.reality.entries]
        vocab = vocabulary(texts, taxonomy.all_keywords())
        correlations = taxonomy.correlation_matrix(vocab)
        pairs = pairs_above(taxonomy.ids, correlations, self.config.correlation_threshold)

        totals = matrix.diagonal_totals()
        category_totals = {category_id: float(totals[i]) for i, category_id in enumerate(taxonomy.ids)}

        orthogonality = orthogonality_score(correlations)
        uniformity = uniformity_score(totals)
        coverage = coverage_score(corpora)
        score = overall_score(orthogonality, uniformity, coverage)
        legitimacy = classify_legitimacy(score)

        overloaded, underrepresented = _imbalanced(category_totals)
        recommendations = _recommendations(pairs, overloaded, underrepresented, coverage)

        logger.debug(
            "Process health: orthogonality=%.3f uniformity=%.3f coverage=%.3f overall=%.3f (%s)",
            orthogonality,
            uniformity,
            coverage,
            score,
            legitimacy.value,
        )
        return ProcessHealthReport(
            orthogonality_score=orthogonality,
            uniformity_score=uniformity,
            coverage_score=coverage,
            overall_score=score,
            legitimacy=legitimacy,
            correlated_pairs=tuple(pairs),
            category_totals=category_totals,
            overloaded=tuple(overloaded),
            underrepresented=tuple(underrepresented),
            recommendations=tuple(recommendations),
        )


def _imbalanced(totals: Dict[str, float]) -> Tuple[List[str], List[str]]:
    if not totals:
        return [], []
    mean = sum(totals.values()) / len(totals)
    if mean <= 0:
        return [], []
    overloaded = [key for key, value in totals.items() if value > mean * OVERLOAD_FACTOR]
    underrepresented = [key for key, value in totals.items() if value < mean * UNDERREPRESENTED_FACTOR]
    return overloaded, underrepresented


def _recommendations(
    pairs: Sequence[CorrelatedPair],
    overloaded: Sequence[str],
    underrepresented: Sequence[str],
    coverage: float,
) -> List[str]:
    notes: List[str] = []
    for pair in pairs:
        notes.append(
            f"Categories {pair.first} and {pair.second} overlap (correlation {pair.correlation:+.2f}); "
            "merge them or make their keywords disjoint."
        )
    for category_id in overloaded:
        notes.append(f"Category {category_id} dominates the signal; split it into subcategories.")
    for category_id in underrepresented:
        notes.append(f"Category {category_id} is rarely matched; revise its keywords or drop it.")
    if coverage < 0.5:
        notes.append(
            f"Only {coverage:.0%} of documents and commits match any category; extend keyword coverage."
        )
    return notes


__all__ = [
    "ProcessHealthValidator",
    "classify_legitimacy",
    "coverage_score",
    "orthogonality_score",
    "overall_score",
    "uniformity_score",
]
