"""Asymmetric Intent/Reality category matrix."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple

import numpy as np

from .models import Corpus
from .taxonomy import Taxonomy


@dataclass(frozen=True)
class Cell:
    row: int
    col: int
    intent_weight: float
    reality_weight: float


class Matrix:
    """Square N x N grid stored as two flat arrays indexed by ``i * N + j``.

    Cells with ``i < j`` form the upper (reality-dominant) triangle, cells
    with ``i > j`` the lower (intent-dominant) triangle. Both weights are
    computed the same way for every cell; direction only matters when the
    drift calculator aggregates.
    """

    def __init__(self, ids: Tuple[str, ...], intent: np.ndarray, reality: np.ndarray) -> None:
        size = len(ids)
        if intent.shape != (size * size,) or reality.shape != (size * size,):
            raise ValueError(f"Matrix arrays must have {size * size} cells")
        self.ids = ids
        self.size = size
        self._intent = intent.astype(float, copy=True)
        self._reality = reality.astype(float, copy=True)
        self._intent.flags.writeable = False
        self._reality.flags.writeable = False

    @classmethod
    def zeros(cls, ids: Tuple[str, ...]) -> "Matrix":
        cells = len(ids) * len(ids)
        return cls(ids, np.zeros(cells), np.zeros(cells))

    def index(self, row: int, col: int) -> int:
        if not (0 <= row < self.size and 0 <= col < self.size):
            raise IndexError(f"Cell ({row}, {col}) outside {self.size}x{self.size} matrix")
        return row * self.size + col

    def intent_weight(self, row: int, col: int) -> float:
        return float(self._intent[self.index(row, col)])

    def reality_weight(self, row: int, col: int) -> float:
        return float(self._reality[self.index(row, col)])

    @property
    def intent(self) -> np.ndarray:
        return self._intent

    @property
    def reality(self) -> np.ndarray:
        return self._reality

    def cells(self) -> Iterator[Cell]:
        for row in range(self.size):
            for col in range(self.size):
                flat = row * self.size + col
                yield Cell(row, col, float(self._intent[flat]), float(self._reality[flat]))

    def diagonal_totals(self) -> np.ndarray:
        """Self-presence per category, Intent plus Reality."""
        diagonal = np.arange(self.size) * (self.size + 1)
        return self._intent[diagonal] + self._reality[diagonal]

    def upper_mask(self) -> np.ndarray:
        rows, cols = np.divmod(np.arange(self.size * self.size), max(self.size, 1))
        return rows < cols

    def lower_mask(self) -> np.ndarray:
        rows, cols = np.divmod(np.arange(self.size * self.size), max(self.size, 1))
        return rows > cols

    def diagonal_mask(self) -> np.ndarray:
        rows, cols = np.divmod(np.arange(self.size * self.size), max(self.size, 1))
        return rows == cols


class MatrixBuilder:
    """Computes co-occurrence weights from the two corpora.

    For every document ``d`` with weight ``w`` and per-category hit counts
    ``c``::

        weight[i][j] += w * c[i] * (c[j] > 0)

    so a cell holds how much category i is discussed where category j is
    also present, and the diagonal holds each category's own presence.
    """

    def build(self, intent: Corpus, reality: Corpus, taxonomy: Taxonomy) -> Matrix:
        ids = taxonomy.ids
        return Matrix(ids, _accumulate(intent, len(ids)), _accumulate(reality, len(ids)))


def _accumulate(corpus: Corpus, size: int) -> np.ndarray:
    grid = np.zeros((size, size), dtype=float)
    for entry in corpus.entries:
        if len(entry.counts) != size:
            raise ValueError(
                f"{corpus.kind} entry {entry.document.source} has {len(entry.counts)} counts, expected {size}"
            )
        if entry.document.weight == 0 or not entry.matched:
            continue
        counts = np.asarray(entry.counts, dtype=float)
        presence = (counts > 0).astype(float)
        grid += entry.document.weight * np.outer(counts, presence)
    return grid.reshape(size * size)


__all__ = ["Cell", "Matrix", "MatrixBuilder"]
