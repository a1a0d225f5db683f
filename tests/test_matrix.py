"""Tests for the Intent/Reality matrix builder."""

from __future__ import annotations

import numpy as np
import pytest

from trustdebt.corpus import build_corpus
from trustdebt.matrix import Matrix, MatrixBuilder
from trustdebt.models import Corpus, CorpusDocument, CorpusEntry
from trustdebt.taxonomy import Taxonomy


def _doc(source: str, text: str, weight: float, timestamp: float = 0.0) -> CorpusDocument:
    return CorpusDocument(source=source, text=text, weight=weight, timestamp=timestamp)


def test_empty_corpora_build_an_all_zero_matrix(security_speed_taxonomy: Taxonomy) -> None:
    matrix = MatrixBuilder().build(Corpus("intent"), Corpus("reality"), security_speed_taxonomy)

    assert matrix.size == 2
    assert matrix.ids == ("SEC", "SPD")
    assert not matrix.intent.any()
    assert not matrix.reality.any()


def test_cells_hold_directional_co_occurrence(security_speed_taxonomy: Taxonomy) -> None:
    intent = build_corpus(
        "intent",
        [_doc("SPEC.md", "security " * 3 + "speed", 0.04), _doc("notes.md", "speed", 0.005)],
        security_speed_taxonomy,
    )
    reality = build_corpus("reality", [_doc("c1", "security", 0.03)], security_speed_taxonomy)

    matrix = MatrixBuilder().build(intent, reality, security_speed_taxonomy)

    assert matrix.intent_weight(0, 0) == pytest.approx(0.12)
    assert matrix.intent_weight(0, 1) == pytest.approx(0.12)
    assert matrix.intent_weight(1, 0) == pytest.approx(0.04)
    assert matrix.intent_weight(1, 1) == pytest.approx(0.045)
    assert matrix.reality_weight(0, 0) == pytest.approx(0.03)
    assert matrix.reality_weight(0, 1) == 0.0
    assert matrix.reality_weight(1, 0) == 0.0
    assert matrix.diagonal_totals().tolist() == pytest.approx([0.15, 0.045])


def test_cells_iterate_in_row_major_order(security_speed_taxonomy: Taxonomy) -> None:
    intent = build_corpus("intent", [_doc("a", "security speed", 1.0)], security_speed_taxonomy)

    matrix = MatrixBuilder().build(intent, Corpus("reality"), security_speed_taxonomy)

    assert [(cell.row, cell.col, cell.intent_weight) for cell in matrix.cells()] == [
        (0, 0, 1.0),
        (0, 1, 1.0),
        (1, 0, 1.0),
        (1, 1, 1.0),
    ]


def test_unmatched_and_zero_weight_documents_add_nothing(security_speed_taxonomy: Taxonomy) -> None:
    intent = build_corpus(
        "intent",
        [_doc("a", "unrelated text", 1.0), _doc("b", "security", 0.0)],
        security_speed_taxonomy,
    )

    matrix = MatrixBuilder().build(intent, Corpus("reality"), security_speed_taxonomy)

    assert not matrix.intent.any()


def test_triangle_masks_partition_the_grid() -> None:
    matrix = Matrix.zeros(("A", "B", "C"))

    upper, lower, diagonal = matrix.upper_mask(), matrix.lower_mask(), matrix.diagonal_mask()

    assert upper.sum() == 3
    assert lower.sum() == 3
    assert diagonal.sum() == 3
    assert np.all(upper.astype(int) + lower.astype(int) + diagonal.astype(int) == 1)
    assert upper[matrix.index(0, 2)]
    assert lower[matrix.index(2, 0)]


def test_matrix_is_read_only_and_bounds_checked() -> None:
    matrix = Matrix.zeros(("A", "B"))

    with pytest.raises(ValueError):
        matrix.intent[0] = 1.0
    with pytest.raises(IndexError):
        matrix.intent_weight(2, 0)
    with pytest.raises(ValueError):
        Matrix(("A", "B"), np.zeros(3), np.zeros(4))


def test_count_width_must_match_taxonomy(security_speed_taxonomy: Taxonomy) -> None:
    entry = CorpusEntry(document=_doc("a", "security", 1.0), counts=(1,))

    with pytest.raises(ValueError, match="expected 2"):
        MatrixBuilder().build(Corpus("intent", (entry,)), Corpus("reality"), security_speed_taxonomy)
