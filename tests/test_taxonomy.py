"""Tests for the category taxonomy arena, ordering and orthogonality checks."""

from __future__ import annotations

import numpy as np
import pytest

from trustdebt.errors import CategoryDesignError, ConfigurationError
from trustdebt.taxonomy import Taxonomy, correlation_matrix, shortlex_key, validate


def _nested_records() -> list[dict[str, object]]:
    return [
        {"id": "B", "name": "Build", "keywords": ["build"]},
        {"id": "A2", "name": "Auth tokens", "keywords": ["token"], "parent": "A"},
        {"id": "A", "name": "Auth", "keywords": ["Auth", "login "]},
        {"id": "A1", "name": "Auth sessions", "keywords": ["session"], "parent": "A"},
        {"id": "A10", "name": "Auth cookies", "keywords": ["cookie"], "parent": "A"},
    ]


def test_from_records_orders_parents_before_children() -> None:
    taxonomy = Taxonomy.from_records(_nested_records())

    assert taxonomy.ids == ("A", "A1", "A10", "A2", "B")
    assert taxonomy[0].parent is None
    assert [taxonomy[index].id for index in taxonomy.children(0)] == ["A1", "A10", "A2"]
    assert taxonomy[taxonomy.index_of("A2")].parent == 0
    assert taxonomy[taxonomy.index_of("A2")].depth == 1


def test_shortlex_key_is_stable_across_input_order() -> None:
    forward = Taxonomy.from_records(_nested_records())
    backward = Taxonomy.from_records(list(reversed(_nested_records())))

    assert forward.ids == backward.ids
    assert forward.fingerprint() == backward.fingerprint()
    keys = [shortlex_key(category) for category in forward]
    assert keys == sorted(keys)
    assert shortlex_key(forward[0]) < shortlex_key(forward[1])


def test_keywords_are_normalised_and_deduplicated() -> None:
    taxonomy = Taxonomy.from_records(_nested_records())

    assert taxonomy[0].keywords == ("auth", "login")


def test_to_records_round_trips_parent_ids() -> None:
    taxonomy = Taxonomy.from_records(_nested_records())

    rebuilt = Taxonomy.from_records(taxonomy.to_records())

    assert rebuilt.ids == taxonomy.ids
    assert rebuilt.fingerprint() == taxonomy.fingerprint()


@pytest.mark.parametrize(
    "records",
    [
        [],
        [{"name": "No id", "keywords": ["x"]}],
        [{"id": "A", "keywords": ["x"]}, {"id": "A", "keywords": ["y"]}],
        [{"id": "A", "keywords": []}],
        [{"id": "A", "keywords": ["x"], "parent": "Z"}],
        [{"id": "A", "keywords": ["x"], "parent": "B"}, {"id": "B", "keywords": ["y"], "parent": "A"}],
        ["not a mapping"],
    ],
)
def test_from_records_rejects_malformed_definitions(records: list[object]) -> None:
    with pytest.raises(ConfigurationError):
        Taxonomy.from_records(records)  # type: ignore[arg-type]


def test_index_of_unknown_id_raises_key_error() -> None:
    taxonomy = Taxonomy.from_records(_nested_records())

    with pytest.raises(KeyError):
        taxonomy.index_of("missing")


def test_identical_keyword_sets_correlate_fully() -> None:
    taxonomy = Taxonomy.from_records(
        [
            {"id": "X", "keywords": ["deploy", "release"]},
            {"id": "Y", "keywords": ["deploy", "release"]},
        ]
    )
    vocabulary = ("deploy", "docs", "release", "security", "speed", "testing")

    matrix = taxonomy.correlation_matrix(vocabulary)

    assert matrix[0, 1] == pytest.approx(1.0)
    pairs = taxonomy.correlated_pairs(vocabulary)
    assert [(pair.first, pair.second) for pair in pairs] == [("X", "Y")]


def test_stem_keywords_mark_prefixed_vocabulary_terms() -> None:
    taxonomy = Taxonomy.from_records([{"id": "S", "keywords": ["secur"]}])

    vectors = taxonomy.keyword_vectors(("insecure", "secure", "security", "speed"))

    assert vectors.tolist() == [[0.0, 1.0, 1.0, 0.0]]


def test_correlation_matrix_treats_constant_rows_as_uncorrelated() -> None:
    vectors = np.array([[1.0, 0.0, 1.0], [0.0, 0.0, 0.0], [1.0, 0.0, 1.0]])

    matrix = correlation_matrix(vectors)

    assert matrix[0, 1] == 0.0
    assert matrix[1, 2] == 0.0
    assert matrix[0, 2] == pytest.approx(1.0)
    assert np.allclose(np.diag(matrix), 1.0)


def test_validate_is_silent_for_orthogonal_categories_in_a_large_vocabulary() -> None:
    taxonomy = Taxonomy.from_records(
        [
            {"id": "SEC", "keywords": ["security"]},
            {"id": "SPD", "keywords": ["speed"]},
        ]
    )
    filler = [f"word{index:03d}" for index in range(400)]
    vocabulary = tuple(sorted(filler + ["security", "speed"]))

    validate(taxonomy, vocabulary)


def test_validate_accepts_disjoint_categories_in_a_small_vocabulary() -> None:
    taxonomy = Taxonomy.from_records(
        [
            {"id": "SEC", "keywords": ["security"]},
            {"id": "SPD", "keywords": ["speed"]},
        ]
    )
    vocabulary = ("security", "speed")

    assert taxonomy.correlation_matrix(vocabulary)[0, 1] == pytest.approx(-1.0)
    assert taxonomy.correlated_pairs(vocabulary) == []
    validate(taxonomy, vocabulary)


def test_validate_raises_with_offending_pairs() -> None:
    taxonomy = Taxonomy.from_records(
        [
            {"id": "X", "keywords": ["deploy"]},
            {"id": "Y", "keywords": ["deploy"]},
        ]
    )

    with pytest.raises(CategoryDesignError) as excinfo:
        validate(taxonomy, ("deploy", "docs", "speed"))

    assert [(pair.first, pair.second) for pair in excinfo.value.pairs] == [("X", "Y")]
