"""Category taxonomy: arena storage, ShortLex ordering and orthogonality checks."""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .errors import CategoryDesignError, ConfigurationError
from .matching import normalize_keyword, token_matches
from .models import Category, CorrelatedPair

DEFAULT_CORRELATION_THRESHOLD = 0.10


def shortlex_key(category: Category) -> Tuple[str, ...]:
    """Sort key placing parents before children and siblings by id.

    Ids are compared code point by code point; when one id is a prefix of
    another the shorter one sorts first. Tuples of path segments give the same
    guarantee one level up: a category's key precedes every key that extends it.
    """
    return category.order_key


class Taxonomy:
    """Flat arena of categories in canonical ShortLex order."""

    def __init__(self, categories: Sequence[Category]) -> None:
        self._categories: Tuple[Category, ...] = tuple(categories)
        self._index: Dict[str, int] = {
            category.id: position for position, category in enumerate(self._categories)
        }

    @classmethod
    def from_records(cls, records: Sequence[Mapping[str, Any]]) -> "Taxonomy":
        """Build a taxonomy from ``{id, name, keywords, parent}`` records."""
        if not records:
            raise ConfigurationError("Taxonomy definition contains no categories")

        raw: Dict[str, Tuple[str, Tuple[str, ...], Optional[str]]] = {}
        for record in records:
            if not isinstance(record, Mapping):
                raise ConfigurationError(f"Category records must be mappings, got {record!r}")
            category_id = str(record.get("id") or "").strip()
            if not category_id:
                raise ConfigurationError(f"Category record is missing an id: {dict(record)!r}")
            if category_id in raw:
                raise ConfigurationError(f"Duplicate category id: {category_id}")
            name = str(record.get("name") or category_id).strip()
            keywords = _normalize_keywords(record.get("keywords"), category_id)
            parent_value = record.get("parent")
            parent_id = str(parent_value).strip() if parent_value not in (None, "") else None
            raw[category_id] = (name, keywords, parent_id)

        for category_id, (_, _, parent_id) in raw.items():
            if parent_id is not None and parent_id not in raw:
                raise ConfigurationError(
                    f"Category {category_id} references unknown parent {parent_id}"
                )

        paths = {category_id: _resolve_path(category_id, raw) for category_id in raw}
        ordered_ids = sorted(raw, key=lambda category_id: paths[category_id])
        position = {category_id: index for index, category_id in enumerate(ordered_ids)}

        categories: List[Category] = []
        for category_id in ordered_ids:
            name, keywords, parent_id = raw[category_id]
            categories.append(
                Category(
                    id=category_id,
                    name=name,
                    keywords=keywords,
                    parent=position[parent_id] if parent_id is not None else None,
                    order_key=paths[category_id],
                )
            )
        return cls(categories)

    # ------------------------------------------------------------------
    # Arena access

    def __len__(self) -> int:
        return len(self._categories)

    def __iter__(self) -> Iterator[Category]:
        return iter(self._categories)

    def __getitem__(self, position: int) -> Category:
        return self._categories[position]

    @property
    def categories(self) -> Tuple[Category, ...]:
        return self._categories

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(category.id for category in self._categories)

    def index_of(self, category_id: str) -> int:
        try:
            return self._index[category_id]
        except KeyError as exc:
            raise KeyError(f"Unknown category id: {category_id}") from exc

    def children(self, position: int) -> List[int]:
        return [index for index, category in enumerate(self._categories) if category.parent == position]

    def keyword_sets(self) -> List[Tuple[str, ...]]:
        return [category.keywords for category in self._categories]

    def all_keywords(self) -> List[str]:
        return [keyword for category in self._categories for keyword in category.keywords]

    def fingerprint(self) -> str:
        payload = [
            {
                "id": category.id,
                "name": category.name,
                "keywords": list(category.keywords),
                "parent": category.parent,
            }
            for category in self._categories
        ]
        encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()

    def to_records(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": category.id,
                "name": category.name,
                "keywords": list(category.keywords),
                "parent": self._categories[category.parent].id if category.parent is not None else None,
            }
            for category in self._categories
        ]

    # ------------------------------------------------------------------
    # Orthogonality

    def keyword_vectors(self, vocabulary: Sequence[str]) -> np.ndarray:
        """Binary keyword-presence matrix, one row per category."""
        vectors = np.zeros((len(self._categories), len(vocabulary)), dtype=float)
        for row, category in enumerate(self._categories):
            for column, term in enumerate(vocabulary):
                if any(token_matches(term, keyword) for keyword in category.keywords):
                    vectors[row, column] = 1.0
        return vectors

    def correlation_matrix(self, vocabulary: Sequence[str]) -> np.ndarray:
        return correlation_matrix(self.keyword_vectors(vocabulary))

    def correlated_pairs(
        self, vocabulary: Sequence[str], threshold: float = DEFAULT_CORRELATION_THRESHOLD
    ) -> List[CorrelatedPair]:
        return pairs_above(self.ids, self.correlation_matrix(vocabulary), threshold)


def correlation_matrix(vectors: np.ndarray) -> np.ndarray:
    """Pearson correlation between rows; constant rows correlate with nothing."""
    size = vectors.shape[0]
    if size == 0:
        return np.zeros((0, 0), dtype=float)
    centered = vectors - vectors.mean(axis=1, keepdims=True)
    norms = np.sqrt((centered * centered).sum(axis=1))
    safe = np.where(norms > 0, norms, 1.0)
    unit = centered / safe[:, np.newaxis]
    matrix = np.clip(unit @ unit.T, -1.0, 1.0)
    degenerate = norms == 0
    matrix[degenerate, :] = 0.0
    matrix[:, degenerate] = 0.0
    np.fill_diagonal(matrix, 1.0)
    return matrix


def pairs_above(
    ids: Sequence[str], correlations: np.ndarray, threshold: float
) -> List[CorrelatedPair]:
    """Upper-triangle pairs whose correlation exceeds ``threshold``.

    Disjoint keyword sets anti-correlate over a small vocabulary, so only
    positive correlation counts as overlap.
    """
    pairs: List[CorrelatedPair] = []
    for i in range(len(ids)):
        for j in range(i + 1, len(ids)):
            value = float(correlations[i, j])
            if value > threshold:
                pairs.append(CorrelatedPair(first=ids[i], second=ids[j], correlation=value))
    return pairs


def validate(
    taxonomy: Taxonomy,
    vocabulary: Sequence[str],
    threshold: float = DEFAULT_CORRELATION_THRESHOLD,
) -> None:
    """Raise CategoryDesignError when any category pair is too correlated."""
    pairs = taxonomy.correlated_pairs(vocabulary, threshold)
    if pairs:
        described = ", ".join(
            f"{pair.first}/{pair.second} ({pair.correlation:+.2f})" for pair in pairs
        )
        raise CategoryDesignError(
            f"{len(pairs)} category pair(s) exceed correlation {threshold:.2f}: {described}",
            pairs,
        )


def _normalize_keywords(value: Any, category_id: str) -> Tuple[str, ...]:
    if isinstance(value, str):
        items = [value]
    elif isinstance(value, Sequence):
        items = [str(item) for item in value if isinstance(item, (str, int, float))]
    else:
        items = []
    keywords = sorted({normalize_keyword(item) for item in items if str(item).strip()})
    if not keywords:
        raise ConfigurationError(f"Category {category_id} defines no keywords")
    return tuple(keywords)


def _resolve_path(
    category_id: str, raw: Mapping[str, Tuple[str, Tuple[str, ...], Optional[str]]]
) -> Tuple[str, ...]:
    path: List[str] = []
    seen = set()
    current: Optional[str] = category_id
    while current is not None:
        if current in seen:
            raise ConfigurationError(f"Category hierarchy contains a cycle through {current}")
        seen.add(current)
        path.append(current)
        current = raw[current][2]
    return tuple(reversed(path))


__all__ = [
    "DEFAULT_CORRELATION_THRESHOLD",
    "Taxonomy",
    "correlation_matrix",
    "pairs_above",
    "shortlex_key",
    "validate",
]
