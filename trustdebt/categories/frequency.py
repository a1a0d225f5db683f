"""Deterministic category generation from documentation term frequencies."""

from __future__ import annotations

from collections import Counter
from typing import Dict, Iterable, List, Sequence

from ..errors import ConfigurationError
from ..logging import get_logger
from ..matching import tokenize
from ..taxonomy import Taxonomy
from .base import CategorySource, CategorySourceContext

logger = get_logger("categories.frequency")

_MIN_TERM_LENGTH = 4

_STOPWORDS = {
    "about",
    "after",
    "again",
    "also",
    "been",
    "before",
    "being",
    "between",
    "both",
    "could",
    "does",
    "each",
    "every",
    "from",
    "have",
    "here",
    "into",
    "just",
    "like",
    "make",
    "more",
    "most",
    "must",
    "only",
    "other",
    "over",
    "same",
    "should",
    "some",
    "such",
    "than",
    "that",
    "their",
    "them",
    "then",
    "there",
    "these",
    "they",
    "this",
    "those",
    "through",
    "under",
    "until",
    "used",
    "using",
    "very",
    "were",
    "what",
    "when",
    "where",
    "which",
    "while",
    "will",
    "with",
    "within",
    "without",
    "would",
    "your",
}


class FrequencyCategorySource(CategorySource):
    """Groups the most frequent documentation terms into balanced categories.

    Candidate terms are ranked by count with ties broken alphabetically and
    dealt to categories in snake order (1..n, n..1, ...) so each category ends
    up with a similar share of mentions.
    """

    name = "frequency"

    def __init__(self, categories: int | None = None, keywords_per_category: int | None = None) -> None:
        self._categories = categories
        self._keywords = keywords_per_category

    def load(self, context: CategorySourceContext) -> Taxonomy:
        categories = self._categories or context.config.taxonomy.frequency_categories
        per_category = self._keywords or context.config.taxonomy.frequency_keywords
        texts = [document.text for document in context.documents()]
        records = build_frequency_records(texts, categories, per_category)
        logger.info("Derived %d categories from %d documents", len(records), len(texts))
        return Taxonomy.from_records(records)


def rank_terms(texts: Iterable[str]) -> List[tuple[str, int]]:
    counts: Counter[str] = Counter()
    for text in texts:
        for token in tokenize(text):
            if len(token) < _MIN_TERM_LENGTH or token in _STOPWORDS or token.isdigit():
                continue
            counts[token] += 1
    return sorted(counts.items(), key=lambda item: (-item[1], item[0]))


def build_frequency_records(
    texts: Sequence[str], categories: int, keywords_per_category: int
) -> List[Dict[str, object]]:
    ranked = rank_terms(texts)[: categories * keywords_per_category]
    if len(ranked) < categories:
        raise ConfigurationError(
            f"Documentation vocabulary too small for {categories} categories ({len(ranked)} terms)"
        )

    buckets: List[List[str]] = [[] for _ in range(categories)]
    for position, (term, _) in enumerate(ranked):
        lap, offset = divmod(position, categories)
        index = offset if lap % 2 == 0 else categories - 1 - offset
        buckets[index].append(term)

    width = len(str(categories))
    return [
        {
            "id": f"F{number + 1:0{width}d}",
            "name": bucket[0].title(),
            "keywords": bucket,
        }
        for number, bucket in enumerate(buckets)
        if bucket
    ]


__all__ = ["FrequencyCategorySource", "build_frequency_records", "rank_terms"]
