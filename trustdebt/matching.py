"""Keyword matching shared by corpus extraction and taxonomy validation."""

from __future__ import annotations

import re
from typing import Iterable, List, Pattern, Sequence, Set, Tuple

_WORD_PATTERN = re.compile(r"[a-z0-9_]+")


def normalize_keyword(keyword: str) -> str:
    return " ".join(keyword.strip().lower().split())


def tokenize(text: str) -> List[str]:
    return _WORD_PATTERN.findall(text.lower())


def token_matches(token: str, keyword: str) -> bool:
    """Stem match: a single-word keyword matches any token it prefixes."""
    if token == keyword:
        return True
    return " " not in keyword and token.startswith(keyword)


def vocabulary(texts: Iterable[str], keywords: Iterable[str] = ()) -> Tuple[str, ...]:
    """Sorted union of corpus tokens and keyword terms."""
    terms: Set[str] = set()
    for text in texts:
        terms.update(tokenize(text))
    terms.update(normalize_keyword(keyword) for keyword in keywords if keyword.strip())
    return tuple(sorted(terms))


class KeywordMatcher:
    """Counts case-insensitive keyword hits per category.

    A hit is a keyword occurring at the start of a word, so ``secur`` counts
    ``security`` and ``secure`` but ``security`` does not count ``insecurity``.
    Each occurrence is counted once per category even when several of its
    keywords would match at the same position.
    """

    def __init__(self, keyword_sets: Sequence[Iterable[str]]) -> None:
        self._patterns: List[Pattern[str]] = [
            _compile(keywords) for keywords in keyword_sets
        ]

    @property
    def width(self) -> int:
        return len(self._patterns)

    def count(self, text: str) -> Tuple[int, ...]:
        lowered = text.lower()
        return tuple(len(pattern.findall(lowered)) for pattern in self._patterns)


def _compile(keywords: Iterable[str]) -> Pattern[str]:
    normalized = sorted(
        {normalize_keyword(keyword) for keyword in keywords if keyword.strip()},
        key=lambda item: (-len(item), item),
    )
    if not normalized:
        # Matches nothing.
        return re.compile(r"(?!x)x")
    alternatives = "|".join(r"\s+".join(re.escape(part) for part in kw.split(" ")) for kw in normalized)
    return re.compile(rf"(?<![a-z0-9_])(?:{alternatives})")


__all__ = [
    "KeywordMatcher",
    "normalize_keyword",
    "token_matches",
    "tokenize",
    "vocabulary",
]
