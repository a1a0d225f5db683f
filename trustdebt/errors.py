"""Failure taxonomy for trust debt analysis runs."""

from __future__ import annotations

from typing import Iterable, List, Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .models import CorrelatedPair


class TrustDebtError(Exception):
    """Base class for all trustdebt errors."""


class ConfigurationError(TrustDebtError):
    """Raised when configuration or the taxonomy definition is unusable."""


class CategoryDesignError(TrustDebtError):
    """Advisory: category pairs exceed the orthogonality threshold."""

    def __init__(self, message: str, pairs: Sequence["CorrelatedPair"]) -> None:
        super().__init__(message)
        self.pairs = list(pairs)


class CorpusGapError(TrustDebtError):
    """A single document or commit could not be read."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"{source}: {reason}")
        self.source = source
        self.reason = reason


class HistoricalReconstructionGap(TrustDebtError):
    """A historical snapshot could not be rebuilt."""

    def __init__(self, commit_id: str, reason: str) -> None:
        super().__init__(f"{commit_id}: {reason}")
        self.commit_id = commit_id
        self.reason = reason


class GitCommandError(TrustDebtError):
    """Raised when a git invocation fails."""

    def __init__(self, args: Iterable[str], detail: str) -> None:
        self.command: List[str] = list(args)
        super().__init__(f"{' '.join(self.command)} failed: {detail}")
        self.detail = detail


__all__ = [
    "CategoryDesignError",
    "ConfigurationError",
    "CorpusGapError",
    "GitCommandError",
    "HistoricalReconstructionGap",
    "TrustDebtError",
]
