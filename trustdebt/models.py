"""Core data models shared across trustdebt components."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Grade(str, Enum):
    """Letter grade for a total Trust Debt score; A is best."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"

    @property
    def rank(self) -> int:
        return "ABCD".index(self.value)


class Legitimacy(str, Enum):
    """Whether a measurement can be trusted, from Process Health."""

    LEGITIMATE = "LEGITIMATE"
    QUESTIONABLE = "QUESTIONABLE"
    INVALID = "INVALID"


@dataclass(frozen=True)
class Category:
    """One node of the category taxonomy.

    ``parent`` is the index of the parent record inside the owning taxonomy,
    ``order_key`` the path of ids from the root down to this category.
    """

    id: str
    name: str
    keywords: Tuple[str, ...]
    parent: Optional[int] = None
    order_key: Tuple[str, ...] = ()

    @property
    def depth(self) -> int:
        return max(len(self.order_key) - 1, 0)


@dataclass(frozen=True)
class HistoryWindow:
    """Bounds of the change history feeding the Reality corpus."""

    revision_range: Optional[str] = None
    since: Optional[str] = None
    until: Optional[str] = None
    max_count: Optional[int] = None

    def label(self) -> str:
        parts = [
            f"range={self.revision_range or 'HEAD'}",
            f"since={self.since or '-'}",
            f"until={self.until or '-'}",
            f"max={self.max_count if self.max_count is not None else '-'}",
        ]
        return ";".join(parts)

    def has_relative_bounds(self) -> bool:
        """True when ``since``/``until`` depend on the clock (e.g. "2 weeks ago")."""
        return any(bound and not _is_absolute_date(bound) for bound in (self.since, self.until))


def _is_absolute_date(value: str) -> bool:
    text = value.strip()
    try:
        float(text)
    except ValueError:
        pass
    else:
        return True
    try:
        datetime.fromisoformat(text)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class Commit:
    """A single entry of the change log."""

    sha: str
    timestamp: float
    subject: str
    body: str = ""
    parents: Tuple[str, ...] = ()

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def message(self) -> str:
        return f"{self.subject}\n{self.body}".strip()


@dataclass(frozen=True)
class SourceDocument:
    """A documentation file as read from a source tree."""

    path: str
    text: str
    doc_class: str
    timestamp: float


@dataclass(frozen=True)
class CorpusDocument:
    """Weighted text contributing to the Intent or Reality corpus."""

    source: str
    text: str
    weight: float
    timestamp: float
    doc_class: str = "commit"


@dataclass(frozen=True)
class CorpusEntry:
    """A corpus document with its per-category keyword hit counts."""

    document: CorpusDocument
    counts: Tuple[int, ...]

    @property
    def matched(self) -> bool:
        return any(self.counts)


@dataclass(frozen=True)
class Corpus:
    """Ordered, immutable collection of corpus entries."""

    kind: str
    entries: Tuple[CorpusEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def matched_count(self) -> int:
        return sum(1 for entry in self.entries if entry.matched)

    def mention_totals(self) -> Tuple[int, ...]:
        if not self.entries:
            return ()
        width = len(self.entries[0].counts)
        totals = [0] * width
        for entry in self.entries:
            for index, count in enumerate(entry.counts):
                totals[index] += count
        return tuple(totals)


@dataclass(frozen=True)
class AnalysisWarning:
    """Structured record of a recovered or advisory failure."""

    kind: str
    source: str
    message: str


@dataclass(frozen=True)
class Corpora:
    """Intent and Reality corpora from a single extraction."""

    intent: Corpus
    reality: Corpus
    warnings: Tuple[AnalysisWarning, ...] = ()


@dataclass(frozen=True)
class CorrelatedPair:
    first: str
    second: str
    correlation: float


@dataclass(frozen=True)
class TrustDebtResult:
    """Outcome of the drift calculation; treated as a value object."""

    total_units: float
    grade: Grade
    grade_label: str
    asymmetry_ratio: Optional[float]
    orthogonality_fraction: float
    per_category: Dict[str, float]
    upper_sum: float = 0.0
    lower_sum: float = 0.0
    diagonal_sum: float = 0.0
    asymmetry_interpretation: str = "undetermined"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["grade"] = self.grade.value
        data["per_category"] = dict(self.per_category)
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TrustDebtResult":
        ratio = payload.get("asymmetry_ratio")
        return cls(
            total_units=float(payload["total_units"]),
            grade=Grade(payload["grade"]),
            grade_label=str(payload["grade_label"]),
            asymmetry_ratio=float(ratio) if ratio is not None else None,
            orthogonality_fraction=float(payload["orthogonality_fraction"]),
            per_category={str(k): float(v) for k, v in payload["per_category"].items()},
            upper_sum=float(payload.get("upper_sum", 0.0)),
            lower_sum=float(payload.get("lower_sum", 0.0)),
            diagonal_sum=float(payload.get("diagonal_sum", 0.0)),
            asymmetry_interpretation=str(payload.get("asymmetry_interpretation", "undetermined")),
        )


@dataclass(frozen=True)
class ProcessHealthReport:
    """Independent audit of whether a measurement is trustworthy."""

    orthogonality_score: float
    uniformity_score: float
    coverage_score: float
    overall_score: float
    legitimacy: Legitimacy
    correlated_pairs: Tuple[CorrelatedPair, ...] = ()
    category_totals: Dict[str, float] = field(default_factory=dict)
    overloaded: Tuple[str, ...] = ()
    underrepresented: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["legitimacy"] = self.legitimacy.value
        data["correlated_pairs"] = [asdict(pair) for pair in self.correlated_pairs]
        data["overloaded"] = list(self.overloaded)
        data["underrepresented"] = list(self.underrepresented)
        data["recommendations"] = list(self.recommendations)
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ProcessHealthReport":
        return cls(
            orthogonality_score=float(payload["orthogonality_score"]),
            uniformity_score=float(payload["uniformity_score"]),
            coverage_score=float(payload["coverage_score"]),
            overall_score=float(payload["overall_score"]),
            legitimacy=Legitimacy(payload["legitimacy"]),
            correlated_pairs=tuple(
                CorrelatedPair(
                    first=str(item["first"]),
                    second=str(item["second"]),
                    correlation=float(item["correlation"]),
                )
                for item in payload.get("correlated_pairs", [])
            ),
            category_totals={
                str(k): float(v) for k, v in payload.get("category_totals", {}).items()
            },
            overloaded=tuple(payload.get("overloaded", [])),
            underrepresented=tuple(payload.get("underrepresented", [])),
            recommendations=tuple(payload.get("recommendations", [])),
        )


@dataclass(frozen=True)
class TimelineSnapshot:
    """Point-in-time analysis result for one commit boundary."""

    commit_id: str
    timestamp: float
    result: TrustDebtResult
    health: Optional[ProcessHealthReport] = None


@dataclass(frozen=True)
class TimelineGap:
    commit_id: str
    reason: str


@dataclass
class AnalysisOutcome:
    """Bundle handed to reporting collaborators."""

    result: TrustDebtResult
    health: ProcessHealthReport
    warnings: List[AnalysisWarning] = field(default_factory=list)
    cached: bool = False

    @property
    def caveats(self) -> List[str]:
        notes: List[str] = []
        if self.health.legitimacy is Legitimacy.INVALID:
            notes.append(
                "Process health is INVALID: the drift measurement itself is not trustworthy."
            )
        elif self.health.legitimacy is Legitimacy.QUESTIONABLE:
            notes.append("Process health is QUESTIONABLE: interpret the score with care.")
        gaps = [warning for warning in self.warnings if warning.kind.endswith("gap")]
        if gaps:
            notes.append(f"{len(gaps)} source(s) could not be read and contributed no weight.")
        return notes

    def to_dict(self) -> Dict[str, Any]:
        return {
            "result": self.result.to_dict(),
            "health": self.health.to_dict(),
            "warnings": [asdict(warning) for warning in self.warnings],
            "caveats": self.caveats,
        }


__all__ = [
    "AnalysisOutcome",
    "AnalysisWarning",
    "Category",
    "Commit",
    "Corpora",
    "Corpus",
    "CorpusDocument",
    "CorpusEntry",
    "CorrelatedPair",
    "Grade",
    "HistoryWindow",
    "Legitimacy",
    "ProcessHealthReport",
    "SourceDocument",
    "TimelineGap",
    "TimelineSnapshot",
    "TrustDebtResult",
]
