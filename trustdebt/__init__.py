"""Trust Debt measurement: drift between documented intent and change reality."""

from .errors import (
    CategoryDesignError,
    ConfigurationError,
    CorpusGapError,
    HistoricalReconstructionGap,
    TrustDebtError,
)
from .models import AnalysisOutcome, Grade, Legitimacy, ProcessHealthReport, TrustDebtResult
from .orchestrator import Orchestrator

__all__ = [
    "AnalysisOutcome",
    "CategoryDesignError",
    "ConfigurationError",
    "CorpusGapError",
    "Grade",
    "HistoricalReconstructionGap",
    "Legitimacy",
    "Orchestrator",
    "ProcessHealthReport",
    "TrustDebtError",
    "TrustDebtResult",
]
