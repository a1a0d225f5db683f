"""Base classes for category source plugins."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from ..config import TrustDebtConfig
from ..models import SourceDocument
from ..taxonomy import Taxonomy


@dataclass
class CategorySourceContext:
    """Inputs available to a category source."""

    root: Path
    config: TrustDebtConfig
    documents: Callable[[], Sequence[SourceDocument]]


class CategorySource(ABC):
    """Contract for deterministic producers of a category taxonomy."""

    name: str = ""

    @abstractmethod
    def load(self, context: CategorySourceContext) -> Taxonomy:
        """Return the taxonomy, raising ConfigurationError when unusable."""
