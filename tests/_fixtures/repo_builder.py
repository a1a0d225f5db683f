"""Helper utilities for constructing temporary repositories in tests."""

from __future__ import annotations

import textwrap
from pathlib import Path
from typing import List, Mapping

from trustdebt.config import CorpusConfig
from trustdebt.repo_scanner import DocumentFile, RepoScanner


class RepoBuilder:
    """Utility for writing files into a throwaway repository and rescanning it."""

    def __init__(self, tmp_path: Path, corpus: CorpusConfig | None = None) -> None:
        self.root = tmp_path / "repo"
        self.root.mkdir()
        self._scanner = RepoScanner(corpus)

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the repository."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def init_git(self) -> None:
        """Mark the repository as a git checkout; commands go to a fake runner."""
        (self.root / ".git").mkdir(exist_ok=True)

    def scan(self) -> List[DocumentFile]:
        """Return a fresh list of the repository's documentation files."""
        return self._scanner.scan(self.root)

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root


__all__ = ["RepoBuilder"]
