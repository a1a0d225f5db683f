"""Versioned source trees: documentation plus change history."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Sequence

from .config import CorpusConfig
from .errors import CorpusGapError, GitCommandError, HistoricalReconstructionGap
from .git import GitHistory
from .logging import get_logger
from .models import Commit, HistoryWindow, SourceDocument
from .repo_scanner import RepoScanner, classify_document

logger = get_logger("source_tree")


@dataclass(frozen=True)
class DocumentRef:
    path: str
    doc_class: str


class SourceTree(Protocol):
    """Read access to documentation and change history at one point in time."""

    def document_refs(self) -> List[DocumentRef]:
        """List documentation files, sorted by path."""

    def read_document(self, ref: DocumentRef) -> SourceDocument:
        """Read one document, raising CorpusGapError when unreadable."""

    def commits(self, window: HistoryWindow) -> List[Commit]:
        """Return commits inside ``window``, oldest first."""

    def fingerprint(self) -> str:
        """Stable digest of the tree state."""


class WorkingTreeSource:
    """The checked-out working tree plus its git history, when present."""

    def __init__(
        self,
        root: Path | str,
        corpus: CorpusConfig | None = None,
        history: GitHistory | None = None,
    ) -> None:
        self.root = Path(root).expanduser().resolve()
        self.corpus = corpus or CorpusConfig()
        self.history = history or GitHistory(self.root)
        self._scanner = RepoScanner(self.corpus)
        self._hashes: Optional[Dict[str, str]] = None
        self._scan_errors: Dict[str, str] = {}

    def document_refs(self) -> List[DocumentRef]:
        files = self._scanner.scan(self.root)
        self._hashes = {item.path: item.hash or "unreadable" for item in files}
        self._scan_errors = {item.path: item.error for item in files if item.error is not None}
        return [DocumentRef(path=item.path, doc_class=item.doc_class) for item in files]

    def read_document(self, ref: DocumentRef) -> SourceDocument:
        scan_error = self._scan_errors.get(ref.path)
        if scan_error is not None:
            raise CorpusGapError(ref.path, scan_error)
        path = self.root / ref.path
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
            mtime = path.stat().st_mtime
        except OSError as exc:
            raise CorpusGapError(ref.path, str(exc)) from exc
        return SourceDocument(
            path=ref.path,
            text=text,
            doc_class=ref.doc_class,
            timestamp=self._last_modified(ref.path, mtime),
        )

    def commits(self, window: HistoryWindow) -> List[Commit]:
        if not self.history.is_repository():
            logger.debug("%s is not a git repository; Reality corpus is empty", self.root)
            return []
        return self.history.log(window, include_merges=self.corpus.include_merges)

    def fingerprint(self) -> str:
        if self._hashes is None:
            self.document_refs()
        digest = hashlib.sha256()
        if self.history.is_repository():
            try:
                digest.update(self.history.head().encode("utf-8"))
            except GitCommandError:
                digest.update(b"no-head")
        for path, file_hash in sorted((self._hashes or {}).items()):
            digest.update(f"{path}\0{file_hash}\n".encode("utf-8"))
        return digest.hexdigest()

    def _last_modified(self, rel_path: str, fallback: float) -> float:
        if not self.history.is_repository():
            return fallback
        try:
            stamp = self.history.last_modified(rel_path)
        except GitCommandError:
            return fallback
        return stamp if stamp is not None else fallback


class CommitSnapshotSource:
    """The repository as it existed at ``commit``, read through git objects."""

    def __init__(self, history: GitHistory, commit: str, corpus: CorpusConfig | None = None) -> None:
        self.history = history
        self.commit = commit
        self.corpus = corpus or CorpusConfig()
        self._timestamp: Optional[float] = None

    @property
    def timestamp(self) -> float:
        if self._timestamp is None:
            try:
                self._timestamp = self.history.commit_timestamp(self.commit)
            except GitCommandError as exc:
                raise HistoricalReconstructionGap(self.commit, exc.detail) from exc
        return self._timestamp

    def document_refs(self) -> List[DocumentRef]:
        try:
            paths = self.history.ls_tree(self.commit)
        except GitCommandError as exc:
            raise HistoricalReconstructionGap(self.commit, exc.detail) from exc
        refs: List[DocumentRef] = []
        for path in sorted(paths):
            doc_class = classify_document(path, self.corpus.class_patterns)
            if doc_class is not None:
                refs.append(DocumentRef(path=path, doc_class=doc_class))
        return refs

    def read_document(self, ref: DocumentRef) -> SourceDocument:
        try:
            text = self.history.show(self.commit, ref.path)
            stamp = self.history.last_modified(ref.path, self.commit)
        except GitCommandError as exc:
            raise CorpusGapError(f"{self.commit}:{ref.path}", exc.detail) from exc
        return SourceDocument(
            path=ref.path,
            text=text,
            doc_class=ref.doc_class,
            timestamp=stamp if stamp is not None else self.timestamp,
        )

    def commits(self, window: HistoryWindow) -> List[Commit]:
        try:
            return self.history.log(window, include_merges=self.corpus.include_merges)
        except GitCommandError as exc:
            raise HistoricalReconstructionGap(self.commit, exc.detail) from exc

    def fingerprint(self) -> str:
        return hashlib.sha256(self.commit.encode("utf-8")).hexdigest()


class StaticSource:
    """Caller-supplied documents and commits.

    Only ``max_count`` of a window is honored; date and range bounds are the
    caller's responsibility.
    """

    def __init__(self, documents: Sequence[SourceDocument] = (), commits: Sequence[Commit] = ()) -> None:
        self._documents = {document.path: document for document in documents}
        self._commits = sorted(commits, key=lambda commit: (commit.timestamp, commit.sha))

    def document_refs(self) -> List[DocumentRef]:
        return [
            DocumentRef(path=path, doc_class=self._documents[path].doc_class)
            for path in sorted(self._documents)
        ]

    def read_document(self, ref: DocumentRef) -> SourceDocument:
        try:
            return self._documents[ref.path]
        except KeyError as exc:
            raise CorpusGapError(ref.path, "document not found") from exc

    def commits(self, window: HistoryWindow) -> List[Commit]:
        if window.max_count is not None:
            return list(self._commits[-window.max_count :]) if window.max_count > 0 else []
        return list(self._commits)

    def fingerprint(self) -> str:
        payload = {
            "documents": [
                [document.path, document.doc_class, document.timestamp, document.text]
                for _, document in sorted(self._documents.items())
            ],
            "commits": [
                [commit.sha, commit.timestamp, commit.subject, commit.body] for commit in self._commits
            ],
        }
        encoded = json.dumps(payload, sort_keys=True, ensure_ascii=False).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


__all__ = [
    "CommitSnapshotSource",
    "DocumentRef",
    "SourceTree",
    "StaticSource",
    "WorkingTreeSource",
]
