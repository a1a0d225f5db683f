"""Intent and Reality corpus extraction."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple

from .config import CorpusConfig
from .errors import CorpusGapError, GitCommandError
from .logging import get_logger, log_warning
from .matching import KeywordMatcher
from .models import (
    AnalysisWarning,
    Commit,
    Corpora,
    Corpus,
    CorpusDocument,
    CorpusEntry,
    HistoryWindow,
)
from .source_tree import DocumentRef, SourceTree
from .taxonomy import Taxonomy

logger = get_logger("corpus")

_Outcome = Tuple[Optional[CorpusEntry], Optional[AnalysisWarning]]


class CorpusExtractor:
    """Builds weighted Intent (documentation) and Reality (commits) corpora.

    Documents and commits are read and matched on a bounded thread pool.
    Results are collected in input order, so the corpora and their counts do
    not depend on how work was scheduled.
    """

    def __init__(self, corpus: CorpusConfig | None = None, *, workers: int = 4) -> None:
        self.corpus = corpus or CorpusConfig()
        self.workers = max(1, workers)

    def extract(self, source_tree: SourceTree, taxonomy: Taxonomy, window: HistoryWindow) -> Corpora:
        matcher = KeywordMatcher(taxonomy.keyword_sets())
        warnings: List[AnalysisWarning] = []

        refs = source_tree.document_refs()
        try:
            commits = source_tree.commits(window)
        except GitCommandError as exc:
            gap = AnalysisWarning(kind="corpus-gap", source="history", message=str(exc))
            log_warning(logger, gap)
            warnings.append(gap)
            commits = []

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="trustdebt-corpus") as pool:
            intent_outcomes = list(
                pool.map(lambda ref: self._intent_entry(source_tree, ref, matcher), refs)
            )
            reality_outcomes = list(
                pool.map(lambda commit: self._reality_entry(commit, matcher), commits)
            )

        intent = _collect("intent", intent_outcomes, warnings)
        reality = _collect("reality", reality_outcomes, warnings)
        logger.debug(
            "Extracted %d intent documents and %d commits (%d warnings)",
            len(intent),
            len(reality),
            len(warnings),
        )
        return Corpora(intent=intent, reality=reality, warnings=tuple(warnings))

    def _intent_entry(self, source_tree: SourceTree, ref: DocumentRef, matcher: KeywordMatcher) -> _Outcome:
        try:
            document = source_tree.read_document(ref)
        except CorpusGapError as exc:
            gap = AnalysisWarning(kind="corpus-gap", source=exc.source, message=exc.reason)
            log_warning(logger, gap)
            return None, gap
        weight = self.corpus.document_classes.get(document.doc_class, 0.0)
        corpus_document = CorpusDocument(
            source=document.path,
            text=document.text,
            weight=weight,
            timestamp=document.timestamp,
            doc_class=document.doc_class,
        )
        return CorpusEntry(document=corpus_document, counts=matcher.count(document.text)), None

    def _reality_entry(self, commit: Commit, matcher: KeywordMatcher) -> _Outcome:
        document = CorpusDocument(
            source=commit.sha,
            text=commit.message,
            weight=self.corpus.commit_weight,
            timestamp=commit.timestamp,
        )
        return CorpusEntry(document=document, counts=matcher.count(document.text)), None


def build_corpus(
    kind: str, documents: Sequence[CorpusDocument], taxonomy: Taxonomy
) -> Corpus:
    """Match already-weighted documents against ``taxonomy``."""
    matcher = KeywordMatcher(taxonomy.keyword_sets())
    entries = tuple(
        CorpusEntry(document=document, counts=matcher.count(document.text)) for document in documents
    )
    return Corpus(kind=kind, entries=entries)


def _collect(kind: str, outcomes: Sequence[_Outcome], warnings: List[AnalysisWarning]) -> Corpus:
    entries: List[CorpusEntry] = []
    for entry, warning in outcomes:
        if warning is not None:
            warnings.append(warning)
        if entry is not None:
            entries.append(entry)
    return Corpus(kind=kind, entries=tuple(entries))


__all__ = ["CorpusExtractor", "build_corpus"]
