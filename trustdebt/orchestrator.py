"""Pipeline orchestration for single analyses and timeline replays."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import List, Optional, Sequence

from .categories import CategorySource, CategorySourceContext, discover_category_source
from .config import TrustDebtConfig, load_config
from .corpus import CorpusExtractor
from .drift import DriftCalculator, TimeMeta
from .errors import CategoryDesignError, ConfigurationError, CorpusGapError
from .git import GitHistory
from .git.history import Runner
from .health import ProcessHealthValidator
from .logging import get_logger, log_warning
from .matching import vocabulary
from .matrix import MatrixBuilder
from .models import AnalysisOutcome, AnalysisWarning, HistoryWindow, SourceDocument
from .source_tree import WorkingTreeSource
from .stores import ResultCache
from .taxonomy import Taxonomy, validate as validate_taxonomy
from .timeline import TimelineReplay, TimelineTracker

logger = get_logger("orchestrator")


class Orchestrator:
    """Coordinates extraction, matrix, drift, grading and health audits.

    ``config`` overrides the repository's ``.trustdebt.yml``; ``cache``
    overrides the cache named by the configuration.
    """

    def __init__(
        self,
        config: TrustDebtConfig | None = None,
        history_runner: Runner | None = None,
        cache: ResultCache | None = None,
        category_source: CategorySource | None = None,
    ) -> None:
        self._config_override = config
        self._history_runner = history_runner
        self._cache_override = cache
        self._category_source = category_source
        self.logger = logger

    def run(self, path: str | Path, window: HistoryWindow | None = None) -> AnalysisOutcome:
        """Measure Trust Debt for the working tree at ``path``."""
        repo_path = self._resolve_repo(path)
        self.logger.info("Starting analysis of %s", repo_path)
        config = self._load_config(repo_path)
        window = window or config.window

        history = GitHistory(repo_path, runner=self._history_runner)
        source = WorkingTreeSource(repo_path, config.corpus, history)
        taxonomy = self._load_taxonomy(config, source)
        self.logger.debug("Loaded %d categories", len(taxonomy))

        cache = self._resolve_cache(config)
        if cache is not None and window.has_relative_bounds():
            self.logger.debug("Window %s moves with the clock; result is not cached", window.label())
            cache = None
        key = window.label()
        signature = self._signature(taxonomy, config)
        fingerprint = source.fingerprint()
        if cache is not None:
            cached = cache.get(key, signature=signature, fingerprint=fingerprint)
            if cached is not None:
                self.logger.info("Reusing cached result for %s (%s)", repo_path, key)
                return cached

        extractor = CorpusExtractor(config.corpus, workers=config.runtime.workers)
        corpora = extractor.extract(source, taxonomy, window)
        warnings: List[AnalysisWarning] = list(corpora.warnings)

        texts = [entry.document.text for entry in corpora.intent.entries + corpora.reality.entries]
        try:
            validate_taxonomy(
                taxonomy,
                vocabulary(texts, taxonomy.all_keywords()),
                config.health.correlation_threshold,
            )
        except CategoryDesignError as exc:
            advisory = AnalysisWarning(kind="category-design", source="taxonomy", message=str(exc))
            log_warning(self.logger, advisory)
            warnings.append(advisory)

        matrix = MatrixBuilder().build(corpora.intent, corpora.reality, taxonomy)
        time_meta = TimeMeta.from_corpora(corpora.intent, corpora.reality, len(taxonomy))
        result = DriftCalculator(config.drift).calculate(matrix, taxonomy, time_meta)
        health = ProcessHealthValidator(config.health).validate(taxonomy, matrix, corpora)

        outcome = AnalysisOutcome(result=result, health=health, warnings=warnings)
        self.logger.info(
            "Trust Debt %.1f units, grade %s, process health %s",
            result.total_units,
            result.grade.value,
            health.legitimacy.value,
        )
        for caveat in outcome.caveats:
            self.logger.warning(caveat)

        if cache is not None:
            cache.store(key, signature=signature, fingerprint=fingerprint, outcome=outcome)
            cache.persist()
        return outcome

    def run_timeline(self, path: str | Path, commit_range: str) -> TimelineReplay:
        """Return a lazy replay of every commit in ``commit_range``."""
        repo_path = self._resolve_repo(path)
        config = self._load_config(repo_path)
        history = GitHistory(repo_path, runner=self._history_runner)
        if not history.is_repository():
            raise ConfigurationError(f"{repo_path} is not a git repository")
        source = WorkingTreeSource(repo_path, config.corpus, history)
        taxonomy = self._load_taxonomy(config, source)
        tracker = TimelineTracker(
            CorpusExtractor(config.corpus, workers=config.runtime.workers),
            calculator=DriftCalculator(config.drift),
            validator=ProcessHealthValidator(config.health),
            window=config.window,
            workers=config.runtime.workers,
            snapshot_timeout=config.runtime.snapshot_timeout,
        )
        self.logger.info("Replaying %s in %s", commit_range, repo_path)
        return tracker.replay(history, taxonomy, commit_range)

    # ------------------------------------------------------------------
    # Internals

    @staticmethod
    def _resolve_repo(path: str | Path) -> Path:
        repo_path = Path(path).expanduser().resolve()
        if not repo_path.is_dir():
            raise ConfigurationError(f"Repository path does not exist: {repo_path}")
        return repo_path

    def _load_config(self, repo_path: Path) -> TrustDebtConfig:
        if self._config_override is not None:
            return self._config_override
        return load_config(repo_path)

    def _load_taxonomy(self, config: TrustDebtConfig, source: WorkingTreeSource) -> Taxonomy:
        category_source = self._category_source or discover_category_source(config.taxonomy.source)
        context = CategorySourceContext(
            root=config.root,
            config=config,
            documents=lambda: _read_documents(source),
        )
        return category_source.load(context)

    def _resolve_cache(self, config: TrustDebtConfig) -> Optional[ResultCache]:
        if self._cache_override is not None:
            return self._cache_override
        if not config.cache.enabled or config.cache.path is None:
            return None
        return ResultCache(config.cache.path)

    @staticmethod
    def _signature(taxonomy: Taxonomy, config: TrustDebtConfig) -> str:
        digest = hashlib.sha256()
        digest.update(taxonomy.fingerprint().encode("utf-8"))
        digest.update(config.settings_digest().encode("utf-8"))
        return digest.hexdigest()


def _read_documents(source: WorkingTreeSource) -> Sequence[SourceDocument]:
    documents: List[SourceDocument] = []
    for ref in source.document_refs():
        try:
            documents.append(source.read_document(ref))
        except CorpusGapError as exc:
            logger.debug("Category source skips %s", exc)
    return documents


__all__ = ["Orchestrator"]
