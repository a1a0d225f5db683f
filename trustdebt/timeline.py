"""Timeline replay: the full pipeline re-run at successive commits."""

from __future__ import annotations

from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from typing import Deque, Iterator, List, Optional, Sequence, Tuple

from .corpus import CorpusExtractor
from .drift import DriftCalculator, TimeMeta
from .errors import GitCommandError, HistoricalReconstructionGap
from .git import GitHistory
from .health import ProcessHealthValidator
from .logging import get_logger
from .matrix import MatrixBuilder
from .models import HistoryWindow, TimelineGap, TimelineSnapshot
from .source_tree import CommitSnapshotSource
from .taxonomy import Taxonomy

logger = get_logger("timeline")

TREND_TOLERANCE = 0.05
DEFAULT_TREND_WINDOW = 3


class TimelineTracker:
    """Replays extraction, matrix, drift and health at every commit in a range.

    Each snapshot reads documentation through ``git ls-tree``/``git show`` at
    the commit and takes the Reality corpus from the history reachable from
    it, narrowed by ``window``'s date and count bounds.
    """

    def __init__(
        self,
        extractor: CorpusExtractor | None = None,
        builder: MatrixBuilder | None = None,
        calculator: DriftCalculator | None = None,
        validator: ProcessHealthValidator | None = None,
        *,
        window: HistoryWindow | None = None,
        workers: int = 4,
        snapshot_timeout: float = 60.0,
    ) -> None:
        self.extractor = extractor or CorpusExtractor()
        self.builder = builder or MatrixBuilder()
        self.calculator = calculator or DriftCalculator()
        self.validator = validator or ProcessHealthValidator()
        self.window = window or HistoryWindow()
        self.workers = max(1, workers)
        self.snapshot_timeout = snapshot_timeout

    def replay(self, history: GitHistory, taxonomy: Taxonomy, commit_range: str) -> "TimelineReplay":
        return TimelineReplay(self, history, taxonomy, commit_range)

    def snapshot(self, history: GitHistory, taxonomy: Taxonomy, commit: str) -> TimelineSnapshot:
        """Analyse the repository as it existed at ``commit``."""
        source = CommitSnapshotSource(history, commit, self.extractor.corpus)
        window = replace(self.window, revision_range=commit)
        corpora = self.extractor.extract(source, taxonomy, window)
        matrix = self.builder.build(corpora.intent, corpora.reality, taxonomy)
        time_meta = TimeMeta.from_corpora(corpora.intent, corpora.reality, len(taxonomy))
        result = self.calculator.calculate(matrix, taxonomy, time_meta)
        health = self.validator.validate(taxonomy, matrix, corpora)
        return TimelineSnapshot(
            commit_id=commit,
            timestamp=source.timestamp,
            result=result,
            health=health,
        )


class TimelineReplay:
    """Lazy, finite, restartable sequence of snapshots.

    Every iteration lists the range again and re-derives each snapshot, so
    iterating twice yields equal sequences. ``gaps`` holds the commits the
    most recent iteration had to skip.
    """

    def __init__(
        self,
        tracker: TimelineTracker,
        history: GitHistory,
        taxonomy: Taxonomy,
        commit_range: str,
    ) -> None:
        self.tracker = tracker
        self.history = history
        self.taxonomy = taxonomy
        self.commit_range = commit_range
        self.gaps: List[TimelineGap] = []

    def __iter__(self) -> Iterator[TimelineSnapshot]:
        self.gaps = []
        try:
            commits = self.history.rev_list(self.commit_range)
        except GitCommandError as exc:
            logger.warning("Cannot list commits in %s: %s", self.commit_range, exc.detail)
            self.gaps.append(TimelineGap(commit_id=self.commit_range, reason=exc.detail))
            return
        logger.debug("Replaying %d commits in %s", len(commits), self.commit_range)
        yield from self._replay(commits)

    def _replay(self, commits: Sequence[str]) -> Iterator[TimelineSnapshot]:
        pool = self._pool()
        pending: Deque[Tuple[str, Future]] = deque()
        queue = iter(commits)
        try:
            for commit in queue:
                pending.append((commit, self._submit(pool, commit)))
                if len(pending) >= self.tracker.workers:
                    break
            while pending:
                commit, future = pending.popleft()
                try:
                    snapshot = self._resolve(commit, future)
                except FutureTimeoutError:
                    self._record_gap(commit, f"snapshot exceeded {self.tracker.snapshot_timeout:g}s")
                    snapshot = None
                    pool = self._retire(pool, pending)
                following = next(queue, None)
                if following is not None:
                    pending.append((following, self._submit(pool, following)))
                if snapshot is not None:
                    yield snapshot
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def _pool(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=self.tracker.workers, thread_name_prefix="trustdebt-timeline")

    def _submit(self, pool: ThreadPoolExecutor, commit: str) -> Future:
        return pool.submit(self.tracker.snapshot, self.history, self.taxonomy, commit)

    def _retire(self, pool: ThreadPoolExecutor, pending: Deque[Tuple[str, Future]]) -> ThreadPoolExecutor:
        """Abandon a pool holding a stuck worker; queued snapshots move to a fresh one."""
        fresh = self._pool()
        for position, (commit, future) in enumerate(pending):
            if future.cancel():
                pending[position] = (commit, self._submit(fresh, commit))
        pool.shutdown(wait=False, cancel_futures=True)
        return fresh

    def _resolve(self, commit: str, future: Future) -> Optional[TimelineSnapshot]:
        try:
            return future.result(timeout=self.tracker.snapshot_timeout)
        except HistoricalReconstructionGap as exc:
            reason = exc.reason
        except GitCommandError as exc:
            reason = exc.detail
        self._record_gap(commit, reason)
        return None

    def _record_gap(self, commit: str, reason: str) -> None:
        logger.warning("Skipping commit %s: %s", commit, reason)
        self.gaps.append(TimelineGap(commit_id=commit, reason=reason))


def summarize_trend(
    snapshots: Sequence[TimelineSnapshot], window: int = DEFAULT_TREND_WINDOW
) -> str:
    """Compare the latest ``window`` snapshots with the ones before them.

    Returns ``improving`` when mean Trust Debt fell by more than 5%,
    ``worsening`` when it rose by more than 5%, ``stable`` otherwise and
    ``unknown`` with fewer than two snapshots.
    """
    values = [snapshot.result.total_units for snapshot in snapshots]
    if len(values) < 2:
        return "unknown"
    size = min(max(1, window), len(values) // 2)
    recent = values[-size:]
    previous = values[-2 * size : -size]
    recent_mean = sum(recent) / len(recent)
    previous_mean = sum(previous) / len(previous)
    if previous_mean == 0:
        return "stable" if recent_mean == 0 else "worsening"
    change = (recent_mean - previous_mean) / previous_mean
    if change > TREND_TOLERANCE:
        return "worsening"
    if change < -TREND_TOLERANCE:
        return "improving"
    return "stable"


__all__ = ["TimelineReplay", "TimelineTracker", "summarize_trend"]
