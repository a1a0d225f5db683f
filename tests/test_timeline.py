"""Tests for timeline replay and trend summaries."""

from __future__ import annotations

import threading
from typing import List

import pytest

from tests._fixtures.fake_git import FakeGit
from trustdebt.corpus import CorpusExtractor
from trustdebt.git import GitHistory
from trustdebt.grading import band_for
from trustdebt.models import TimelineSnapshot, TrustDebtResult
from trustdebt.taxonomy import Taxonomy
from trustdebt.timeline import TimelineTracker, summarize_trend

DAY = 86400


def _history(fake_git: FakeGit) -> GitHistory:
    fake_git.commit(
        "c1",
        1 * DAY,
        "Add security spec",
        changes={"SPEC.md": "security security speed", "README.md": "speed"},
    )
    fake_git.commit("c2", 2 * DAY, "Speed up cache", changes={"src/cache.py": "pass"})
    fake_git.commit("c3", 3 * DAY, "Improve speed again", changes={"README.md": "speed speed security"})
    fake_git.commit("c4", 4 * DAY, "Harden security", changes={"SPEC.md": "security"})
    return GitHistory("/unused", runner=fake_git)


def _tracker(**kwargs) -> TimelineTracker:  # type: ignore[no-untyped-def]
    return TimelineTracker(CorpusExtractor(workers=2), **kwargs)


def test_replay_yields_snapshots_in_commit_order(
    fake_git: FakeGit, security_speed_taxonomy: Taxonomy
) -> None:
    history = _history(fake_git)

    replay = _tracker().replay(history, security_speed_taxonomy, "HEAD")
    snapshots = list(replay)

    assert [snapshot.commit_id for snapshot in snapshots] == ["c1", "c2", "c3", "c4"]
    assert [snapshot.timestamp for snapshot in snapshots] == [1 * DAY, 2 * DAY, 3 * DAY, 4 * DAY]
    assert replay.gaps == []
    assert all(snapshot.result.total_units >= 0 for snapshot in snapshots)
    assert all(snapshot.health is not None for snapshot in snapshots)


def test_snapshot_reads_the_tree_as_it_was(fake_git: FakeGit, security_speed_taxonomy: Taxonomy) -> None:
    history = _history(fake_git)
    tracker = _tracker()

    first = tracker.snapshot(history, security_speed_taxonomy, "c1")
    last = tracker.snapshot(history, security_speed_taxonomy, "c4")

    assert first.result != last.result
    assert any(call[:2] == ["git", "ls-tree"] and call[-1] == "c1" for call in fake_git.calls)
    assert ["git", "show", "c4:SPEC.md"] in fake_git.calls


def test_replay_is_lazy_and_restartable(fake_git: FakeGit, security_speed_taxonomy: Taxonomy) -> None:
    history = _history(fake_git)

    replay = _tracker(workers=3).replay(history, security_speed_taxonomy, "c1..c4")
    assert fake_git.calls == []

    first = list(replay)
    second = list(replay)

    assert [snapshot.commit_id for snapshot in first] == ["c2", "c3", "c4"]
    assert first == second


def test_unreconstructable_commit_is_recorded_as_gap(
    fake_git: FakeGit, security_speed_taxonomy: Taxonomy
) -> None:
    history = _history(fake_git)
    fake_git.broken.add("c2")

    replay = _tracker().replay(history, security_speed_taxonomy, "HEAD")

    assert [snapshot.commit_id for snapshot in replay] == ["c1", "c3", "c4"]
    assert [gap.commit_id for gap in replay.gaps] == ["c2"]
    assert "bad object" in replay.gaps[0].reason

    list(replay)
    assert len(replay.gaps) == 1


def test_slow_snapshot_times_out_without_blocking_the_rest(
    fake_git: FakeGit, security_speed_taxonomy: Taxonomy
) -> None:
    history = _history(fake_git)
    gate = fake_git.gates.setdefault("c2", threading.Event())

    try:
        replay = _tracker(workers=4, snapshot_timeout=0.5).replay(history, security_speed_taxonomy, "HEAD")
        commits = [snapshot.commit_id for snapshot in replay]
    finally:
        gate.set()

    assert commits == ["c1", "c3", "c4"]
    assert [gap.commit_id for gap in replay.gaps] == ["c2"]
    assert "exceeded" in replay.gaps[0].reason


def test_slow_snapshot_on_single_worker_leaves_later_commits_intact(
    fake_git: FakeGit, security_speed_taxonomy: Taxonomy
) -> None:
    history = _history(fake_git)
    gate = fake_git.gates.setdefault("c2", threading.Event())
    tracker = TimelineTracker(CorpusExtractor(workers=1), workers=1, snapshot_timeout=0.5)

    try:
        replay = tracker.replay(history, security_speed_taxonomy, "HEAD")
        commits = [snapshot.commit_id for snapshot in replay]
    finally:
        gate.set()

    assert commits == ["c1", "c3", "c4"]
    assert [gap.commit_id for gap in replay.gaps] == ["c2"]


def test_unknown_range_produces_a_single_gap(fake_git: FakeGit, security_speed_taxonomy: Taxonomy) -> None:
    history = _history(fake_git)

    replay = _tracker().replay(history, security_speed_taxonomy, "v9..HEAD")

    assert list(replay) == []
    assert [gap.commit_id for gap in replay.gaps] == ["v9..HEAD"]


def _snapshots(totals: List[float]) -> List[TimelineSnapshot]:
    snapshots = []
    for index, total in enumerate(totals):
        band = band_for(total)
        result = TrustDebtResult(
            total_units=total,
            grade=band.grade,
            grade_label=band.label,
            asymmetry_ratio=None,
            orthogonality_fraction=0.0,
            per_category={},
        )
        snapshots.append(TimelineSnapshot(commit_id=f"c{index}", timestamp=float(index), result=result))
    return snapshots


@pytest.mark.parametrize(
    ("totals", "trend"),
    [
        ([], "unknown"),
        ([5.0], "unknown"),
        ([10.0, 10.0, 10.0, 10.0], "stable"),
        ([10.0, 10.0, 10.2, 10.2], "stable"),
        ([10.0, 10.0, 5.0, 5.0], "improving"),
        ([1.0, 1.0, 1.0, 2.0, 2.0, 2.0], "worsening"),
        ([9.0, 1.0, 1.0, 1.0, 1.0, 1.0, 1.0], "stable"),
        ([0.0, 0.0], "stable"),
        ([0.0, 1.0], "worsening"),
    ],
)
def test_summarize_trend(totals: List[float], trend: str) -> None:
    assert summarize_trend(_snapshots(totals)) == trend
