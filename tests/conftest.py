from __future__ import annotations

from pathlib import Path

import pytest

from tests._fixtures.fake_git import FakeGit
from tests._fixtures.repo_builder import RepoBuilder
from trustdebt.taxonomy import Taxonomy


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable repo builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture
def fake_git() -> FakeGit:
    """Provide an empty in-memory git history."""
    return FakeGit()


@pytest.fixture
def security_speed_taxonomy() -> Taxonomy:
    """Two orthogonal categories used by the drift scenarios."""
    return Taxonomy.from_records(
        [
            {"id": "SEC", "name": "Security", "keywords": ["security"]},
            {"id": "SPD", "name": "Speed", "keywords": ["speed"]},
        ]
    )
