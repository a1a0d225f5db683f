"""Change history access through the git command line."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..errors import GitCommandError
from ..models import Commit, HistoryWindow

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"
_LOG_FORMAT = "%H%x1f%P%x1f%ct%x1f%s%x1f%b%x1e"

Runner = Callable[..., str]


class GitHistory:
    """Reads commits and historical file contents from a git repository."""

    def __init__(self, repo_path: Path | str, runner: Runner | None = None) -> None:
        self.repo = Path(repo_path)
        self._runner = runner or self._default_runner

    def is_repository(self) -> bool:
        return (self.repo / ".git").exists()

    def head(self) -> str:
        return self._run(["git", "rev-parse", "HEAD"]).strip()

    def log(self, window: HistoryWindow, *, include_merges: bool = False) -> List[Commit]:
        """Return commits inside ``window``, oldest first."""
        args = ["git", "log", "--reverse", f"--format={_LOG_FORMAT}"]
        if not include_merges:
            args.append("--no-merges")
        if window.since:
            args.append(f"--since={window.since}")
        if window.until:
            args.append(f"--until={window.until}")
        if window.max_count is not None:
            args.append(f"--max-count={window.max_count}")
        args.append(window.revision_range or "HEAD")
        return parse_log(self._run(args))

    def rev_list(self, revision_range: str) -> List[str]:
        output = self._run(["git", "rev-list", "--reverse", revision_range])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def ls_tree(self, commit: str) -> List[str]:
        output = self._run(["git", "ls-tree", "-r", "--name-only", commit])
        return [line.strip() for line in output.splitlines() if line.strip()]

    def show(self, commit: str, path: str) -> str:
        return self._run(["git", "show", f"{commit}:{path}"])

    def commit_timestamp(self, commit: str) -> float:
        output = self._run(["git", "show", "-s", "--format=%ct", commit]).strip()
        try:
            return float(output)
        except ValueError as exc:
            raise GitCommandError(["git", "show", commit], f"unexpected timestamp {output!r}") from exc

    def last_modified(self, path: str, commit: str = "HEAD") -> Optional[float]:
        """Commit time of the last change to ``path`` reachable from ``commit``."""
        output = self._run(["git", "log", "-1", "--format=%ct", commit, "--", path]).strip()
        if not output:
            return None
        try:
            return float(output)
        except ValueError:
            return None

    # ------------------------------------------------------------------
    # Internals

    def _run(self, args: Iterable[str]) -> str:
        arg_list = list(args)
        try:
            return self._runner(arg_list, cwd=self.repo, capture_output=True)
        except subprocess.CalledProcessError as exc:
            detail = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
            raise GitCommandError(arg_list, detail) from exc
        except OSError as exc:
            raise GitCommandError(arg_list, str(exc)) from exc

    @staticmethod
    def _default_runner(
        args: Iterable[str],
        *,
        cwd: Path,
        capture_output: bool = False,
    ) -> str:
        completed = subprocess.run(
            list(args),
            cwd=str(cwd),
            check=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            capture_output=capture_output,
        )
        return completed.stdout if capture_output else ""


def parse_log(output: str) -> List[Commit]:
    commits: List[Commit] = []
    for record in output.split(_RECORD_SEP):
        record = record.lstrip("\n")
        if not record.strip():
            continue
        fields = record.split(_FIELD_SEP)
        if len(fields) < 5:
            continue
        sha, parents, timestamp, subject, body = fields[:5]
        try:
            when = float(timestamp)
        except ValueError:
            continue
        commits.append(
            Commit(
                sha=sha.strip(),
                timestamp=when,
                subject=subject.strip(),
                body=body.strip(),
                parents=tuple(parents.split()),
            )
        )
    return commits


__all__ = ["GitHistory", "parse_log"]
