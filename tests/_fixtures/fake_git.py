"""In-memory git runner answering the commands GitHistory issues."""

from __future__ import annotations

import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Set, Tuple

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"


@dataclass
class FakeCommit:
    sha: str
    timestamp: int
    subject: str
    body: str = ""
    files: Dict[str, str] = field(default_factory=dict)
    parents: Tuple[str, ...] = ()


class FakeGit:
    """Linear history kept in memory; each commit stores its full tree.

    ``broken`` commits fail ``ls-tree`` and ``show`` the way a missing object
    does. ``gates`` hold ``ls-tree`` for a commit until the event is set.
    """

    def __init__(self) -> None:
        self.commits: List[FakeCommit] = []
        self.calls: List[List[str]] = []
        self.broken: Set[str] = set()
        self.gates: Dict[str, threading.Event] = {}

    def commit(
        self,
        sha: str,
        timestamp: int,
        subject: str,
        *,
        body: str = "",
        changes: Optional[Mapping[str, Optional[str]]] = None,
        parents: Sequence[str] | None = None,
    ) -> FakeCommit:
        """Append a commit whose tree is the previous tree plus ``changes``."""
        files = dict(self.commits[-1].files) if self.commits else {}
        for path, content in (changes or {}).items():
            if content is None:
                files.pop(path, None)
            else:
                files[path] = content
        if parents is None:
            parents = (self.commits[-1].sha,) if self.commits else ()
        record = FakeCommit(
            sha=sha,
            timestamp=timestamp,
            subject=subject,
            body=body,
            files=files,
            parents=tuple(parents),
        )
        self.commits.append(record)
        return record

    def __call__(self, args, cwd: Path | None = None, capture_output: bool = False) -> str:  # type: ignore[no-untyped-def]
        arg_list = list(args)
        self.calls.append(arg_list)
        handlers = {
            "rev-parse": self._rev_parse,
            "rev-list": self._rev_list,
            "ls-tree": self._ls_tree,
            "show": self._show,
            "log": self._log,
        }
        handler = handlers.get(arg_list[1])
        if handler is None:
            _fail(arg_list, f"unsupported command {arg_list[1]}")
        return handler(arg_list)

    # ------------------------------------------------------------------
    # Commands

    def _rev_parse(self, args: List[str]) -> str:
        return f"{self._resolve(args, args[2]).sha}\n"

    def _rev_list(self, args: List[str]) -> str:
        return "".join(f"{commit.sha}\n" for commit in self._range(args, args[-1]))

    def _ls_tree(self, args: List[str]) -> str:
        commit = self._resolve(args, args[-1])
        gate = self.gates.get(commit.sha)
        if gate is not None:
            gate.wait(timeout=5)
        if commit.sha in self.broken:
            _fail(args, f"bad object {commit.sha}")
        return "".join(f"{path}\n" for path in sorted(commit.files))

    def _show(self, args: List[str]) -> str:
        if args[2] == "-s":
            return f"{self._resolve(args, args[-1]).timestamp}\n"
        revision, _, path = args[2].partition(":")
        commit = self._resolve(args, revision)
        if commit.sha in self.broken:
            _fail(args, f"bad object {commit.sha}")
        if path not in commit.files:
            _fail(args, f"path '{path}' does not exist in '{commit.sha}'")
        return commit.files[path]

    def _log(self, args: List[str]) -> str:
        if "--" in args:
            marker = args.index("--")
            return self._last_change(args, args[marker - 1], args[marker + 1])

        selected = self._range(args, args[-1])
        if "--no-merges" in args:
            selected = [commit for commit in selected if len(commit.parents) < 2]
        # Only epoch bounds filter; relative dates such as "2 weeks ago" keep everything.
        for option in args:
            if option.startswith("--since="):
                since = _epoch(option.split("=", 1)[1])
                if since is not None:
                    selected = [commit for commit in selected if commit.timestamp >= since]
            elif option.startswith("--until="):
                until = _epoch(option.split("=", 1)[1])
                if until is not None:
                    selected = [commit for commit in selected if commit.timestamp <= until]
        for option in args:
            if option.startswith("--max-count="):
                limit = int(option.split("=", 1)[1])
                selected = selected[len(selected) - limit :] if limit > 0 else []
        return "\n".join(
            _FIELD_SEP.join(
                [commit.sha, " ".join(commit.parents), str(commit.timestamp), commit.subject, commit.body]
            )
            + _RECORD_SEP
            for commit in selected
        )

    def _last_change(self, args: List[str], revision: str, path: str) -> str:
        history = self._range(args, revision)
        previous: Optional[str] = None
        changed_at: Optional[int] = None
        for commit in history:
            current = commit.files.get(path)
            if current is not None and current != previous:
                changed_at = commit.timestamp
            previous = current
        return f"{changed_at}\n" if changed_at is not None else ""

    # ------------------------------------------------------------------
    # Revision helpers

    def _resolve(self, args: List[str], revision: str) -> FakeCommit:
        if not self.commits:
            _fail(args, "ambiguous argument: unknown revision")
        if revision == "HEAD":
            return self.commits[-1]
        for commit in self.commits:
            if commit.sha == revision:
                return commit
        _fail(args, f"bad revision '{revision}'")
        raise AssertionError("unreachable")

    def _range(self, args: List[str], revision_range: str) -> List[FakeCommit]:
        if ".." in revision_range:
            base, _, tip = revision_range.partition("..")
            start = self.commits.index(self._resolve(args, base)) + 1
            end = self.commits.index(self._resolve(args, tip or "HEAD")) + 1
            return self.commits[start:end]
        end = self.commits.index(self._resolve(args, revision_range)) + 1
        return self.commits[:end]


def _epoch(value: str) -> Optional[float]:
    try:
        return float(value)
    except ValueError:
        return None


def _fail(args: List[str], message: str) -> None:
    raise subprocess.CalledProcessError(128, args, output="", stderr=f"fatal: {message}\n")


__all__ = ["FakeCommit", "FakeGit"]
