"""Repository scanning and documentation classification."""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from .config import CorpusConfig
from .logging import get_logger

logger = get_logger("repo_scanner")

_EXCLUDED_DIRS = {
    ".git",
    ".hg",
    ".svn",
    ".venv",
    "venv",
    "node_modules",
    "__pycache__",
    ".pytest_cache",
    ".mypy_cache",
    ".idea",
    ".trustdebt",
}

_EXCLUDED_FILES = {
    ".DS_Store",
    "Thumbs.db",
}

_DOC_SUFFIXES = {".md", ".markdown", ".rst", ".txt", ".adoc"}

_CACHE_FILENAME = "manifest_cache.json"
_CACHE_VERSION = 1


@dataclass(frozen=True)
class DocumentFile:
    """A documentation file discovered in the working tree.

    ``error`` is set when the file was listed but could not be stat'ed or
    hashed; such files keep an empty hash.
    """

    path: str
    doc_class: str
    size: int
    hash: str
    error: Optional[str] = None


@dataclass
class IgnoreRule:
    """Represents an ignore rule parsed from .gitignore or .trustdebt.yml."""

    pattern: str
    directory_only: bool
    anchored: bool
    negate: bool
    has_slash: bool

    def matches(self, rel_path: str, is_dir: bool) -> bool:
        if not self.pattern:
            return False
        if self.directory_only and not is_dir:
            return False

        target = rel_path
        if self.anchored or self.has_slash:
            if fnmatchcase(target, self.pattern):
                return True
            if self.directory_only and target.startswith(f"{self.pattern}/"):
                return True
            return False

        for part in target.split("/"):
            if fnmatchcase(part, self.pattern):
                return True
        return False


def build_ignore_rule(pattern: str, negate: bool = False) -> IgnoreRule | None:
    pattern = pattern.strip()
    if not pattern:
        return None

    directory_only = pattern.endswith("/")
    if directory_only:
        pattern = pattern[:-1]

    anchored = pattern.startswith("/")
    if anchored:
        pattern = pattern[1:]

    return IgnoreRule(
        pattern=pattern,
        directory_only=directory_only,
        anchored=anchored,
        negate=negate,
        has_slash="/" in pattern,
    )


def _parse_gitignore(path: Path) -> List[IgnoreRule]:
    if not path.exists():
        return []

    rules: List[IgnoreRule] = []
    for raw_line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        negate = line.startswith("!")
        if negate:
            line = line[1:]
        rule = build_ignore_rule(line, negate=negate)
        if rule is not None:
            rules.append(rule)
    return rules


def _should_ignore(rel_path: str, is_dir: bool, rules: Sequence[IgnoreRule]) -> bool:
    ignored = False
    for rule in rules:
        if rule.matches(rel_path, is_dir):
            ignored = not rule.negate
    return ignored


def pattern_matches(path: str, pattern: str) -> bool:
    """Case-insensitive glob match; bare patterns match the file name."""
    normalized = path.replace("\\", "/").lower()
    pattern = pattern.lower()
    if pattern.endswith("/**"):
        prefix = pattern[:-3]
        return normalized == prefix or normalized.startswith(f"{prefix}/")
    if pattern.endswith("/"):
        return normalized.startswith(pattern)
    if "/" in pattern:
        return fnmatchcase(normalized, pattern)
    return fnmatchcase(normalized.rsplit("/", 1)[-1], pattern)


def classify_document(rel_path: str, class_patterns: Mapping[str, Sequence[str]]) -> Optional[str]:
    """Return the first document class whose patterns match, or None."""
    if Path(rel_path).suffix.lower() not in _DOC_SUFFIXES:
        return None
    for doc_class, patterns in class_patterns.items():
        if any(pattern_matches(rel_path, pattern) for pattern in patterns):
            return doc_class
    return None


class ManifestCache:
    """Content hashes from the previous scan, reused while size and mtime match."""

    def __init__(self, root: Path) -> None:
        self.path = root / ".trustdebt" / _CACHE_FILENAME
        self._previous = self._load()
        self._current: Dict[str, Tuple[int, int, str]] = {}

    def hash_for(self, rel_path: str, path: Path, size: int, mtime_ns: int) -> str:
        previous = self._previous.get(rel_path)
        if previous is not None and previous[:2] == (size, mtime_ns):
            file_hash = previous[2]
        else:
            file_hash = hash_file(path)
        self._current[rel_path] = (size, mtime_ns, file_hash)
        return file_hash

    def save(self) -> None:
        files = {
            rel_path: {"size": size, "mtime_ns": mtime_ns, "hash": file_hash}
            for rel_path, (size, mtime_ns, file_hash) in self._current.items()
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(
                json.dumps({"version": _CACHE_VERSION, "files": files}, indent=2, sort_keys=True),
                encoding="utf-8",
            )
        except OSError as exc:
            logger.debug("Manifest cache not written to %s: %s", self.path, exc)

    def _load(self) -> Dict[str, Tuple[int, int, str]]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.debug("Ignoring unreadable manifest cache %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict) or payload.get("version") != _CACHE_VERSION:
            return {}
        files = payload.get("files")
        if not isinstance(files, dict):
            return {}

        entries: Dict[str, Tuple[int, int, str]] = {}
        for rel_path, entry in files.items():
            if not isinstance(entry, dict):
                continue
            size, mtime_ns, file_hash = entry.get("size"), entry.get("mtime_ns"), entry.get("hash")
            if isinstance(size, int) and isinstance(mtime_ns, int) and isinstance(file_hash, str):
                entries[str(rel_path)] = (size, mtime_ns, file_hash)
        return entries


def _iter_files(root: Path, rules: Sequence[IgnoreRule]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current_dir = Path(dirpath)
        rel_dir = current_dir.relative_to(root).as_posix() if current_dir != root else ""

        kept = []
        for name in sorted(dirnames):
            if name in _EXCLUDED_DIRS:
                continue
            rel_path = f"{rel_dir}/{name}" if rel_dir else name
            if _should_ignore(rel_path, True, rules):
                continue
            kept.append(name)
        dirnames[:] = kept

        for filename in sorted(filenames):
            if filename in _EXCLUDED_FILES:
                continue
            rel_path = f"{rel_dir}/{filename}" if rel_dir else filename
            if _should_ignore(rel_path, False, rules):
                continue
            yield current_dir / filename


def hash_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1024 * 1024), b""):
            digest.update(chunk)
    return digest.hexdigest()


class RepoScanner:
    """Walks the working tree to list classified documentation files."""

    def __init__(self, corpus: CorpusConfig | None = None) -> None:
        self.corpus = corpus or CorpusConfig()

    def scan(self, root: str | Path) -> List[DocumentFile]:
        """Return documentation files sorted by path."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Repository path not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Repository path is not a directory: {root}")

        rules = _parse_gitignore(root_path / ".gitignore")
        for pattern in self.corpus.exclude_paths:
            rule = build_ignore_rule(pattern)
            if rule is not None:
                rules.append(rule)

        manifest = ManifestCache(root_path)
        documents: List[DocumentFile] = []
        for path in _iter_files(root_path, rules):
            rel_path = path.relative_to(root_path).as_posix()
            doc_class = classify_document(rel_path, self.corpus.class_patterns)
            if doc_class is None:
                continue
            try:
                stat_result = path.stat()
                file_hash = manifest.hash_for(rel_path, path, stat_result.st_size, stat_result.st_mtime_ns)
            except OSError as exc:
                logger.debug("Unreadable document %s: %s", rel_path, exc)
                documents.append(
                    DocumentFile(path=rel_path, doc_class=doc_class, size=0, hash="", error=str(exc))
                )
                continue
            documents.append(
                DocumentFile(path=rel_path, doc_class=doc_class, size=stat_result.st_size, hash=file_hash)
            )

        manifest.save()
        documents.sort(key=lambda document: document.path)
        return documents


__all__ = [
    "DocumentFile",
    "IgnoreRule",
    "ManifestCache",
    "RepoScanner",
    "build_ignore_rule",
    "classify_document",
    "hash_file",
    "pattern_matches",
]
