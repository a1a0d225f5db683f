"""Idempotency cache for computed Trust Debt results."""

from __future__ import annotations

from datetime import UTC, datetime
import hashlib
import json
from pathlib import Path
from typing import Dict, List, Optional

from ..logging import get_logger
from ..models import AnalysisOutcome, AnalysisWarning, ProcessHealthReport, TrustDebtResult

_CACHE_VERSION = 1

logger = get_logger("stores.result_cache")


class ResultCache:
    """Stores results keyed by history window, engine signature and tree fingerprint.

    An entry is addressed by all three parts together. Once written it is
    never replaced; a changed tree, taxonomy or setting produces a new key.
    """

    def __init__(self, path: Path | None, *, max_entries: int = 64) -> None:
        self._path = path
        self._max_entries = max_entries
        self._entries: Dict[str, Dict[str, object]] = {}
        self._dirty = False
        if self._path is not None:
            self._load(self._path)

    def __len__(self) -> int:
        return len(self._entries)

    def get(
        self, key: str, *, signature: str, fingerprint: str
    ) -> Optional[AnalysisOutcome]:
        entry = self._entries.get(_entry_id(key, signature, fingerprint))
        if not entry:
            return None
        if (
            entry.get("key") != key
            or entry.get("signature") != signature
            or entry.get("fingerprint") != fingerprint
        ):
            return None
        result_payload = entry.get("result")
        health_payload = entry.get("health")
        if not isinstance(result_payload, dict) or not isinstance(health_payload, dict):
            return None
        try:
            return AnalysisOutcome(
                result=TrustDebtResult.from_dict(result_payload),
                health=ProcessHealthReport.from_dict(health_payload),
                warnings=_warnings_from_payload(entry.get("warnings")),
                cached=True,
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Ignoring unreadable cache entry for %s: %s", key, exc)
            return None

    def store(
        self,
        key: str,
        *,
        signature: str,
        fingerprint: str,
        outcome: AnalysisOutcome,
    ) -> bool:
        """Record a result; returns False when the entry already exists."""
        entry_id = _entry_id(key, signature, fingerprint)
        if entry_id in self._entries:
            return False
        self._entries[entry_id] = {
            "key": key,
            "signature": signature,
            "fingerprint": fingerprint,
            "result": outcome.result.to_dict(),
            "health": outcome.health.to_dict(),
            "warnings": [
                {"kind": warning.kind, "source": warning.source, "message": warning.message}
                for warning in outcome.warnings
            ],
            "created_at": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        }
        self._dirty = True
        self._prune()
        return True

    def persist(self) -> None:
        if not self._dirty or self._path is None:
            return
        payload = {
            "version": _CACHE_VERSION,
            "entries": self._entries,
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8"
        )
        self._dirty = False

    # ------------------------------------------------------------------
    # Internal helpers

    def _prune(self) -> None:
        if len(self._entries) <= self._max_entries:
            return
        ordered = sorted(
            self._entries.items(), key=lambda item: str(item[1].get("created_at", ""))
        )
        for entry_id, _ in ordered[: len(self._entries) - self._max_entries]:
            self._entries.pop(entry_id, None)

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Discarding unreadable result cache %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _CACHE_VERSION:
            return
        entries = data.get("entries")
        if not isinstance(entries, dict):
            return
        valid_entries: Dict[str, Dict[str, object]] = {}
        for entry_id, raw in entries.items():
            if not isinstance(entry_id, str) or not isinstance(raw, dict):
                continue
            if not all(field in raw for field in ("key", "signature", "fingerprint", "result", "health")):
                continue
            valid_entries[entry_id] = raw
        self._entries = valid_entries
        self._dirty = False


def _warnings_from_payload(payload: object) -> List[AnalysisWarning]:
    if not isinstance(payload, list):
        return []
    warnings: List[AnalysisWarning] = []
    for item in payload:
        if not isinstance(item, dict):
            continue
        warnings.append(
            AnalysisWarning(
                kind=str(item.get("kind", "")),
                source=str(item.get("source", "")),
                message=str(item.get("message", "")),
            )
        )
    return warnings


def _entry_id(key: str, signature: str, fingerprint: str) -> str:
    return hashlib.sha256(f"{key}\0{signature}\0{fingerprint}".encode("utf-8")).hexdigest()


__all__ = ["ResultCache"]
