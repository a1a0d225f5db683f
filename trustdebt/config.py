"""Configuration loading for trustdebt (.trustdebt.yml)."""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml

from .errors import ConfigurationError
from .models import HistoryWindow

CONFIG_FILENAME = ".trustdebt.yml"

DEFAULT_DOCUMENT_CLASSES: Dict[str, float] = {
    "specification": 0.04,
    "core": 0.03,
    "guide": 0.015,
    "note": 0.005,
}

# Checked in order; the first class with a matching pattern wins.
DEFAULT_CLASS_PATTERNS: Dict[str, List[str]] = {
    "specification": ["claude.md", "*spec*.md", "*specification*", "*requirements*.md"],
    "core": ["readme*", "architecture*", "design*.md", "overview*.md"],
    "guide": ["docs/**", "*guide*", "contributing*", "tutorial*", "howto*"],
    "note": ["*.md", "*.markdown", "*.rst", "*.adoc"],
}

DEFAULT_COMMIT_WEIGHT = 0.03


@dataclass
class TaxonomyConfig:
    """Where the category taxonomy comes from."""

    path: Path
    source: str = "static"
    frequency_categories: int = 5
    frequency_keywords: int = 4


@dataclass
class CorpusConfig:
    """Intent/Reality corpus extraction settings."""

    document_classes: Dict[str, float] = field(
        default_factory=lambda: dict(DEFAULT_DOCUMENT_CLASSES)
    )
    class_patterns: Dict[str, List[str]] = field(
        default_factory=lambda: {key: list(value) for key, value in DEFAULT_CLASS_PATTERNS.items()}
    )
    commit_weight: float = DEFAULT_COMMIT_WEIGHT
    include_merges: bool = False
    exclude_paths: List[str] = field(default_factory=list)


@dataclass
class DriftConfig:
    """Multipliers applied while aggregating matrix cells."""

    reality_decay_per_day: float = 0.1
    intent_decay_per_day: float = 0.02
    category_weights: Dict[str, float] = field(default_factory=dict)
    pair_weights: Dict[Tuple[str, str], float] = field(default_factory=dict)

    def category_weight(self, row_id: str, col_id: str) -> float:
        pair = self.pair_weights.get((row_id, col_id))
        if pair is not None:
            return pair
        return self.category_weights.get(row_id, 1.0) * self.category_weights.get(col_id, 1.0)


@dataclass
class HealthConfig:
    correlation_threshold: float = 0.10


@dataclass
class RuntimeConfig:
    """Worker pool sizing and timeouts."""

    workers: int = 4
    snapshot_timeout: float = 60.0


@dataclass
class CacheConfig:
    enabled: bool = True
    path: Optional[Path] = None


@dataclass
class TrustDebtConfig:
    """Represents the settings defined in .trustdebt.yml."""

    root: Path
    taxonomy: TaxonomyConfig
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    window: HistoryWindow = field(default_factory=HistoryWindow)
    drift: DriftConfig = field(default_factory=DriftConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    @classmethod
    def defaults(cls, root: Path) -> "TrustDebtConfig":
        root = root.resolve()
        return cls(
            root=root,
            taxonomy=TaxonomyConfig(path=root / "trustdebt-categories.yml"),
            cache=CacheConfig(path=root / ".trustdebt" / "results.json"),
        )

    def settings_digest(self) -> str:
        """Digest of every setting that can change a computed result."""
        payload = {
            "corpus": asdict(self.corpus),
            "drift": {
                "reality_decay_per_day": self.drift.reality_decay_per_day,
                "intent_decay_per_day": self.drift.intent_decay_per_day,
                "category_weights": self.drift.category_weights,
                "pair_weights": {
                    f"{row}:{col}": value for (row, col), value in self.drift.pair_weights.items()
                },
            },
            "health": asdict(self.health),
        }
        encoded = json.dumps(payload, sort_keys=True).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()


def load_config(config_path: Path) -> TrustDebtConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()
    config = TrustDebtConfig.defaults(root)

    if not config_file.exists():
        return config

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    taxonomy_data = _as_dict(data.get("taxonomy"))
    if taxonomy_data:
        path_str = _as_str(taxonomy_data.get("path"))
        if path_str:
            config.taxonomy.path = root / path_str
        source = _as_str(taxonomy_data.get("source"))
        if source:
            config.taxonomy.source = source.strip().lower()
        frequency = _as_dict(taxonomy_data.get("frequency"))
        config.taxonomy.frequency_categories = _positive_int(
            frequency.get("categories"), config.taxonomy.frequency_categories, "taxonomy.frequency.categories"
        )
        config.taxonomy.frequency_keywords = _positive_int(
            frequency.get("keywords_per_category"),
            config.taxonomy.frequency_keywords,
            "taxonomy.frequency.keywords_per_category",
        )

    corpus_data = _as_dict(data.get("corpus"))
    if corpus_data:
        classes = _as_dict(corpus_data.get("document_classes"))
        if classes:
            config.corpus.document_classes = {
                str(name): _non_negative(value, f"corpus.document_classes.{name}")
                for name, value in classes.items()
            }
        patterns = _as_dict(corpus_data.get("class_patterns"))
        if patterns:
            config.corpus.class_patterns = {
                str(name): [item.lower() for item in _as_str_list(value)]
                for name, value in patterns.items()
            }
        unknown = set(config.corpus.class_patterns) - set(config.corpus.document_classes)
        if unknown:
            missing = ", ".join(sorted(unknown))
            raise ConfigurationError(f"Document classes without a weight: {missing}")
        if "commit_weight" in corpus_data:
            config.corpus.commit_weight = _non_negative(
                corpus_data.get("commit_weight"), "corpus.commit_weight"
            )
        config.corpus.include_merges = bool(_as_bool(corpus_data.get("include_merges")))
        config.corpus.exclude_paths = _as_str_list(corpus_data.get("exclude_paths"))

    window_data = _as_dict(data.get("window"))
    if window_data:
        config.window = HistoryWindow(
            revision_range=_as_str(window_data.get("range")),
            since=_as_str(window_data.get("since")),
            until=_as_str(window_data.get("until")),
            max_count=_as_int(window_data.get("max_count")),
        )

    drift_data = _as_dict(data.get("drift"))
    if drift_data:
        if "reality_decay_per_day" in drift_data:
            config.drift.reality_decay_per_day = _non_negative(
                drift_data.get("reality_decay_per_day"), "drift.reality_decay_per_day"
            )
        if "intent_decay_per_day" in drift_data:
            config.drift.intent_decay_per_day = _non_negative(
                drift_data.get("intent_decay_per_day"), "drift.intent_decay_per_day"
            )
        config.drift.category_weights = {
            str(key): _non_negative(value, f"drift.category_weights.{key}")
            for key, value in _as_dict(drift_data.get("category_weights")).items()
        }
        pair_weights: Dict[Tuple[str, str], float] = {}
        for key, value in _as_dict(drift_data.get("pair_weights")).items():
            parts = str(key).split(":")
            if len(parts) != 2 or not all(part.strip() for part in parts):
                raise ConfigurationError(f"Pair weight keys must look like 'ROW:COL', got {key!r}")
            pair_weights[(parts[0].strip(), parts[1].strip())] = _non_negative(
                value, f"drift.pair_weights.{key}"
            )
        config.drift.pair_weights = pair_weights

    health_data = _as_dict(data.get("health"))
    if health_data and "correlation_threshold" in health_data:
        config.health.correlation_threshold = _non_negative(
            health_data.get("correlation_threshold"), "health.correlation_threshold"
        )

    runtime_data = _as_dict(data.get("runtime"))
    if runtime_data:
        config.runtime.workers = _positive_int(
            runtime_data.get("workers"), config.runtime.workers, "runtime.workers"
        )
        timeout = _as_float(runtime_data.get("snapshot_timeout"))
        if timeout is not None:
            if timeout <= 0:
                raise ConfigurationError("runtime.snapshot_timeout must be positive")
            config.runtime.snapshot_timeout = timeout

    cache_data = _as_dict(data.get("cache"))
    if cache_data:
        enabled = _as_bool(cache_data.get("enabled"))
        if enabled is not None:
            config.cache.enabled = enabled
        cache_path = _as_str(cache_data.get("path"))
        if cache_path:
            config.cache.path = root / cache_path

    return config


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    if config_path.name != CONFIG_FILENAME:
        return (config_path.parent / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


def _non_negative(value: Any, name: str) -> float:
    number = _as_float(value)
    if number is None or number < 0:
        raise ConfigurationError(f"{name} must be a non-negative number, got {value!r}")
    return number


def _positive_int(value: Any, default: int, name: str) -> int:
    if value is None:
        return default
    number = _as_int(value)
    if number is None or number <= 0:
        raise ConfigurationError(f"{name} must be a positive integer, got {value!r}")
    return number


__all__ = [
    "CONFIG_FILENAME",
    "CacheConfig",
    "CorpusConfig",
    "DEFAULT_CLASS_PATTERNS",
    "DEFAULT_DOCUMENT_CLASSES",
    "DriftConfig",
    "HealthConfig",
    "RuntimeConfig",
    "TaxonomyConfig",
    "TrustDebtConfig",
    "load_config",
]
