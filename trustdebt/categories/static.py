"""Category taxonomy read from a static YAML or JSON artifact."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..errors import ConfigurationError
from ..logging import get_logger
from ..taxonomy import Taxonomy
from .base import CategorySource, CategorySourceContext

logger = get_logger("categories.static")


class StaticCategorySource(CategorySource):
    """Loads categories from the file named by ``taxonomy.path``.

    Accepts a list of ``{id, name, keywords, parent}`` records, a mapping with
    a ``categories`` list, or nested ``children`` trees, which are flattened
    with each child's ``parent`` set to the enclosing id.
    """

    name = "static"

    def __init__(self, path: Path | None = None) -> None:
        self._path = path

    def load(self, context: CategorySourceContext) -> Taxonomy:
        path = self._path or context.config.taxonomy.path
        return load_taxonomy(path)


def load_taxonomy(path: Path) -> Taxonomy:
    """Read and validate a taxonomy file."""
    if not path.exists():
        raise ConfigurationError(f"Taxonomy file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigurationError(f"Could not read taxonomy file {path}: {exc}") from exc

    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Failed to parse taxonomy file {path.name}: {exc}") from exc

    if isinstance(data, Mapping):
        data = data.get("categories")
    if not isinstance(data, list):
        raise ConfigurationError(f"{path.name} must contain a list of categories")

    records: List[Dict[str, Any]] = []
    for item in data:
        _flatten(item, None, records)
    taxonomy = Taxonomy.from_records(records)
    logger.debug("Loaded %d categories from %s", len(taxonomy), path)
    return taxonomy


def _flatten(item: Any, parent: Optional[str], records: List[Dict[str, Any]]) -> None:
    if not isinstance(item, Mapping):
        raise ConfigurationError(f"Category entries must be mappings, got {item!r}")
    record = {key: value for key, value in item.items() if key != "children"}
    if parent is not None:
        record["parent"] = parent
    records.append(record)
    children = item.get("children") or []
    if not isinstance(children, list):
        raise ConfigurationError(f"children of {record.get('id')} must be a list")
    for child in children:
        _flatten(child, str(record.get("id") or ""), records)


__all__ = ["StaticCategorySource", "load_taxonomy"]
