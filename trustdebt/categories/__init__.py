"""Category source plugins and discovery utilities."""

from __future__ import annotations

from importlib import metadata
from typing import Callable, Dict, Iterable

from ..errors import ConfigurationError
from .base import CategorySource, CategorySourceContext
from .frequency import FrequencyCategorySource
from .static import StaticCategorySource, load_taxonomy

_ENTRY_POINT_GROUP = "trustdebt.category_sources"

_BUILTIN_FACTORIES: Dict[str, Callable[[], CategorySource]] = {
    "static": StaticCategorySource,
    "frequency": FrequencyCategorySource,
}


def discover_category_source(name: str) -> CategorySource:
    """Return the category source registered under ``name``."""
    key = name.lower()
    factory = _BUILTIN_FACTORIES.get(key)
    if factory is not None:
        return factory()

    for entry in _iter_entry_points():
        if entry.name.lower() != key:
            continue
        try:
            loaded = entry.load()
        except Exception as exc:  # pragma: no cover
            raise ConfigurationError(f"Failed to load category source '{name}': {exc}") from exc
        return _coerce_source(loaded)

    raise ConfigurationError(f"Unknown category source: {name}")


def _coerce_source(obj: object) -> CategorySource:
    if isinstance(obj, CategorySource):
        return obj
    if isinstance(obj, type) and issubclass(obj, CategorySource):
        return obj()
    if callable(obj):
        instance = obj()
        if isinstance(instance, CategorySource):
            return instance
    raise ConfigurationError("Category source entry point must be a CategorySource subclass or factory")


def _iter_entry_points() -> Iterable[metadata.EntryPoint]:
    return metadata.entry_points().select(group=_ENTRY_POINT_GROUP)


__all__ = [
    "CategorySource",
    "CategorySourceContext",
    "FrequencyCategorySource",
    "StaticCategorySource",
    "discover_category_source",
    "load_taxonomy",
]
