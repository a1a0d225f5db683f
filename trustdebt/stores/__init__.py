"""Persistent stores used across trustdebt runs."""

from .result_cache import ResultCache

__all__ = ["ResultCache"]
