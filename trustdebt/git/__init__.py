"""Git integration for change history and point-in-time file access."""

from .history import GitHistory, parse_log

__all__ = ["GitHistory", "parse_log"]
