"""Logging utilities for trustdebt runs.

Components log through children of the ``trustdebt`` logger. Recovered
failures are logged once, at WARNING, in the same ``[kind] source: message``
shape they carry in an analysis outcome.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from .models import AnalysisWarning

_LOGGER_NAME = "trustdebt"
_CONSOLE_FORMAT = "[trustdebt] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(threadName)s]: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the trustdebt hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install a console handler and an optional file sink on the trustdebt logger.

    ``verbose`` lowers the console level to DEBUG; ``quiet`` raises it to
    WARNING so only caveats and recovered failures are shown. The file sink
    always records DEBUG, including the worker thread that emitted each line.
    """
    if verbose and quiet:
        raise ValueError("verbose and quiet cannot both be set")
    console_level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.propagate = False

    # Reset handlers so repeated configuration does not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(console_level)
    stream_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
    logger.addHandler(stream_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(file_handler)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(console_level)

    return logger


def log_warning(logger: logging.Logger, warning: "AnalysisWarning") -> None:
    """Log a recovered failure in its structured form."""
    logger.warning("[%s] %s: %s", warning.kind, warning.source, warning.message)


__all__ = ["configure_logging", "get_logger", "log_warning"]
