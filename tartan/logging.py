"""Logging utilities for tartan builds."""

from __future__ import annotations

import logging
from pathlib import Path

_LOGGER_NAME = "tartan"

# Below DEBUG: one record per visited path, enabled by a second -v.
TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_VERBOSITY_LEVELS = (logging.INFO, logging.DEBUG, TRACE)


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the tartan hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def level_for_verbosity(verbose: int) -> int:
    """Map a repeat count of ``-v`` to a logging level."""
    return _VERBOSITY_LEVELS[min(max(verbose, 0), len(_VERBOSITY_LEVELS) - 1)]


def configure_logging(*, verbose: int = 0, log_file: Path | None = None) -> logging.Logger:
    """Configure the tartan logger with console output and an optional file sink.

    The file sink records at least DEBUG whatever the console level is.
    """
    level = level_for_verbosity(verbose)
    file_level = min(level, logging.DEBUG)
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(file_level if log_file is not None else level)
    logger.propagate = False

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(logging.Formatter("[tartan] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(file_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["TRACE", "configure_logging", "get_logger", "level_for_verbosity"]
