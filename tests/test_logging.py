"""Tests for tartan.logging."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from tartan.logging import TRACE, configure_logging, get_logger, level_for_verbosity


@pytest.mark.parametrize(
    ("verbose", "level"),
    [(0, logging.INFO), (1, logging.DEBUG), (2, TRACE), (5, TRACE), (-1, logging.INFO)],
)
def test_verbosity_maps_to_levels(verbose: int, level: int) -> None:
    assert level_for_verbosity(verbose) == level


def test_trace_level_has_a_name() -> None:
    assert logging.getLevelName(TRACE) == "TRACE"


def test_configure_logging_replaces_handlers() -> None:
    configure_logging()
    logger = configure_logging(verbose=1)

    assert logger is get_logger()
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1


def test_log_file_records_debug_while_console_stays_at_info(tmp_path: Path) -> None:
    log_file = tmp_path / "build.log"
    logger = configure_logging(log_file=log_file)

    get_logger("resolver").debug("aggregated manifests")
    for handler in logger.handlers:
        handler.flush()

    stream_handler, file_handler = logger.handlers
    assert stream_handler.level == logging.INFO
    assert file_handler.level == logging.DEBUG
    assert "tartan.resolver: aggregated manifests" in log_file.read_text(encoding="utf-8")
