from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest

from tartan.bundler import BundleRequest, EsbuildBundler
from tests._fixtures.site_builder import SiteBuilder


@pytest.fixture
def site(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> SiteBuilder:
    """Provide a project rooted in tmp_path; the working directory is its base."""
    builder = SiteBuilder(tmp_path)
    monkeypatch.chdir(builder.base)
    return builder


class RecordingRunner:
    """Bundler runner double that records requests instead of calling esbuild."""

    def __init__(self, output: str = "/* bundled */") -> None:
        self.output = output
        self.requests: list[BundleRequest] = []

    def __call__(self, request: BundleRequest) -> str:
        self.requests.append(request)
        return self.output


@pytest.fixture
def bundle_runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def bundler(bundle_runner: RecordingRunner) -> EsbuildBundler:
    return EsbuildBundler(runner=bundle_runner)


@pytest.fixture(autouse=True)
def _reset_tartan_logger() -> Iterator[None]:
    """Undo configure_logging() from CLI tests so caplog keeps seeing records."""
    yield
    logger = logging.getLogger("tartan")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
