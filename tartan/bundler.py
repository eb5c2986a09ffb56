"""Adapter around the esbuild bundler used to build custom-element registration scripts."""

from __future__ import annotations

import json
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

from .errors import ResolutionError
from .logging import get_logger


@dataclass
class BundleRequest:
    """A synthesized entry program and the directory its imports resolve from."""

    program: str
    resolve_dir: Path
    executable: str


class EsbuildBundler:
    """Bundles an ES module graph into a single browser IIFE script."""

    DEFAULT_EXECUTABLE = "esbuild"
    ENV_EXECUTABLE_KEY = "TARTAN_ESBUILD"

    def __init__(
        self,
        *,
        executable: str | None = None,
        resolve_dir: Path | None = None,
        runner: Callable[[BundleRequest], str] | None = None,
    ) -> None:
        self.executable = executable or os.getenv(self.ENV_EXECUTABLE_KEY) or self.DEFAULT_EXECUTABLE
        self.resolve_dir = resolve_dir
        self._runner = runner or self._cli_runner
        self.logger = get_logger("bundler")

    def bundle(self, module_specifiers: Sequence[str]) -> str:
        """Return a script that side-effect imports every module in ``module_specifiers``."""
        request = BundleRequest(
            program=self.synthesize(module_specifiers),
            resolve_dir=self.resolve_dir or Path.cwd(),
            executable=self.executable,
        )
        self.logger.debug("Bundling %d custom element modules", len(module_specifiers))
        return self._runner(request)

    @staticmethod
    def synthesize(module_specifiers: Sequence[str]) -> str:
        return "".join(f"import {json.dumps(specifier)};\n" for specifier in module_specifiers)

    @staticmethod
    def _cli_runner(request: BundleRequest) -> str:
        args = [
            request.executable,
            "--bundle",
            "--format=iife",
            "--platform=browser",
            "--log-level=warning",
        ]
        try:
            completed = subprocess.run(
                args,
                input=request.program,
                cwd=str(request.resolve_dir),
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise ResolutionError(
                f"Unable to locate '{request.executable}'. Install esbuild or set TARTAN_ESBUILD."
            ) from exc
        except subprocess.CalledProcessError as exc:
            raise ResolutionError(
                f"esbuild failed with exit code {exc.returncode}: {exc.stderr.strip()}"
            ) from exc
        return completed.stdout


__all__ = ["BundleRequest", "EsbuildBundler"]
