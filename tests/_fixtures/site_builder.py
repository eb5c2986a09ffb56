"""Helper utilities for constructing temporary tartan projects in tests."""

from __future__ import annotations

import json
import textwrap
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from tartan.config import ProjectConfig
from tartan.resolver import LOCKFILE_NAME, Resolver


class SiteBuilder:
    """Writes a throwaway project (lockfile, sources, packages) under ``tmp_path``."""

    def __init__(self, tmp_path: Path) -> None:
        self.base = tmp_path / "project"
        self.base.mkdir()
        self.base = self.base.resolve()
        self.root = self.base / "src"
        self.root.mkdir()
        self.output = self.base / "dist"
        self._packages: Dict[str, Dict[str, Any]] = {}
        self._write_lockfile()

    def write(self, files: Mapping[str, Union[str, bytes]], *, base: Path | None = None) -> None:
        """Write `path -> contents` entries relative to the source root."""
        target_root = base or self.root
        for relative, content in files.items():
            path = target_root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                path.write_bytes(content)
            else:
                path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")

    def write_json(self, relative: str, data: Any, *, base: Path | None = None) -> Path:
        path = (base or self.root) / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    def add_package(
        self,
        name: str,
        definition: Mapping[str, Any],
        files: Mapping[str, Union[str, bytes]] | None = None,
    ) -> Path:
        """Install a package under node_modules and list it in the lockfile."""
        package_dir = self.base / "node_modules" / name
        package_dir.mkdir(parents=True)
        self.write_json("package.json", dict(definition), base=package_dir)
        self.write(files or {}, base=package_dir)
        self._packages[f"node_modules/{name}"] = {"version": "1.0.0"}
        self._write_lockfile()
        return package_dir

    def config(self, **overrides: Any) -> ProjectConfig:
        values: Dict[str, Any] = {"root_dir": self.root, "output_dir": self.output}
        values.update(overrides)
        return ProjectConfig(**values)

    def resolver(self, config: ProjectConfig | None = None) -> Resolver:
        return Resolver.create(config or self.config())

    def read_output(self, relative: str) -> str:
        return (self.output / relative).read_text(encoding="utf-8")

    def _write_lockfile(self) -> None:
        lockfile = {"name": "site", "lockfileVersion": 3, "packages": {"": {}, **self._packages}}
        (self.base / LOCKFILE_NAME).write_text(json.dumps(lockfile), encoding="utf-8")


__all__ = ["SiteBuilder"]
