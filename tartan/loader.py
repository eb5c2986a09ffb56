"""Loading data objects and Python modules through the layered filesystem."""

from __future__ import annotations

import hashlib
import importlib.abc
import importlib.util
import json
import sys
from importlib.machinery import ModuleSpec
from pathlib import Path
from types import ModuleType
from typing import Any, Optional

import yaml

from .errors import ConfigError, ResolutionError
from .fs import LayeredFS
from .logging import get_logger

# Highest priority first.
EXTENSION_PRIORITY = (".py", ".json", ".yaml", ".yml")
DEFAULT_EXPORT = "default"

_logger = get_logger("loader")


def load_object_from_file(base_path: Path, fs: LayeredFS) -> Optional[Any]:
    """Load an object from a sibling of ``base_path`` carrying a known extension.

    Returns None when no candidate exists. When several extensions match, the
    ambiguity is logged and the highest-priority extension wins.
    """
    directory = base_path.parent
    stem = base_path.name
    _logger.debug("Trying to load an object from %s", base_path)

    candidates = [
        directory / name
        for name in fs.listdir(directory)
        if Path(name).suffix in EXTENSION_PRIORITY and Path(name).stem == stem
    ]
    candidates = [candidate for candidate in candidates if fs.is_file(candidate)]
    if not candidates:
        return None
    candidates.sort(key=lambda candidate: EXTENSION_PRIORITY.index(candidate.suffix))
    if len(candidates) > 1:
        _logger.warning(
            "%s is ambiguous (%s); using %s",
            base_path,
            ", ".join(candidate.name for candidate in candidates),
            candidates[0].name,
        )

    chosen = candidates[0]
    if chosen.suffix == ".py":
        return load_module_export(chosen, fs)
    return read_data_file(chosen, fs)


def read_data_file(path: Path, fs: LayeredFS) -> Any:
    """Parse a JSON or YAML file."""
    text = fs.read_text(path)
    try:
        if path.suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text) if text.strip() else {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc


class LayeredSourceLoader(importlib.abc.Loader):
    """Executes a Python source file read through a :class:`LayeredFS`."""

    def __init__(self, path: Path, fs: LayeredFS) -> None:
        self.path = path
        self.fs = fs

    def create_module(self, spec: ModuleSpec) -> Optional[ModuleType]:
        return None

    def exec_module(self, module: ModuleType) -> None:
        source = self.fs.read_text(self.path)
        exec(compile(source, str(self.path), "exec"), module.__dict__)


def module_name_for(path: Path) -> str:
    digest = hashlib.sha256(str(path).encode("utf-8")).hexdigest()[:12]
    return f"_tartan_{path.stem.replace('.', '_').replace('-', '_')}_{digest}"


def load_module(path: Path, fs: LayeredFS) -> ModuleType:
    """Execute a Python source file read through ``fs`` as a fresh module.

    The module name is derived from the path, so loading the same file again
    replaces its ``sys.modules`` entry instead of adding another.
    """
    name = module_name_for(path)
    loader = LayeredSourceLoader(path, fs)
    spec = importlib.util.spec_from_loader(name, loader, origin=str(path))
    if spec is None:  # pragma: no cover - spec_from_loader only fails without a name
        raise ResolutionError(f"Unable to create a module spec for {path}")
    module = importlib.util.module_from_spec(spec)
    module.__file__ = str(path)
    # Registered during execution; dataclasses defined in the file look their module up there.
    sys.modules[name] = module
    try:
        loader.exec_module(module)
    except BaseException:
        sys.modules.pop(name, None)
        raise
    return module


def load_module_export(path: Path, fs: LayeredFS, attribute: str = DEFAULT_EXPORT) -> Any:
    """Return the ``default`` export (or another attribute) of a Python source file."""
    module = load_module(path, fs)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise ResolutionError(f"{path} does not define `{attribute}`") from None


__all__ = [
    "DEFAULT_EXPORT",
    "EXTENSION_PRIORITY",
    "LayeredSourceLoader",
    "load_module",
    "load_module_export",
    "load_object_from_file",
    "module_name_for",
    "read_data_file",
]
