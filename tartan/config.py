"""Project configuration for tartan (``tartan.config.*``)."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from .context import ContextFile
from .errors import ConfigError
from .fs import LayeredFS
from .loader import load_object_from_file, read_data_file, load_module_export

DEFAULT_CONFIG_BASENAME = "tartan.config"

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


@dataclass
class ProjectConfig:
    """Represents the settings of one tartan project."""

    root_dir: Path
    output_dir: Path
    path_prefixes: Dict[str, str] = field(default_factory=dict)
    design_libraries: List[str] = field(default_factory=list)
    extra_asset_processors: Dict[str, str] = field(default_factory=dict)
    root_context: Optional[ContextFile] = None
    ignored_paths: List[str] = field(default_factory=list)
    # Directory of the config file; relative module and library paths resolve here.
    base_dir: Path = field(default_factory=Path.cwd)

    def __post_init__(self) -> None:
        self.root_dir = Path(self.root_dir).expanduser().resolve()
        self.output_dir = Path(self.output_dir).expanduser().resolve()
        self.base_dir = Path(self.base_dir).expanduser().resolve()
        if isinstance(self.root_context, Mapping):
            self.root_context = _parse_context(self.root_context, "root_context")


def load_config(config_path: Path | str, *, fs: LayeredFS | None = None) -> ProjectConfig:
    """Load configuration from disk.

    ``config_path`` may name a file with an extension, a directory holding a
    ``tartan.config.*`` file, or an extensionless base path.
    """
    fs = fs or LayeredFS()
    path = Path(config_path).expanduser().resolve()
    if fs.is_dir(path):
        path = path / DEFAULT_CONFIG_BASENAME

    if fs.is_file(path):
        data = load_module_export(path, fs) if path.suffix == ".py" else read_data_file(path, fs)
    else:
        data = load_object_from_file(path, fs)
        if data is None:
            raise ConfigError(f"No config file found for {config_path}")

    if not isinstance(data, Mapping):
        raise ConfigError(f"{path.name} must contain a mapping at the root")
    return config_from_mapping(data, base_dir=path.parent)


def config_from_mapping(data: Mapping[str, Any], *, base_dir: Path) -> ProjectConfig:
    """Build a :class:`ProjectConfig`, resolving relative paths against ``base_dir``."""
    values = {_snake(str(key)): value for key, value in data.items()}

    root_dir = _as_str(values.get("root_dir"))
    output_dir = _as_str(values.get("output_dir"))
    if not root_dir:
        raise ConfigError("Config is missing `root_dir`")
    if not output_dir:
        raise ConfigError("Config is missing `output_dir`")

    prefixes = {
        str(prefix): str(base_dir / replacement)
        for prefix, replacement in _as_dict(values.get("path_prefixes")).items()
        if isinstance(replacement, str)
    }

    root_context = None
    raw_root_context = values.get("root_context")
    if raw_root_context is not None:
        root_context = _parse_context(raw_root_context, "root_context")

    return ProjectConfig(
        root_dir=base_dir / root_dir,
        output_dir=base_dir / output_dir,
        path_prefixes=prefixes,
        design_libraries=_as_str_list(values.get("design_libraries")),
        extra_asset_processors={
            str(glob): str(module)
            for glob, module in _as_dict(values.get("extra_asset_processors")).items()
        },
        root_context=root_context,
        ignored_paths=_as_str_list(values.get("ignored_paths")),
        base_dir=base_dir,
    )


def _parse_context(value: Any, label: str) -> ContextFile:
    if isinstance(value, ContextFile):
        return value
    try:
        return ContextFile.model_validate(value)
    except ValidationError as exc:
        raise ConfigError(f"Invalid {label}: {exc}") from exc


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _as_dict(value: Any) -> Dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, Path):
        return str(value)
    return value if isinstance(value, str) else None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, Path))]
    return []


__all__ = ["DEFAULT_CONFIG_BASENAME", "ProjectConfig", "config_from_mapping", "load_config"]
