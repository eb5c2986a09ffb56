"""Static-site build engine driven by cascading per-directory contexts."""

from __future__ import annotations

from .config import ProjectConfig, load_config
from .errors import (
    ConfigError,
    InvalidOutputDirectoryError,
    MockExpansionError,
    ResolutionError,
    TartanError,
)
from .project import TartanProject

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "InvalidOutputDirectoryError",
    "MockExpansionError",
    "ProjectConfig",
    "ResolutionError",
    "TartanError",
    "TartanProject",
    "load_config",
]
