"""Error taxonomy for tartan builds.

Every error defined here is fatal: the build halts at the first one raised and
files already written are left in place. Filesystem failures are not wrapped,
they surface as the underlying ``OSError``.
"""

from __future__ import annotations


class TartanError(RuntimeError):
    """Base class for all build errors raised by tartan itself."""


class ConfigError(TartanError):
    """Raised when a project config or context file is missing required fields."""


class InvalidOutputDirectoryError(TartanError):
    """Raised when a page's output directory escapes its parent or collides with another page."""


class MockExpansionError(TartanError):
    """Raised when a mock generator emits an illegal tree or mock expansion does not settle."""


class ResolutionError(TartanError):
    """Raised when a required module, manifest, template or file cannot be resolved."""


__all__ = [
    "ConfigError",
    "InvalidOutputDirectoryError",
    "MockExpansionError",
    "ResolutionError",
    "TartanError",
]
