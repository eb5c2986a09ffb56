"""Core data models shared across tartan components."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Optional

from .context import Context

SourceType = Literal["page", "asset"]


@dataclass(frozen=True)
class ContextTreeNode:
    """Resolved configuration for one path of the source tree."""

    path: Path
    is_directory: bool
    source_type: SourceType
    default_context: Context
    current_context: Context
    merged_context: Context
    parent: Optional[Path]
    skip: bool


@dataclass(frozen=True)
class SourceMeta:
    """Information about a processed page or asset."""

    source_type: SourceType
    source_path: Path
    output_path: Path
    context: Context
    extra: Any = None


@dataclass(frozen=True)
class SubSourceMeta(SourceMeta):
    """Metadata of a descendant, seen from the page currently being processed.

    ``distance`` is never 0: pages only see their descendants, never siblings.
    """

    distance: int = 1
    depth: int = 0


@dataclass(frozen=True)
class DependencyMap:
    """A file referenced by a page and the place it is copied to."""

    source: Path
    output: Path
