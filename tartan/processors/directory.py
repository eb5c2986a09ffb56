"""Breadth-first walk of the source tree computing the context of every path."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Mapping, Optional, Set, Union, cast

from pydantic import ValidationError

from ..config import ProjectConfig
from ..context import (
    ROOT_CONTEXT,
    AssetMode,
    Context,
    ContextFile,
    FileMode,
    MockMode,
    merge_contexts,
    page_mode_of,
)
from ..errors import ConfigError, MockExpansionError
from ..fs import MemoryStore, flatten_tree
from ..loader import EXTENSION_PRIORITY
from ..logging import TRACE, get_logger
from ..models import ContextTreeNode, SourceType
from ..resolver import Resolver
from ..utils import settle

CONTEXT_BASENAME = "tartan.context"
DEFAULT_CONTEXT_BASENAME = "tartan.context.default"

_CONTEXT_FILE = re.compile(
    r"(^tartan\.context(\.default)?|\.context)(%s)$"
    % "|".join(re.escape(extension) for extension in EXTENSION_PRIORITY)
)


@dataclass(frozen=True)
class _QueueItem:
    path: Path
    source_type: SourceType = "page"
    parent: Optional[Path] = None


class ContextTreeBuilder:
    """Resolves the default, current and merged context of every source path.

    The walk is a single sequential queue: a node is committed before any of
    its children are dequeued, so children can read their parent's defaults
    from the results table.
    """

    def __init__(self, config: ProjectConfig, resolver: Resolver) -> None:
        self.config = config
        self.resolver = resolver
        self.fs = resolver.fs
        self.root_context: Context = ROOT_CONTEXT
        self.logger = get_logger("directory")
        self._ignored = [re.compile(pattern) for pattern in config.ignored_paths]

    def load_context_tree(self) -> Dict[Path, ContextTreeNode]:
        self.root_context = self._load_root_context()

        root = self.config.root_dir
        if not self.fs.is_dir(root):
            raise FileNotFoundError(f"Root directory {root} does not exist")

        queue: List[_QueueItem] = [_QueueItem(path=root)]
        enqueued: Set[Path] = {root}
        expanded: Set[Path] = set()
        results: Dict[Path, ContextTreeNode] = {}

        # The queue grows while it is walked.
        index = 0
        while index < len(queue):
            item = queue[index]
            index += 1
            self.logger.log(TRACE, "Resolving %s", item.path)

            is_directory = self.fs.is_dir(item.path)
            if is_directory:
                directory = item.path
                context_name = CONTEXT_BASENAME
                default_file = self._read_context_file(directory / DEFAULT_CONTEXT_BASENAME)
            else:
                directory = item.path.parent
                context_name = f"{item.path.name}.context"
                default_file = None
            current_file = self._read_context_file(directory / context_name)

            children: List[_QueueItem] = []
            if is_directory:
                for name in self.fs.listdir(directory):
                    child = directory / name
                    if self.fs.is_dir(child):
                        children.append(_QueueItem(path=child, parent=item.path))

            parent_default = results[item.parent].default_context if item.parent is not None else None
            default_context = self._default_context(default_file, parent_default, directory)
            current_context = (
                self.resolver.initialize_context(current_file, directory / context_name)
                if current_file is not None
                else Context()
            )
            merged_context = merge_contexts(default_context, current_context, self.root_context)

            if is_directory and merged_context.page_mode == "mock":
                self._expand_mock(item.path, merged_context, expanded)
                queue.append(item)
                continue

            if is_directory:
                children.extend(self._pattern_children(item.path, merged_context))

            for child in children:
                if child.path in enqueued or self._is_excluded(child.path):
                    continue
                enqueued.add(child.path)
                queue.append(child)

            results[item.path] = ContextTreeNode(
                path=item.path,
                is_directory=is_directory,
                source_type=item.source_type,
                default_context=default_context,
                current_context=current_context,
                merged_context=merged_context,
                parent=item.parent,
                skip=self._should_skip(item.path, is_directory, merged_context),
            )

        return results

    # ------------------------------------------------------------------
    # Contexts

    def _load_root_context(self) -> Context:
        if self.config.root_context is None:
            return ROOT_CONTEXT
        # A configured root context replaces the built-in one entirely.
        return self.resolver.initialize_context(
            self.config.root_context, self.config.root_dir / CONTEXT_BASENAME
        )

    def _read_context_file(self, base_path: Path) -> Optional[ContextFile]:
        data = self.resolver.load_object_from_file(base_path)
        if data is None:
            return None
        if isinstance(data, ContextFile):
            return data
        if not isinstance(data, Mapping):
            raise ConfigError(f"{base_path} must define a mapping")
        try:
            return ContextFile.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid context file {base_path}: {exc}") from exc

    def _default_context(
        self,
        default_file: Optional[ContextFile],
        parent_default: Optional[Context],
        directory: Path,
    ) -> Context:
        base = parent_default if parent_default is not None else self.root_context
        if default_file is None:
            return base
        loaded = self.resolver.initialize_context(default_file, directory / DEFAULT_CONTEXT_BASENAME)
        return merge_contexts(base, loaded, self.root_context)

    # ------------------------------------------------------------------
    # Expansion

    def _expand_mock(self, path: Path, context: Context, expanded: Set[Path]) -> None:
        if path in expanded:
            raise MockExpansionError(f"{path} is still in mock mode after its mock expansion")
        mode = cast(MockMode, page_mode_of(context, path))
        tree = settle(mode.mock_generator())
        if not isinstance(tree, Mapping):
            raise MockExpansionError(f"Mock generator for {path} must return a mapping")
        files = flatten_tree(tree)
        for relative in files:
            _check_mock_path(path, relative)
        self.fs.push(MemoryStore(path, files))
        expanded.add(path)
        self.logger.info("Mocked %s with %d virtual files", path, len(files))

    def _pattern_children(self, directory: Path, context: Context) -> List[_QueueItem]:
        children: List[_QueueItem] = []
        if context.page_mode in ("file", "asset"):
            mode = cast(Union[FileMode, AssetMode], page_mode_of(context, directory))
            source_type: SourceType = "page" if context.page_mode == "file" else "asset"
            page_source = (
                Path(os.path.normpath(directory / context.page_source))
                if context.page_source
                else None
            )
            for match in self.fs.glob(directory, mode.page_pattern):
                if match == page_source or _CONTEXT_FILE.search(match.name):
                    continue
                children.append(_QueueItem(path=match, source_type=source_type, parent=directory))

        for pattern in context.extra_assets or ():
            for match in self.fs.glob(directory, pattern):
                children.append(_QueueItem(path=match, source_type="asset", parent=directory))
        return children

    def _is_excluded(self, path: Path) -> bool:
        if path == self.config.output_dir:
            return True
        relative = path.relative_to(self.config.root_dir).as_posix()
        for pattern in self._ignored:
            if pattern.search(relative):
                self.logger.debug("Ignoring %s (matches %s)", relative, pattern.pattern)
                return True
        return False

    def _should_skip(self, path: Path, is_directory: bool, context: Context) -> bool:
        if not is_directory:
            return False
        if not context.page_source or context.page_mode == "asset":
            return True
        return not self.fs.is_file(path / context.page_source)


def _check_mock_path(directory: Path, relative: Any) -> None:
    candidate = PurePosixPath(str(relative))
    if candidate.is_absolute() or os.path.isabs(str(relative)):
        raise MockExpansionError(f"Mock generator for {directory} emitted absolute path {relative}")
    normalized = os.path.normpath(str(candidate))
    if normalized == ".." or normalized.startswith("../"):
        raise MockExpansionError(f"Mock generator for {directory} emitted {relative}, outside the directory")


__all__ = ["CONTEXT_BASENAME", "DEFAULT_CONTEXT_BASENAME", "ContextTreeBuilder"]
