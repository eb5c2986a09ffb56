"""Bottom-up build pass over the resolved context tree."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Set, Tuple, cast

from .bundler import EsbuildBundler
from .config import ProjectConfig
from .context import HandoffMode, page_mode_of
from .errors import InvalidOutputDirectoryError, ResolutionError
from .fs import LayeredFS
from .logging import get_logger
from .models import ContextTreeNode, SourceMeta, SubSourceMeta
from .processors.asset import AssetHandler, AssetProcessorRegistry
from .processors.page import PageProcessor
from .resolver import Resolver
from .utils import settle


class BuildRun:
    """State shared by every component during one build.

    Holds the asset-processor registry and the set of page output directories
    claimed so far, so repeated or concurrent builds never share state.
    """

    def __init__(
        self,
        config: ProjectConfig,
        resolver: Resolver,
        *,
        registry: AssetProcessorRegistry | None = None,
        bundler: EsbuildBundler | None = None,
    ) -> None:
        self.config = config
        self.resolver = resolver
        self.registry = registry or AssetProcessorRegistry()
        self.bundler = bundler or EsbuildBundler()
        self._used_output_dirs: Set[Path] = set()
        self._lock = threading.Lock()

    @property
    def fs(self) -> LayeredFS:
        return self.resolver.fs

    @property
    def used_output_dirs(self) -> Set[Path]:
        with self._lock:
            return set(self._used_output_dirs)

    def claim_output_dir(self, output_dir: Path, source_path: Path | None = None) -> None:
        """Reserve ``output_dir`` for one page; a second claim raises."""
        with self._lock:
            if output_dir in self._used_output_dirs:
                raise InvalidOutputDirectoryError(
                    f"Output dir {output_dir} for {source_path or 'page'} is already used by another page"
                )
            self._used_output_dirs.add(output_dir)


@dataclass
class TreeNode:
    value: ContextTreeNode
    children: List["TreeNode"] = field(default_factory=list)


@dataclass
class BuildReport:
    """Paths written by one build."""

    pages: List[Path] = field(default_factory=list)
    assets: List[Path] = field(default_factory=list)
    handoffs: List[Path] = field(default_factory=list)


class BuildOrchestrator:
    """Processes a resolved context tree strictly bottom-up."""

    def __init__(self, run: BuildRun) -> None:
        self.run = run
        self.config = run.config
        self.logger = get_logger("orchestrator")

    @staticmethod
    def flat_to_tree(context_tree: Mapping[Path, ContextTreeNode]) -> TreeNode:
        """Rebuild the hierarchy from parent pointers, keeping enqueue order."""
        nodes: Dict[Path, TreeNode] = {path: TreeNode(value=node) for path, node in context_tree.items()}
        root: Optional[TreeNode] = None
        for path, node in nodes.items():
            parent = node.value.parent
            if parent is None:
                root = node
            elif parent in nodes:
                nodes[parent].children.append(node)
            else:
                raise ResolutionError(f"Parent {parent} of {path} is missing from the context tree")
        if root is None:
            raise ResolutionError("Context tree has no root")
        return root

    def process(self, context_tree: Mapping[Path, ContextTreeNode]) -> BuildReport:
        root = self.flat_to_tree(context_tree)
        report = BuildReport()
        self._process_from_bottom(root, 0, report)
        self.logger.info(
            "Built %d pages and %d assets (%d handoffs)",
            len(report.pages),
            len(report.assets),
            len(report.handoffs),
        )
        return report

    def _process_from_bottom(
        self, node: TreeNode, depth: int, report: BuildReport
    ) -> List[Tuple[SourceMeta, int]]:
        """Return the metadata of ``node`` and its descendants with their depths."""
        value = node.value
        if value.is_directory and value.merged_context.page_mode == "handoff":
            self._handoff(value, report)
            return []

        collected: List[Tuple[SourceMeta, int]] = []
        for child in node.children:
            collected.extend(self._process_from_bottom(child, depth + 1, report))

        if value.skip:
            return collected

        if value.source_type == "page":
            subpage_meta = [
                SubSourceMeta(
                    source_type=meta.source_type,
                    source_path=meta.source_path,
                    output_path=meta.output_path,
                    context=meta.context,
                    extra=meta.extra,
                    distance=meta_depth - depth,
                    depth=meta_depth,
                )
                for meta, meta_depth in collected
            ]
            meta = self._process_page(value, depth, subpage_meta)
            report.pages.append(meta.output_path)
        else:
            meta = self._process_asset(value)
            report.assets.append(meta.output_path)
        return collected + [(meta, depth)]

    # ------------------------------------------------------------------
    # Dispatch

    def _page_output_dir(self, node: ContextTreeNode) -> Tuple[Path, Path]:
        if node.is_directory:
            source_path = node.path / (node.merged_context.page_source or "")
            output_dir = self.config.output_dir / os.path.relpath(node.path, self.config.root_dir)
        else:
            source_path = node.path
            output_dir = (
                self.config.output_dir
                / os.path.relpath(node.path.parent, self.config.root_dir)
                / node.path.stem
            )
        return source_path, Path(os.path.normpath(output_dir))

    def _process_page(
        self, node: ContextTreeNode, depth: int, subpage_meta: List[SubSourceMeta]
    ) -> SourceMeta:
        source_path, output_dir = self._page_output_dir(node)
        processor = PageProcessor(
            source_path,
            node.merged_context,
            output_dir,
            self.run,
            subpage_meta=subpage_meta,
            depth=depth,
        )
        return processor.process()

    def _process_asset(self, node: ContextTreeNode) -> SourceMeta:
        output_dir = Path(
            os.path.normpath(self.config.output_dir / os.path.relpath(node.path.parent, self.config.root_dir))
        )
        handler = AssetHandler(
            node.path,
            output_dir,
            self.run.registry,
            self.run.fs,
            root_dir=self.config.root_dir,
        )
        filename = handler.process()
        self.logger.info("Wrote asset %s -> %s", node.path, output_dir / filename)
        return SourceMeta(
            source_type="asset",
            source_path=node.path,
            output_path=output_dir / filename,
            context=node.merged_context,
        )

    def _handoff(self, node: ContextTreeNode, report: BuildReport) -> None:
        mode = cast(HandoffMode, page_mode_of(node.merged_context, node.path))
        _, output_dir = self._page_output_dir(node)
        self.logger.info("Handing off %s to %s", node.path, getattr(mode.handoff_handler, "__name__", "handler"))
        settle(mode.handoff_handler(str(output_dir)))
        report.handoffs.append(output_dir)


__all__ = ["BuildOrchestrator", "BuildReport", "BuildRun", "TreeNode"]
