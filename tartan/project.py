"""High-level entry point tying the resolver, tree builder and orchestrator together."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional

from .bundler import EsbuildBundler
from .config import ProjectConfig, load_config
from .fs import LayeredFS
from .logging import get_logger
from .models import ContextTreeNode
from .orchestrator import BuildOrchestrator, BuildReport, BuildRun
from .processors.asset import AssetProcessorRegistry
from .processors.directory import ContextTreeBuilder
from .resolver import Resolver


class TartanProject:
    """One buildable project.

    ``init()`` prepares everything that can fail before output is written:
    manifest aggregation, asset-processor loading and the context tree.
    """

    def __init__(
        self,
        config: ProjectConfig,
        *,
        fs: LayeredFS | None = None,
        bundler: EsbuildBundler | None = None,
    ) -> None:
        self.config = config
        self.resolver = Resolver(config, fs)
        self.run = BuildRun(config, self.resolver, registry=AssetProcessorRegistry(), bundler=bundler)
        self.tree_builder = ContextTreeBuilder(config, self.resolver)
        self.context_tree: Optional[Dict[Path, ContextTreeNode]] = None
        self.logger = get_logger("project")

    @classmethod
    def from_config_file(cls, config_path: Path | str, **kwargs) -> "TartanProject":
        return cls(load_config(config_path), **kwargs)

    def init(self, start: Path | None = None) -> Dict[Path, ContextTreeNode]:
        self.resolver.init(start)
        for glob, specifier in self.config.extra_asset_processors.items():
            self.run.registry.register_module(glob, specifier, self.resolver)
        self.context_tree = self.tree_builder.load_context_tree()
        self.logger.debug("Resolved %d source paths under %s", len(self.context_tree), self.config.root_dir)
        return self.context_tree

    def process(self) -> BuildReport:
        if self.context_tree is None:
            raise RuntimeError("TartanProject.process() called before init()")
        self.run.fs.makedirs(self.config.output_dir)
        return BuildOrchestrator(self.run).process(self.context_tree)

    def build(self, start: Path | None = None) -> BuildReport:
        self.init(start)
        return self.process()


__all__ = ["TartanProject"]
