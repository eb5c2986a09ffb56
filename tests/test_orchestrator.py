"""Tests for tartan.orchestrator."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Tuple

import pytest

from tartan.bundler import EsbuildBundler
from tartan.context import ROOT_CONTEXT, Context
from tartan.errors import ResolutionError
from tartan.models import ContextTreeNode, SourceType
from tartan.orchestrator import BuildOrchestrator, BuildRun
from tartan.processors.page import SourceProcessorInput
from tests._fixtures.site_builder import SiteBuilder


class MetaRecorder:
    """Source processor double that records the subpage meta each page receives."""

    def __init__(self) -> None:
        self.seen: Dict[str, List[Tuple[str, int, int]]] = {}

    def __call__(self, payload: SourceProcessorInput) -> dict:
        page = payload.source_contents.decode()
        self.seen[page] = [
            (Path(meta.source_path).parent.name or meta.source_path.name, meta.distance, meta.depth)
            for meta in payload.subpage_meta
        ]
        return {"processed_contents": f"<p>{page}</p>", "extra_meta": {"name": page}}


def _node(
    path: Path,
    parent: Path | None,
    context: Context = ROOT_CONTEXT,
    *,
    is_directory: bool = True,
    source_type: SourceType = "page",
    skip: bool = False,
) -> ContextTreeNode:
    return ContextTreeNode(
        path=path,
        is_directory=is_directory,
        source_type=source_type,
        default_context=ROOT_CONTEXT,
        current_context=context,
        merged_context=context,
        parent=parent,
        skip=skip,
    )


@pytest.fixture
def run(site: SiteBuilder, bundler: EsbuildBundler) -> BuildRun:
    config = site.config()
    return BuildRun(config, site.resolver(config), bundler=bundler)


def test_flat_to_tree_requires_a_root(site: SiteBuilder) -> None:
    with pytest.raises(ResolutionError, match="no root"):
        BuildOrchestrator.flat_to_tree({})
    with pytest.raises(ResolutionError, match="missing"):
        BuildOrchestrator.flat_to_tree({site.root / "a": _node(site.root / "a", site.root)})


def test_flat_to_tree_keeps_enqueue_order(site: SiteBuilder) -> None:
    root = site.root
    tree = BuildOrchestrator.flat_to_tree(
        {
            root: _node(root, None),
            root / "b": _node(root / "b", root),
            root / "a": _node(root / "a", root),
            root / "b" / "c": _node(root / "b" / "c", root / "b"),
        }
    )

    assert [child.value.path for child in tree.children] == [root / "b", root / "a"]
    assert [child.value.path for child in tree.children[0].children] == [root / "b" / "c"]


def test_pages_only_see_descendant_metadata(site: SiteBuilder, run: BuildRun) -> None:
    root = site.root
    site.write({"index.html": "root", "a/index.html": "a", "a/b/index.html": "b", "c/index.html": "c"})
    recorder = MetaRecorder()
    context = Context(page_mode="directory", page_source="index.html", source_processor=recorder)

    report = BuildOrchestrator(run).process(
        {
            root: _node(root, None, context),
            root / "a": _node(root / "a", root, context),
            root / "c": _node(root / "c", root, context),
            root / "a" / "b": _node(root / "a" / "b", root / "a", context),
        }
    )

    assert recorder.seen["b"] == []
    assert recorder.seen["c"] == []
    assert recorder.seen["a"] == [("b", 1, 2)]
    assert sorted(recorder.seen["root"]) == [("a", 1, 1), ("b", 2, 2), ("c", 1, 1)]
    assert report.pages == [site.output / "a" / "b", site.output / "a", site.output / "c", site.output]
    assert site.read_output("a/b/index.html") == "<p>b</p>"


def test_skipped_nodes_pass_descendant_metadata_through(site: SiteBuilder, run: BuildRun) -> None:
    root = site.root
    site.write({"index.html": "root", "a/b/index.html": "b"})
    recorder = MetaRecorder()
    context = Context(page_mode="directory", page_source="index.html", source_processor=recorder)

    report = BuildOrchestrator(run).process(
        {
            root: _node(root, None, context),
            root / "a": _node(root / "a", root, context, skip=True),
            root / "a" / "b": _node(root / "a" / "b", root / "a", context),
        }
    )

    assert recorder.seen["root"] == [("b", 2, 2)]
    assert site.output / "a" not in report.pages


def test_file_pages_and_assets_get_their_output_paths(site: SiteBuilder, run: BuildRun) -> None:
    root = site.root
    site.write({"blog/index.md": "<p>blog</p>", "blog/first.md": "<p>first</p>", "blog/logo.png": b"PNG"})
    blog_context = Context(page_mode="file", page_pattern="*.md", page_source="index.md")

    report = BuildOrchestrator(run).process(
        {
            root: _node(root, None, skip=True),
            root / "blog": _node(root / "blog", root, blog_context),
            root / "blog" / "first.md": _node(root / "blog" / "first.md", root / "blog", is_directory=False),
            root / "blog" / "logo.png": _node(
                root / "blog" / "logo.png", root / "blog", is_directory=False, source_type="asset"
            ),
        }
    )

    assert report.pages == [site.output / "blog" / "first", site.output / "blog"]
    assert report.assets == [site.output / "blog" / "logo.png"]
    assert site.read_output("blog/first/index.html") == "<p>first</p>"
    assert site.read_output("blog/index.html") == "<p>blog</p>"
    assert (site.output / "blog" / "logo.png").read_bytes() == b"PNG"


def test_handoff_delegates_the_whole_subtree(site: SiteBuilder, run: BuildRun) -> None:
    root = site.root
    site.write({"index.html": "<p>home</p>", "api/index.html": "<p>api</p>", "api/v1/index.html": "<p>v1</p>"})
    calls: List[str] = []

    def handler(output_dir: str) -> None:
        calls.append(output_dir)
        Path(output_dir).mkdir(parents=True)
        (Path(output_dir) / "index.html").write_text("generated", encoding="utf-8")

    handoff = Context(page_mode="handoff", handoff_handler=handler, page_source="index.html")

    report = BuildOrchestrator(run).process(
        {
            root: _node(root, None),
            root / "api": _node(root / "api", root, handoff),
            root / "api" / "v1": _node(root / "api" / "v1", root / "api"),
        }
    )

    assert calls == [str(site.output / "api")]
    assert report.handoffs == [site.output / "api"]
    assert report.pages == [site.output]
    assert site.read_output("api/index.html") == "generated"
    assert not (site.output / "api" / "v1").exists()


def test_async_handoff_handlers_are_awaited(site: SiteBuilder, run: BuildRun) -> None:
    root = site.root
    calls: List[str] = []

    async def handler(output_dir: str) -> None:
        calls.append(output_dir)

    BuildOrchestrator(run).process(
        {
            root: _node(root, None, skip=True),
            root / "docs": _node(root / "docs", root, Context(page_mode="handoff", handoff_handler=handler)),
        }
    )

    assert calls == [str(site.output / "docs")]
