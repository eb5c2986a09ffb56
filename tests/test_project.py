"""End-to-end builds through TartanProject."""

from __future__ import annotations

import json

import pytest

from tartan.bundler import EsbuildBundler
from tartan.config import load_config
from tartan.errors import InvalidOutputDirectoryError
from tartan.project import TartanProject
from tests._fixtures.site_builder import SiteBuilder

MARKDOWN_PROCESSOR = """
def default(payload):
    text = payload.source_contents.decode().strip()
    children = sorted(meta.extra["title"] for meta in payload.subpage_meta if meta.extra)
    return {
        "processed_contents": "<h1>" + text + "</h1>" + "".join("<li>" + c + "</li>" for c in children),
        "extra_meta": {"title": text},
    }
"""


def _write_blog(site: SiteBuilder) -> None:
    site.write({"processors/markdown.py": MARKDOWN_PROCESSOR}, base=site.base)
    site.write(
        {
            "index.html": "<html><body><x-card></x-card><img src=\"img/logo.png\"></body></html>",
            "blog/index.md": "Blog",
            "blog/first.md": "First",
            "blog/second.md": "Second",
            "img/logo.png": b"PNG",
            "img/notes.txt": "ignored",
        }
    )
    site.write_json(
        "blog/tartan.context.default.json",
        {
            "pageMode": "file",
            "pagePattern": "*.md",
            "pageSource": "index.md",
            "sourceProcessor": "../../processors/markdown.py",
        },
    )
    site.write_json("img/tartan.context.json", {"pageMode": "asset", "pagePattern": "*.png"})
    package_dir = site.add_package("cards", {"customElements": "elements.json"})
    site.write_json(
        "elements.json",
        {"modules": [{"path": "card.js", "declarations": [{"kind": "class", "customElement": True, "tagName": "x-card"}]}]},
        base=package_dir,
    )


def test_build_writes_pages_assets_and_dependencies(
    site: SiteBuilder, bundler: EsbuildBundler, bundle_runner
) -> None:
    _write_blog(site)

    report = TartanProject(site.config(), bundler=bundler).build()

    assert sorted(report.pages) == sorted(
        [site.output, site.output / "blog", site.output / "blog" / "first", site.output / "blog" / "second"]
    )
    assert report.assets == [site.output / "img" / "logo.png"]
    assert site.read_output("blog/index.html") == "<h1>Blog</h1><li>First</li><li>Second</li>"
    assert site.read_output("blog/first/index.html") == "<h1>First</h1>"
    assert site.read_output("index.html") == (
        '<html><body><script>/* bundled */</script><x-card></x-card><img src="/img/logo.png"></body></html>'
    )
    assert (site.output / "img" / "logo.png").read_bytes() == b"PNG"
    assert not (site.output / "img" / "notes.txt").exists()
    assert len(bundle_runner.requests) == 1


def test_build_from_config_file_registers_asset_processors(
    site: SiteBuilder, bundler: EsbuildBundler
) -> None:
    site.write({"processors/upper.py": "def default(contents, basename):\n    return {'processed_contents': contents.upper()}\n"}, base=site.base)
    site.write({"index.html": "<p>home</p>", "notes.txt": "quiet"})
    site.write_json("tartan.context.json", {"extraAssets": ["*.txt"]})
    (site.base / "tartan.config.json").write_text(
        json.dumps(
            {
                "rootDir": "src",
                "outputDir": "dist",
                "extraAssetProcessors": {"*.txt": "processors/upper.py"},
            }
        ),
        encoding="utf-8",
    )

    project = TartanProject(load_config(site.base / "tartan.config"), bundler=bundler)
    report = project.build()

    assert report.pages == [site.output]
    assert site.read_output("notes.txt") == "QUIET"


def test_config_relative_modules_load_from_another_working_directory(
    site: SiteBuilder, bundler: EsbuildBundler, tmp_path, monkeypatch: pytest.MonkeyPatch
) -> None:
    site.write({"min.py": "def default(contents, basename):\n    return {'processed_contents': contents.strip()}\n"}, base=site.base)
    site.write({"index.html": "<p>home</p>", "site.css": b"  body {}  "})
    site.write_json("tartan.context.json", {"extraAssets": ["*.css"]})
    (site.base / "tartan.config.json").write_text(
        json.dumps({"rootDir": "src", "outputDir": "dist", "extraAssetProcessors": {"*.css": "./min.py"}}),
        encoding="utf-8",
    )
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)

    project = TartanProject(load_config(site.base / "tartan.config"), bundler=bundler)
    project.build(site.base)

    assert site.read_output("site.css") == "body {}"


def test_colliding_renames_abort_the_build(site: SiteBuilder, bundler: EsbuildBundler) -> None:
    site.write(
        {
            "rename.py": "def default(payload):\n    return {'processed_contents': payload.source_contents, 'output_dir': 'same'}\n",
        },
        base=site.base,
    )
    site.write({"a.md": "<p>a</p>", "b.md": "<p>b</p>"})
    site.write_json(
        "tartan.context.default.json",
        {"pageMode": "file", "pagePattern": "*.md", "sourceProcessor": "../rename.py"},
    )

    with pytest.raises(InvalidOutputDirectoryError):
        TartanProject(site.config(), bundler=bundler).build()


def test_process_requires_init(site: SiteBuilder) -> None:
    with pytest.raises(RuntimeError, match="init"):
        TartanProject(site.config()).process()
