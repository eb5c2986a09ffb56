"""HTML post-processing: custom-element registration and dependency rewriting."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Set, Tuple

from bs4 import BeautifulSoup, Tag
from bs4.dammit import EntitySubstitution
from bs4.formatter import HTMLFormatter

from ..bundler import EsbuildBundler
from ..config import ProjectConfig
from ..logging import get_logger
from ..models import DependencyMap
from ..resolver import Resolver

DEPENDENCY_ATTRIBUTES = ("href", "src", "srcset")
ASSETS_DIRNAME = "assets"

_EXTERNAL_PREFIXES = ("//", "#", "data:", "mailto:", "tel:", "javascript:")


class _SourceOrderFormatter(HTMLFormatter):
    """Writes attributes in source order; the stock formatters sort them."""

    def attributes(self, tag):
        if tag.attrs is None:
            return []
        return [
            (key, None if self.empty_attributes_are_booleans and value == "" else value)
            for key, value in tag.attrs.items()
        ]


_FORMATTER = _SourceOrderFormatter(
    entity_substitution=EntitySubstitution.substitute_xml,
    void_element_close_prefix=None,
    empty_attributes_are_booleans=True,
)


def _parse(html_content: str) -> BeautifulSoup:
    # Attribute values stay strings so whitespace inside `class` survives.
    return BeautifulSoup(html_content, "html.parser", multi_valued_attributes=None)


@dataclass
class HTMLProcessorResult:
    content: str
    dependencies: List[DependencyMap] = field(default_factory=list)


class HTMLProcessor:
    """Processes one rendered page.

    The source document is left untouched; registration and URL rewriting are
    applied to a second parse. A page needing neither comes back byte for
    byte as it went in.
    """

    def __init__(
        self,
        html_content: str,
        config: ProjectConfig,
        resolver: Resolver,
        page_path: Path,
        bundler: Optional[EsbuildBundler] = None,
    ) -> None:
        self.html_content = html_content
        self.config = config
        self.resolver = resolver
        self.page_path = page_path
        self.bundler = bundler or EsbuildBundler()
        self.root = _parse(html_content)
        self.rewrites = 0
        self.logger = get_logger("html")

    def process(self) -> HTMLProcessorResult:
        """Return the finished document and the files it depends on."""
        module_specifiers = self.find_custom_tags()

        document = _parse(self.html_content)
        self.rewrites = 0
        if module_specifiers:
            bundled = self.bundler.bundle(module_specifiers)
            body = document.find("body")
            if body is not None:
                script = document.new_tag("script")
                script.string = bundled
                body.insert(0, script)
                self.rewrites += 1
            else:
                self.logger.warning(
                    "%s uses custom elements but has no <body>; registration script dropped",
                    self.page_path,
                )

        dependencies = self.find_dependencies(document)
        if not self.rewrites:
            return HTMLProcessorResult(content=self.html_content, dependencies=dependencies)
        return HTMLProcessorResult(content=document.decode(formatter=_FORMATTER), dependencies=dependencies)

    def find_custom_tags(self, node: Optional[Tag] = None) -> List[str]:
        """Return the de-duplicated modules registering every custom element in the tree."""
        if node is None:
            node = self.root
        specifiers: List[str] = []
        if node.name:
            specifier = self.resolver.resolve_tag_name(node.name)
            if specifier is not None:
                specifiers.append(specifier)
        for child in node.children:
            if isinstance(child, Tag):
                specifiers.extend(self.find_custom_tags(child))
        return list(dict.fromkeys(specifiers))

    def find_dependencies(self, node: Tag, seen: Optional[Set[Path]] = None) -> List[DependencyMap]:
        """Rewrite dependency-bearing attributes in place and return the files to copy."""
        if seen is None:
            seen = set()
        dependencies: List[DependencyMap] = []

        if node.name != "a":
            for attribute in DEPENDENCY_ATTRIBUTES:
                value = node.get(attribute)
                if not isinstance(value, str) or not value.strip():
                    continue
                if attribute == "srcset":
                    rewritten = self._rewrite_srcset(value, dependencies, seen)
                else:
                    rewritten = self._rewrite_url(value.strip(), dependencies, seen)
                if rewritten != value:
                    node[attribute] = rewritten
                    self.rewrites += 1

        for child in node.children:
            if isinstance(child, Tag):
                dependencies.extend(self.find_dependencies(child, seen))
        return dependencies

    def _rewrite_srcset(self, value: str, dependencies: List[DependencyMap], seen: Set[Path]) -> str:
        candidates = []
        for candidate in value.split(","):
            parts = candidate.strip().split(None, 1)
            if not parts:
                continue
            url = self._rewrite_url(parts[0], dependencies, seen)
            candidates.append(" ".join([url, *parts[1:]]))
        return ", ".join(candidates)

    def _rewrite_url(self, url: str, dependencies: List[DependencyMap], seen: Set[Path]) -> str:
        if _is_external(url):
            return url
        target, suffix = _split_suffix(url)
        if not target:
            return url

        source, output = self.locate(target)
        if output not in seen:
            seen.add(output)
            dependencies.append(DependencyMap(source=source, output=output))
        return "/" + Path(os.path.relpath(output, self.config.output_dir)).as_posix() + suffix

    def locate(self, target: str) -> Tuple[Path, Path]:
        """Return the absolute source of ``target`` and where it lands in the output tree."""
        source = Path(self.resolver.resolve_path(target, str(self.page_path)))
        relative_to_root = os.path.relpath(source, self.config.root_dir)
        if relative_to_root == ".." or relative_to_root.startswith(".." + os.sep):
            # Hash the full source path so unrelated files sharing a basename stay distinct.
            digest = hashlib.sha256(str(source).encode("utf-8")).hexdigest()
            output = self.config.output_dir / ASSETS_DIRNAME / f"{digest}-{source.name}"
        else:
            output = self.config.output_dir / relative_to_root
        return source, output


def _is_external(url: str) -> bool:
    lowered = url.lower()
    if lowered.startswith(_EXTERNAL_PREFIXES):
        return True
    scheme, sep, _ = lowered.partition("://")
    return bool(sep) and scheme.isalpha()


def _split_suffix(url: str) -> Tuple[str, str]:
    for marker in ("?", "#"):
        index = url.find(marker)
        if index != -1:
            return url[:index], url[index:]
    return url, ""


__all__ = ["ASSETS_DIRNAME", "DEPENDENCY_ATTRIBUTES", "HTMLProcessor", "HTMLProcessorResult"]
