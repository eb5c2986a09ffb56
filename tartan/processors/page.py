"""Per-page pipeline: source processor, template, HTML processing, output."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Sequence, Union

from ..context import Context
from ..errors import InvalidOutputDirectoryError
from ..logging import get_logger
from ..models import DependencyMap, SourceMeta, SubSourceMeta
from ..utils import as_bytes, as_text, settle
from .html import HTMLProcessor

if TYPE_CHECKING:  # pragma: no cover
    from ..orchestrator import BuildRun

INDEX_FILENAME = "index.html"


@dataclass
class SourceProcessorInput:
    """Arguments handed to a page's source processor."""

    source_contents: bytes
    context: Context
    subpage_meta: List[SubSourceMeta] = field(default_factory=list)
    depth: int = 0


@dataclass
class SourceProcessorOutput:
    """What a source processor returns.

    ``output_dir`` renames the page's own output directory relative to its
    parent; it cannot move the page anywhere else.
    """

    processed_contents: Union[bytes, str]
    output_dir: Optional[str] = None
    extra_meta: Any = None


class PageProcessor:
    """Builds a single page into ``<output_dir>/index.html``."""

    def __init__(
        self,
        source_path: Path,
        context: Context,
        output_dir: Path,
        run: "BuildRun",
        *,
        subpage_meta: Sequence[SubSourceMeta] = (),
        depth: int = 0,
    ) -> None:
        self.source_path = source_path
        self.context = context
        self.output_dir = output_dir
        self.run = run
        self.subpage_meta = list(subpage_meta)
        self.depth = depth
        self.logger = get_logger("page")

    def process(self) -> SourceMeta:
        fs = self.run.fs
        source_contents = fs.read_bytes(self.source_path)

        if self.context.source_processor is not None:
            result = settle(
                self.context.source_processor(
                    SourceProcessorInput(
                        source_contents=source_contents,
                        context=self.context,
                        subpage_meta=self.subpage_meta,
                        depth=self.depth,
                    )
                )
            )
            processed = _coerce_output(result)
        else:
            processed = SourceProcessorOutput(processed_contents=source_contents)

        page_content = as_text(processed.processed_contents)
        page_meta = SourceMeta(
            source_type="page",
            source_path=self.source_path,
            output_path=self.output_dir,
            context=self.context,
            extra=processed.extra_meta,
        )

        if self.context.template is not None:
            rendered = self.context.template.render(
                page_content=page_content,
                extra_context=self.context.template_parameters or {},
                page_meta=page_meta,
                subpage_meta=self.subpage_meta,
            )
        else:
            rendered = page_content

        html = HTMLProcessor(
            rendered,
            self.run.config,
            self.run.resolver,
            self.source_path,
            self.run.bundler,
        ).process()

        output_dir = self.resolve_output_dir(processed.output_dir)
        self.run.claim_output_dir(output_dir, self.source_path)

        fs.makedirs(output_dir)
        fs.write_bytes(output_dir / INDEX_FILENAME, as_bytes(html.content))
        self.write_dependencies(html.dependencies)
        self.logger.info("Wrote page %s -> %s", self.source_path, output_dir)

        return SourceMeta(
            source_type="page",
            source_path=self.source_path,
            output_path=output_dir,
            context=self.context,
            extra=processed.extra_meta,
        )

    def resolve_output_dir(self, rename: Optional[str]) -> Path:
        """Apply a source processor's rename; it must stay strictly inside the parent."""
        if not rename:
            return self.output_dir
        parent = self.output_dir.parent
        candidate = Path(os.path.normpath(parent / rename))
        relative = os.path.relpath(candidate, parent)
        if relative in (".", "") or relative == ".." or relative.startswith(".." + os.sep):
            raise InvalidOutputDirectoryError(
                f"Output dir {rename!r} requested by the source processor of {self.source_path} "
                f"must stay inside {parent}"
            )
        return candidate

    def write_dependencies(self, dependencies: Sequence[DependencyMap]) -> None:
        fs = self.run.fs
        for dependency in dependencies:
            fs.makedirs(dependency.output.parent)
            fs.copy_file(dependency.source, dependency.output)
            self.logger.debug("Copied dependency %s -> %s", dependency.source, dependency.output)


def _coerce_output(value: Union[SourceProcessorOutput, Mapping[str, Any]]) -> SourceProcessorOutput:
    if isinstance(value, SourceProcessorOutput):
        return value
    if isinstance(value, Mapping):
        if "processed_contents" not in value:
            raise TypeError("Source processor output is missing `processed_contents`")
        return SourceProcessorOutput(
            processed_contents=value["processed_contents"],
            output_dir=value.get("output_dir"),
            extra_meta=value.get("extra_meta"),
        )
    raise TypeError(f"Source processor returned {type(value).__name__}, expected SourceProcessorOutput")


__all__ = [
    "INDEX_FILENAME",
    "PageProcessor",
    "SourceProcessorInput",
    "SourceProcessorOutput",
]
