"""Page, HTML, asset and directory processors."""

from __future__ import annotations

from .asset import AssetHandler, AssetProcessorOutput, AssetProcessorRegistry
from .directory import ContextTreeBuilder
from .html import HTMLProcessor, HTMLProcessorResult
from .page import PageProcessor, SourceProcessorInput, SourceProcessorOutput

__all__ = [
    "AssetHandler",
    "AssetProcessorOutput",
    "AssetProcessorRegistry",
    "ContextTreeBuilder",
    "HTMLProcessor",
    "HTMLProcessorResult",
    "PageProcessor",
    "SourceProcessorInput",
    "SourceProcessorOutput",
]
