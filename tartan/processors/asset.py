"""Glob-routed asset transforms with a copy fallback."""

from __future__ import annotations

from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Any, Callable, List, Mapping, Optional, Union

from ..errors import ResolutionError
from ..fs import LayeredFS
from ..logging import get_logger
from ..resolver import Resolver
from ..utils import as_bytes, settle


@dataclass
class AssetProcessorOutput:
    processed_contents: bytes
    filename: Optional[str] = None


AssetProcessor = Callable[[bytes, str], Any]


@dataclass(frozen=True)
class ProcessorRegistryEntry:
    glob: str
    processor: AssetProcessor


class AssetProcessorRegistry:
    """Ordered ``(glob, processor)`` pairs; the most recently registered entry wins."""

    def __init__(self) -> None:
        self._entries: List[ProcessorRegistryEntry] = []

    def register(self, glob: str, processor: AssetProcessor) -> ProcessorRegistryEntry:
        entry = ProcessorRegistryEntry(glob=glob, processor=processor)
        self._entries.insert(0, entry)
        return entry

    def register_module(self, glob: str, specifier: str, resolver: Resolver) -> ProcessorRegistryEntry:
        """Register the ``default`` export of the module named by ``specifier``.

        Relative specifiers resolve against the project config's directory.
        """
        processor = resolver.import_object(specifier, resolver.config_dir)
        if not callable(processor):
            raise ResolutionError(f"Asset processor {specifier} is not callable")
        return self.register(glob, processor)

    def match(self, source_path: Path) -> Optional[ProcessorRegistryEntry]:
        target = source_path.as_posix()
        for entry in self._entries:
            if _glob_matches(target, entry.glob):
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)


class AssetHandler:
    """Writes one asset into its output directory."""

    def __init__(
        self,
        source_path: Path,
        output_dir: Path,
        registry: AssetProcessorRegistry,
        fs: LayeredFS,
        root_dir: Path | None = None,
    ) -> None:
        self.source_path = source_path
        self.root_dir = root_dir
        self.output_dir = output_dir
        self.registry = registry
        self.fs = fs
        self.basename = source_path.name
        self.logger = get_logger("asset")

    def process(self) -> str:
        """Process the asset and return the filename written under ``output_dir``."""
        self.fs.makedirs(self.output_dir)
        entry = self.registry.match(self._match_path())
        if entry is None:
            self.fs.copy_file(self.source_path, self.output_dir / self.basename)
            self.logger.debug("Copied asset %s", self.source_path)
            return self.basename

        contents = self.fs.read_bytes(self.source_path)
        result = _coerce_output(settle(entry.processor(contents, self.basename)))
        filename = result.filename or self.basename
        self.fs.write_bytes(self.output_dir / filename, result.processed_contents)
        self.logger.debug("Processed asset %s with %s -> %s", self.source_path, entry.glob, filename)
        return filename

    def _match_path(self) -> Path:
        if self.root_dir is not None and self.root_dir in self.source_path.parents:
            return self.source_path.relative_to(self.root_dir)
        return self.source_path


def _glob_matches(path: str, glob: str) -> bool:
    """Match ``path`` one segment at a time; ``**`` spans zero or more segments."""
    return _match_segments(path.split("/"), glob.split("/"))


def _match_segments(parts: List[str], patterns: List[str]) -> bool:
    if not patterns:
        return not parts
    head, rest = patterns[0], patterns[1:]
    if head == "**":
        return any(_match_segments(parts[index:], rest) for index in range(len(parts) + 1))
    return bool(parts) and fnmatchcase(parts[0], head) and _match_segments(parts[1:], rest)


def _coerce_output(value: Union[AssetProcessorOutput, Mapping[str, Any]]) -> AssetProcessorOutput:
    if isinstance(value, AssetProcessorOutput):
        output = value
    elif isinstance(value, Mapping):
        output = AssetProcessorOutput(
            processed_contents=value.get("processed_contents", b""),
            filename=value.get("filename"),
        )
    else:
        raise TypeError(f"Asset processor returned {type(value).__name__}, expected AssetProcessorOutput")
    output.processed_contents = as_bytes(output.processed_contents)
    return output


__all__ = [
    "AssetHandler",
    "AssetProcessor",
    "AssetProcessorOutput",
    "AssetProcessorRegistry",
    "ProcessorRegistryEntry",
]
