"""Layered filesystem shared by every build component.

Reads consult an ordered stack of backing stores, most recently pushed first,
so a mock directory can shadow (or add to) what is on disk. Writes always go
to the real filesystem.
"""

from __future__ import annotations

import errno
import os
import shutil
from fnmatch import fnmatchcase
from pathlib import Path, PurePosixPath
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

MockTree = Mapping[str, Union[bytes, str, "MockTree"]]


def _not_found(path: Path) -> FileNotFoundError:
    return FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path))


class DiskStore:
    """Backing store over the real filesystem."""

    def exists(self, path: Path) -> bool:
        return path.exists()

    def is_dir(self, path: Path) -> bool:
        return path.is_dir()

    def is_file(self, path: Path) -> bool:
        return path.is_file()

    def listdir(self, path: Path) -> List[str]:
        return os.listdir(path)

    def read_bytes(self, path: Path) -> bytes:
        return path.read_bytes()


class MemoryStore:
    """Virtual directory tree rooted at an absolute directory."""

    def __init__(self, root: Path, files: Mapping[str, bytes]) -> None:
        self.root = Path(root)
        self._files: Dict[Path, bytes] = {}
        self._dirs: Set[Path] = {self.root}
        for relative, contents in files.items():
            target = self.root / relative
            self._files[target] = contents
            parent = target.parent
            while parent != self.root and self.root in parent.parents:
                self._dirs.add(parent)
                parent = parent.parent

    @classmethod
    def from_tree(cls, root: Path, tree: MockTree) -> "MemoryStore":
        """Build a store from a nested mapping of names to contents or sub-mappings."""
        return cls(root, flatten_tree(tree))

    def exists(self, path: Path) -> bool:
        return path in self._files or path in self._dirs

    def is_dir(self, path: Path) -> bool:
        return path in self._dirs

    def is_file(self, path: Path) -> bool:
        return path in self._files

    def listdir(self, path: Path) -> List[str]:
        if path not in self._dirs:
            raise _not_found(path)
        names = {entry.name for entry in self._files if entry.parent == path}
        names.update(entry.name for entry in self._dirs if entry.parent == path and entry != path)
        return sorted(names)

    def read_bytes(self, path: Path) -> bytes:
        try:
            return self._files[path]
        except KeyError:
            raise _not_found(path) from None


def flatten_tree(tree: MockTree, prefix: PurePosixPath | None = None) -> Dict[str, bytes]:
    """Flatten a nested mock tree into ``relative path -> bytes`` entries."""
    flat: Dict[str, bytes] = {}
    for name, value in tree.items():
        relative = prefix / name if prefix is not None else PurePosixPath(name)
        if isinstance(value, Mapping):
            flat.update(flatten_tree(value, relative))
        elif isinstance(value, str):
            flat[str(relative)] = value.encode("utf-8")
        else:
            flat[str(relative)] = bytes(value)
    return flat


BackingStore = Union[DiskStore, MemoryStore]


class LayeredFS:
    """Ordered stack of backing stores with overlay and reset support."""

    def __init__(self, base: Optional[BackingStore] = None) -> None:
        self._base: BackingStore = base or DiskStore()
        self._stores: List[BackingStore] = [self._base]

    @property
    def stores(self) -> List[BackingStore]:
        return list(self._stores)

    def push(self, store: BackingStore) -> None:
        """Add an overlay that takes priority over every existing store."""
        self._stores.append(store)

    def reset(self) -> None:
        """Drop every overlay, leaving only the base store."""
        self._stores = [self._base]

    def _layers(self) -> Iterable[BackingStore]:
        return reversed(self._stores)

    # ------------------------------------------------------------------
    # Reads

    def exists(self, path: Path) -> bool:
        return any(store.exists(path) for store in self._layers())

    def is_dir(self, path: Path) -> bool:
        return any(store.is_dir(path) for store in self._layers())

    def is_file(self, path: Path) -> bool:
        return any(store.is_file(path) for store in self._layers())

    def listdir(self, path: Path) -> List[str]:
        names: Set[str] = set()
        found = False
        for store in self._layers():
            if store.is_dir(path):
                names.update(store.listdir(path))
                found = True
        if not found:
            raise _not_found(path)
        return sorted(names)

    def read_bytes(self, path: Path) -> bytes:
        for store in self._layers():
            if store.is_file(path):
                return store.read_bytes(path)
        raise _not_found(path)

    def read_text(self, path: Path) -> str:
        return self.read_bytes(path).decode("utf-8")

    def glob(self, directory: Path, pattern: str) -> List[Path]:
        """Return files under ``directory`` matching ``pattern`` (no globstar)."""
        segments = [part for part in PurePosixPath(pattern).parts if part not in ("", ".")]
        if not segments:
            return []
        candidates = [directory]
        for index, segment in enumerate(segments):
            segment = segment.replace("**", "*")
            last = index == len(segments) - 1
            matched: List[Path] = []
            for base in candidates:
                if not self.is_dir(base):
                    continue
                for name in self.listdir(base):
                    if not fnmatchcase(name, segment):
                        continue
                    child = base / name
                    if last and self.is_file(child):
                        matched.append(child)
                    elif not last and self.is_dir(child):
                        matched.append(child)
            candidates = matched
        return sorted(candidates)

    # ------------------------------------------------------------------
    # Writes (always on disk)

    def makedirs(self, path: Path) -> None:
        path.mkdir(parents=True, exist_ok=True)

    def write_bytes(self, path: Path, data: bytes) -> None:
        path.write_bytes(data)

    def copy_file(self, source: Path, destination: Path) -> None:
        if isinstance(self._base, DiskStore) and not any(
            store.is_file(source) for store in self._stores[1:]
        ):
            shutil.copyfile(source, destination)
            return
        destination.write_bytes(self.read_bytes(source))


__all__ = ["BackingStore", "DiskStore", "LayeredFS", "MemoryStore", "MockTree", "flatten_tree"]
