"""Tests for loading Python modules through the layered filesystem."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from tartan.fs import LayeredFS, MemoryStore
from tartan.loader import LayeredSourceLoader, load_module, load_module_export, module_name_for


def test_modules_are_executed_by_their_loader(tmp_path: Path) -> None:
    path = tmp_path / "stamp.py"
    path.write_text("default = __name__\n", encoding="utf-8")

    module = load_module(path, LayeredFS())

    assert isinstance(module.__spec__.loader, LayeredSourceLoader)
    assert module.__file__ == str(path)
    assert module.default == module_name_for(path)


def test_reloading_a_path_reuses_its_module_name(tmp_path: Path) -> None:
    path = tmp_path / "counter.py"
    path.write_text("default = 1\n", encoding="utf-8")
    fs = LayeredFS()

    load_module(path, fs)
    path.write_text("default = 2\n", encoding="utf-8")
    reloaded = load_module_export(path, fs)

    assert reloaded == 2
    assert [name for name in sys.modules if name.startswith("_tartan_counter_")] == [module_name_for(path)]


def test_dataclasses_in_loaded_modules_resolve_their_module(tmp_path: Path) -> None:
    path = tmp_path / "records.py"
    path.write_text(
        "from __future__ import annotations\n"
        "from dataclasses import dataclass\n\n"
        "@dataclass\n"
        "class Record:\n"
        "    name: str\n\n"
        "default = Record('x')\n",
        encoding="utf-8",
    )

    assert load_module_export(path, LayeredFS()).name == "x"


def test_failed_modules_are_not_left_registered(tmp_path: Path) -> None:
    path = tmp_path / "broken.py"
    path.write_text("raise ValueError('nope')\n", encoding="utf-8")

    with pytest.raises(ValueError, match="nope"):
        load_module(path, LayeredFS())

    assert module_name_for(path) not in sys.modules


def test_sources_are_read_through_memory_overlays(tmp_path: Path) -> None:
    fs = LayeredFS()
    fs.push(MemoryStore(tmp_path, {"virtual.py": b"default = 'mocked'\n"}))

    assert load_module_export(tmp_path / "virtual.py", fs) == "mocked"
