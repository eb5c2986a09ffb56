"""Jinja2 environment used to compile page templates and partials."""

from __future__ import annotations

from typing import Dict

from jinja2 import DictLoader, Environment, Template


class TemplateCompiler:
    """Compiles template strings; registered partials are includable by name."""

    def __init__(self) -> None:
        self._partials: Dict[str, str] = {}
        self._env = Environment(
            loader=DictLoader(self._partials),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

    def compile(self, source: str) -> Template:
        return self._env.from_string(source)

    def register_partial(self, name: str, source: str) -> None:
        self._partials[name] = source

    @property
    def partials(self) -> Dict[str, str]:
        return dict(self._partials)


__all__ = ["TemplateCompiler"]
