"""Context files, resolved contexts, and the per-mode views of a context."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .errors import ConfigError

PageModeName = Literal["directory", "file", "asset", "mock", "handoff"]


def _aliases(*names: str) -> Any:
    return Field(default=None, validation_alias=AliasChoices(*names))


class ContextFile(BaseModel):
    """Raw, on-disk shape of a ``tartan.context*`` file.

    Keys may be written in snake_case or in the camelCase spelling used by
    existing projects (``pageMode``, ``handlebarsParameters``, ...).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    inherit: Optional[bool] = None
    page_mode: Optional[PageModeName] = _aliases("page_mode", "pageMode")
    page_pattern: Optional[str] = _aliases("page_pattern", "pagePattern")
    page_source: Optional[str] = _aliases("page_source", "pageSource")
    template: Optional[str] = None
    source_processor: Optional[str] = _aliases("source_processor", "sourceProcessor")
    mock_generator: Optional[str] = _aliases("mock_generator", "mockGenerator")
    handoff_handler: Optional[str] = _aliases("handoff_handler", "handoffHandler")
    template_parameters: Optional[Dict[str, Any]] = _aliases(
        "template_parameters",
        "templateParameters",
        "handlebars_parameters",
        "handlebarsParameters",
    )
    extra_assets: Optional[List[str]] = _aliases("extra_assets", "extraAssets")


@dataclass(frozen=True)
class Context:
    """A context whose module-specifier fields have been loaded.

    ``None`` means the field is undefined, so it neither overrides nor is
    inherited during a merge.
    """

    inherit: Optional[bool] = None
    page_mode: Optional[str] = None
    page_pattern: Optional[str] = None
    page_source: Optional[str] = None
    template: Optional[Any] = None
    source_processor: Optional[Callable[..., Any]] = None
    mock_generator: Optional[Callable[..., Any]] = None
    handoff_handler: Optional[Callable[..., Any]] = None
    template_parameters: Optional[Dict[str, Any]] = None
    extra_assets: Optional[Tuple[str, ...]] = None

    def defined(self) -> Dict[str, Any]:
        """Return only the fields that are set."""
        values = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is not None:
                values[item.name] = value
        return values


ROOT_CONTEXT = Context(page_mode="directory", page_source="index.html")


def merge_contexts(base: Context, override: Context, root: Context) -> Context:
    """Shallow-merge ``override`` over ``base``.

    When ``override.inherit`` is False the base is replaced by ``root`` and the
    ``inherit`` key is dropped from the result.
    """
    if override.inherit is False:
        base = root
        override = replace(override, inherit=None)
    return replace(base, **override.defined())


# ----------------------------------------------------------------------
# Per-mode views


@dataclass(frozen=True)
class DirectoryMode:
    page_source: Optional[str]


@dataclass(frozen=True)
class FileMode:
    page_pattern: str
    page_source: Optional[str]


@dataclass(frozen=True)
class AssetMode:
    page_pattern: str


@dataclass(frozen=True)
class MockMode:
    mock_generator: Callable[..., Any]


@dataclass(frozen=True)
class HandoffMode:
    handoff_handler: Callable[..., Any]


PageMode = Union[DirectoryMode, FileMode, AssetMode, MockMode, HandoffMode]


def page_mode_of(context: Context, location: object) -> PageMode:
    """Return the mode-specific view of ``context``, validating its required fields."""
    mode = context.page_mode
    if mode == "directory":
        return DirectoryMode(page_source=context.page_source)
    if mode == "file":
        if not context.page_pattern:
            raise ConfigError(f"No page_pattern defined for file mode at {location}")
        return FileMode(page_pattern=context.page_pattern, page_source=context.page_source)
    if mode == "asset":
        if not context.page_pattern:
            raise ConfigError(f"No page_pattern defined for asset mode at {location}")
        return AssetMode(page_pattern=context.page_pattern)
    if mode == "mock":
        if context.mock_generator is None:
            raise ConfigError(f"No mock_generator defined for mock mode at {location}")
        return MockMode(mock_generator=context.mock_generator)
    if mode == "handoff":
        if context.handoff_handler is None:
            raise ConfigError(f"No handoff_handler defined for handoff mode at {location}")
        return HandoffMode(handoff_handler=context.handoff_handler)
    raise ConfigError(f"No page_mode defined at {location}")


__all__ = [
    "AssetMode",
    "Context",
    "ContextFile",
    "DirectoryMode",
    "FileMode",
    "HandoffMode",
    "MockMode",
    "PageMode",
    "ROOT_CONTEXT",
    "merge_contexts",
    "page_mode_of",
]
