"""Resolution of design libraries, prefixed paths, and dynamically loaded artifacts."""

from __future__ import annotations

import importlib
import json
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional

from jinja2 import Template
from pydantic import BaseModel, Field, ValidationError

from .config import ProjectConfig
from .context import Context, ContextFile
from .errors import ResolutionError
from .fs import LayeredFS
from .loader import DEFAULT_EXPORT, load_module_export, load_object_from_file
from .logging import get_logger
from .templates import TemplateCompiler

LOCKFILE_NAME = "package-lock.json"
TEMPLATE_MANIFEST_VERSION = "1.0.0"

_DOTTED_SPECIFIER = re.compile(r"^[A-Za-z_][\w.]*(:[A-Za-z_][\w.]*)?$")


class TemplateRegistration(BaseModel):
    name: str
    path: str
    description: Optional[str] = None


class TemplateManifest(BaseModel):
    """Template manifest referenced by a package's ``tartanTemplateManifest`` field."""

    schema_version: str = Field(alias="schemaVersion")
    templates: List[TemplateRegistration] = Field(default_factory=list)
    partials: List[TemplateRegistration] = Field(default_factory=list)


class Resolver:
    """Aggregates design-library manifests and resolves paths, tags, templates and modules."""

    def __init__(self, config: ProjectConfig, fs: LayeredFS | None = None) -> None:
        self.config = config
        self.fs = fs or LayeredFS()
        self.component_map: Dict[str, str] = {}
        self.template_map: Dict[str, Template] = {}
        self.templates = TemplateCompiler()
        self.logger = get_logger("resolver")

    @classmethod
    def create(cls, config: ProjectConfig, fs: LayeredFS | None = None) -> "Resolver":
        return cls(config, fs).init()

    def init(self, start: Path | None = None) -> "Resolver":
        """Aggregate every installed package's custom-element and template manifests."""
        lockfile = self.find_up(LOCKFILE_NAME, start)
        lock_dir = lockfile.parent
        try:
            lock_data = json.loads(self.fs.read_text(lockfile))
        except json.JSONDecodeError as exc:
            raise ResolutionError(f"Failed to parse {lockfile}: {exc}") from exc
        packages = lock_data.get("packages") if isinstance(lock_data, dict) else None
        if not isinstance(packages, dict):
            packages = {}

        for package_path in packages:
            package_dir = (lock_dir / package_path) if package_path else lock_dir
            if not self.fs.is_file(package_dir / "package.json"):
                continue
            self._load_package(package_dir)

        for library in self.config.design_libraries:
            library_path = Path(self.resolve_path(library, self.config_dir))
            package_dir = library_path if self.fs.is_dir(library_path) else library_path.parent
            if not self.fs.is_file(package_dir / "package.json"):
                raise ResolutionError(f"Design library {library} has no package.json")
            self._load_package(package_dir)

        self.logger.debug(
            "Resolved %d custom elements and %d templates",
            len(self.component_map),
            len(self.template_map),
        )
        return self

    @property
    def config_dir(self) -> str:
        """The config file's directory, in the form ``resolve_path`` treats as a directory."""
        return _with_trailing_sep(str(self.config.base_dir))

    def find_up(self, filename: str, start: Path | None = None) -> Path:
        """Return the nearest ``filename`` in ``start`` (default: CWD) or any ancestor."""
        current = Path(start or Path.cwd()).resolve()
        for directory in (current, *current.parents):
            candidate = directory / filename
            if self.fs.is_file(candidate):
                return candidate
        raise ResolutionError(f'File "{filename}" not found in any parent directories of {current}')

    # ------------------------------------------------------------------
    # Manifest aggregation

    def _load_package(self, package_dir: Path) -> None:
        definition = self._read_json(package_dir / "package.json")
        if not isinstance(definition, dict):
            return
        elements_manifest = definition.get("customElements")
        if isinstance(elements_manifest, str):
            self._load_custom_elements(package_dir / elements_manifest)
        template_manifest = definition.get("tartanTemplateManifest")
        if isinstance(template_manifest, str):
            self._load_templates(package_dir / template_manifest)

    def _load_custom_elements(self, manifest_path: Path) -> None:
        manifest = self._read_json(manifest_path)
        modules = manifest.get("modules") if isinstance(manifest, dict) else None
        for module in modules or []:
            if not isinstance(module, dict) or not isinstance(module.get("path"), str):
                continue
            module_path = str(manifest_path.parent / module["path"])
            for declaration in module.get("declarations") or []:
                if not _is_custom_element(declaration):
                    continue
                tag_name = declaration["tagName"]
                previous = self.component_map.get(tag_name)
                if previous is not None and previous != module_path:
                    self.logger.debug("Tag <%s> from %s overrides %s", tag_name, module_path, previous)
                self.component_map[tag_name] = module_path

    def _load_templates(self, manifest_path: Path) -> None:
        try:
            manifest = TemplateManifest.model_validate(self._read_json(manifest_path))
        except ValidationError as exc:
            raise ResolutionError(f"Invalid template manifest {manifest_path}: {exc}") from exc
        if manifest.schema_version != TEMPLATE_MANIFEST_VERSION:
            raise ResolutionError(
                f"Unsupported template manifest version {manifest.schema_version!r} in {manifest_path}"
            )
        # Partials first so templates compiled below can include them.
        for partial in manifest.partials:
            source = self.fs.read_text(manifest_path.parent / partial.path)
            self.templates.register_partial(partial.name, source)
        for registration in manifest.templates:
            source = self.fs.read_text(manifest_path.parent / registration.path)
            self.template_map[registration.name] = self.templates.compile(source)

    def _read_json(self, path: Path) -> Any:
        try:
            return json.loads(self.fs.read_text(path))
        except json.JSONDecodeError as exc:
            raise ResolutionError(f"Failed to parse {path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Lookups

    def resolve_path(self, target: str, relative_to: str | Path | None = None) -> str:
        """Resolve ``target`` to an absolute path, honouring configured path prefixes.

        A prefixed target ignores ``relative_to``. Otherwise ``relative_to`` is a
        directory when it ends with a separator (or is a ``Path`` to an existing
        directory), and a file whose parent is used when it does not.
        """
        for prefix, replacement in self.config.path_prefixes.items():
            fixed_prefix = _with_trailing_sep(prefix)
            fixed_replacement = _with_trailing_sep(replacement)
            if target.startswith(fixed_prefix):
                return os.path.abspath(fixed_replacement + target[len(fixed_prefix):])

        if relative_to is None:
            base = os.getcwd()
        elif isinstance(relative_to, Path):
            base = str(relative_to) if self.fs.is_dir(relative_to) else str(relative_to.parent)
        elif relative_to.endswith(("/", os.sep)):
            base = relative_to
        else:
            base = os.path.dirname(relative_to) or os.getcwd()
        return os.path.abspath(os.path.join(base, target))

    def resolve_tag_name(self, tag_name: str) -> Optional[str]:
        """Return the module that registers ``tag_name``, if a design library provides one."""
        return self.component_map.get(tag_name)

    def resolve_template_name(self, name: str) -> Optional[Template]:
        return self.template_map.get(name)

    def load_object_from_file(self, base_path: Path | str) -> Optional[Any]:
        return load_object_from_file(Path(base_path), self.fs)

    def import_object(self, specifier: str, relative_to: str | Path | None = None) -> Any:
        """Load the ``default`` export of a module given by path or dotted name."""
        resolved = Path(self.resolve_path(specifier, relative_to))
        if self.fs.is_file(resolved):
            self.logger.debug("Importing %s from %s", specifier, resolved)
            return load_module_export(resolved, self.fs)
        if _DOTTED_SPECIFIER.match(specifier):
            module_name, _, attribute = specifier.partition(":")
            try:
                module = importlib.import_module(module_name)
            except ImportError as exc:
                raise ResolutionError(f"Unable to import module {specifier}: {exc}") from exc
            try:
                return _get_dotted(module, attribute or DEFAULT_EXPORT)
            except AttributeError:
                raise ResolutionError(
                    f"Module {module_name} does not define `{attribute or DEFAULT_EXPORT}`"
                ) from None
        raise ResolutionError(f"Unable to resolve module {specifier} (looked for {resolved})")

    def initialize_context(
        self, context_file: ContextFile, file_path: str | Path | None = None
    ) -> Context:
        """Load every module-specifier field of ``context_file``.

        ``file_path`` is the context file's own location; relative specifiers are
        resolved against its directory.
        """
        if file_path is None:
            file_path = os.path.join(os.getcwd(), "tartan.context")
        file_path = str(file_path)

        template: Optional[Template] = None
        if context_file.template:
            template = self.resolve_template_name(context_file.template)
            if template is None:
                template_path = Path(self.resolve_path(context_file.template, file_path))
                template = self.templates.compile(self.fs.read_text(template_path))

        return Context(
            inherit=context_file.inherit,
            page_mode=context_file.page_mode,
            page_pattern=context_file.page_pattern,
            page_source=context_file.page_source,
            template=template,
            source_processor=self._load_callable(context_file.source_processor, file_path),
            mock_generator=self._load_callable(context_file.mock_generator, file_path),
            handoff_handler=self._load_callable(context_file.handoff_handler, file_path),
            template_parameters=context_file.template_parameters,
            extra_assets=tuple(context_file.extra_assets) if context_file.extra_assets is not None else None,
        )

    def _load_callable(self, specifier: Optional[str], file_path: str) -> Optional[Callable[..., Any]]:
        if not specifier:
            return None
        loaded = self.import_object(specifier, file_path)
        if not callable(loaded):
            raise ResolutionError(f"{specifier} does not export a callable")
        return loaded


def _is_custom_element(declaration: object) -> bool:
    return (
        isinstance(declaration, Mapping)
        and declaration.get("kind") == "class"
        and isinstance(declaration.get("customElement"), bool)
        and bool(declaration.get("customElement"))
        and isinstance(declaration.get("tagName"), str)
    )


def _with_trailing_sep(value: str) -> str:
    return value if value.endswith(("/", os.sep)) else value + os.sep


def _get_dotted(obj: Any, attribute: str) -> Any:
    for part in attribute.split("."):
        obj = getattr(obj, part)
    return obj


__all__ = [
    "LOCKFILE_NAME",
    "Resolver",
    "TemplateManifest",
    "TemplateRegistration",
]
