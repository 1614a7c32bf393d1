"""The content catalog: component versions, files and lookups."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, List, Optional, Tuple

from .classifier import parse_page_aliases
from .errors import (
    ComponentVersionConflictError,
    DocCatalogError,
    DuplicateFileError,
)
from .logging import get_logger
from .models import ComponentVersion, ResourceId, ResourceIdContext, VirtualFile
from .resource_id import parse_resource_id, qualify, resolve_start_page
from .versions import version_key

FilePredicate = Callable[[VirtualFile], bool]


@dataclass
class Component:
    """A named documentation unit and its versions, newest first."""

    name: str
    versions: List[ComponentVersion] = field(default_factory=list)

    @property
    def latest(self) -> ComponentVersion:
        """Newest stable version, or the newest prerelease when none is stable."""
        for component_version in self.versions:
            if not component_version.is_prerelease:
                return component_version
        return self.versions[0]

    @property
    def title(self) -> str:
        return self.latest.title

    def _insert(self, component_version: ComponentVersion) -> None:
        self.versions.append(component_version)
        self.versions.sort(key=lambda entry: version_key(entry.version), reverse=True)


class ContentCatalog:
    """Aggregated files and component versions.

    Built by a single writer (the aggregator) and frozen afterwards; once
    frozen, every ``add_*`` call raises and the lookups are safe to share.
    """

    def __init__(self) -> None:
        self._components: Dict[str, Component] = {}
        self._versions: Dict[Tuple[str, str], ComponentVersion] = {}
        self._files: Dict[ResourceId, VirtualFile] = {}
        self._frozen = False
        self.logger = get_logger("catalog")

    # ------------------------------------------------------------------
    # Building

    def add_component_version(self, component_version: ComponentVersion) -> ComponentVersion:
        """Register a component version, or merge it into an existing one.

        A second registration of the same (name, version) from the same
        repository and ref extends the existing record's origins. From any
        other origin it raises :class:`ComponentVersionConflictError`.
        """
        self._ensure_writable()
        existing = self._versions.get(component_version.key)
        if existing is None:
            self._versions[component_version.key] = component_version
            component = self._components.get(component_version.name)
            if component is None:
                component = self._components[component_version.name] = Component(component_version.name)
            component._insert(component_version)
            return component_version

        for origin in component_version.origins:
            if not any(origin.same_ref(known) for known in existing.origins):
                raise ComponentVersionConflictError(
                    component_version.name,
                    component_version.version,
                    existing.origins[0],
                    origin,
                )
        for origin in component_version.origins:
            if origin not in existing.origins:
                existing.origins.append(origin)
        self.logger.debug(
            "Merged start path into %s@%s", component_version.version, component_version.name
        )
        return existing

    def add_file(self, file: VirtualFile) -> VirtualFile:
        self._ensure_writable()
        if (file.component, file.version) not in self._versions:
            raise DocCatalogError(
                f"No component version {file.version}@{file.component} for file {file.key}"
            )
        key = file.key
        if key in self._files:
            raise DuplicateFileError(key, file.origin)
        self._files[key] = file
        return file

    def register_aliases(self) -> List[DocCatalogError]:
        """Create alias files for every ``:page-aliases:`` entry of every page.

        Returns the problems found; an alias that cannot be registered is
        skipped rather than failing the build.
        """
        self._ensure_writable()
        problems: List[DocCatalogError] = []
        pages = [file for file in self._files.values() if file.family == "page"]
        for page in pages:
            for spec in parse_page_aliases(page.contents):
                try:
                    self._register_alias(page, spec)
                except DocCatalogError as exc:
                    self.logger.warning("Skipping alias %s of %s: %s", spec, page.key, exc)
                    problems.append(exc)
        return problems

    def _register_alias(self, page: VirtualFile, spec: str) -> VirtualFile:
        ctx = ResourceIdContext(component=page.component, version=page.version, module=page.module)
        parsed = parse_resource_id(spec, ctx, permitted_families=("page",))
        if parsed.version is None:
            parsed = replace(parsed, version=page.version)
        target = qualify(parsed, self)
        if target is None:
            raise DocCatalogError(f"Alias {spec} does not name a component")
        if target in self._files:
            raise DuplicateFileError(target, page.origin)
        alias = VirtualFile(
            relative=target.relative,
            family="alias",
            module=target.module,
            component=target.component,
            version=target.version,
            src_path=page.src_path,
            origin=page.origin,
            rel=page,
        )
        return self.add_file(alias)

    def freeze(self) -> "ContentCatalog":
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _ensure_writable(self) -> None:
        if self._frozen:
            raise DocCatalogError("The content catalog is frozen")

    # ------------------------------------------------------------------
    # Lookups

    def get_components(self) -> List[Component]:
        return [self._components[name] for name in sorted(self._components)]

    def get_component(self, name: str) -> Optional[Component]:
        return self._components.get(name)

    def get_component_version(self, name: str, version: str) -> Optional[ComponentVersion]:
        return self._versions.get((name, version))

    def latest(self, name: str) -> Optional[ComponentVersion]:
        component = self._components.get(name)
        return component.latest if component is not None else None

    def get_by_id(self, key: ResourceId) -> Optional[VirtualFile]:
        return self._files.get(key)

    def get_files(self, predicate: Optional[FilePredicate] = None) -> Iterator[VirtualFile]:
        """Iterate files matching ``predicate``; each call starts a fresh pass."""
        if predicate is None:
            return iter(list(self._files.values()))
        return (file for file in list(self._files.values()) if predicate(file))

    def resolve_start_page(self, name: str, version: Optional[str] = None) -> Optional[VirtualFile]:
        component_version = (
            self.get_component_version(name, version) if version else self.latest(name)
        )
        if component_version is None:
            return None
        return resolve_start_page(self, component_version)

    def __len__(self) -> int:
        return len(self._files)


__all__ = ["Component", "ContentCatalog", "FilePredicate"]
