"""Aggregate content sources into a frozen content catalog."""

from __future__ import annotations

import asyncio
import mimetypes
import posixpath
from dataclasses import dataclass, field
from typing import List, Optional

from .catalog import ContentCatalog
from .classifier import classify
from .config import DocCatalogConfig
from .descriptor import DescriptorLoader
from .errors import (
    AggregationError,
    ComponentVersionConflictError,
    DocCatalogError,
    DuplicateFileError,
    InvalidDescriptorError,
    InvalidResourceIdSyntaxError,
    MissingDescriptorError,
    NotFoundError,
)
from .git import CredentialStore, GitRepositoryManager, ProgressObserver, ProxySettings, RefPatternCache
from .git.remote import web_url
from .logging import get_logger
from .models import ComponentVersion, ContentSource, VirtualFile, WorkItem
from .sources import ContentSourceResolver, RepositoryAccess

DEFAULT_BRANCH_EDIT_URL = "{web_url}/edit/{refname}/{path}"
DEFAULT_TAG_EDIT_URL = "{web_url}/blob/{refname}/{path}"

_logger = get_logger("aggregator")


@dataclass
class LoadedVersion:
    """A component version read from one work item, with its files."""

    item: WorkItem
    component_version: ComponentVersion
    files: List[VirtualFile] = field(default_factory=list)


@dataclass
class SourceResult:
    """Everything collected from one content source."""

    index: int
    source: ContentSource
    work_items: int = 0
    loaded: List[LoadedVersion] = field(default_factory=list)
    warnings: List[DocCatalogError] = field(default_factory=list)
    errors: List[DocCatalogError] = field(default_factory=list)


@dataclass
class AggregateResult:
    """The frozen catalog plus problems collected along the way."""

    catalog: ContentCatalog
    work_items: int = 0
    warnings: List[DocCatalogError] = field(default_factory=list)
    errors: List[DocCatalogError] = field(default_factory=list)


def build_repository_manager(
    config: DocCatalogConfig, progress: Optional[ProgressObserver] = None
) -> GitRepositoryManager:
    """Create the git access layer described by ``config``."""
    return GitRepositoryManager(
        config.runtime.cache_dir,
        fetch=config.runtime.fetch,
        credential_store=CredentialStore(config.git.credentials_path),
        proxy=ProxySettings(
            http_proxy=config.git.http_proxy,
            https_proxy=config.git.https_proxy,
            no_proxy=config.git.no_proxy,
        ),
        timeout=config.runtime.fetch_timeout,
        progress=progress,
    )


class ContentAggregator:
    """Coordinates source resolution, descriptor loading and tree walks.

    Sources are collected concurrently in worker threads, at most
    ``fetch_concurrency`` at a time. The catalog itself is only written from
    the coordinating coroutine, in source declaration order, so the result
    does not depend on which source finished first.
    """

    def __init__(
        self,
        config: DocCatalogConfig,
        repositories: Optional[RepositoryAccess] = None,
        *,
        progress: Optional[ProgressObserver] = None,
    ) -> None:
        self.config = config
        self.repositories = repositories or build_repository_manager(config, progress)
        self.logger = _logger

    async def aggregate(self) -> AggregateResult:
        sources = list(self.config.content.sources)
        self.logger.info("Aggregating %d content source(s)", len(sources))
        resolver = ContentSourceResolver(
            self.repositories, RefPatternCache(), self.config.content.branches
        )
        loader = DescriptorLoader(
            self.repositories,
            filename=self.config.content.descriptor,
            attributes=self.config.attributes,
        )
        semaphore = asyncio.Semaphore(self.config.runtime.fetch_concurrency)

        async def _collect(index: int, source: ContentSource) -> SourceResult:
            async with semaphore:
                return await asyncio.to_thread(self.collect_source, index, source, resolver, loader)

        results = await asyncio.gather(
            *(_collect(index, source) for index, source in enumerate(sources))
        )
        return self.build_catalog(results)

    # ------------------------------------------------------------------
    # Per-source collection (worker threads)

    def collect_source(
        self,
        index: int,
        source: ContentSource,
        resolver: ContentSourceResolver,
        loader: DescriptorLoader,
    ) -> SourceResult:
        result = SourceResult(index=index, source=source)
        try:
            items = resolver.resolve(source)
        except DocCatalogError as exc:
            self.logger.error("%s", exc)
            result.errors.append(exc)
            return result

        result.work_items = len(items)
        sole_ref = len({item.ref for item in items}) == 1
        for item in items:
            try:
                component_version = loader.load(item)
            except MissingDescriptorError as exc:
                if sole_ref:
                    self.logger.error("%s", exc)
                    result.errors.append(exc)
                else:
                    self.logger.warning("Skipping ref: %s", exc)
                    result.warnings.append(exc)
                continue
            except InvalidDescriptorError as exc:
                self.logger.warning("Skipping ref: %s", exc)
                result.warnings.append(exc)
                continue
            try:
                files = self.walk(item, component_version)
            except NotFoundError as exc:
                self.logger.warning("Skipping ref: %s", exc)
                result.warnings.append(exc)
                continue
            except DocCatalogError as exc:
                self.logger.error("%s", exc)
                result.errors.append(exc)
                continue
            result.loaded.append(LoadedVersion(item, component_version, files))
        return result

    def walk(self, item: WorkItem, component_version: ComponentVersion) -> List[VirtualFile]:
        """Read and classify every file under the work item's start path."""
        nav = component_version.nav
        nav_set = set(nav)
        mtime = self.repositories.commit_time(item.handle, item.ref)
        classified = []
        for entry in self.repositories.read_tree(item.handle, item.ref, item.start_path):
            if entry.is_dir:
                continue
            classification = classify(entry.path, nav_set)
            if classification is None:
                continue
            src_path = posixpath.join(item.start_path, entry.path) if item.start_path else entry.path
            classified.append((entry, classification, src_path))

        blobs = self.repositories.read_blobs(
            item.handle, item.ref, [src_path for _, _, src_path in classified]
        )
        files: List[VirtualFile] = []
        for (entry, classification, src_path), contents in zip(classified, blobs):
            files.append(
                VirtualFile(
                    relative=classification.relative,
                    family=classification.family,
                    module=classification.module,
                    component=component_version.name,
                    version=component_version.version,
                    contents=contents,
                    src_path=src_path,
                    origin=item.origin,
                    mtime=mtime,
                    edit_url=edit_url_for(item, src_path),
                    media_type=mimetypes.guess_type(entry.path)[0],
                    nav_index=nav.index(entry.path) if classification.family == "nav" else None,
                )
            )
        self.logger.debug(
            "Collected %d file(s) for %s@%s from %s",
            len(files),
            component_version.version,
            component_version.name,
            item.origin,
        )
        return files

    # ------------------------------------------------------------------
    # Catalog assembly (coordinator only)

    def build_catalog(self, results: List[SourceResult]) -> AggregateResult:
        catalog = ContentCatalog()
        aggregate = AggregateResult(catalog=catalog)
        conflicts: List[ComponentVersionConflictError] = []
        for result in sorted(results, key=lambda entry: entry.index):
            aggregate.work_items += result.work_items
            aggregate.warnings.extend(result.warnings)
            aggregate.errors.extend(result.errors)
            for loaded in result.loaded:
                try:
                    catalog.add_component_version(loaded.component_version)
                except ComponentVersionConflictError as exc:
                    self.logger.error("%s", exc)
                    conflicts.append(exc)
                    continue
                for file in loaded.files:
                    try:
                        catalog.add_file(file)
                    except DuplicateFileError as exc:
                        self.logger.warning("%s", exc)
                        aggregate.warnings.append(exc)

        aggregate.warnings.extend(catalog.register_aliases())
        aggregate.warnings.extend(self._check_start_pages(catalog))
        catalog.freeze()

        if conflicts:
            raise conflicts[0]
        if not catalog.get_components():
            raise AggregationError("No component versions were aggregated", aggregate.errors)
        self.logger.info(
            "Aggregated %d component version(s) and %d file(s) from %d work item(s)",
            sum(len(component.versions) for component in catalog.get_components()),
            len(catalog),
            aggregate.work_items,
        )
        return aggregate

    def _check_start_pages(self, catalog: ContentCatalog) -> List[DocCatalogError]:
        problems: List[DocCatalogError] = []
        for component in catalog.get_components():
            for component_version in component.versions:
                try:
                    start_page = catalog.resolve_start_page(component.name, component_version.version)
                except InvalidResourceIdSyntaxError as exc:
                    start_page = None
                    problems.append(exc)
                if start_page is None and component_version.start_page:
                    self.logger.warning(
                        "Start page %s not found in %s@%s",
                        component_version.start_page,
                        component_version.version,
                        component.name,
                    )
        return problems


def edit_url_for(item: WorkItem, src_path: str) -> Optional[str]:
    """Expand the source's edit URL template for one file.

    Supported placeholders are ``{web_url}``, ``{refname}``, ``{refhash}`` and
    ``{path}``. Without a template, remote sources get a default and local
    ones get none; ``edit_url: false`` disables the link.
    """
    template = item.source.edit_url
    if template is False:
        return None
    base = None if item.handle.local else web_url(item.handle.url)
    if template is None or template is True:
        if base is None:
            return None
        template = DEFAULT_BRANCH_EDIT_URL if item.ref.kind == "branch" else DEFAULT_TAG_EDIT_URL
    return (
        str(template)
        .replace("{web_url}", base or "")
        .replace("{refname}", item.ref.name)
        .replace("{refhash}", item.ref.oid)
        .replace("{path}", src_path)
    )


async def aggregate(
    config: DocCatalogConfig,
    repositories: Optional[RepositoryAccess] = None,
    *,
    progress: Optional[ProgressObserver] = None,
) -> AggregateResult:
    """Build the content catalog for ``config``."""
    return await ContentAggregator(config, repositories, progress=progress).aggregate()


def aggregate_content(
    config: DocCatalogConfig,
    repositories: Optional[RepositoryAccess] = None,
    *,
    progress: Optional[ProgressObserver] = None,
) -> AggregateResult:
    """Synchronous wrapper around :func:`aggregate`."""
    return asyncio.run(aggregate(config, repositories, progress=progress))


__all__ = [
    "AggregateResult",
    "ContentAggregator",
    "LoadedVersion",
    "SourceResult",
    "aggregate",
    "aggregate_content",
    "build_repository_manager",
    "edit_url_for",
]
