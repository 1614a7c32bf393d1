"""Expand configured content sources into (repository, ref, start path) work items."""

from __future__ import annotations

from typing import Iterator, List, Optional, Protocol, Sequence

from .git.refs import RefPatternCache, match_refs
from .logging import get_logger
from .models import ContentSource, Credentials, Ref, RepositoryHandle, TreeEntry, WorkItem

HEAD_PATTERN = "HEAD"


class RepositoryAccess(Protocol):
    """Operations the resolver and loaders need from the git layer."""

    def resolve(self, url: str, credentials: Optional[Credentials] = None) -> RepositoryHandle: ...

    def list_refs(self, handle: RepositoryHandle, kind: str) -> List[Ref]: ...

    def current_branch(self, handle: RepositoryHandle) -> Optional[str]: ...

    def read_tree(self, handle: RepositoryHandle, ref: Ref, subpath: str = "") -> Iterator[TreeEntry]: ...

    def read_blob(self, handle: RepositoryHandle, ref: Ref, path: str) -> bytes: ...

    def read_blobs(self, handle: RepositoryHandle, ref: Ref, paths: Sequence[str]) -> List[bytes]: ...

    def commit_time(self, handle: RepositoryHandle, ref: Ref) -> Optional[float]: ...


class ContentSourceResolver:
    """Produces work items for each content source in a deterministic order."""

    def __init__(
        self,
        repositories: RepositoryAccess,
        pattern_cache: RefPatternCache,
        default_branches: Sequence[str],
    ) -> None:
        self.repositories = repositories
        self.pattern_cache = pattern_cache
        self.default_branches = tuple(default_branches)
        self.logger = get_logger("sources")

    def resolve(self, source: ContentSource) -> List[WorkItem]:
        """Resolve ``source`` and emit one work item per matched ref and start path.

        Branches come before tags; within a kind, refs follow the sorted order
        of the repository listing, then the declared start path order.
        """
        handle = self.repositories.resolve(source.url, source.credentials)
        refs = self.select_refs(source, handle)
        if not refs:
            self.logger.warning("No refs matched for content source %s", handle.url)
        start_paths = source.start_paths or ("",)
        return [
            WorkItem(source=source, handle=handle, ref=ref, start_path=start_path)
            for ref in refs
            for start_path in start_paths
        ]

    def select_refs(self, source: ContentSource, handle: RepositoryHandle) -> List[Ref]:
        branch_patterns = list(source.branches or self.default_branches)
        selected = self._match(handle, "branch", branch_patterns)
        if source.tags:
            selected.extend(self._match(handle, "tag", list(source.tags)))
        return selected

    def _match(self, handle: RepositoryHandle, kind: str, patterns: List[str]) -> List[Ref]:
        refs = self.repositories.list_refs(handle, kind)
        if kind == "branch" and handle.local and HEAD_PATTERN in patterns:
            patterns = self._expand_head(handle, patterns)
        by_name = {ref.name: ref for ref in refs}
        names = match_refs((ref.name for ref in refs), patterns, self.pattern_cache)
        self.logger.debug(
            "Matched %d of %d %s refs in %s", len(names), len(refs), kind, handle.url
        )
        return [by_name[name] for name in names]

    def _expand_head(self, handle: RepositoryHandle, patterns: List[str]) -> List[str]:
        current = self.repositories.current_branch(handle)
        expanded: List[str] = []
        for pattern in patterns:
            if pattern != HEAD_PATTERN:
                expanded.append(pattern)
            elif current:
                expanded.append(current)
        return expanded


__all__ = ["ContentSourceResolver", "RepositoryAccess"]
