"""Core data models shared across doccatalog components."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

ROOT_MODULE = "ROOT"

FAMILIES: Tuple[str, ...] = (
    "page",
    "partial",
    "image",
    "attachment",
    "example",
    "nav",
    "alias",
)


@dataclass(frozen=True)
class Credentials:
    """Username/password pair used for HTTP(S) remotes."""

    username: str
    password: str = ""

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class ContentSource:
    """A configured repository plus its ref selection patterns."""

    url: str
    branches: Tuple[str, ...] = ()
    tags: Tuple[str, ...] = ()
    start_paths: Tuple[str, ...] = ("",)
    edit_url: Union[str, bool, None] = None
    credentials: Optional[Credentials] = None


@dataclass(frozen=True)
class RepositoryHandle:
    """Opaque handle to a queryable git object store."""

    url: str
    path: Path
    local: bool = False


@dataclass(frozen=True)
class Ref:
    """A branch or tag at a specific commit."""

    name: str
    kind: str
    oid: str


@dataclass(frozen=True)
class TreeEntry:
    """Entry produced while walking a tree at a ref."""

    path: str
    is_dir: bool


@dataclass(frozen=True)
class Origin:
    """Where a component version was read from.

    ``repository`` is the on-disk store the ref was read from. Equivalent URL
    spellings share one mirror, so it identifies the repository where ``url``
    may not.
    """

    url: str
    refname: str
    reftype: str
    start_path: str = ""
    refhash: str = ""
    local: bool = False
    repository: str = ""

    def same_ref(self, other: "Origin") -> bool:
        return (
            (self.repository or self.url) == (other.repository or other.url)
            and self.refname == other.refname
            and self.reftype == other.reftype
        )

    def __str__(self) -> str:
        label = f"{self.url} ({self.reftype}: {self.refname}"
        if self.start_path:
            label += f" | start path: {self.start_path}"
        return label + ")"


@dataclass(frozen=True)
class WorkItem:
    """One (repository, ref, start path) unit to load."""

    source: ContentSource
    handle: RepositoryHandle
    ref: Ref
    start_path: str

    @property
    def origin(self) -> Origin:
        return Origin(
            url=self.handle.url,
            refname=self.ref.name,
            reftype=self.ref.kind,
            start_path=self.start_path,
            refhash=self.ref.oid,
            local=self.handle.local,
            repository=str(self.handle.path),
        )


@dataclass(frozen=True)
class ResourceId:
    """Fully qualified address of a file in the catalog."""

    component: str
    version: str
    module: str
    family: str
    relative: str

    def __str__(self) -> str:
        return f"{self.version}@{self.component}:{self.module}:{self.family}${self.relative}"


@dataclass
class ComponentVersion:
    """Metadata and origins for one component at one version."""

    name: str
    version: str
    title: str
    display_version: str
    prerelease: Union[bool, str] = False
    start_page: Optional[str] = None
    nav: List[str] = field(default_factory=list)
    attributes: Dict[str, Any] = field(default_factory=dict)
    origins: List[Origin] = field(default_factory=list)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.name, self.version)


@dataclass
class VirtualFile:
    """A content file tracked by the catalog."""

    relative: str
    family: str
    module: str
    component: str
    version: str
    contents: bytes = b""
    src_path: str = ""
    origin: Optional[Origin] = None
    mtime: Optional[float] = None
    edit_url: Optional[str] = None
    media_type: Optional[str] = None
    nav_index: Optional[int] = None
    rel: Optional["VirtualFile"] = field(default=None, repr=False, compare=False)
    # Written by downstream conversion and publishing stages.
    out: Optional[str] = None
    pub: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.contents)

    @property
    def key(self) -> ResourceId:
        return ResourceId(
            component=self.component,
            version=self.version,
            module=self.module,
            family=self.family,
            relative=self.relative,
        )


@dataclass(frozen=True)
class ResourceIdContext:
    """Context a partial resource ID inherits from."""

    component: Optional[str] = None
    version: Optional[str] = None
    module: Optional[str] = None


@dataclass(frozen=True)
class ParsedResourceId:
    """Result of parsing a resource ID before defaults are applied."""

    component: Optional[str]
    version: Optional[str]
    module: Optional[str]
    family: Optional[str]
    relative: str
