"""Error taxonomy for content aggregation and resource lookup."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Sequence
from urllib.parse import urlsplit, urlunsplit

_SCP_USERINFO = re.compile(r"^[^@/]+:[^@/]*@")
_URL_USERINFO = re.compile(r"(\b[a-zA-Z][a-zA-Z0-9+.-]*://)[^/@\s]+@")


def redact_url(url: str) -> str:
    """Strip any password or token embedded in ``url``.

    The user name is kept for scp-style and ssh URLs (``git@host:repo``) since
    it is not a secret there; HTTP userinfo is removed entirely.
    """
    if "://" not in url:
        return _SCP_USERINFO.sub("", url)
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    if parts.scheme == "ssh" and parts.username and not parts.password:
        host = f"{parts.username}@{host}"
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


class DocCatalogError(RuntimeError):
    """Base class for every error raised by doccatalog."""


class ConfigurationError(DocCatalogError):
    """Raised when a configuration entry is invalid; fails before any network call."""


class NetworkError(DocCatalogError):
    """Raised when a clone or fetch fails. Never retried automatically."""

    def __init__(
        self,
        url: str,
        operation: str,
        *,
        cache_path: Path | None = None,
        detail: str = "",
    ) -> None:
        self.url = redact_url(url)
        self.operation = operation
        self.cache_path = cache_path
        message = f"Failed to {operation} repository {self.url}"
        if cache_path is not None:
            message += f" (cache: {cache_path})"
        if detail:
            message += f": {scrub_secrets(detail)}"
        super().__init__(message)


class NotAGitRepositoryError(DocCatalogError):
    """Raised when a local content source path is not a git repository."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Local content source must be a git repository: {path}")


class NotFoundError(DocCatalogError):
    """Raised when a path does not exist at a given ref."""

    def __init__(self, url: str, ref: str, path: str) -> None:
        self.url = redact_url(url)
        self.ref = ref
        self.path = path
        super().__init__(f"{path or '/'} not found in {self.url} at ref {ref}")


class GitCommandError(DocCatalogError):
    """Raised by the git runner when a command exits with a non-zero status."""

    def __init__(self, args: Sequence[str], returncode: int, stderr: str = "") -> None:
        self.command = [redact_url(arg) for arg in args]
        self.returncode = returncode
        self.stderr = scrub_secrets(stderr.strip())
        message = f"git exited with status {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class MissingDescriptorError(DocCatalogError):
    """Raised when a ref has no component descriptor at its start path."""

    def __init__(self, url: str, ref: str, path: str) -> None:
        self.url = redact_url(url)
        self.ref = ref
        self.path = path
        super().__init__(f"{path} not found in {self.url} (ref: {ref})")


class InvalidDescriptorError(DocCatalogError):
    """Raised when a component descriptor cannot be parsed or lacks required keys."""

    def __init__(self, url: str, ref: str, path: str, reason: str) -> None:
        self.url = redact_url(url)
        self.ref = ref
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid {path} in {self.url} (ref: {ref}): {reason}")


class ComponentVersionConflictError(DocCatalogError):
    """Raised when two different origins produce the same component version."""

    def __init__(self, name: str, version: str, first: object, second: object) -> None:
        self.name = name
        self.version = version
        self.first = first
        self.second = second
        super().__init__(
            f"Duplicate component version {version}@{name} from {first} and {second}"
        )


class DuplicateFileError(DocCatalogError):
    """Raised when a file with the same resource ID is already in the catalog."""

    def __init__(self, key: object, origin: object = None) -> None:
        self.key = key
        self.origin = origin
        message = f"Duplicate file {key}"
        if origin is not None:
            message += f" from {origin}"
        super().__init__(message)


class InvalidResourceIdSyntaxError(DocCatalogError, ValueError):
    """Raised when a resource ID does not match the address grammar."""

    def __init__(self, spec: str, reason: str = "") -> None:
        self.spec = spec
        message = f"Invalid resource ID syntax: {spec!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class AggregationError(DocCatalogError):
    """Raised when aggregation produced no usable component version."""

    def __init__(self, message: str, errors: Sequence[DocCatalogError] = ()) -> None:
        self.errors = list(errors)
        if self.errors:
            details = "; ".join(str(error) for error in self.errors)
            message = f"{message}: {details}"
        super().__init__(message)


def scrub_secrets(text: str) -> str:
    """Remove userinfo from every URL that appears in free-form ``text``."""
    return _URL_USERINFO.sub(r"\1", text)


__all__ = [
    "AggregationError",
    "ComponentVersionConflictError",
    "ConfigurationError",
    "DocCatalogError",
    "DuplicateFileError",
    "GitCommandError",
    "InvalidDescriptorError",
    "InvalidResourceIdSyntaxError",
    "MissingDescriptorError",
    "NetworkError",
    "NotAGitRepositoryError",
    "NotFoundError",
    "redact_url",
    "scrub_secrets",
]
