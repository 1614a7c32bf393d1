"""Helpers for classifying, normalizing and rewriting remote repository URLs."""

from __future__ import annotations

import hashlib
import posixpath
import re
from typing import Optional
from urllib.parse import quote, urlsplit, urlunsplit

from ..errors import ConfigurationError, redact_url
from ..models import Credentials

SUPPORTED_SCHEMES = frozenset({"http", "https", "ssh", "git", "file"})

_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]*)://")
_SCP_LIKE = re.compile(r"^(?:(?P<user>[^@/]+)@)?(?P<host>[^:/]+):(?P<path>(?!//).+)$")
_WINDOWS_DRIVE = re.compile(r"^[a-zA-Z]:[\\/]")


def is_local_url(url: str) -> bool:
    """Return True when ``url`` names a repository on the local filesystem."""
    if _SCHEME.match(url):
        return False
    if url.startswith(("/", "./", "../", "~")) or url in {".", ".."}:
        return True
    if _WINDOWS_DRIVE.match(url):
        return True
    return _SCP_LIKE.match(url) is None


def check_protocol(url: str) -> None:
    """Fail fast when ``url`` uses a transport git access does not support."""
    match = _SCHEME.match(url)
    if match is None:
        if _SCP_LIKE.match(url):
            return
        raise ConfigurationError(f"Unrecognized repository URL: {redact_url(url)}")
    scheme = match.group(1).lower()
    if scheme not in SUPPORTED_SCHEMES:
        raise ConfigurationError(
            f"Unsupported protocol '{scheme}' for repository URL: {redact_url(url)}"
        )


def normalize_url(url: str) -> str:
    """Return the canonical form used to key the on-disk cache.

    Credentials, trailing slashes and a ``.git`` suffix are dropped and the
    scheme and host are lower-cased, so equivalent spellings share one mirror.
    """
    url = redact_url(url.strip())
    match = _SCHEME.match(url)
    if match is None:
        scp = _SCP_LIKE.match(url)
        if scp is None:
            return url.rstrip("/")
        user = f"{scp.group('user')}@" if scp.group("user") else ""
        path = _strip_git_suffix(scp.group("path").rstrip("/"))
        return f"{user}{scp.group('host').lower()}:{path}"
    parts = urlsplit(url)
    netloc = parts.netloc.lower()
    path = _strip_git_suffix(parts.path.rstrip("/"))
    return urlunsplit((parts.scheme.lower(), netloc, path, "", ""))


def cache_dirname(url: str) -> str:
    """Name of the bare mirror directory for ``url``: ``<basename>-<sha1>.git``."""
    normalized = normalize_url(url)
    digest = hashlib.sha1(normalized.encode("utf-8")).hexdigest()
    basename = posixpath.basename(normalized.rsplit(":", 1)[-1]) or "repository"
    return f"{basename}-{digest}.git"


def web_url(url: str) -> Optional[str]:
    """Best-effort browser URL for a remote, used to build edit links."""
    normalized = normalize_url(url)
    match = _SCHEME.match(normalized)
    if match is None:
        scp = _SCP_LIKE.match(normalized)
        if scp is None:
            return None
        return f"https://{scp.group('host')}/{scp.group('path').lstrip('/')}"
    scheme = match.group(1)
    if scheme in {"http", "https"}:
        return normalized
    if scheme in {"ssh", "git"}:
        parts = urlsplit(normalized)
        return f"https://{parts.hostname}{parts.path}"
    return None


def apply_credentials(url: str, credentials: Optional[Credentials]) -> str:
    """Embed ``credentials`` into an HTTP(S) URL for the git transport."""
    if credentials is None:
        return url
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"}:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = quote(credentials.username, safe="")
    if credentials.password:
        userinfo += ":" + quote(credentials.password, safe="")
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def embedded_credentials(url: str) -> Optional[Credentials]:
    """Return userinfo embedded in an HTTP(S) URL, if any."""
    parts = urlsplit(url)
    if parts.scheme not in {"http", "https"} or not parts.username:
        return None
    return Credentials(username=parts.username, password=parts.password or "")


def should_proxy(url: str, no_proxy: Optional[str]) -> bool:
    """Return False when the host of ``url`` is excluded by ``no_proxy``."""
    if not no_proxy:
        return True
    host = (urlsplit(url).hostname or "").lower()
    if not host:
        return False
    for entry in no_proxy.split(","):
        entry = entry.strip().lower()
        if not entry:
            continue
        if entry == "*":
            return False
        entry = entry.split(":", 1)[0].lstrip("*").lstrip(".")
        if host == entry or host.endswith(f".{entry}"):
            return False
    return True


def _strip_git_suffix(path: str) -> str:
    return path[:-4] if path.endswith(".git") else path


__all__ = [
    "SUPPORTED_SCHEMES",
    "apply_credentials",
    "cache_dirname",
    "check_protocol",
    "embedded_credentials",
    "is_local_url",
    "normalize_url",
    "should_proxy",
    "web_url",
]
