"""Git access: ref matching, credentials and the bare mirror cache."""

from .credentials import CredentialStore, resolve_credentials
from .progress import PHASES, ProgressObserver, ProgressTracker
from .refs import RefPatternCache, compile_ref_pattern, match_refs
from .repository import (
    CONTENT_CACHE_FOLDER,
    VALID_MARKER,
    GitRepositoryManager,
    ProxySettings,
    RepositoryLocks,
)

__all__ = [
    "CONTENT_CACHE_FOLDER",
    "CredentialStore",
    "GitRepositoryManager",
    "PHASES",
    "ProgressObserver",
    "ProgressTracker",
    "ProxySettings",
    "RefPatternCache",
    "RepositoryLocks",
    "VALID_MARKER",
    "compile_ref_pattern",
    "match_refs",
    "resolve_credentials",
]
