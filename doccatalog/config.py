"""Configuration loading for doccatalog (doccatalog.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import yaml

from .descriptor import DEFAULT_DESCRIPTOR
from .errors import ConfigurationError, redact_url
from .git.remote import check_protocol, is_local_url
from .models import ContentSource, Credentials

CONFIG_FILENAME = "doccatalog.yml"
DEFAULT_BRANCHES: Tuple[str, ...] = ("v*", "main", "master")
DEFAULT_CACHE_DIR = Path(".cache") / "doccatalog"
DEFAULT_FETCH_CONCURRENCY = 4
DEFAULT_FETCH_TIMEOUT = 300.0


@dataclass
class ContentConfig:
    """Content sources and the defaults that apply to them."""

    sources: List[ContentSource] = field(default_factory=list)
    branches: Tuple[str, ...] = DEFAULT_BRANCHES
    descriptor: str = DEFAULT_DESCRIPTOR


@dataclass
class RuntimeConfig:
    """Cache location and network behaviour for a run."""

    cache_dir: Path = DEFAULT_CACHE_DIR
    fetch: bool = False
    fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY
    fetch_timeout: Optional[float] = DEFAULT_FETCH_TIMEOUT


@dataclass
class GitConfig:
    """Credential store and proxy settings for git transports."""

    credentials_path: Optional[Path] = None
    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    no_proxy: Optional[str] = None


@dataclass
class DocCatalogConfig:
    """Represents the settings defined in doccatalog.yml."""

    root: Path
    content: ContentConfig = field(default_factory=ContentConfig)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    git: GitConfig = field(default_factory=GitConfig)
    attributes: Dict[str, Any] = field(default_factory=dict)


def load_config(config_path: Path) -> DocCatalogConfig:
    """Load and validate configuration from disk.

    A missing file yields the defaults with no content sources. Any invalid
    entry raises :class:`ConfigurationError` before network access begins.
    """
    config_file = _resolve_config_path(Path(config_path))
    root = config_file.parent.resolve()

    if not config_file.exists():
        config = DocCatalogConfig(root=root)
        config.runtime.cache_dir = root / DEFAULT_CACHE_DIR
        _apply_env_overrides(config)
        return config

    data = _read_config(config_file)
    return parse_config(data, root=root)


def parse_config(data: Dict[str, Any], *, root: Path) -> DocCatalogConfig:
    """Build a :class:`DocCatalogConfig` from an already parsed mapping."""
    if not isinstance(data, dict):
        raise ConfigurationError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    content_data = _as_dict(data.get("content"))
    content = ContentConfig()
    if "branches" in content_data:
        content.branches = _as_pattern_list(content_data.get("branches"), "content.branches")
    descriptor = _as_str(content_data.get("descriptor"))
    if descriptor:
        content.descriptor = descriptor
    raw_sources = content_data.get("sources") or []
    if not isinstance(raw_sources, list):
        raise ConfigurationError("content.sources must be a list")
    content.sources = [
        _parse_source(entry, index, root) for index, entry in enumerate(raw_sources)
    ]

    runtime_data = _as_dict(data.get("runtime"))
    runtime = RuntimeConfig()
    cache_dir = _as_str(runtime_data.get("cache_dir"))
    runtime.cache_dir = _resolve_path(cache_dir, root) if cache_dir else root / DEFAULT_CACHE_DIR
    fetch = _as_bool(runtime_data.get("fetch"))
    runtime.fetch = bool(fetch)
    if runtime_data.get("fetch_concurrency") is not None:
        concurrency = _as_int(runtime_data.get("fetch_concurrency"))
        if concurrency is None or concurrency < 1:
            raise ConfigurationError("runtime.fetch_concurrency must be a positive integer")
        runtime.fetch_concurrency = concurrency
    if "fetch_timeout" in runtime_data:
        timeout = runtime_data.get("fetch_timeout")
        if timeout is None:
            runtime.fetch_timeout = None
        else:
            parsed_timeout = _as_float(timeout)
            if parsed_timeout is None or parsed_timeout <= 0:
                raise ConfigurationError("runtime.fetch_timeout must be a positive number")
            runtime.fetch_timeout = parsed_timeout

    git_data = _as_dict(data.get("git"))
    credentials_path = _as_str(git_data.get("credentials_path"))
    git = GitConfig(
        credentials_path=_resolve_path(credentials_path, root) if credentials_path else None,
        http_proxy=_as_str(git_data.get("http_proxy")),
        https_proxy=_as_str(git_data.get("https_proxy")),
        no_proxy=_as_proxy_list(git_data.get("no_proxy")),
    )

    attributes_data = data.get("attributes")
    if attributes_data is not None and not isinstance(attributes_data, dict):
        raise ConfigurationError("attributes must be a mapping")

    config = DocCatalogConfig(
        root=root,
        content=content,
        runtime=runtime,
        git=git,
        attributes=dict(attributes_data or {}),
    )
    _apply_env_overrides(config)
    return config


def _parse_source(entry: Any, index: int, root: Path) -> ContentSource:
    label = f"content.sources[{index}]"
    if not isinstance(entry, dict):
        raise ConfigurationError(f"{label} must be a mapping")
    url = _as_str(entry.get("url"))
    if not url or not url.strip():
        raise ConfigurationError(f"{label}.url is required")
    url = url.strip()
    if is_local_url(url):
        url = str(_resolve_path(url, root))
    else:
        check_protocol(url)

    branches = _as_pattern_list(entry.get("branches"), f"{label}.branches")
    tags = _as_pattern_list(entry.get("tags"), f"{label}.tags")

    if "start_paths" in entry and "start_path" in entry:
        raise ConfigurationError(f"{label} cannot declare both start_path and start_paths")
    raw_paths = entry.get("start_paths", entry.get("start_path"))
    start_paths = tuple(_normalize_start_path(path, label) for path in _as_str_list(raw_paths))
    if not start_paths:
        start_paths = ("",)

    edit_url: Union[str, bool, None] = None
    raw_edit = entry.get("edit_url")
    if raw_edit is False:
        edit_url = False
    elif raw_edit is not None:
        if not isinstance(raw_edit, str):
            raise ConfigurationError(f"{label}.edit_url must be a string or false")
        edit_url = raw_edit

    credentials = None
    raw_credentials = entry.get("credentials")
    if raw_credentials is not None:
        credentials_data = _as_dict(raw_credentials)
        username = _as_str(credentials_data.get("username"))
        if not username:
            raise ConfigurationError(
                f"{label}.credentials requires a username ({redact_url(url)})"
            )
        credentials = Credentials(
            username=username,
            password=_as_str(credentials_data.get("password")) or "",
        )

    return ContentSource(
        url=url,
        branches=branches,
        tags=tags,
        start_paths=start_paths,
        edit_url=edit_url,
        credentials=credentials,
    )


def _normalize_start_path(value: str, label: str) -> str:
    normalized = value.replace("\\", "/").strip().strip("/")
    if normalized == ".":
        return ""
    segments = normalized.split("/") if normalized else []
    if any(segment == ".." for segment in segments):
        raise ConfigurationError(f"{label} start path may not leave the repository: {value}")
    return "/".join(segment for segment in segments if segment not in {"", "."})


def _apply_env_overrides(config: DocCatalogConfig) -> None:
    cache_dir = os.getenv("DOCCATALOG_CACHE_DIR")
    if cache_dir:
        config.runtime.cache_dir = Path(cache_dir).expanduser().resolve()
    fetch = _as_bool(os.getenv("DOCCATALOG_FETCH"))
    if fetch is not None:
        config.runtime.fetch = fetch


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _resolve_path(value: str, root: Path) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded or {}


def _as_pattern_list(value: Any, label: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        patterns = [part.strip() for part in value.split(",")]
    elif isinstance(value, Sequence):
        patterns = [str(item).strip() for item in value if isinstance(item, (str, int, float))]
    else:
        raise ConfigurationError(f"{label} must be a string or a list of strings")
    for pattern in patterns:
        if "**" in pattern:
            raise ConfigurationError(f"{label} pattern may not use '**': {pattern}")
    return tuple(pattern for pattern in patterns if pattern)


def _as_proxy_list(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return ",".join(_as_str_list(value)) or None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    return str(value) if isinstance(value, (str, int, float)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "ContentConfig",
    "DocCatalogConfig",
    "GitConfig",
    "RuntimeConfig",
    "load_config",
    "parse_config",
]
