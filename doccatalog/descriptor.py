"""Load component descriptors into component version records."""

from __future__ import annotations

import posixpath
import re
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import InvalidDescriptorError, MissingDescriptorError, NotFoundError
from .logging import get_logger
from .models import ComponentVersion, WorkItem
from .sources import RepositoryAccess

DEFAULT_DESCRIPTOR = "antora.yml"

# Characters that would make a name or version ambiguous inside a resource ID.
_RESERVED = re.compile(r"[@:$\s]")


class DescriptorLoader:
    """Reads the descriptor at each work item's start path."""

    def __init__(
        self,
        repositories: RepositoryAccess,
        *,
        filename: str = DEFAULT_DESCRIPTOR,
        attributes: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.repositories = repositories
        self.filename = filename
        self.attributes = dict(attributes or {})
        self.logger = get_logger("descriptor")

    def descriptor_path(self, item: WorkItem) -> str:
        return posixpath.join(item.start_path, self.filename) if item.start_path else self.filename

    def load(self, item: WorkItem) -> ComponentVersion:
        """Read and validate the descriptor for ``item``.

        Raises :class:`MissingDescriptorError` when the file is absent and
        :class:`InvalidDescriptorError` when it is malformed.
        """
        path = self.descriptor_path(item)
        try:
            raw = self.repositories.read_blob(item.handle, item.ref, path)
        except NotFoundError as exc:
            raise MissingDescriptorError(item.handle.url, item.ref.name, path) from exc
        try:
            data = yaml.safe_load(raw.decode("utf-8"))
        except (UnicodeDecodeError, yaml.YAMLError) as exc:
            raise self._invalid(item, path, f"unable to parse: {exc}") from exc
        if not isinstance(data, dict):
            raise self._invalid(item, path, "expected a mapping")
        component_version = self.build(data, item, path)
        self.logger.debug(
            "Loaded %s@%s from %s", component_version.version, component_version.name, item.origin
        )
        return component_version

    def build(self, data: Dict[str, Any], item: WorkItem, path: str) -> ComponentVersion:
        name = data.get("name")
        if not isinstance(name, (str, int, float)) or isinstance(name, bool) or not str(name).strip():
            raise self._invalid(item, path, "name is required")
        name = str(name).strip()

        version = self._resolve_version(data.get("version"), item, path)
        for label, value in (("name", name), ("version", version)):
            if _RESERVED.search(value):
                raise self._invalid(item, path, f"{label} contains a reserved character: {value!r}")

        prerelease = self._as_prerelease(data.get("prerelease"))
        display_version = data.get("display_version")
        if display_version is None:
            display_version = _display_version(version, prerelease)

        title = data.get("title")
        nav = self._as_nav(data.get("nav"), item, path)
        start_page = data.get("start_page")

        return ComponentVersion(
            name=name,
            version=version,
            title=str(title) if title is not None else name,
            display_version=str(display_version),
            prerelease=prerelease,
            start_page=str(start_page) if start_page else None,
            nav=nav,
            attributes=self._merge_attributes(data),
            origins=[item.origin],
        )

    # ------------------------------------------------------------------
    # Helpers

    def _resolve_version(self, value: Any, item: WorkItem, path: str) -> str:
        if value is True:
            return item.ref.name
        if value is None or value is False:
            raise self._invalid(item, path, "version is required")
        version = str(value).strip()
        if not version:
            raise self._invalid(item, path, "version is required")
        return version

    @staticmethod
    def _as_prerelease(value: Any) -> Union[bool, str]:
        if isinstance(value, str):
            return value.strip() or False
        return bool(value)

    def _as_nav(self, value: Any, item: WorkItem, path: str) -> List[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise self._invalid(item, path, "nav must be a list")
        return [posixpath.normpath(str(entry).strip()).lstrip("/") for entry in value if str(entry).strip()]

    def _merge_attributes(self, data: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(self.attributes)
        asciidoc = data.get("asciidoc")
        scoped = asciidoc.get("attributes") if isinstance(asciidoc, dict) else None
        if isinstance(scoped, dict):
            merged.update(scoped)
        return merged

    def _invalid(self, item: WorkItem, path: str, reason: str) -> InvalidDescriptorError:
        return InvalidDescriptorError(item.handle.url, item.ref.name, path, reason)


def _display_version(version: str, prerelease: Union[bool, str]) -> str:
    if not isinstance(prerelease, str):
        return version
    if prerelease[0] in "-.":
        return f"{version}{prerelease}"
    return f"{version}-{prerelease}"


__all__ = ["DEFAULT_DESCRIPTOR", "DescriptorLoader"]
