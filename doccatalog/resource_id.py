"""Parse resource IDs and resolve them against a content catalog.

A resource ID has the form ``[version@][[component:]module:][family$]relative``.
A single colon-separated prefix names a module; two name the component and
the module. Parts left out are inherited from the calling context:

* a component named without a module means the ``ROOT`` module;
* a component named without a version means that component's latest version;
* no component at all means component, version and module of the context.
"""

from __future__ import annotations

import posixpath
import re
from dataclasses import replace
from typing import TYPE_CHECKING, Collection, Optional

from .errors import InvalidResourceIdSyntaxError
from .models import (
    FAMILIES,
    ROOT_MODULE,
    ComponentVersion,
    ParsedResourceId,
    ResourceId,
    ResourceIdContext,
    VirtualFile,
)

if TYPE_CHECKING:
    from .catalog import ContentCatalog

PAGE_EXTENSION = ".adoc"
DEFAULT_START_PAGE = "index.adoc"

_RESOURCE_ID = re.compile(
    r"^(?:(?P<version>[^@:$]+)@)?"
    r"(?:(?:(?P<component>[^@:$]+):)?(?P<module>[^@:$]*):)?"
    r"(?:(?P<family>[^@:$]+)\$)?"
    r"(?P<relative>[^@:$][^:$]*)$"
)


def parse_resource_id(
    spec: str,
    ctx: Optional[ResourceIdContext] = None,
    default_family: str = "page",
    permitted_families: Optional[Collection[str]] = None,
) -> ParsedResourceId:
    """Split ``spec`` into its parts and apply context defaults.

    The version may remain unset, meaning "latest". Raises
    :class:`InvalidResourceIdSyntaxError` for malformed IDs and for families
    that are unknown or not in ``permitted_families``.
    """
    if not isinstance(spec, str):
        raise InvalidResourceIdSyntaxError(repr(spec), "not a string")
    match = _RESOURCE_ID.match(spec.strip())
    if match is None:
        raise InvalidResourceIdSyntaxError(spec)
    ctx = ctx or ResourceIdContext()

    version = match.group("version")
    component = match.group("component")
    module = match.group("module") or None
    if component:
        module = module or ROOT_MODULE
    else:
        component = ctx.component
        version = version or ctx.version
        module = module or ctx.module

    family = match.group("family") or default_family
    if family not in FAMILIES:
        raise InvalidResourceIdSyntaxError(spec, f"unknown family '{family}'")
    if permitted_families is not None and family not in permitted_families:
        raise InvalidResourceIdSyntaxError(spec, f"family '{family}' is not permitted here")

    relative = match.group("relative")
    if family in {"page", "alias"} and not posixpath.splitext(relative)[1]:
        relative += PAGE_EXTENSION

    return ParsedResourceId(
        component=component,
        version=version,
        module=module,
        family=family,
        relative=relative,
    )


def resolve_resource(
    spec: str,
    catalog: "ContentCatalog",
    ctx: Optional[ResourceIdContext] = None,
    default_family: str = "page",
    permitted_families: Optional[Collection[str]] = None,
) -> Optional[VirtualFile]:
    """Return the file ``spec`` refers to, or None when nothing matches.

    Syntax errors propagate; an ID that is well formed but names no file
    yields None. A page that is not found directly is looked up among the
    aliases, and the alias target is returned.
    """
    parsed = parse_resource_id(spec, ctx, default_family, permitted_families)
    key = qualify(parsed, catalog)
    if key is None:
        return None
    found = catalog.get_by_id(key)
    if found is None and key.family == "page":
        alias = catalog.get_by_id(replace(key, family="alias"))
        if alias is not None:
            return alias.rel
    return found


def qualify(parsed: ParsedResourceId, catalog: "ContentCatalog") -> Optional[ResourceId]:
    """Fill in the latest version and root module; None for an unknown component."""
    if not parsed.component or not parsed.family:
        return None
    version = parsed.version
    if version is None:
        latest = catalog.latest(parsed.component)
        if latest is None:
            return None
        version = latest.version
    return ResourceId(
        component=parsed.component,
        version=version,
        module=parsed.module or ROOT_MODULE,
        family=parsed.family,
        relative=parsed.relative,
    )


def resolve_start_page(
    catalog: "ContentCatalog", component_version: ComponentVersion
) -> Optional[VirtualFile]:
    spec = component_version.start_page or DEFAULT_START_PAGE
    ctx = ResourceIdContext(
        component=component_version.name,
        version=component_version.version,
        module=ROOT_MODULE,
    )
    return resolve_resource(spec, catalog, ctx, permitted_families=("page",))


__all__ = [
    "parse_resource_id",
    "qualify",
    "resolve_resource",
    "resolve_start_page",
]
