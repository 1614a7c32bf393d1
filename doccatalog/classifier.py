"""Map paths inside a component version to a file family and module."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Collection, Dict, List, Optional

from .models import ROOT_MODULE

MODULES_DIR = "modules"

FAMILY_BY_FOLDER: Dict[str, str] = {
    "pages": "page",
    "partials": "partial",
    "images": "image",
    "attachments": "attachment",
    "examples": "example",
}

_ALIASES_ATTRIBUTE = re.compile(r"^:page-aliases:[ \t]*(?P<value>.*)$")
_ATTRIBUTE_ENTRY = re.compile(r"^:!?[\w][\w-]*!?:")


@dataclass(frozen=True)
class Classification:
    """Family, module and family-relative path of a classified file."""

    family: str
    module: str
    relative: str


def classify(path: str, nav: Collection[str] = ()) -> Optional[Classification]:
    """Classify ``path`` (relative to the start path), or return None to ignore it.

    Files listed in ``nav`` are navigation files wherever they live. Everything
    else must sit under ``modules/<module>/<family folder>/``.
    """
    path = path.strip("/")
    segments = path.split("/")
    if any(segment.startswith(".") for segment in segments):
        return None

    if path in nav:
        if len(segments) > 2 and segments[0] == MODULES_DIR:
            return Classification("nav", segments[1], "/".join(segments[2:]))
        return Classification("nav", ROOT_MODULE, path)

    if len(segments) < 4 or segments[0] != MODULES_DIR:
        return None
    family = FAMILY_BY_FOLDER.get(segments[2])
    if family is None:
        return None
    return Classification(family, segments[1], "/".join(segments[3:]))


def parse_page_aliases(contents: bytes) -> List[str]:
    """Return the alias specs declared by ``:page-aliases:`` in a page header.

    Only the document header is inspected: an optional ``= Title`` line plus
    attribute entries and line comments, ending at the first blank line.
    """
    text = contents.decode("utf-8", errors="replace")
    if text.startswith("\ufeff"):
        text = text[1:]
    aliases: List[str] = []
    seen_content = False
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped:
            if seen_content:
                break
            continue
        if stripped.startswith("//"):
            continue
        match = _ALIASES_ATTRIBUTE.match(stripped)
        if match is not None:
            aliases.extend(
                part.strip() for part in match.group("value").split(",") if part.strip()
            )
        elif not (stripped.startswith("= ") or _ATTRIBUTE_ENTRY.match(stripped)):
            break
        seen_content = True
    return aliases


__all__ = ["Classification", "FAMILY_BY_FOLDER", "classify", "parse_page_aliases"]
