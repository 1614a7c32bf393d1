"""Deterministic version ordering used for ``latest`` selection."""

from __future__ import annotations

import re
from typing import Iterable, List, Tuple

_NUMERIC = re.compile(r"^[vV]?(\d+(?:\.\d+)*)(.*)$")


def version_key(version: str) -> Tuple[object, ...]:
    """Sort key where a larger key means a newer version.

    Numeric versions (``2``, ``v1.10``, ``3.0-beta``) rank above named ones
    (``main``) and compare component-wise, ignoring trailing zeros. A suffix
    ranks below the bare number it follows. The original string breaks ties.
    """
    match = _NUMERIC.match(version)
    if match is None:
        return (0, (), 0, version, version)
    numbers = [int(part) for part in match.group(1).split(".")]
    while len(numbers) > 1 and numbers[-1] == 0:
        numbers.pop()
    suffix = match.group(2)
    return (1, tuple(numbers), 0 if suffix else 1, suffix, version)


def sort_versions_desc(versions: Iterable[str]) -> List[str]:
    return sorted(versions, key=version_key, reverse=True)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` is older than, equal to or newer than ``right``."""
    left_key, right_key = version_key(left), version_key(right)
    if left_key == right_key:
        return 0
    return 1 if left_key > right_key else -1


__all__ = ["compare_versions", "sort_versions_desc", "version_key"]
