"""Glob matching of branch and tag names."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, List, Pattern, Sequence

from ..errors import ConfigurationError


@dataclass(frozen=True)
class RefPattern:
    """A compiled ref pattern; ``exclude`` is set for ``!``-prefixed patterns."""

    source: str
    regex: Pattern[str]
    exclude: bool

    def matches(self, name: str) -> bool:
        return self.regex.fullmatch(name) is not None


class RefPatternCache:
    """Compiled patterns keyed by pattern string, scoped to one aggregation run."""

    def __init__(self) -> None:
        self._compiled: Dict[str, RefPattern] = {}
        self._lock = threading.Lock()

    def get(self, pattern: str) -> RefPattern:
        with self._lock:
            compiled = self._compiled.get(pattern)
            if compiled is None:
                compiled = compile_ref_pattern(pattern)
                self._compiled[pattern] = compiled
            return compiled

    def __len__(self) -> int:
        return len(self._compiled)


def compile_ref_pattern(pattern: str) -> RefPattern:
    """Compile a restricted glob: literals, ``*`` and ``?``; ``*`` never crosses ``/``."""
    exclude = pattern.startswith("!")
    body = pattern[1:] if exclude else pattern
    if not body:
        raise ConfigurationError(f"Empty ref pattern: {pattern!r}")
    if "**" in body:
        raise ConfigurationError(f"Ref pattern may not use '**': {pattern!r}")
    # Not fnmatch: its ``*`` crosses ``/`` and ``[...]`` would be a character class here.
    parts: List[str] = []
    for char in body:
        if char == "*":
            parts.append("[^/]*")
        elif char == "?":
            parts.append("[^/]")
        else:
            parts.append(re.escape(char))
    return RefPattern(source=pattern, regex=re.compile("".join(parts)), exclude=exclude)


def match_refs(
    names: Iterable[str],
    patterns: Sequence[str],
    cache: RefPatternCache,
) -> List[str]:
    """Return the names selected by ``patterns``, in input order and without duplicates.

    A name is selected when it matches at least one include pattern and no
    exclude pattern.
    """
    compiled = [cache.get(pattern) for pattern in patterns]
    includes = [pattern for pattern in compiled if not pattern.exclude]
    excludes = [pattern for pattern in compiled if pattern.exclude]
    if not includes:
        return []
    selected: List[str] = []
    seen = set()
    for name in names:
        if name in seen:
            continue
        if not any(pattern.matches(name) for pattern in includes):
            continue
        if any(pattern.matches(name) for pattern in excludes):
            continue
        seen.add(name)
        selected.append(name)
    return selected


__all__ = ["RefPattern", "RefPatternCache", "compile_ref_pattern", "match_refs"]
