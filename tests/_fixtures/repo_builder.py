"""Helper utilities for constructing temporary git repositories in tests."""

from __future__ import annotations

import subprocess
import textwrap
from pathlib import Path
from typing import Mapping

_IDENTITY = (
    "-c",
    "user.name=Doc Catalog",
    "-c",
    "user.email=docs@example.com",
    "-c",
    "commit.gpgsign=false",
    "-c",
    "tag.gpgsign=false",
)


class RepoBuilder:
    """Utility for writing files into a throwaway git repository and committing them."""

    def __init__(self, tmp_path: Path, name: str = "repo") -> None:
        self.root = tmp_path / name
        self.root.mkdir()
        self.git("init", "--quiet")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")

    def write(self, files: Mapping[str, str]) -> None:
        """Write `path -> contents` entries into the working tree."""
        for relative, content in files.items():
            path = self.root / relative
            path.parent.mkdir(parents=True, exist_ok=True)
            normalised = textwrap.dedent(content).lstrip("\n")
            path.write_text(normalised, encoding="utf-8")

    def commit(self, message: str = "update docs") -> str:
        """Stage everything and commit; returns the new commit id."""
        self.git("add", "-A")
        self.git("commit", "--quiet", "-m", message)
        return self.git("rev-parse", "HEAD").strip()

    def branch(self, name: str) -> None:
        """Create ``name`` from the current commit and switch to it."""
        self.git("checkout", "--quiet", "-b", name)

    def checkout(self, name: str) -> None:
        self.git("checkout", "--quiet", name)

    def tag(self, name: str, *, annotated: bool = False) -> None:
        if annotated:
            self.git("tag", "-a", name, "-m", f"release {name}")
        else:
            self.git("tag", name)

    def path(self) -> Path:
        """Return the repository root path."""
        return self.root

    def git(self, *args: str) -> str:
        completed = subprocess.run(
            ["git", *_IDENTITY, *args],
            cwd=self.root,
            capture_output=True,
            check=True,
            text=True,
        )
        return completed.stdout


__all__ = ["RepoBuilder"]
