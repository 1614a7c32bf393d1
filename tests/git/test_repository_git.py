"""End-to-end tests for the git access layer against real repositories."""

from __future__ import annotations

from pathlib import Path

from doccatalog.git.repository import VALID_MARKER, GitRepositoryManager
from tests._fixtures.repo_builder import RepoBuilder


def _populate(repo_builder: RepoBuilder) -> None:
    repo_builder.write(
        {
            "docs/antora.yml": "name: server\nversion: '1.0'\n",
            "docs/modules/ROOT/pages/index.adoc": "= Server\n",
        }
    )
    repo_builder.commit("initial docs")
    repo_builder.tag("v1.0", annotated=True)
    repo_builder.branch("v2.0")
    repo_builder.write({"docs/antora.yml": "name: server\nversion: '2.0'\n"})
    repo_builder.commit("next version")
    repo_builder.checkout("main")


def test_local_repository_refs_and_files(repo_builder: RepoBuilder, tmp_path: Path) -> None:
    _populate(repo_builder)
    manager = GitRepositoryManager(tmp_path / "cache")

    handle = manager.resolve(str(repo_builder.path()))
    branches = manager.list_refs(handle, "branch")
    tags = manager.list_refs(handle, "tag")

    assert handle.local is True
    assert [ref.name for ref in branches] == ["main", "v2.0"]
    assert [ref.name for ref in tags] == ["v1.0"]
    assert tags[0].oid == branches[0].oid
    assert manager.current_branch(handle) == "main"

    v2 = branches[1]
    entries = {entry.path: entry.is_dir for entry in manager.read_tree(handle, v2, "docs")}
    assert entries["antora.yml"] is False
    assert entries["modules"] is True
    assert entries["modules/ROOT/pages/index.adoc"] is False
    assert manager.read_blob(handle, v2, "docs/antora.yml") == b"name: server\nversion: '2.0'\n"
    assert manager.read_blobs(handle, v2, ["docs/antora.yml", "docs/modules/ROOT/pages/index.adoc"]) == [
        b"name: server\nversion: '2.0'\n",
        b"= Server\n",
    ]
    assert manager.commit_time(handle, v2) is not None


def test_remote_mirror_is_cloned_once(repo_builder: RepoBuilder, tmp_path: Path) -> None:
    _populate(repo_builder)
    url = repo_builder.path().as_uri()
    cache_dir = tmp_path / "cache"

    handle = GitRepositoryManager(cache_dir).resolve(url)

    assert handle.local is False
    assert (handle.path / VALID_MARKER).is_file()
    assert not (handle.path / ".git").exists()

    calls = []

    def runner(args, **kwargs):  # type: ignore[no-untyped-def]
        calls.append(list(args))
        return b""

    again = GitRepositoryManager(cache_dir, runner=runner).resolve(url)
    assert again.path == handle.path
    assert calls == []

    manager = GitRepositoryManager(cache_dir)
    assert [ref.name for ref in manager.list_refs(handle, "branch")] == ["main", "v2.0"]
