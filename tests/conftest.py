from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Iterator

import pytest

from doccatalog.config import DocCatalogConfig
from tests._fixtures.fake_git import FakeRepositories
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer overrides out of config-dependent tests."""
    monkeypatch.delenv("DOCCATALOG_CACHE_DIR", raising=False)
    monkeypatch.delenv("DOCCATALOG_FETCH", raising=False)


@pytest.fixture(autouse=True)
def _reset_logger() -> Iterator[None]:
    """Drop handlers installed by configure_logging so they do not outlive a test."""
    yield
    logger = logging.getLogger("doccatalog")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a real git repository rooted at the pytest tmp_path."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
    return RepoBuilder(tmp_path)


@pytest.fixture
def repositories() -> FakeRepositories:
    """Provide an empty in-memory repository set."""
    return FakeRepositories()


@pytest.fixture
def config(tmp_path: Path) -> DocCatalogConfig:
    """Provide a configuration with no sources and a throwaway cache."""
    config = DocCatalogConfig(root=tmp_path)
    config.runtime.cache_dir = tmp_path / "cache"
    return config
