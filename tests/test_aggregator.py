"""Tests for the content aggregator."""

from __future__ import annotations

import asyncio

import pytest

from doccatalog.aggregator import ContentAggregator, aggregate, aggregate_content, edit_url_for
from doccatalog.config import DocCatalogConfig
from doccatalog.errors import (
    AggregationError,
    ComponentVersionConflictError,
    DuplicateFileError,
    InvalidDescriptorError,
    MissingDescriptorError,
    NetworkError,
)
from doccatalog.models import ContentSource, Ref, RepositoryHandle, ResourceIdContext, WorkItem
from doccatalog.resource_id import resolve_resource
from tests._fixtures.fake_git import FakeRepositories

SERVER = "https://example.com/org/server.git"
CLIENT = "https://example.com/org/client.git"


def _version(name: str, version: str, *extra: str) -> str:
    return "\n".join([f"name: {name}", f"version: '{version}'", *extra]) + "\n"


def _add_server(repositories: FakeRepositories) -> None:
    repositories.add_ref(
        SERVER,
        "v1.0",
        {
            "antora.yml": _version("server", "1.0"),
            "modules/ROOT/pages/index.adoc": "= Server 1.0\n",
        },
    )
    repositories.add_ref(
        SERVER,
        "v2.0",
        {
            "antora.yml": _version("server", "2.0", "nav:", "- modules/ROOT/nav.adoc"),
            "modules/ROOT/nav.adoc": "* xref:index.adoc[]\n",
            "modules/ROOT/pages/index.adoc": "= Server 2.0\n:page-aliases: welcome.adoc\n",
            "modules/ROOT/images/logo.png": b"\x89PNG",
            "modules/admin/pages/install.adoc": "= Install\n",
            "README.adoc": "= Not documentation\n",
        },
    )


def test_aggregate_builds_frozen_catalog(config: DocCatalogConfig, repositories: FakeRepositories) -> None:
    _add_server(repositories)
    config.content.sources = [ContentSource(url=SERVER, branches=("v*",))]

    result = aggregate_content(config, repositories)
    catalog = result.catalog

    assert catalog.frozen is True
    assert result.work_items == 2
    assert result.errors == []
    assert [entry.version for entry in catalog.get_component("server").versions] == ["2.0", "1.0"]  # type: ignore[union-attr]
    assert len(catalog) == 6

    page = resolve_resource("server::index.adoc", catalog)
    assert page is not None
    assert page.version == "2.0"
    assert page.contents == b"= Server 2.0\n:page-aliases: welcome.adoc\n"
    assert page.src_path == "modules/ROOT/pages/index.adoc"
    assert page.origin is not None and page.origin.refname == "v2.0"
    assert page.mtime == 1700000000.0
    assert resolve_resource("server::welcome.adoc", catalog) is page

    image = resolve_resource("2.0@server::image$logo.png", catalog)
    assert image is not None and image.media_type == "image/png"

    [nav] = list(catalog.get_files(lambda file: file.family == "nav"))
    assert nav.nav_index == 0
    assert nav.relative == "nav.adoc"

    ctx = ResourceIdContext(component="server", version="1.0", module="ROOT")
    assert resolve_resource("admin:install.adoc", catalog, ctx) is None


def test_every_aggregated_file_is_addressable(config: DocCatalogConfig, repositories: FakeRepositories) -> None:
    _add_server(repositories)
    config.content.sources = [ContentSource(url=SERVER, branches=("v*",))]

    catalog = aggregate_content(config, repositories).catalog

    for file in catalog.get_files():
        assert catalog.get_by_id(file.key) is file


def test_start_paths_yield_separate_components(config: DocCatalogConfig, repositories: FakeRepositories) -> None:
    repositories.add_ref(
        SERVER,
        "main",
        {
            "server/antora.yml": _version("server", "1.0"),
            "server/modules/ROOT/pages/index.adoc": "= Server\n",
            "cli/antora.yml": _version("cli", "1.0"),
            "cli/modules/ROOT/pages/index.adoc": "= CLI\n",
        },
    )
    config.content.sources = [ContentSource(url=SERVER, branches=("main",), start_paths=("server", "cli"))]

    result = aggregate_content(config, repositories)

    assert [component.name for component in result.catalog.get_components()] == ["cli", "server"]
    page = resolve_resource("cli::index.adoc", result.catalog)
    assert page is not None and page.src_path == "cli/modules/ROOT/pages/index.adoc"


def test_same_ref_start_paths_merge_into_one_version(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    repositories.add_ref(
        SERVER,
        "main",
        {
            "docs/antora.yml": _version("server", "1.0"),
            "docs/modules/ROOT/pages/index.adoc": "= Server\n",
            "api/antora.yml": _version("server", "1.0"),
            "api/modules/api/pages/reference.adoc": "= API\n",
        },
    )
    config.content.sources = [ContentSource(url=SERVER, branches=("main",), start_paths=("docs", "api"))]

    catalog = aggregate_content(config, repositories).catalog

    component_version = catalog.get_component_version("server", "1.0")
    assert component_version is not None
    assert [origin.start_path for origin in component_version.origins] == ["docs", "api"]
    assert resolve_resource("server:api:reference.adoc", catalog) is not None


def test_conflicting_origins_fail_after_collection(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    repositories.add_ref(SERVER, "main", {"antora.yml": _version("server", "1.0")})
    repositories.add_ref(CLIENT, "main", {"antora.yml": _version("server", "1.0")})
    config.content.sources = [
        ContentSource(url=SERVER, branches=("main",)),
        ContentSource(url=CLIENT, branches=("main",)),
    ]

    with pytest.raises(ComponentVersionConflictError) as excinfo:
        aggregate_content(config, repositories)

    assert SERVER in str(excinfo.value)
    assert CLIENT in str(excinfo.value)


def test_missing_descriptor_on_sole_ref_is_an_error(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    _add_server(repositories)
    repositories.add_ref(CLIENT, "main", {"README.adoc": "= Client\n"})
    config.content.sources = [
        ContentSource(url=SERVER, branches=("v*",)),
        ContentSource(url=CLIENT, branches=("main",)),
    ]

    result = aggregate_content(config, repositories)

    assert [type(error) for error in result.errors] == [MissingDescriptorError]
    assert result.catalog.get_component("server") is not None


def test_missing_descriptor_among_several_refs_is_a_warning(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    _add_server(repositories)
    repositories.add_ref(SERVER, "main", {"README.adoc": "= Nothing here\n"})
    repositories.add_ref(SERVER, "v3.0", {"antora.yml": "name: [broken\n"})
    config.content.sources = [ContentSource(url=SERVER, branches=("main", "v*"))]

    result = aggregate_content(config, repositories)

    assert result.errors == []
    assert {type(warning) for warning in result.warnings} == {MissingDescriptorError, InvalidDescriptorError}
    assert [entry.version for entry in result.catalog.get_component("server").versions] == ["2.0", "1.0"]  # type: ignore[union-attr]


def test_unreachable_source_is_reported_while_others_load(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    _add_server(repositories)
    repositories.failing.add(CLIENT)
    config.content.sources = [
        ContentSource(url=CLIENT),
        ContentSource(url=SERVER, branches=("v*",)),
    ]

    result = aggregate_content(config, repositories)

    assert [type(error) for error in result.errors] == [NetworkError]
    assert result.catalog.get_component("server") is not None


def test_nothing_aggregated_raises(config: DocCatalogConfig, repositories: FakeRepositories) -> None:
    repositories.failing.add(SERVER)
    config.content.sources = [ContentSource(url=SERVER)]

    with pytest.raises(AggregationError) as excinfo:
        aggregate_content(config, repositories)

    assert isinstance(excinfo.value.errors[0], NetworkError)


def test_first_start_path_wins_duplicate_pages(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    # Both start paths contribute to server@1.0 and share one page path.
    repositories.add_ref(
        SERVER,
        "main",
        {
            "one/antora.yml": _version("server", "1.0"),
            "one/modules/ROOT/pages/index.adoc": "= From one\n",
            "two/antora.yml": _version("server", "1.0"),
            "two/modules/ROOT/pages/index.adoc": "= From two\n",
        },
    )
    config.content.sources = [ContentSource(url=SERVER, branches=("main",), start_paths=("one", "two"))]

    result = aggregate_content(config, repositories)

    page = resolve_resource("server::index.adoc", result.catalog)
    assert page is not None and page.contents == b"= From one\n"
    assert [type(warning) for warning in result.warnings] == [DuplicateFileError]


def test_catalog_follows_declaration_order_under_concurrency(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    repositories.add_ref(SERVER, "main", {"antora.yml": _version("docs", "1.0"), "modules/ROOT/pages/a.adoc": "= Server\n"})
    repositories.add_ref(CLIENT, "main", {"antora.yml": _version("docs", "1.0"), "modules/ROOT/pages/a.adoc": "= Client\n"})
    repositories.delays[SERVER] = 0.1
    config.runtime.fetch_concurrency = 2
    config.content.sources = [
        ContentSource(url=SERVER, branches=("main",)),
        ContentSource(url=CLIENT, branches=("main",)),
    ]

    with pytest.raises(ComponentVersionConflictError) as excinfo:
        aggregate_content(config, repositories)

    # The slower, first declared source owns the version.
    assert excinfo.value.first.url == SERVER  # type: ignore[attr-defined]
    assert excinfo.value.second.url == CLIENT  # type: ignore[attr-defined]


def test_async_entrypoint(config: DocCatalogConfig, repositories: FakeRepositories) -> None:
    _add_server(repositories)
    config.content.sources = [ContentSource(url=SERVER, branches=("v1.0",))]

    result = asyncio.run(aggregate(config, repositories))

    assert [component.name for component in result.catalog.get_components()] == ["server"]


def test_aggregator_uses_configured_descriptor_and_attributes(
    config: DocCatalogConfig, repositories: FakeRepositories
) -> None:
    repositories.add_ref(SERVER, "main", {"docs.yml": _version("server", "1.0")})
    config.content.descriptor = "docs.yml"
    config.attributes = {"product": "Acme"}
    config.content.sources = [ContentSource(url=SERVER, branches=("main",))]

    catalog = asyncio.run(ContentAggregator(config, repositories).aggregate()).catalog

    assert catalog.get_component_version("server", "1.0").attributes == {"product": "Acme"}  # type: ignore[union-attr]


def _work_item(source: ContentSource, *, kind: str = "branch", local: bool = False) -> WorkItem:
    handle = RepositoryHandle(url=source.url, path=source.url, local=local)  # type: ignore[arg-type]
    return WorkItem(source=source, handle=handle, ref=Ref("v1.0", kind, "abc123"), start_path="docs")


def test_edit_url_defaults_per_ref_kind() -> None:
    source = ContentSource(url=SERVER)
    path = "docs/modules/ROOT/pages/index.adoc"

    assert edit_url_for(_work_item(source), path) == f"https://example.com/org/server/edit/v1.0/{path}"
    assert edit_url_for(_work_item(source, kind="tag"), path) == f"https://example.com/org/server/blob/v1.0/{path}"


def test_edit_url_template_and_opt_out() -> None:
    template = ContentSource(url=SERVER, edit_url="{web_url}/-/edit/{refhash}/{path}")
    disabled = ContentSource(url=SERVER, edit_url=False)

    assert edit_url_for(_work_item(template), "a.adoc") == "https://example.com/org/server/-/edit/abc123/a.adoc"
    assert edit_url_for(_work_item(disabled), "a.adoc") is None
    assert edit_url_for(_work_item(ContentSource(url="/srv/docs"), local=True), "a.adoc") is None
