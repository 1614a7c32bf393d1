"""Tests for the content catalog."""

from __future__ import annotations

from dataclasses import replace

import pytest

from doccatalog.catalog import ContentCatalog
from doccatalog.errors import ComponentVersionConflictError, DocCatalogError, DuplicateFileError
from doccatalog.models import ComponentVersion, ResourceId, VirtualFile
from tests._fixtures.catalog_builder import add_file, add_version, make_origin


def test_versions_are_ordered_newest_first() -> None:
    catalog = ContentCatalog()
    for version in ("1.0", "2.0", "1.10", "main"):
        add_version(catalog, "server", version)

    component = catalog.get_component("server")

    assert component is not None
    assert [entry.version for entry in component.versions] == ["2.0", "1.10", "1.0", "main"]
    assert component.latest.version == "2.0"


def test_latest_skips_prereleases() -> None:
    catalog = ContentCatalog()
    add_version(catalog, "server", "1.0", title="Server One")
    add_version(catalog, "server", "2.0", prerelease="beta", title="Server Two")

    latest = catalog.latest("server")

    assert latest is not None and latest.version == "1.0"
    assert catalog.get_component("server").title == "Server One"  # type: ignore[union-attr]


def test_latest_falls_back_to_newest_prerelease() -> None:
    catalog = ContentCatalog()
    add_version(catalog, "server", "1.0", prerelease=True)
    add_version(catalog, "server", "2.0", prerelease=True)

    assert catalog.latest("server").version == "2.0"  # type: ignore[union-attr]
    assert catalog.latest("missing") is None


def test_components_are_sorted_by_name() -> None:
    catalog = ContentCatalog()
    for name in ("zeta", "alpha", "mid"):
        add_version(catalog, name, "1.0")

    assert [component.name for component in catalog.get_components()] == ["alpha", "mid", "zeta"]


def test_same_ref_registration_merges_start_paths() -> None:
    catalog = ContentCatalog()
    first = add_version(catalog, "server", "1.0")
    second = ComponentVersion(
        name="server",
        version="1.0",
        title="Server",
        display_version="1.0",
        origins=[make_origin("server", "1.0", start_path="extra")],
    )

    merged = catalog.add_component_version(second)

    assert merged is first
    assert [origin.start_path for origin in first.origins] == ["", "extra"]
    assert len(catalog.get_component("server").versions) == 1  # type: ignore[union-attr]


def test_different_origin_conflicts() -> None:
    catalog = ContentCatalog()
    add_version(catalog, "server", "1.0")
    other = ComponentVersion(
        name="server",
        version="1.0",
        title="Server",
        display_version="1.0",
        origins=[make_origin("server", "1.0", refname="release/1.0")],
    )

    with pytest.raises(ComponentVersionConflictError) as excinfo:
        catalog.add_component_version(other)

    assert "1.0@server" in str(excinfo.value)


def test_url_spellings_of_one_repository_merge() -> None:
    catalog = ContentCatalog()
    mirror = "/cache/content/server-0123.git"
    origin = replace(make_origin("server", "1.0"), repository=mirror)
    catalog.add_component_version(
        ComponentVersion(name="server", version="1.0", title="Server", display_version="1.0", origins=[origin])
    )
    respelled = replace(origin, url="https://example.com/org/server/", start_path="extra")

    merged = catalog.add_component_version(
        ComponentVersion(name="server", version="1.0", title="Server", display_version="1.0", origins=[respelled])
    )

    assert [entry.url for entry in merged.origins] == [origin.url, respelled.url]

    elsewhere = replace(origin, repository="/cache/content/server-4567.git")
    with pytest.raises(ComponentVersionConflictError):
        catalog.add_component_version(
            ComponentVersion(name="server", version="1.0", title="Server", display_version="1.0", origins=[elsewhere])
        )


def test_files_require_a_registered_version() -> None:
    catalog = ContentCatalog()
    orphan = VirtualFile(relative="index.adoc", family="page", module="ROOT", component="ghost", version="1.0")

    with pytest.raises(DocCatalogError):
        catalog.add_file(orphan)


def test_duplicate_files_are_rejected() -> None:
    catalog = ContentCatalog()
    component_version = add_version(catalog, "server", "1.0")
    add_file(catalog, component_version, "index.adoc")

    with pytest.raises(DuplicateFileError):
        add_file(catalog, component_version, "index.adoc")


def test_get_by_id_round_trip() -> None:
    catalog = ContentCatalog()
    component_version = add_version(catalog, "server", "1.0")
    page = add_file(catalog, component_version, "topic/setup.adoc", module="admin")

    assert page.key == ResourceId("server", "1.0", "admin", "page", "topic/setup.adoc")
    assert catalog.get_by_id(page.key) is page
    assert catalog.get_by_id(ResourceId("server", "1.0", "ROOT", "page", "topic/setup.adoc")) is None


def test_get_files_filters_and_restarts() -> None:
    catalog = ContentCatalog()
    component_version = add_version(catalog, "server", "1.0")
    add_file(catalog, component_version, "index.adoc")
    add_file(catalog, component_version, "logo.png", family="image")

    images = list(catalog.get_files(lambda file: file.family == "image"))

    assert [file.relative for file in images] == ["logo.png"]
    assert len(list(catalog.get_files())) == 2
    assert len(list(catalog.get_files())) == 2
    assert len(catalog) == 2


def test_register_aliases_reports_problems() -> None:
    catalog = ContentCatalog()
    component_version = add_version(catalog, "server", "1.0")
    add_file(catalog, component_version, "index.adoc", contents=":page-aliases: start.adoc, other::moved.adoc\n")
    add_file(catalog, component_version, "home.adoc", contents=":page-aliases: start.adoc\n")

    problems = catalog.register_aliases()

    alias = catalog.get_by_id(ResourceId("server", "1.0", "ROOT", "alias", "start.adoc"))
    assert alias is not None
    assert alias.rel is not None and alias.rel.relative in {"index.adoc", "home.adoc"}
    # The unknown component and the second claim on start.adoc are both skipped.
    assert len(problems) == 2
    assert any(isinstance(problem, DuplicateFileError) for problem in problems)


def test_alias_may_not_shadow_existing_page() -> None:
    catalog = ContentCatalog()
    component_version = add_version(catalog, "server", "1.0")
    add_file(catalog, component_version, "index.adoc", contents=":page-aliases: home.adoc\n")
    add_file(catalog, component_version, "home.adoc")

    problems = catalog.register_aliases()

    assert len(problems) == 1
    assert catalog.get_by_id(ResourceId("server", "1.0", "ROOT", "alias", "home.adoc")) is None


def test_start_page_resolution() -> None:
    catalog = ContentCatalog()
    default = add_version(catalog, "server", "1.0")
    custom = add_version(catalog, "server", "2.0", start_page="guide:welcome.adoc")
    index = add_file(catalog, default, "index.adoc")
    welcome = add_file(catalog, custom, "welcome.adoc", module="guide")

    assert catalog.resolve_start_page("server", "1.0") is index
    assert catalog.resolve_start_page("server") is welcome
    assert catalog.resolve_start_page("missing") is None


def test_frozen_catalog_rejects_writes_but_serves_reads() -> None:
    catalog = ContentCatalog()
    component_version = add_version(catalog, "server", "1.0")
    page = add_file(catalog, component_version, "index.adoc")

    catalog.freeze()

    assert catalog.frozen is True
    with pytest.raises(DocCatalogError):
        add_version(catalog, "server", "2.0")
    with pytest.raises(DocCatalogError):
        add_file(catalog, component_version, "other.adoc")
    with pytest.raises(DocCatalogError):
        catalog.register_aliases()
    assert catalog.get_by_id(page.key) is page
