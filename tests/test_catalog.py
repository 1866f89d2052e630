"""Tests for guide_site.catalog."""

import pytest

from guide_site.catalog import GuideCatalog, description_html, load_catalog, slug
from guide_site.diagnostics import Severity
from guide_site.errors import CatalogError, ErrorCategory


@pytest.fixture
def catalog(fixtures_path) -> GuideCatalog:
    return load_catalog(fixtures_path / "site" / "guides.yaml")


def _catalog(*categories) -> GuideCatalog:
    return GuideCatalog.model_validate({"categories": list(categories)})


class TestLoadCatalog:
    def test_fixture_catalog(self, catalog):
        assert [c.cat_id for c in catalog.categories] == ["getting-started", "reference"]
        assert len(catalog.all_guides()) == 4

    def test_keywords_are_split(self, catalog):
        assert catalog.find_by_url("/guides/getting-started").keywords == ("intro", "first")

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError, match="not found") as exc_info:
            load_catalog(tmp_path / "guides.yaml")
        assert exc_info.value.category is ErrorCategory.CATALOG

    def test_invalid_yaml_has_line(self, write):
        path = write("guides.yaml", """
            categories:
              - category: A
                cat-id: [unclosed
        """)
        with pytest.raises(CatalogError) as exc_info:
            load_catalog(path)
        assert exc_info.value.location.line is not None

    def test_not_a_mapping(self, write):
        with pytest.raises(CatalogError, match="must be a mapping"):
            load_catalog(write("guides.yaml", "- a\n- b"))

    def test_schema_error_names_field(self, write):
        path = write("guides.yaml", """
            categories:
              - category: A
                cat-id: a
                guides:
                  - url: /guides/x
        """)
        with pytest.raises(CatalogError, match=r"categories\.0\.guides\.0\.title"):
            load_catalog(path)


class TestLookup:
    def test_find_by_url_ignores_trailing_slash(self, catalog):
        assert catalog.find_by_url("/guides/grpc-reference/").title == "gRPC Reference"

    def test_by_category(self, catalog):
        assert catalog.by_category("reference").category == "Reference"
        assert catalog.by_category("nope") is None

    def test_category_of(self, catalog):
        guide = catalog.find_by_url("/guides/getting-started")
        assert catalog.category_of(guide).cat_id == "getting-started"

    def test_slug_and_external(self, catalog):
        native = catalog.find_by_url("/guides/building-native-image")
        blog = catalog.find_by_url("https://quarkus.io/blog")
        assert native.slug == "building-native-image"
        assert not native.is_external
        assert blog.is_external

    @pytest.mark.parametrize(
        "url, expected",
        [
            ("/guides/cdi-reference/", "cdi-reference"),
            ("/guides/cdi-reference.html#beans", "cdi-reference"),
            ("cdi?x=1", "cdi"),
        ],
    )
    def test_slug(self, url, expected):
        assert slug(url) == expected


class TestSearch:
    def test_title_match_ranks_first(self, catalog):
        results = [g.title for g in catalog.search("reference")]
        assert results[0] == "gRPC Reference"

    def test_ranking_title_keyword_description(self):
        catalog = _catalog({
            "category": "A",
            "cat-id": "a",
            "guides": [
                {"title": "Described", "url": "/d", "description": "all about grpc"},
                {"title": "Keyworded", "url": "/k", "keywords": "grpc"},
                {"title": "gRPC guide", "url": "/t"},
            ],
        })
        assert [g.title for g in catalog.search("GRPC")] == ["gRPC guide", "Keyworded", "Described"]

    def test_every_word_must_match(self, catalog):
        assert [g.title for g in catalog.search("native graalvm")] == ["Building Native Executables"]
        assert catalog.search("native kafka") == []

    def test_duplicates_returned_once(self):
        entry = {"title": "Twice", "url": "/twice"}
        catalog = _catalog(
            {"category": "A", "cat-id": "a", "guides": [entry]},
            {"category": "B", "cat-id": "b", "guides": [entry]},
        )
        assert len(catalog.search("twice")) == 1

    def test_empty_query(self, catalog):
        assert catalog.search("   ") == []


class TestCheck:
    def test_missing_and_unlisted_sources(self, catalog):
        found = catalog.check({"getting-started", "grpc-reference", "lifecycle"})
        by_code = {d.code: d for d in found}
        assert by_code["catalog-missing-source"].severity is Severity.WARNING
        assert "building-native-image" in by_code["catalog-missing-source"].message
        assert by_code["catalog-unlisted-source"].severity is Severity.INFO
        assert "lifecycle.adoc" in by_code["catalog-unlisted-source"].message

    def test_external_guides_are_not_checked(self, catalog):
        found = catalog.check({"getting-started", "grpc-reference", "building-native-image"})
        assert found == []

    def test_source_checks_skipped_without_slugs(self, catalog):
        assert catalog.check() == []

    def test_duplicates(self):
        entry = {"title": "Twice", "url": "/guides/twice"}
        catalog = _catalog(
            {"category": "A", "cat-id": "a", "guides": [entry]},
            {"category": "B", "cat-id": "a", "guides": [entry]},
        )
        codes = [d.code for d in catalog.check()]
        assert codes == ["catalog-duplicate-category", "catalog-duplicate-url"]


class TestDescriptionHtml:
    def test_paragraph_with_link_is_escaped(self):
        assert str(description_html("Uses [CDI](https://cdi.dev) & <more>.")) == (
            '<p>Uses <a href="https://cdi.dev">CDI</a> &amp; &lt;more&gt;.</p>'
        )

    def test_paragraphs_and_bullets(self, catalog):
        native = catalog.find_by_url("/guides/building-native-image")
        assert str(native.description_html()) == (
            "<p>Build native executables with GraalVM.</p><ul><li>small footprint</li><li>fast startup</li></ul>"
        )

    def test_empty(self):
        assert str(description_html("")) == ""
