"""Tests for guide_site.builder — whole-site builds over tests/fixtures/site."""

import json

import pytest

from guide_site.builder import SiteBuilder
from guide_site.config import SiteSettings
from guide_site.errors import SourceNotFoundError


@pytest.fixture
def builder(site_settings):
    return SiteBuilder(site_settings)


class TestDiscover:
    def test_partials_and_generated_files_are_skipped(self, builder, site_dir):
        (site_dir / "docs" / "_generated").mkdir()
        (site_dir / "docs" / "_generated" / "x.adoc").write_text("x", encoding="utf-8")
        assert [p.name for p in builder.discover()] == ["getting-started.adoc", "grpc-reference.adoc"]

    def test_missing_source_dir(self, tmp_path):
        builder = SiteBuilder(SiteSettings(source_dir=tmp_path / "missing"))
        with pytest.raises(SourceNotFoundError):
            builder.discover()

    def test_load_guide(self, builder, site_dir):
        document = builder.load_guide(site_dir / "docs" / "getting-started.adoc")
        assert document.title == "Getting Started"
        assert document.attributes["quarkus-version"] == "3.2.0"
        assert [s.title for s in document.sections] == [
            "Prerequisites",
            "Creating the project",
            "Running the application",
        ]


@pytest.mark.slow
class TestBuild:
    def test_build_writes_guides_index_and_images(self, builder, tmp_path):
        report = builder.build()
        out = tmp_path / "out"
        assert report.ok()
        assert [g.slug for g in report.guides] == ["getting-started", "grpc-reference"]
        assert all(g.output is not None for g in report.guides)
        assert (out / "index.html").is_file()
        assert (out / "images" / "architecture.svg").is_file()

    def test_guide_content(self, builder, tmp_path):
        builder.build()
        html = (tmp_path / "out" / "getting-started.html").read_text(encoding="utf-8")
        assert "This guide uses Quarkus 3.2.0." in html
        assert "quarkus-maven-plugin:3.2.0:create" in html
        assert '<h2 id="_prerequisites">Prerequisites</h2>' in html
        assert "Native mode is supported." in html
        assert "JVM mode only." not in html
        assert '<a href="#_running_the_application">Running the application</a>' in html
        assert '<a href="grpc-reference.html#configuration-reference">the gRPC reference</a>' in html
        assert '<img src="images/architecture.svg" alt="Architecture">' in html
        assert '<i class="fa icon-note" title="Note"></i>' in html

    def test_config_reference_is_generated_and_included(self, builder, site_dir, tmp_path):
        report = builder.build()
        generated = site_dir / "docs" / "_generated" / "config"
        assert (generated / "grpc.adoc").is_file()
        assert generated / "all-config.adoc" in report.written
        html = (tmp_path / "out" / "grpc-reference.html").read_text(encoding="utf-8")
        assert '<a id="grpc_quarkus-grpc-server-port"></a>' in html
        assert "QUARKUS_GRPC_SERVER_PORT" in html

    def test_unchanged_includes_are_not_rewritten(self, site_settings, site_dir):
        SiteBuilder(site_settings).build()
        report = SiteBuilder(site_settings).build()
        generated = site_dir / "docs" / "_generated"
        assert not any(generated in p.parents for p in report.written)

    def test_catalog_drift_is_a_warning(self, builder):
        report = builder.build()
        assert [d.code for d in report.diagnostics.warnings] == ["catalog-missing-source"]
        assert report.ok()
        assert not report.ok(strict=True)

    def test_index_page(self, builder, tmp_path):
        builder.build()
        html = (tmp_path / "out" / "index.html").read_text(encoding="utf-8")
        assert '<a href="/guides/getting-started.html">Getting Started</a>' in html
        assert '<span class="unavailable">Building Native Executables</span>' in html

    def test_index_keeps_guides_from_earlier_builds(self, site_settings, tmp_path):
        SiteBuilder(site_settings).build()
        report = SiteBuilder(site_settings).build(only=["getting-started"])
        assert [g.slug for g in report.guides] == ["getting-started"]
        html = (tmp_path / "out" / "index.html").read_text(encoding="utf-8")
        assert '<a href="/guides/grpc-reference.html">gRPC Reference</a>' in html

    def test_unknown_guide_name(self, builder):
        report = builder.build(only=["nope.adoc"])
        [error] = report.diagnostics.by_code("guide-not-found")
        assert "nope" in error.message
        assert not report.ok()

    def test_report_is_json_serializable(self, builder):
        data = json.loads(json.dumps(builder.build().to_dict()))
        assert data["counts"]["guides"] == 2
        assert data["counts"]["failed"] == 0


class TestValidate:
    def test_validate_writes_no_output(self, builder, tmp_path):
        report = builder.validate()
        assert report.ok()
        assert report.written == []
        assert not (tmp_path / "out").exists()
        assert [g.title for g in report.guides] == ["Getting Started", "gRPC Reference"]

    def test_validate_leaves_source_tree_untouched(self, builder, site_settings):
        report = builder.validate()
        assert not site_settings.generated_path.exists()
        assert not report.diagnostics.by_code("include-optional-missing")

    def test_runs_do_not_share_diagnostics(self, builder):
        first = builder.validate()
        second = builder.validate()
        assert len(second.diagnostics) == len(first.diagnostics) == 1
        built = builder.build()
        assert [d.code for d in built.diagnostics] == [d.code for d in first.diagnostics]
        assert second.diagnostics is not first.diagnostics

    def test_unresolved_xrefs(self, builder, site_dir):
        (site_dir / "docs" / "xrefs.adoc").write_text(
            "= Xrefs\n\n"
            "See <<nowhere>>, xref:missing.adoc[x] and xref:getting-started.adoc#nope[y].\n",
            encoding="utf-8",
        )
        report = builder.validate()
        messages = sorted(d.message for d in report.diagnostics.by_code("xref-unresolved"))
        assert messages == [
            "cross reference to missing anchor: getting-started.adoc#nope",
            "cross reference to missing document: missing.adoc",
            "possible invalid reference: nowhere",
        ]
        assert all(d.location.line == 3 for d in report.diagnostics.by_code("xref-unresolved"))

    def test_failing_guide_does_not_stop_the_run(self, builder, site_dir, tmp_path):
        (site_dir / "docs" / "broken.adoc").write_bytes(b"\xff\xfe= Broken\n")
        report = builder.build()
        broken = next(g for g in report.guides if g.slug == "broken")
        assert not broken.ok
        assert "not valid UTF-8" in broken.error
        assert report.diagnostics.by_code("guide-failed")
        assert (tmp_path / "out" / "getting-started.html").is_file()
        assert report.counts()["failed"] == 1
        assert not report.ok()

    def test_missing_include_is_an_error(self, builder, site_dir):
        (site_dir / "docs" / "partial.adoc").write_text("include::nope.adoc[]\n", encoding="utf-8")
        report = builder.validate()
        [error] = report.diagnostics.by_code("include-not-found")
        assert error.location.path == "partial.adoc"
        assert error.location.line == 1
        assert not report.ok()

    def test_missing_catalog(self, site_settings, site_dir):
        settings = site_settings.model_copy(update={"catalog_file": site_dir / "missing.yaml"})
        report = SiteBuilder(settings).validate()
        assert report.diagnostics.by_code("catalog-invalid")
        assert [g.slug for g in report.guides] == ["getting-started", "grpc-reference"]

    def test_invalid_metadata(self, builder, site_dir):
        (site_dir / "metadata" / "broken.yaml").write_text("extension: [unclosed\n", encoding="utf-8")
        report = builder.validate()
        [error] = report.diagnostics.by_code("config-reference-invalid")
        assert error.location.path.endswith("broken.yaml")
        assert report.diagnostics.by_code("include-optional-missing")

    def test_no_catalog_or_metadata_configured(self, site_dir, tmp_path):
        settings = SiteSettings(source_dir=site_dir / "docs", output_dir=tmp_path / "out")
        report = SiteBuilder(settings).build()
        assert report.ok(strict=True)
        assert not (tmp_path / "out" / "index.html").exists()
