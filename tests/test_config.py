"""Tests for guide_site.config.SiteSettings."""

from pathlib import Path

import pytest

from guide_site.config import SiteSettings
from guide_site.errors import ErrorCategory, SettingsError


class TestDefaults:
    def test_defaults(self):
        settings = SiteSettings()
        assert settings.source_dir == Path("docs/src/main/asciidoc")
        assert settings.catalog_file is None
        assert settings.attribute_missing == "skip"
        assert not settings.strict

    def test_derived_paths(self):
        settings = SiteSettings(source_dir=Path("docs"))
        assert settings.generated_path == Path("docs/_generated")
        assert settings.images_path == Path("docs/images")

    def test_absolute_generated_dir_is_kept(self, tmp_path):
        settings = SiteSettings(source_dir=Path("docs"), generated_dir=tmp_path / "gen")
        assert settings.generated_path == tmp_path / "gen"


class TestEnvironment:
    def test_prefix(self, monkeypatch):
        monkeypatch.setenv("GUIDES_SOURCE_DIR", "guides")
        monkeypatch.setenv("GUIDES_STRICT", "true")
        settings = SiteSettings()
        assert settings.source_dir == Path("guides")
        assert settings.strict

    def test_dict_from_json_env(self, monkeypatch):
        monkeypatch.setenv("GUIDES_ATTRIBUTES", '{"quarkus-version": "3.2.0"}')
        assert SiteSettings().attributes == {"quarkus-version": "3.2.0"}

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("GUIDES_SITE_TITLE", "From env")
        assert SiteSettings(site_title="Explicit").site_title == "Explicit"

    def test_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("GUIDES_BASE_URL=/docs\n", encoding="utf-8")
        assert SiteSettings().base_url == "/docs"


class TestValidation:
    def test_attribute_values_are_strings(self):
        settings = SiteSettings(attributes={"version": 3, "flag": None, "on": True})
        assert settings.attributes == {"version": "3", "flag": "", "on": "True"}

    def test_log_level_is_uppercased(self):
        assert SiteSettings(log_level="debug").log_level == "DEBUG"

    def test_invalid_policy(self):
        with pytest.raises(ValueError):
            SiteSettings(attribute_missing="explode")


class TestFromYaml:
    def test_relative_paths_resolve_against_file(self, write, tmp_path):
        path = write("config/guide-site.yaml", """
            source_dir: ../docs
            catalog_file: guides.yaml
            site_title: Quarkus Guides
            attributes:
              quarkus-version: 3.2.0
        """)
        settings = SiteSettings.from_yaml(path)
        assert settings.source_dir == tmp_path / "config" / ".." / "docs"
        assert settings.catalog_file == tmp_path / "config" / "guides.yaml"
        assert settings.site_title == "Quarkus Guides"
        assert settings.attributes == {"quarkus-version": "3.2.0"}

    def test_overrides_win_and_none_is_ignored(self, write):
        path = write("guide-site.yaml", "site_title: File\nstrict: false\n")
        settings = SiteSettings.from_yaml(path, site_title=None, strict=True)
        assert settings.site_title == "File"
        assert settings.strict

    def test_empty_file(self, write):
        assert SiteSettings.from_yaml(write("guide-site.yaml", "")).site_title == "Guides"

    def test_missing_file(self, tmp_path):
        with pytest.raises(SettingsError, match="not found") as exc_info:
            SiteSettings.from_yaml(tmp_path / "nope.yaml")
        assert exc_info.value.category is ErrorCategory.CONFIG

    def test_invalid_yaml(self, write):
        with pytest.raises(SettingsError, match="invalid YAML"):
            SiteSettings.from_yaml(write("guide-site.yaml", "site_title: [oops"))

    def test_not_a_mapping(self, write):
        with pytest.raises(SettingsError, match="mapping"):
            SiteSettings.from_yaml(write("guide-site.yaml", "- a"))

    def test_invalid_value(self, write):
        with pytest.raises(SettingsError, match="invalid settings"):
            SiteSettings.from_yaml(write("guide-site.yaml", "max_include_depth: 0"))

    def test_to_dict_is_json_ready(self):
        data = SiteSettings(source_dir=Path("docs")).to_dict()
        assert data["source_dir"] == "docs"
        assert data["attribute_missing"] == "skip"
