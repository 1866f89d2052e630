"""Tests for guide_site.config_reference.loader."""

import pytest

from guide_site.config_reference.loader import load_metadata, load_metadata_dir
from guide_site.errors import ConfigReferenceError, ErrorCategory


class TestLoadMetadata:
    def test_yaml_root(self, fixtures_path):
        [root] = load_metadata(fixtures_path / "site" / "metadata" / "grpc.yaml")
        assert root.extension == "grpc"
        assert root.name == "gRPC"
        assert len(root.properties) == 4
        assert root.sections[0].title == "TLS"

    def test_json_root(self, fixtures_path):
        [root] = load_metadata(fixtures_path / "site" / "metadata" / "http.json")
        assert root.properties[0].default == "8080"

    def test_list_of_roots(self, write):
        path = write("meta.yaml", """
            - extension: a
            - extension: b
        """)
        assert [r.extension for r in load_metadata(path)] == ["a", "b"]

    def test_empty_file(self, write):
        assert load_metadata(write("meta.yaml", "")) == []

    def test_invalid_yaml(self, write):
        path = write("meta.yaml", "extension: [unclosed")
        with pytest.raises(ConfigReferenceError) as exc_info:
            load_metadata(path)
        assert exc_info.value.category is ErrorCategory.CONFIG_REFERENCE
        assert exc_info.value.location.path == str(path)

    def test_invalid_json(self, write):
        with pytest.raises(ConfigReferenceError):
            load_metadata(write("meta.json", "{not json"))

    def test_schema_error_names_root_and_field(self, write):
        path = write("meta.yaml", """
            extension: grpc
            properties:
              - type: int
        """)
        with pytest.raises(ConfigReferenceError) as exc_info:
            load_metadata(path)
        message = exc_info.value.message
        assert message.startswith("root #0 (grpc): properties.0.key")

    def test_non_mapping_entry(self, write):
        with pytest.raises(ConfigReferenceError, match="expected a mapping"):
            load_metadata(write("meta.yaml", "- just a string"))


class TestLoadMetadataDir:
    def test_loads_all_files_sorted(self, fixtures_path):
        roots = load_metadata_dir(fixtures_path / "site" / "metadata")
        assert [r.extension for r in roots] == ["grpc", "http"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ConfigReferenceError, match="directory not found"):
            load_metadata_dir(tmp_path / "missing")

    def test_same_extension_is_merged(self, write, tmp_path):
        write("meta/a.yaml", """
            extension: grpc
            properties:
              - key: quarkus.grpc.a
        """)
        write("meta/nested/b.yml", """
            extension: grpc
            name: gRPC
            properties:
              - key: quarkus.grpc.b
        """)
        [root] = load_metadata_dir(tmp_path / "meta")
        assert root.name == "gRPC"
        assert [p.key for p in root.properties] == ["quarkus.grpc.a", "quarkus.grpc.b"]

    def test_other_files_are_ignored(self, write, tmp_path):
        write("meta/README.md", "# notes")
        write("meta/a.yaml", "extension: a")
        assert len(load_metadata_dir(tmp_path / "meta")) == 1
