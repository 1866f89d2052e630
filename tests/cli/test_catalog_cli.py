"""Tests for ``guide-site catalog``."""

import json


class TestList:
    def test_list_json(self, cli, config_file):
        result = cli("catalog", "list", "--json", config=config_file)
        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert len(rows) == 4
        assert rows[0] == {
            "title": "Getting Started",
            "url": "/guides/getting-started",
            "category": "getting-started",
            "keywords": "intro first",
        }

    def test_list_category(self, cli, config_file):
        result = cli("catalog", "list", "--category", "reference", "--json", config=config_file)
        assert [r["title"] for r in json.loads(result.stdout)] == ["gRPC Reference", "Blog"]

    def test_unknown_category(self, cli, config_file):
        result = cli("catalog", "list", "--category", "nope", config=config_file)
        assert result.exit_code == 1
        assert "no category" in result.output

    def test_file_option(self, cli, site_dir):
        result = cli("catalog", "list", "--file", site_dir / "guides.yaml", "--json")
        assert result.exit_code == 0, result.output
        assert len(json.loads(result.stdout)) == 4

    def test_table_output(self, cli, config_file):
        result = cli("catalog", "list", config=config_file)
        assert result.exit_code == 0, result.output
        assert "Guides (4)" in result.output

    def test_no_catalog_configured(self, cli):
        result = cli("catalog", "list")
        assert result.exit_code == 1
        assert "no catalog file" in result.output


class TestSearch:
    def test_search_json(self, cli, config_file):
        result = cli("catalog", "search", "native", "--json", config=config_file)
        assert [r["title"] for r in json.loads(result.stdout)] == ["Building Native Executables"]

    def test_no_results(self, cli, config_file):
        result = cli("catalog", "search", "kafka", config=config_file)
        assert result.exit_code == 0
        assert "No guides match" in result.output


class TestCheck:
    def test_check_json(self, cli, config_file):
        result = cli("catalog", "check", "--json", config=config_file)
        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["ok"] is True
        assert [d["code"] for d in data["diagnostics"]] == ["catalog-missing-source"]

    def test_check_strict(self, cli, config_file):
        result = cli("catalog", "check", "--strict", config=config_file)
        assert result.exit_code == 1
        assert "catalog-missing-source" in result.output

    def test_check_clean(self, cli, config_file, site_dir):
        (site_dir / "docs" / "building-native-image.adoc").write_text("= Native\n", encoding="utf-8")
        result = cli("catalog", "check", "--strict", config=config_file)
        assert result.exit_code == 0, result.output
        assert "Catalog matches 3 guide sources" in result.output
