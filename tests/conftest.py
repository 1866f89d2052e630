"""
Shared pytest fixtures for guide-site tests.

This module provides:
- Environment isolation (no GUIDES_* variables or .env leak into tests)
- A ``write`` helper that creates dedented source files under tmp_path
- A ``parse`` helper that turns AsciiDoc text into a Document
- A copy of the fixture site under tests/fixtures/site

Usage:
    def test_something(write, parse):
        write("partial.adoc", "included text")
        doc = parse("include::partial.adoc[]")
"""

import os
import shutil
import textwrap
from pathlib import Path

import pytest

from guide_site.asciidoc import parse_document
from guide_site.config import SiteSettings
from guide_site.diagnostics import DiagnosticLog

FIXTURES = Path(__file__).parent / "fixtures"


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Run every test in its own directory with no GUIDES_* settings."""
    for key in list(os.environ):
        if key.startswith("GUIDES_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)


# =============================================================================
# Source helpers
# =============================================================================


@pytest.fixture(scope="session")
def fixtures_path() -> Path:
    return FIXTURES


@pytest.fixture
def write(tmp_path):
    """Write a dedented file relative to tmp_path and return its path."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def diagnostics() -> DiagnosticLog:
    return DiagnosticLog()


@pytest.fixture
def parse(tmp_path, diagnostics):
    """Parse dedented AsciiDoc text as ``tmp_path/doc.adoc``."""

    def _parse(content: str, attributes: dict[str, str] | None = None):
        text = textwrap.dedent(content).lstrip("\n")
        return parse_document(tmp_path / "doc.adoc", attributes, diagnostics, text=text)

    return _parse


# =============================================================================
# Fixture site
# =============================================================================


@pytest.fixture
def site_dir(tmp_path) -> Path:
    """Writable copy of tests/fixtures/site."""
    target = tmp_path / "site"
    shutil.copytree(FIXTURES / "site", target)
    return target


@pytest.fixture
def site_settings(site_dir, tmp_path) -> SiteSettings:
    return SiteSettings(
        source_dir=site_dir / "docs",
        catalog_file=site_dir / "guides.yaml",
        config_metadata_dir=site_dir / "metadata",
        output_dir=tmp_path / "out",
        attributes={"quarkus-version": "3.2.0"},
    )
