"""Fixtures for CLI tests: a settings file over the fixture site and a runner."""

import pytest
from typer.testing import CliRunner

from guide_site.cli.app import app


@pytest.fixture
def config_file(site_dir):
    path = site_dir / "guide-site.yaml"
    path.write_text(
        "source_dir: docs\n"
        "catalog_file: guides.yaml\n"
        "config_metadata_dir: metadata\n"
        "output_dir: ../out\n"
        "site_title: Fixture Guides\n"
        "attributes:\n"
        "  quarkus-version: 3.2.0\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def cli():
    """Invoke the app quietly so stdout only carries command output."""
    runner = CliRunner()

    def _invoke(*args, config=None):
        options = ["--log-level", "ERROR"]
        if config is not None:
            options += ["--config", str(config)]
        return runner.invoke(app, [*options, *(str(a) for a in args)])

    return _invoke
