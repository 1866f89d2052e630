"""
Root Typer application for the guide-site CLI.

Site commands (``build``, ``validate``, ``render``) live on the root
app; catalog and configuration reference commands are sub-apps.
"""

from __future__ import annotations

from pathlib import Path

import typer
from typer import Typer

from guide_site import __version__
from guide_site.logging import configure_logging

app = Typer(
    name="guide-site",
    help="guide-site: build a guides website from AsciiDoc sources.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"guide-site {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings YAML file.",
        envvar="GUIDES_CONFIG",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="DEBUG, INFO, WARNING or ERROR (default: GUIDES_LOG_LEVEL or INFO).",
    ),
    log_format: str | None = typer.Option(
        None,
        "--log-format",
        help="console or json (default: GUIDES_LOG_FORMAT or console).",
    ),
) -> None:
    """guide-site CLI: build, validate and inspect a guides site."""
    # force: stderr may have been swapped since the last invocation
    configure_logging(level=log_level, format=log_format, force=True)
    ctx.obj = {"config_file": config}


# ── Sub-command registration ─────────────────────────────────────────────

from guide_site.cli.catalog import app as catalog_app  # noqa: E402
from guide_site.cli.config_ref import app as config_ref_app  # noqa: E402
from guide_site.cli.site import build_cmd, render_cmd, validate_cmd  # noqa: E402

app.command("build")(build_cmd)
app.command("validate")(validate_cmd)
app.command("render")(render_cmd)
app.add_typer(catalog_app, name="catalog", help="Guides catalog operations.")
app.add_typer(config_ref_app, name="config-ref", help="Configuration reference tables.")
