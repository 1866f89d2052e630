"""
CLI: ``guide-site build|validate|render`` — whole-site and single-file commands.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.markup import escape
from rich.table import Table

from guide_site.builder import BuildReport, SiteBuilder
from guide_site.cli.utils import console, exit_status, fail, get_settings, print_diagnostics, print_json
from guide_site.diagnostics import DiagnosticLog, Severity
from guide_site.errors import GuideSiteError
from guide_site.renderers.html import HtmlRenderer


def _parse_attributes(values: list[str] | None) -> dict[str, str] | None:
    if not values:
        return None
    attributes = {}
    for value in values:
        name, _, text = value.partition("=")
        attributes[name.strip()] = text
    return attributes


def _summary(report: BuildReport, title: str) -> None:
    counts = report.counts()
    table = Table(title=title, show_header=False, pad_edge=False)
    table.add_column("metric", style="cyan")
    table.add_column("value", justify="right")
    for key, value in counts.items():
        table.add_row(key, str(value))
    table.add_row("duration", f"{report.duration_ms:.0f} ms")
    console.print(table)

    failed = [g for g in report.guides if not g.ok]
    for guide in failed:
        console.print(f"[red]✗[/red] {guide.slug}: {escape(guide.error or '')}", highlight=False)


def _run(
    ctx: typer.Context,
    *,
    write: bool,
    only: list[str] | None,
    source: Path | None,
    output: Path | None,
    strict: bool,
    json_out: bool,
    quiet: bool,
) -> None:
    settings = get_settings(ctx, source_dir=source, output_dir=output)
    builder = SiteBuilder(settings)
    try:
        report = builder.build(only or None) if write else builder.validate(only or None)
    except GuideSiteError as e:
        fail(e)

    strict = strict or settings.strict
    if json_out:
        print_json({"ok": report.ok(strict), **report.to_dict()})
    else:
        print_diagnostics(report.diagnostics, min_severity=Severity.WARNING if quiet else Severity.INFO)
        _summary(report, "Build" if write else "Validation")
        if report.ok(strict):
            console.print("[green]✓[/green] " + ("Site built" if write else "No problems found"))
    if not report.ok(strict):
        raise typer.Exit(code=1)


# ── guide-site build ─────────────────────────────────────────────────────


def build_cmd(
    ctx: typer.Context,
    only: list[str] | None = typer.Argument(None, help="Guide names to build (default: all)."),
    source: Path | None = typer.Option(None, "--source", "-s", help="AsciiDoc source directory."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output directory."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on warnings too."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output the build report as JSON."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide info diagnostics."),
) -> None:
    """Build the site: every guide to HTML plus the catalog index.

    Example:
        guide-site build
        guide-site build getting-started cdi-reference --strict
    """
    _run(ctx, write=True, only=only, source=source, output=output, strict=strict, json_out=json_out, quiet=quiet)


# ── guide-site validate ──────────────────────────────────────────────────


def validate_cmd(
    ctx: typer.Context,
    only: list[str] | None = typer.Argument(None, help="Guide names to check (default: all)."),
    source: Path | None = typer.Option(None, "--source", "-s", help="AsciiDoc source directory."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on warnings too."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output the report as JSON."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Hide info diagnostics."),
) -> None:
    """Load, parse and check every guide without writing output."""
    _run(ctx, write=False, only=only, source=source, output=None, strict=strict, json_out=json_out, quiet=quiet)


# ── guide-site render ────────────────────────────────────────────────────


def render_cmd(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="AsciiDoc file to render."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write HTML here instead of stdout."),
    attribute: list[str] | None = typer.Option(
        None, "--attribute", "-a", help="Document attribute name=value (repeatable)."
    ),
    body_only: bool = typer.Option(False, "--body-only", help="Emit the content without the page template."),
) -> None:
    """Render one AsciiDoc file to HTML.

    Example:
        guide-site render getting-started.adoc -o /tmp/getting-started.html
        guide-site render snippet.adoc -a project-version=3.15 --body-only
    """
    settings = get_settings(ctx)
    extra = _parse_attributes(attribute)
    if extra:
        settings = settings.model_copy(update={"attributes": {**settings.attributes, **extra}})

    diagnostics = DiagnosticLog()
    builder = SiteBuilder(settings, diagnostics)
    renderer = HtmlRenderer(settings, diagnostics=diagnostics)
    try:
        document = builder.load_guide(file)
        html = str(renderer.convert_body(document)) if body_only else renderer.render(document)
    except GuideSiteError as e:
        fail(e)

    print_diagnostics(diagnostics)
    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(html, encoding="utf-8")
        console.print(f"[green]✓[/green] Wrote {output}", highlight=False)
    else:
        typer.echo(html)
    exit_status(diagnostics, settings.strict)
