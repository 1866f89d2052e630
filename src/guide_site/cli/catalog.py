"""
CLI: ``guide-site catalog`` — list, search and check the guides catalog.
"""

from __future__ import annotations

from pathlib import Path

import typer

from guide_site.catalog import GuideCatalog, GuideEntry, load_catalog
from guide_site.cli.utils import (
    console,
    err_console,
    exit_status,
    fail,
    get_settings,
    print_diagnostics,
    print_json,
    print_table,
)
from guide_site.diagnostics import DiagnosticLog
from guide_site.errors import GuideSiteError, Location

app = typer.Typer(no_args_is_help=True)


def _load(ctx: typer.Context, catalog_file: Path | None) -> tuple[GuideCatalog, Path]:
    settings = get_settings(ctx, catalog_file=catalog_file)
    if settings.catalog_file is None:
        err_console.print("[bold red]Error[/bold red]: no catalog file (use --file or set catalog_file)")
        raise typer.Exit(code=1)
    try:
        return load_catalog(settings.catalog_file), settings.catalog_file
    except GuideSiteError as e:
        fail(e)


def _row(catalog: GuideCatalog, guide: GuideEntry) -> dict[str, str]:
    category = catalog.category_of(guide)
    return {
        "title": guide.title,
        "url": guide.url,
        "category": category.cat_id if category else "",
        "keywords": " ".join(guide.keywords),
    }


# ── guide-site catalog list ──────────────────────────────────────────────


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    category: str | None = typer.Option(None, "--category", "-c", help="Only this category id."),
    catalog_file: Path | None = typer.Option(None, "--file", "-f", help="Catalog YAML file."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """List catalog guides, optionally for one category."""
    catalog, _ = _load(ctx, catalog_file)

    if category is not None:
        found = catalog.by_category(category)
        if found is None:
            err_console.print(f"[bold red]Error[/bold red]: no category {category!r}")
            raise typer.Exit(code=1)
        guides = list(found.guides)
    else:
        guides = catalog.all_guides()

    rows = [_row(catalog, g) for g in guides]
    if json_out:
        print_json(rows)
        return
    print_table(rows, title=f"Guides ({len(rows)})")


# ── guide-site catalog search ────────────────────────────────────────────


@app.command("search")
def search_cmd(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Words that must all match."),
    catalog_file: Path | None = typer.Option(None, "--file", "-f", help="Catalog YAML file."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum results."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Search guide titles, keywords and descriptions."""
    catalog, _ = _load(ctx, catalog_file)
    rows = [_row(catalog, g) for g in catalog.search(query)[:limit]]
    if json_out:
        print_json(rows)
        return
    if not rows:
        console.print(f"[dim]No guides match {query!r}.[/dim]", highlight=False)
        return
    print_table(rows, title=f"Results for {query!r}")


# ── guide-site catalog check ─────────────────────────────────────────────


@app.command("check")
def check_cmd(
    ctx: typer.Context,
    catalog_file: Path | None = typer.Option(None, "--file", "-f", help="Catalog YAML file."),
    source: Path | None = typer.Option(None, "--source", "-s", help="AsciiDoc source directory."),
    strict: bool = typer.Option(False, "--strict", help="Exit non-zero on warnings too."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Check the catalog against the guide sources on disk."""
    from guide_site.builder import SiteBuilder

    catalog, path = _load(ctx, catalog_file)
    settings = get_settings(ctx, catalog_file=catalog_file, source_dir=source)

    try:
        slugs = {p.stem for p in SiteBuilder(settings).discover()}
    except GuideSiteError as e:
        fail(e)

    diagnostics = DiagnosticLog()
    diagnostics.extend(catalog.check(slugs, Location.of(path)))
    strict = strict or settings.strict

    if json_out:
        print_json({
            "ok": not (diagnostics.has_errors() or (strict and diagnostics.warnings)),
            "counts": diagnostics.counts(),
            "diagnostics": [d.to_dict() for d in diagnostics],
        })
    else:
        print_diagnostics(diagnostics)
        if not diagnostics.warnings and not diagnostics.has_errors():
            console.print(f"[green]✓[/green] Catalog matches {len(slugs)} guide sources")
    exit_status(diagnostics, strict)
