"""
CLI: ``guide-site config-ref`` — configuration reference tables and lookup.
"""

from __future__ import annotations

from pathlib import Path

import typer

from guide_site.cli.utils import console, err_console, fail, get_settings, print_dict, print_json, print_table
from guide_site.config_reference import (
    ConfigIndex,
    ConfigRoot,
    IndexedProperty,
    display_default,
    display_type,
    load_metadata_dir,
    write_includes,
)
from guide_site.errors import GuideSiteError

app = typer.Typer(no_args_is_help=True)


def _roots(ctx: typer.Context, metadata: Path | None) -> tuple[list[ConfigRoot], Path]:
    settings = get_settings(ctx, config_metadata_dir=metadata)
    if settings.config_metadata_dir is None:
        err_console.print(
            "[bold red]Error[/bold red]: no metadata directory (use --metadata or set config_metadata_dir)"
        )
        raise typer.Exit(code=1)
    try:
        return load_metadata_dir(settings.config_metadata_dir), settings.generated_path
    except GuideSiteError as e:
        fail(e)


def _describe(entry: IndexedProperty) -> dict[str, str]:
    prop = entry.prop
    return {
        "key": prop.key,
        "extension": entry.root.extension,
        "type": display_type(prop),
        "default": prop.default if prop.default is not None else "",
        "env": prop.env_var,
        "build-time": "yes" if prop.fixed_at_build_time else "no",
        "required": "yes" if prop.required else "no",
        "anchor": entry.anchor,
        "description": prop.description.strip(),
    }


# ── guide-site config-ref generate ───────────────────────────────────────


@app.command("generate")
def generate_cmd(
    ctx: typer.Context,
    metadata: Path | None = typer.Option(None, "--metadata", "-m", help="Metadata directory."),
    output: Path | None = typer.Option(
        None, "--output", "-o", help="Generated include directory (default: <source>/_generated)."
    ),
) -> None:
    """Write ``config/<extension>.adoc`` tables and ``config/all-config.adoc``.

    Files whose content is unchanged are left untouched.
    """
    roots, generated = _roots(ctx, metadata)
    target = output or generated
    try:
        changed = write_includes(roots, target)
    except OSError as e:
        err_console.print(f"[bold red]Error[/bold red]: cannot write to {target}: {e}")
        raise typer.Exit(code=1) from e

    properties = sum(len(r.all_properties()) for r in roots)
    console.print(
        f"[green]✓[/green] {len(roots)} roots, {properties} properties → {target / 'config'}",
        highlight=False,
    )
    for path in changed:
        console.print(f"  [cyan]updated[/cyan] {path}", highlight=False)
    if not changed:
        console.print("  [dim]No changes.[/dim]")


# ── guide-site config-ref show ───────────────────────────────────────────


@app.command("show")
def show_cmd(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Property key, e.g. quarkus.http.port"),
    metadata: Path | None = typer.Option(None, "--metadata", "-m", help="Metadata directory."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Show one property. Map keys match their quoted placeholder."""
    roots, _ = _roots(ctx, metadata)
    index = ConfigIndex(roots)
    entry = index.lookup(key)
    if entry is None:
        suggestions = [e.prop.key for e in index.search(key.rsplit(".", 1)[-1])[:5]]
        err_console.print(f"[bold red]Error[/bold red]: unknown property {key!r}", highlight=False)
        if suggestions:
            err_console.print("Did you mean: " + ", ".join(suggestions), highlight=False)
        raise typer.Exit(code=1)

    data = _describe(entry)
    if json_out:
        print_json(data)
        return
    data["default"] = display_default(entry.prop)
    print_dict(data, title=entry.prop.key)


# ── guide-site config-ref search ─────────────────────────────────────────


@app.command("search")
def search_cmd(
    ctx: typer.Context,
    text: str = typer.Argument(..., help="Text found in a key, env var or description."),
    metadata: Path | None = typer.Option(None, "--metadata", "-m", help="Metadata directory."),
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Maximum results."),
    json_out: bool = typer.Option(False, "--json", "-j", help="Output as JSON."),
) -> None:
    """Find properties by key, environment variable or description."""
    roots, _ = _roots(ctx, metadata)
    rows = [
        {k: v for k, v in _describe(e).items() if k in ("key", "extension", "type", "default")}
        for e in ConfigIndex(roots).search(text)[:limit]
    ]
    if json_out:
        print_json(rows)
        return
    print_table(rows, title=f"Properties matching {text!r}")
