"""
CLI utility helpers: settings resolution and output formatting.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from guide_site.config import SiteSettings
from guide_site.diagnostics import Diagnostic, DiagnosticLog, Severity
from guide_site.errors import GuideSiteError

console = Console()
err_console = Console(stderr=True)

SEVERITY_STYLE = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}


# ── Settings ─────────────────────────────────────────────────────────────


def get_settings(ctx: typer.Context, **overrides: Any) -> SiteSettings:
    """Settings for this invocation: ``--config`` file, then environment.

    Command options passed as ``overrides`` win; None values are ignored.
    """
    state = ctx.find_root().obj or {}
    overrides = {k: v for k, v in overrides.items() if v is not None}
    config_file: Path | None = state.get("config_file")
    try:
        if config_file is not None:
            return SiteSettings.from_yaml(config_file, **overrides)
        return SiteSettings(**overrides)
    except GuideSiteError as e:
        fail(e)
    except ValueError as e:
        err_console.print(f"[bold red]Error[/bold red] (config): {e}")
        raise typer.Exit(code=1) from e


def fail(error: GuideSiteError) -> NoReturn:
    """Print a pipeline error and exit 1."""
    err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {escape(str(error))}")
    raise typer.Exit(code=1)


# ── Output helpers ───────────────────────────────────────────────────────


def print_json(payload: Any) -> None:
    # Plain echo keeps stdout machine readable (no rich wrapping)
    typer.echo(json.dumps(payload, indent=2, default=str))


def print_diagnostics(diagnostics: DiagnosticLog | list[Diagnostic], *, min_severity: Severity = Severity.INFO) -> None:
    """Render diagnostics one per line, errors red, warnings yellow."""
    order = list(Severity)
    for diagnostic in diagnostics:
        if order.index(diagnostic.severity) < order.index(min_severity):
            continue
        style = SEVERITY_STYLE[diagnostic.severity]
        err_console.print(
            f"[{style}]{diagnostic.severity.value.upper()}[/{style}] "
            f"{escape(str(diagnostic.location))}: {escape(diagnostic.message)} [dim]\\[{diagnostic.code}][/dim]",
            highlight=False,
        )


def print_table(rows: list[dict[str, Any]], *, title: str = "") -> None:
    """Render a list of dicts as a Rich table."""
    if not rows:
        console.print("[dim]No items.[/dim]")
        return
    table = Table(title=title or None, show_lines=False, pad_edge=False)
    for col in rows[0]:
        table.add_column(col, overflow="fold")
    for row in rows:
        table.add_row(*(escape(str(v)) for v in row.values()))
    console.print(table)


def print_dict(data: dict[str, Any], *, title: str = "") -> None:
    """Render a single dict as key-value pairs."""
    if title:
        console.print(f"[bold]{title}[/bold]")
    for k, v in data.items():
        console.print(f"  [cyan]{k}[/cyan]: {escape(str(v))}", highlight=False)


def exit_status(diagnostics: DiagnosticLog, strict: bool) -> None:
    """Exit 1 on errors, or on warnings when ``strict``."""
    if diagnostics.has_errors() or (strict and diagnostics.warnings):
        raise typer.Exit(code=1)
