"""
Configuration reference table generator.

Turns ``ConfigRoot`` metadata into AsciiDoc include files that guides
pull in with ``include::{generated-dir}/config/<extension>.adoc[]``.

Manifesto:
    Reference tables are generated, never hand-written. The generator
    owns their layout, so every guide shows keys, types, defaults and
    the build-time lock the same way, and a change in metadata shows
    up as a change in exactly one generated file.

Architecture:
    ::

        metadata/*.yaml ──► load_metadata_dir() ──► [ConfigRoot]
                                                         │
                                 ConfigTableGenerator.generate(root)
                                                         │
                                                         ▼
                              _generated/config/<extension>.adoc
                              _generated/config/all-config.adoc

Features:
    - Lock icon legend and per-row ``icon:lock[...]`` for build-time keys
    - Key anchors (``[[<extension>_<key>]]``) usable as xref targets
    - Environment variable shown in the collapsible description cell
    - Duration and MemorySize notes emitted once per table when used
    - Deterministic output, files rewritten only when content changes

Tags:
    config-reference, generator, asciidoc
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from guide_site.config_reference.model import ConfigProperty, ConfigRoot
from guide_site.logging import get_logger

log = get_logger(__name__)

LOCK_ICON = "icon:lock[title=Fixed at build time]"
REQUIRED_ICON = "icon:exclamation-circle[title=Configuration property is required]"
ALL_CONFIG = "all-config"

SIMPLE_TYPES = {
    "java.lang.String": "string",
    "java.lang.Integer": "int",
    "java.lang.Long": "long",
    "java.lang.Boolean": "boolean",
    "java.lang.Double": "double",
    "java.nio.file.Path": "path",
    "java.time.Duration": "Duration",
    "io.quarkus.runtime.configuration.MemorySize": "MemorySize",
}

DURATION_NOTE = """\
ifndef::no-duration-note[]
[NOTE]
[id='duration-note-anchor-{summaryTableId}']
.About the Duration format
====
To write duration values, use the standard `java.time.Duration` format.

You can also use a simplified format, starting with a number:

* If the value is only a number, it represents time in seconds.
* If the value is a number followed by `ms`, it represents time in milliseconds.

In other cases, the simplified format is translated to the `java.time.Duration` format for parsing:

* If the value is a number followed by `h`, `m`, or `s`, it is prefixed with `PT`.
* If the value is a number followed by `d`, it is prefixed with `P`.
====
endif::no-duration-note[]"""

MEMORY_SIZE_NOTE = """\
[NOTE]
[id='memory-size-note-anchor-{summaryTableId}']
.About the MemorySize format
====
A size configuration option recognizes strings in this format (shown as a regular expression): `[0-9]+[KkMmGgTtPpEeZzYy]?`.

If no suffix is given, assume bytes.
===="""


def display_type(prop: ConfigProperty) -> str:
    """Type cell text for a property."""
    if prop.allowed_values:
        return ", ".join(f"`{v}`" for v in prop.allowed_values)

    raw = prop.type.strip()
    prefix = ""
    for marker in ("list of ", "set of "):
        if raw.startswith(marker):
            prefix, raw = marker, raw[len(marker):]
            break
    name = SIMPLE_TYPES.get(raw, raw.rsplit(".", 1)[-1] if raw.startswith(("java.", "io.")) else raw)

    if name == "Duration":
        name = "link:#duration-note-anchor-{summaryTableId}[Duration] " + (
            "icon:question-circle[title=More information about the Duration format]"
        )
    elif name == "MemorySize":
        name = "link:#memory-size-note-anchor-{summaryTableId}[MemorySize] " + (
            "icon:question-circle[title=More information about the MemorySize format]"
        )
    return prefix + name


def display_default(prop: ConfigProperty) -> str:
    if prop.default is not None and prop.default != "":
        return f"`+++{prop.default}+++`"
    if prop.required:
        return f"required {REQUIRED_ICON}"
    return ""


class ConfigTableGenerator:
    """Render configuration roots as AsciiDoc tables.

    Args:
        legend: Emit the build-time lock legend above each table
    """

    def __init__(self, legend: bool = True):
        self.legend = legend

    def generate(self, root: ConfigRoot) -> str:
        """Render one root as a complete include file."""
        table_id = root.extension
        lines = [
            f"// Generated from configuration metadata for {root.extension}. Do not edit.",
            f":summaryTableId: {table_id}",
        ]
        if self.legend:
            lines += [
                "[.configuration-legend]",
                f"{LOCK_ICON} Configuration property fixed at build time - "
                "All other configuration properties are overridable at runtime",
            ]
        lines += [
            '[.configuration-reference.searchable, cols="80,.^10,.^10"]',
            "|===",
            "",
            f"h|[[{table_id}_configuration]]link:#{table_id}_configuration[Configuration property]",
            "h|Type",
            "h|Default",
            "",
        ]

        for prop in sorted(root.properties, key=lambda p: p.key):
            lines += self._row(table_id, prop)
        for section in root.sections:
            section_id = f"{table_id}_section_{section.title.lower().replace(' ', '-')}"
            lines += [
                f"h|[[{section_id}]]link:#{section_id}[{section.title}]",
                "h|Type",
                "h|Default",
                "",
            ]
            for prop in sorted(section.properties, key=lambda p: p.key):
                lines += self._row(table_id, prop)

        lines.append("|===")

        types = {display_type(p) for p in root.all_properties()}
        if any("duration-note-anchor" in t for t in types):
            lines += ["", DURATION_NOTE]
        if any("memory-size-note-anchor" in t for t in types):
            lines += ["", MEMORY_SIZE_NOTE]
        return "\n".join(lines) + "\n"

    def _row(self, table_id: str, prop: ConfigProperty) -> list[str]:
        anchor = f"{table_id}_{prop.anchor}"
        lock = f"{LOCK_ICON} " if prop.fixed_at_build_time else ""
        key = f"`link:#{anchor}[+++{prop.key}+++]`"
        description = prop.description.strip() or "No description."
        if prop.deprecated:
            description = "*Deprecated.* " + description

        return [
            f"a|{lock}[[{anchor}]] {key}",
            "",
            "[.description]",
            "--",
            description.replace("|", "\\|"),
            "",
            f"Environment variable: `+++{prop.env_var}+++`",
            "--",
            f"|{display_type(prop)}",
            f"|{display_default(prop)}",
            "",
        ]

    def generate_all(self, roots: Iterable[ConfigRoot]) -> str:
        """Render the index file that includes every root's table."""
        lines = [
            "// Generated from configuration metadata. Do not edit.",
            f":summaryTableId: {ALL_CONFIG}",
        ]
        for root in sorted(roots, key=lambda r: r.extension):
            lines += [
                "",
                f"== {root.title}",
                "",
                f"include::{root.extension}.adoc[opts=optional]",
            ]
        return "\n".join(lines) + "\n"


def _write_if_changed(path: Path, content: str) -> bool:
    if path.is_file() and path.read_text(encoding="utf-8") == content:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return True


def write_includes(
    roots: Iterable[ConfigRoot],
    generated_dir: str | Path,
    generator: ConfigTableGenerator | None = None,
) -> list[Path]:
    """Write ``config/<extension>.adoc`` per root and ``config/all-config.adoc``.

    Returns:
        Paths whose content changed (unchanged files are left alone so
        their modification time still means something)
    """
    generator = generator or ConfigTableGenerator()
    roots = sorted(roots, key=lambda r: r.extension)
    out_dir = Path(generated_dir) / "config"

    written: list[Path] = []
    for root in roots:
        path = out_dir / f"{root.extension}.adoc"
        if _write_if_changed(path, generator.generate(root)):
            written.append(path)

    index_path = out_dir / f"{ALL_CONFIG}.adoc"
    if _write_if_changed(index_path, generator.generate_all(roots)):
        written.append(index_path)

    log.info(
        "config_reference.written",
        directory=str(out_dir),
        roots=len(roots),
        changed=len(written),
    )
    return written
