"""
Document loader: the preprocessing stage.

Reads an AsciiDoc source and produces the flat list of lines the parser
sees, with every line still tied to the file and line number it came
from. This is where ``include::`` and the conditional directives
(``ifdef``, ``ifndef``, ``ifeval``, ``endif``) are resolved.

Manifesto:
    A guide is assembled from many files: shared partials, generated
    configuration tables, tagged snippets. Whatever goes wrong while
    assembling it has to point at the file and line that caused it,
    and must not stop the rest of the site from building.

Architecture:
    ::

        guide.adoc ──► DocumentLoader._process(lines, path, depth)
                            │
                            ├── attribute entry   → AttributeStore (outside verbatim blocks)
                            ├── ifdef/ifndef/ifeval/endif → conditional stack
                            ├── include::target[] → resolve → select lines/tags
                            │                        → indent → _process(depth + 1)
                            └── other line        → SourceLine(text, path, lineno)

Guardrails:
    ❌ DON'T: Raise on a missing include
    ✅ DO: Record ``include-not-found`` and emit the "Unresolved directive" line

    ❌ DON'T: Follow include cycles until the stack overflows
    ✅ DO: Stop at the include stack / ``max_include_depth``

Tags:
    loader, preprocessor, include, conditional
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from guide_site.asciidoc.attributes import AttributeEntry, AttributeStore, is_attribute_entry, parse_attribute_entry
from guide_site.asciidoc.attrlist import parse_attrlist
from guide_site.diagnostics import DiagnosticLog
from guide_site.errors import (
    IncludeDepthError,
    IncludeNotFoundError,
    Location,
    MarkupError,
    SourceNotFoundError,
)
from guide_site.logging import get_logger

log = get_logger(__name__)

INCLUDE_RE = re.compile(r"^(\\)?include::([^\[\s][^\[]*)\[(.*)\]$")
CONDITIONAL_RE = re.compile(r"^(\\)?(ifdef|ifndef|ifeval|endif)::(\S*?(?:([,+])\S*?)?)\[(.*)\]$")
TAG_DIRECTIVE_RE = re.compile(r"\b(tag|end)::(\S+?)\[\]")
EVAL_RE = re.compile(r"^(.+?)\s*(==|!=|<=|>=|<|>)\s*(.+)$")
VERBATIM_FENCE_RE = re.compile(r"^(-{4,}|\.{4,}|\+{4,}|/{4,})$")
URI_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")
DOC_TITLE_RE = re.compile(r"^[=#] \S")
# Lines after which a new block, and so an attribute entry, may start
BLOCK_BOUNDARY_RE = re.compile(
    r"^(?:\s*|:!?\w[\w-]*!?:.*|\[.*\]|\.[^\s.].*|//.*|[=#]{1,6}\s.*"
    r"|-{2,}|={4,}|\.{4,}|\*{4,}|_{4,}|\+{4,}|`{3}.*|\|===|'''|<<<|\w+::\S*\[.*\])$"
)


@dataclass(frozen=True)
class SourceLine:
    """A line of preprocessed source with its origin."""

    text: str
    path: str
    lineno: int

    @property
    def location(self) -> Location:
        return Location(self.path, self.lineno)

    def with_text(self, text: str) -> SourceLine:
        return SourceLine(text, self.path, self.lineno)


@dataclass
class SourceDocument:
    """Result of preprocessing one guide."""

    path: Path
    lines: list[SourceLine]
    initial_attributes: AttributeStore
    attributes: AttributeStore
    includes: list[Path] = field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(line.text for line in self.lines)


@dataclass
class _Conditional:
    target: str
    active: bool
    location: Location


def parse_line_ranges(spec: str) -> list[tuple[int, int | None]]:
    """Parse ``1..5;8;10..-1`` into inclusive ranges; None means end of file.

    Commas are accepted as separators as well.

    Examples:
        >>> parse_line_ranges("1..3;7;9..-1")
        [(1, 3), (7, 7), (9, None)]
    """
    ranges: list[tuple[int, int | None]] = []
    for part in re.split(r"[;,]", spec):
        part = part.strip()
        if not part:
            continue
        if ".." in part:
            start_s, _, end_s = part.partition("..")
            start = int(start_s) if start_s.strip() else 1
            end_s = end_s.strip()
            end = None if end_s in ("", "-1") else int(end_s)
            ranges.append((start, end))
        else:
            n = int(part)
            ranges.append((n, n))
    return ranges


def reindent(lines: list[tuple[int, str]], indent: int) -> list[tuple[int, str]]:
    """Strip the common leading indentation and indent by ``indent`` spaces."""
    widths = [len(text) - len(text.lstrip()) for _, text in lines if text.strip()]
    strip = min(widths) if widths else 0
    pad = " " * indent
    return [(n, pad + text[strip:] if text.strip() else "") for n, text in lines]


class DocumentLoader:
    """Preprocess AsciiDoc sources.

    Args:
        attributes: Caller attributes (locked) or a prepared AttributeStore
        max_include_depth: Maximum include nesting
        diagnostics: Log that receives include/conditional diagnostics
        attribute_missing: Policy used when ``attributes`` is a mapping
        base_dir: Directory relative paths in diagnostics are shown against
    """

    def __init__(
        self,
        attributes: AttributeStore | Mapping[str, str | None] | None = None,
        *,
        max_include_depth: int = 64,
        diagnostics: DiagnosticLog | None = None,
        attribute_missing: str = "skip",
        base_dir: Path | None = None,
    ):
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        if isinstance(attributes, AttributeStore):
            self._template = attributes.copy()
            self._template.diagnostics = self.diagnostics
        else:
            self._template = AttributeStore(
                attributes, missing=attribute_missing, diagnostics=self.diagnostics
            )
        self.max_include_depth = max_include_depth
        self.base_dir = base_dir

    # ── Public API ───────────────────────────────────────────────

    def load(self, path: str | Path) -> SourceDocument:
        """Load and preprocess a file.

        Raises:
            SourceNotFoundError: If the file does not exist
            MarkupError: If the file is not valid UTF-8
        """
        path = Path(path)
        if not path.is_file():
            raise SourceNotFoundError(f"source file not found: {path}", location=Location.of(path))
        try:
            text = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise MarkupError(f"source file is not valid UTF-8: {path}", location=Location.of(path), cause=e) from e
        return self.load_text(text, path)

    def load_text(self, text: str, path: str | Path = "<string>") -> SourceDocument:
        """Preprocess in-memory source. Includes resolve against ``path``'s directory."""
        path = Path(path)
        attributes = self._template.copy()
        initial = attributes.copy()

        docdir = path.parent if str(path) != "<string>" else Path.cwd()
        for name, value in (
            ("docdir", str(docdir)),
            ("docfile", str(path)),
            ("docname", path.stem),
            ("docfilesuffix", path.suffix),
        ):
            if not attributes.is_set(name):
                attributes.set(name, value)
                initial.set(name, value)

        state = _LoadState(attributes=attributes)
        self._process(_split_lines(text), path, 0, state, [path.resolve() if path.exists() else path])

        for cond in state.conditionals:
            self.diagnostics.error(
                "unbalanced-conditional",
                f"unterminated preprocessor conditional directive: {cond.target or 'ifeval'}",
                cond.location,
            )

        log.debug("document.loaded", path=str(path), lines=len(state.out), includes=len(state.includes))
        return SourceDocument(
            path=path,
            lines=state.out,
            initial_attributes=initial,
            attributes=attributes,
            includes=state.includes,
        )

    # ── Processing ───────────────────────────────────────────────

    def _display(self, path: Path) -> str:
        if self.base_dir is not None:
            try:
                return os.path.relpath(path, self.base_dir)
            except ValueError:
                return str(path)
        return str(path)

    def _process(
        self,
        lines: Sequence[tuple[int, str]],
        path: Path,
        depth: int,
        state: _LoadState,
        stack: list[Path],
    ) -> None:
        shown = self._display(path)
        i = 0
        while i < len(lines):
            lineno, text = lines[i]
            location = Location(shown, lineno)
            i += 1

            # Conditionals are evaluated even while skipping so nesting stays balanced
            cond_match = CONDITIONAL_RE.match(text) if "::" in text else None
            if cond_match:
                if cond_match.group(1):
                    if not state.skipping:
                        state.emit(text[1:], shown, lineno)
                    continue
                self._conditional(cond_match, location, state, shown, lineno)
                continue

            if state.skipping:
                continue

            if state.fence is None:
                fence = VERBATIM_FENCE_RE.match(text)
                if fence:
                    state.fence = text
                elif text.startswith(":") and state.entry_allowed():
                    remaining = [t for _, t in lines[i - 1:]]
                    parsed = parse_attribute_entry(remaining)
                    if parsed is not None:
                        entry, consumed = parsed
                        state.attributes.apply_entry(entry, location)
                        for offset in range(consumed):
                            n, t = lines[i - 1 + offset]
                            state.emit(t, shown, n)
                        i += consumed - 1
                        continue
            elif text == state.fence:
                state.fence = None

            include_match = INCLUDE_RE.match(text) if text.startswith(("include::", "\\include::")) else None
            if include_match:
                if include_match.group(1):
                    state.emit(text[1:], shown, lineno)
                    continue
                self._include(include_match, path, location, depth, state, stack)
                continue

            state.emit(text, shown, lineno)

    def _conditional(
        self,
        match: re.Match[str],
        location: Location,
        state: _LoadState,
        shown: str,
        lineno: int,
    ) -> None:
        keyword, target, delimiter, body = match.group(2), match.group(3), match.group(4), match.group(5)

        if keyword == "endif":
            if body:
                self.diagnostics.error("malformed-conditional", "malformed preprocessor directive: endif with text", location)
                return
            if not state.conditionals:
                self.diagnostics.error("unbalanced-conditional", f"unmatched preprocessor directive: endif::{target}[]", location)
                return
            open_cond = state.conditionals[-1]
            if target and target != open_cond.target:
                self.diagnostics.error(
                    "unbalanced-conditional",
                    f"mismatched preprocessor directive: endif::{target}[], expected endif::{open_cond.target}[]",
                    location,
                )
                return
            state.conditionals.pop()
            return

        if state.skipping:
            # Nested conditional inside a skipped region: only track nesting
            if keyword != "ifeval" and body:
                return
            state.conditionals.append(_Conditional(target, True, location))
            return

        if keyword == "ifeval":
            if target:
                self.diagnostics.error("malformed-conditional", "malformed preprocessor directive: ifeval takes no target", location)
                return
            active = self._evaluate(body, location, state.attributes)
        else:
            active = self._defined(keyword, target, delimiter, state.attributes)
            if body:
                # Single-line form: ifdef::attr[content]
                if active:
                    state.emit(state.attributes.substitute(body, location), shown, lineno)
                return

        state.conditionals.append(_Conditional(target, active, location))

    def _defined(self, keyword: str, target: str, delimiter: str | None, attributes: AttributeStore) -> bool:
        if delimiter == ",":
            names = [n for n in target.split(",") if n]
            any_set = any(attributes.is_set(n) for n in names)
            return any_set if keyword == "ifdef" else not any_set
        if delimiter == "+":
            names = [n for n in target.split("+") if n]
            all_set = all(attributes.is_set(n) for n in names)
            return all_set if keyword == "ifdef" else not all_set
        is_set = attributes.is_set(target)
        return is_set if keyword == "ifdef" else not is_set

    def _evaluate(self, expression: str, location: Location, attributes: AttributeStore) -> bool:
        match = EVAL_RE.match(expression.strip())
        if match is None:
            self.diagnostics.error("malformed-conditional", f"malformed preprocessor directive: ifeval::[{expression}]", location)
            return False
        lhs = _resolve_operand(attributes.substitute(match.group(1), location))
        rhs = _resolve_operand(attributes.substitute(match.group(3), location))
        op = match.group(2)
        if op == "==":
            return lhs == rhs
        if op == "!=":
            return lhs != rhs
        try:
            if op == "<":
                return lhs < rhs  # type: ignore[operator]
            if op == "<=":
                return lhs <= rhs  # type: ignore[operator]
            if op == ">":
                return lhs > rhs  # type: ignore[operator]
            return lhs >= rhs  # type: ignore[operator]
        except TypeError:
            self.diagnostics.warning(
                "malformed-conditional",
                f"cannot compare {lhs!r} and {rhs!r} in ifeval::[{expression}]",
                location,
            )
            return False

    def _include(
        self,
        match: re.Match[str],
        path: Path,
        location: Location,
        depth: int,
        state: _LoadState,
        stack: list[Path],
    ) -> None:
        raw_target, raw_attrs = match.group(2), match.group(3)
        target = state.attributes.substitute(raw_target, location)
        attrs = parse_attrlist(state.attributes.substitute(raw_attrs, location))
        optional = attrs.has_option("optional")
        shown = location.path or str(path)

        def unresolved() -> None:
            state.emit(f"Unresolved directive in {shown} - include::{raw_target}[{raw_attrs}]", shown, location.line or 0)

        if REF_LEFT_RE.search(target):
            # A reference we could not resolve: Asciidoctor drops the line
            self.diagnostics.warning("include-dropped", f"dropping line containing reference to missing attribute: {raw_target}", location)
            return

        if URI_RE.match(target):
            self.diagnostics.info("include-uri-disabled", f"cannot include contents of URI: {target}", location)
            state.emit(f"link:{target}[role=include]", shown, location.line or 0)
            return

        resolved = (path.parent / target) if not Path(target).is_absolute() else Path(target)
        if not resolved.is_file():
            if optional:
                self.diagnostics.info("include-optional-missing", f"optional include dropped because include file not found: {target}", location)
                return
            err = IncludeNotFoundError(target, location=location)
            self.diagnostics.from_error("include-not-found", err)
            unresolved()
            return

        resolved_key = resolved.resolve()
        if resolved_key in stack:
            self.diagnostics.error("include-cycle", f"include cycle detected: {target} is already being included", location)
            unresolved()
            return
        if depth + 1 > self.max_include_depth:
            err = IncludeDepthError(target, self.max_include_depth, location=location)
            self.diagnostics.from_error("include-depth", err)
            unresolved()
            return

        try:
            content = resolved.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.diagnostics.error("include-unreadable", f"include file not readable: {target}: {e}", location)
            unresolved()
            return

        state.includes.append(resolved)
        selected = _split_lines(content)

        lines_spec = attrs.get("lines")
        tags_spec = attrs.get("tags") if attrs.get("tags") is not None else attrs.get("tag")
        if lines_spec:
            try:
                ranges = parse_line_ranges(lines_spec)
            except ValueError:
                self.diagnostics.error("malformed-include", f"invalid lines attribute in include: {lines_spec}", location)
                ranges = []
            if ranges:
                selected = [(n, t) for n, t in selected if any(s <= n and (e is None or n <= e) for s, e in ranges)]
        elif tags_spec is not None:
            selected = self._select_tags(selected, tags_spec, target, location)

        indent = attrs.get("indent")
        if indent is not None and indent.lstrip("-").isdigit() and int(indent) >= 0:
            selected = reindent(selected, int(indent))

        leveloffset = attrs.get("leveloffset")
        verbatim = state.fence is not None
        if leveloffset and not verbatim:
            previous = state.attributes.get("leveloffset")
            state.emit(f":leveloffset: {leveloffset}", shown, location.line or 0)
            state.attributes.apply_entry(AttributeEntry("leveloffset", leveloffset), location)

        log.debug("include.resolved", target=target, depth=depth + 1, lines=len(selected))
        self._process(selected, resolved, depth + 1, state, stack + [resolved_key])

        if leveloffset and not verbatim:
            # Keep the reset entry out of a trailing paragraph or list item
            if state.out and state.out[-1].text.strip():
                state.emit("", shown, location.line or 0)
            if previous is None:
                state.emit(":leveloffset!:", shown, location.line or 0)
                state.attributes.unset("leveloffset")
            else:
                state.emit(f":leveloffset: {previous}", shown, location.line or 0)
                state.attributes.set("leveloffset", previous)

    def _select_tags(
        self,
        lines: list[tuple[int, str]],
        spec: str,
        target: str,
        location: Location,
    ) -> list[tuple[int, str]]:
        """Select tagged regions following Asciidoctor's tag filtering rules."""
        tags: dict[str, bool] = {}
        for token in re.split(r"[;,]", spec):
            token = token.strip()
            if not token:
                continue
            if token.startswith("!"):
                tags[token[1:]] = False
            else:
                tags[token] = True

        select_all = tags.pop("**", None)
        wildcard = tags.pop("*", None)
        if select_all is not None:
            base = select_all
        elif wildcard is None and tags and not any(tags.values()):
            # Only exclusions: start from everything
            base = True
        else:
            base = False
        if wildcard is None and select_all is not None and not tags:
            wildcard = select_all

        selected: list[tuple[int, str]] = []
        active: list[tuple[str, bool]] = []
        seen: set[str] = set()

        for n, text in lines:
            directive = TAG_DIRECTIVE_RE.search(text)
            if directive:
                kind, name = directive.group(1), directive.group(2)
                if kind == "tag":
                    seen.add(name)
                    parent = active[-1][1] if active else base
                    if name in tags:
                        chosen = tags[name]
                    elif wildcard is not None:
                        chosen = wildcard if tags.get(name, True) else False
                    else:
                        chosen = parent
                    active.append((name, chosen))
                elif active and active[-1][0] == name:
                    active.pop()
                else:
                    self.diagnostics.warning(
                        "include-tag-mismatch",
                        f"unexpected end tag {name!r} at line {n} of include file: {target}",
                        location,
                    )
                continue
            current = active[-1][1] if active else base
            if current:
                selected.append((n, text))

        for name, _ in active:
            self.diagnostics.warning(
                "include-tag-mismatch",
                f"detected unclosed tag {name!r} in include file: {target}",
                location,
            )
        missing = sorted(name for name, wanted in tags.items() if wanted and name not in seen)
        if missing:
            self.diagnostics.warning(
                "include-tag-missing",
                f"tag{'s' if len(missing) > 1 else ''} {', '.join(repr(m) for m in missing)} not found in include file: {target}",
                location,
            )
        return selected


REF_LEFT_RE = re.compile(r"(?<!\\)\{\w[\w-]*\}")


class _LoadState:
    """Mutable state shared by a document and all its includes."""

    def __init__(self, attributes: AttributeStore):
        self.attributes = attributes
        self.out: list[SourceLine] = []
        self.includes: list[Path] = []
        self.conditionals: list[_Conditional] = []
        self.fence: str | None = None
        self.in_header = True
        self._title_seen = False

    @property
    def skipping(self) -> bool:
        return any(not c.active for c in self.conditionals)

    def entry_allowed(self) -> bool:
        """Attribute entries count only in the header or where a block may start."""
        if self.in_header or not self.out:
            return True
        return BLOCK_BOUNDARY_RE.match(self.out[-1].text) is not None

    def emit(self, text: str, path: str, lineno: int) -> None:
        if self.in_header:
            self._track_header(text)
        self.out.append(SourceLine(text, path, lineno))

    def _track_header(self, text: str) -> None:
        # The header is the title plus the lines up to the first blank line
        stripped = text.strip()
        if self._title_seen:
            if not stripped:
                self.in_header = False
        elif stripped and not stripped.startswith("//") and not is_attribute_entry(text):
            if DOC_TITLE_RE.match(text):
                self._title_seen = True
            else:
                self.in_header = False


def _split_lines(text: str) -> list[tuple[int, str]]:
    if text.startswith("﻿"):
        text = text[1:]
    return [(n, line.rstrip()) for n, line in enumerate(text.splitlines(), start=1)]


def _resolve_operand(value: str) -> object:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    if value in ("true", "false"):
        return value == "true"
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        return value
