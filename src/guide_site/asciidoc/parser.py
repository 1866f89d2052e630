"""
Block parser: preprocessed lines → Document tree.

The parser never raises on content. Malformed markup (an unterminated
delimited block, a section title out of sequence, a duplicate id)
becomes a diagnostic and parsing carries on, so one sloppy guide does
not hide problems in the next.

Architecture:
    ::

        SourceDocument.lines
              │
              ▼
        _parse_header()           = Title, author line, attribute entries
              │
              ▼
        _parse_section_content()  ◄──────────────┐
              │                                  │ (deeper section title)
              ├── _read_metadata()  .Title / [attrs] / [[id]] / :entries:
              ├── _parse_section() ──────────────┘
              └── _parse_block()
                     ├── delimited  ---- .... ==== **** ____ ++++ //// -- ```
                     ├── table      |=== ,=== :===
                     ├── lists      * . term:: <1>
                     └── paragraphs (admonition / literal / styled)

Tags:
    parser, asciidoc, document-model
"""

from __future__ import annotations

import csv
import io
import re
from dataclasses import dataclass, field

from guide_site.asciidoc.attributes import AttributeStore, parse_attribute_entry
from guide_site.asciidoc.attrlist import AttributeList, parse_attrlist
from guide_site.asciidoc.inline import InlineContext, convert_inline, find_xrefs, generate_id, strip_tags
from guide_site.asciidoc.loader import SourceDocument, SourceLine
from guide_site.asciidoc.model import (
    ADMONITION_LABELS,
    Block,
    BlockKind,
    Document,
    ListItem,
    Section,
    Table,
    TableCell,
    TableColumn,
    Xref,
)
from guide_site.diagnostics import DiagnosticLog
from guide_site.errors import Location, MarkupError
from guide_site.logging import get_logger

log = get_logger(__name__)

SECTION_RE = re.compile(r"^(={1,6}|#{1,6})[ \t]+(\S.*?)(?:[ \t]+\1)?$")
BLOCK_TITLE_RE = re.compile(r"^\.(\.?[^ \t.].*)$")
BLOCK_ANCHOR_RE = re.compile(r"^\[\[(?:|([\w:][\w:.-]*)(?:,\s*(.+))?)\]\]$")
BLOCK_ATTRS_RE = re.compile(r"^\[(|[\w.#%{,\"'].*)\]$")
DELIMITER_RE = re.compile(r"^(-{4,}|\.{4,}|={4,}|\*{4,}|_{4,}|\+{4,}|/{4,}|--|```.*)$")
TABLE_RE = re.compile(r"^([|,:!])===+$")
IMAGE_BLOCK_RE = re.compile(r"^image::([^\s\[][^\[]*)\[(.*)\]$")
ADMONITION_RE = re.compile(r"^(NOTE|TIP|IMPORTANT|CAUTION|WARNING):[ \t]+(.*)$")
ULIST_RE = re.compile(r"^[ \t]*(-|\*{1,5})[ \t]+(.*)$")
OLIST_RE = re.compile(r"^[ \t]*(\.{1,5}|\d+\.)[ \t]+(.*)$")
DLIST_RE = re.compile(r"^(?!//[^/])[ \t]*([^ \t].*?)(:::{0,2}|;;)(?:$|[ \t]+(.*)$)")
COLIST_RE = re.compile(r"^<(\d+|\.)>[ \t]+(.*)$")
COMMENT_BLOCK_RE = re.compile(r"^/{4,}$")
INLINE_ANCHOR_RE = re.compile(r"(?<![\\\[])\[\[([\w:][\w:.-]*)(?:,\s*([^\]]+?))?\]\]")
CELL_SPEC_RE = re.compile(
    r"(?:(?P<colspan>\d+)?(?:\.(?P<rowspan>\d+))?\+|(?P<dup>\d+)\*)?"
    r"(?P<halign>[<^>])?(?:\.(?P<valign>[<^>]))?(?P<style>[adehlmsv])?"
)
COL_SPEC_RE = re.compile(
    r"(?:(?P<repeat>\d+)\*)?(?P<halign>[<^>])?(?:\.(?P<valign>[<^>]))?(?P<width>\d+%?|~)?(?P<style>[adehlmsv])?"
)

HALIGN = {"<": "left", "^": "center", ">": "right"}
VALIGN = {"<": "top", "^": "middle", ">": "bottom"}
VERBATIM_STYLES = {"source", "listing", "literal", "pass"}


@dataclass
class _Metadata:
    title: str | None = None
    id: str | None = None
    reftext: str | None = None
    attrlist: AttributeList = field(default_factory=AttributeList)

    @property
    def style(self) -> str | None:
        return self.attrlist.style

    def merge(self, other: AttributeList) -> None:
        if other.positional:
            self.attrlist.positional = list(other.positional)
            self.attrlist.style = other.style
        self.attrlist.named.update(other.named)
        self.attrlist.roles.extend(other.roles)
        self.attrlist.options.update(other.options)
        if other.id:
            self.id = other.id


class _Reader:
    def __init__(self, lines: list[SourceLine]):
        self.lines = lines
        self.pos = 0

    def has_more(self) -> bool:
        return self.pos < len(self.lines)

    def peek(self) -> SourceLine:
        return self.lines[self.pos]

    def advance(self) -> SourceLine:
        line = self.lines[self.pos]
        self.pos += 1
        return line

    def skip_blank(self) -> None:
        while self.pos < len(self.lines) and not self.lines[self.pos].text.strip():
            self.pos += 1

    def peek_nonblank(self) -> SourceLine | None:
        i = self.pos
        while i < len(self.lines) and not self.lines[i].text.strip():
            i += 1
        return self.lines[i] if i < len(self.lines) else None

    def texts(self, limit: int = 64) -> list[str]:
        return [line.text for line in self.lines[self.pos:self.pos + limit]]


class Parser:
    """Parse one preprocessed document.

    Args:
        source: Output of DocumentLoader
        diagnostics: Log that receives markup diagnostics
    """

    def __init__(self, source: SourceDocument, diagnostics: DiagnosticLog | None = None):
        self.source = source
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.attrs: AttributeStore = source.initial_attributes.copy()
        self.attrs.diagnostics = self.diagnostics
        self.reader = _Reader(source.lines)
        self.ids: dict[str, str] = {}
        self.xrefs: list[Xref] = []
        self._pending: _Metadata | None = None

    # ── Entry point ──────────────────────────────────────────────

    def parse(self) -> Document:
        title = self._parse_header()
        header_attributes = self.attrs
        blocks, sections = self._parse_section_content(0)
        document = Document(
            title=title,
            source_path=self.source.path,
            attributes=self.attrs,
            header_attributes=header_attributes,
            blocks=blocks,
            sections=sections,
            ids=self.ids,
            xrefs=self.xrefs,
            includes=list(self.source.includes),
        )
        log.debug(
            "document.parsed",
            path=str(self.source.path),
            sections=sum(1 for _ in document.walk_sections()),
            ids=len(self.ids),
            xrefs=len(self.xrefs),
        )
        return document

    # ── Helpers ──────────────────────────────────────────────────

    def _apply_entry(self) -> bool:
        """Apply an attribute entry at the reader position, if there is one."""
        parsed = parse_attribute_entry(self.reader.texts())
        if parsed is None:
            return False
        entry, consumed = parsed
        location = self.reader.peek().location
        # Copy on write: blocks parsed so far keep the values they saw
        self.attrs = self.attrs.copy()
        self.attrs.apply_entry(entry, location)
        self.reader.pos += consumed
        return True

    def _markup_error(self, code: str, message: str, location: Location) -> None:
        self.diagnostics.from_error(code, MarkupError(message, location=location))

    def _scan_xrefs(self, text: str, location: Location) -> None:
        """Record cross references and inline anchors found in raw text."""
        if "[[" in text:
            for match in INLINE_ANCHOR_RE.finditer(self._expand(text)):
                self._register_id(match.group(1), match.group(2) or f"[{match.group(1)}]", location)
        if "xref:" not in text and "<<" not in text:
            return
        for path, fragment in find_xrefs(self._expand(text)):
            self.xrefs.append(Xref(path, fragment, location))

    def _register_id(self, id_: str, reftext: str, location: Location) -> None:
        if id_ in self.ids:
            self.diagnostics.warning("duplicate-id", f"id assigned to block already in use: {id_}", location)
            return
        self.ids[id_] = reftext

    def _expand(self, text: str) -> str:
        # Counters advance when the block is rendered, not while scanning
        store = self.attrs.copy() if "{counter" in text else self.attrs
        return store.substitute(text)

    def _title_text(self, title: str) -> str:
        return strip_tags(convert_inline(title, InlineContext(self.attrs)))

    def _section_id(self, title: str) -> str:
        prefix = self.attrs.get("idprefix", "_") or ""
        separator = self.attrs.get("idseparator", "_") or ""
        html_title = convert_inline(title, InlineContext(self.attrs))
        base = generate_id(html_title, prefix, separator)
        candidate, n = base, 2
        while candidate in self.ids:
            candidate = f"{base}{separator or '_'}{n}"
            n += 1
        return candidate

    # ── Header ───────────────────────────────────────────────────

    def _skip_comment(self) -> bool:
        reader = self.reader
        text = reader.peek().text
        if COMMENT_BLOCK_RE.match(text):
            opener = reader.advance()
            while reader.has_more():
                if reader.advance().text == opener.text:
                    return True
            self._markup_error("unterminated-block", "unterminated comment block", opener.location)
            return True
        if text.startswith("//"):
            reader.advance()
            return True
        return False

    def _parse_header(self) -> str | None:
        reader = self.reader
        while reader.has_more():
            text = reader.peek().text
            if not text.strip():
                reader.advance()
            elif self._skip_comment():
                continue
            elif text.startswith(":") and self._apply_entry():
                continue
            else:
                break

        if not reader.has_more():
            return None
        match = SECTION_RE.match(reader.peek().text)
        if match is None or len(match.group(1)) != 1:
            return None

        reader.advance()
        title = match.group(2)
        self.attrs = self.attrs.copy()
        self.attrs.set("doctitle", title)

        author_seen = False
        while reader.has_more() and reader.peek().text.strip():
            text = reader.peek().text
            if self._skip_comment():
                continue
            if text.startswith(":") and self._apply_entry():
                continue
            reader.advance()
            if not author_seen:
                author_seen = True
                author = re.match(r"^(.+?)(?:\s+<([^>]+)>)?$", text.strip())
                if author:
                    self.attrs.set("author", author.group(1))
                    if author.group(2):
                        self.attrs.set("email", author.group(2))
            else:
                revision = re.match(r"^v?([\d.]+)?,?\s*([^:]*?)(?::\s*(.*))?$", text.strip())
                if revision and revision.group(1):
                    self.attrs.set("revnumber", revision.group(1))
        return title

    # ── Sections ─────────────────────────────────────────────────

    def _read_metadata(self) -> _Metadata:
        meta = self._pending or _Metadata()
        self._pending = None
        reader = self.reader
        while reader.has_more():
            line = reader.peek()
            text = line.text
            if not text.strip():
                reader.advance()
                continue
            if text.startswith("//") and self._skip_comment():
                continue
            if text.startswith(":") and self._apply_entry():
                continue
            if text.startswith("[["):
                anchor = BLOCK_ANCHOR_RE.match(text)
                if anchor:
                    reader.advance()
                    if anchor.group(1):
                        meta.id = anchor.group(1)
                        meta.reftext = anchor.group(2)
                    continue
            if text.startswith("[") and BLOCK_ATTRS_RE.match(text):
                reader.advance()
                meta.merge(parse_attrlist(self.attrs.substitute(text[1:-1], line.location)))
                continue
            if text.startswith(".") and BLOCK_TITLE_RE.match(text) and not OLIST_RE.match(text):
                reader.advance()
                meta.title = self.attrs.resolve_counters(text[1:])
                continue
            break
        return meta

    def _parse_section_content(self, level: int) -> tuple[list[Block], list[Section]]:
        blocks: list[Block] = []
        sections: list[Section] = []
        reader = self.reader
        while True:
            meta = self._read_metadata()
            if not reader.has_more():
                break
            line = reader.peek()
            match = SECTION_RE.match(line.text)
            if match and meta.style not in ("discrete", "float"):
                new_level = len(match.group(1)) - 1 + self.attrs.leveloffset()
                if new_level <= 0:
                    self.diagnostics.warning(
                        "section-level-zero",
                        "level 0 sections can only be used when doctype is book",
                        line.location,
                    )
                    new_level = 1
                if level > 0 and new_level <= level:
                    self._pending = meta
                    break
                sections.append(self._parse_section(match, meta, new_level, level))
                continue
            block = self._parse_block(meta)
            if block is not None:
                blocks.append(block)
        return blocks, sections

    def _parse_section(self, match: re.Match[str], meta: _Metadata, level: int, parent_level: int) -> Section:
        line = self.reader.advance()
        title = self.attrs.resolve_counters(match.group(2))
        if level > parent_level + 1:
            self.diagnostics.warning(
                "section-out-of-sequence",
                f"section title out of sequence: expected level {parent_level + 1}, got level {level}",
                line.location,
            )

        if meta.id:
            section_id: str | None = meta.id
        elif self.attrs.is_set("sectids"):
            section_id = self._section_id(title)
        else:
            section_id = None
        if section_id:
            self._register_id(section_id, meta.reftext or self._title_text(title), line.location)
        self._scan_xrefs(title, line.location)

        section = Section(
            level=level,
            title=title,
            id=section_id,
            location=line.location,
            attributes=self.attrs,
            attrlist=meta.attrlist,
        )
        section.blocks, section.sections = self._parse_section_content(level)
        return section

    # ── Blocks ───────────────────────────────────────────────────

    def _parse_nested(self, lines: list[SourceLine]) -> list[Block]:
        saved_reader, saved_pending = self.reader, self._pending
        self.reader = _Reader(lines)
        self._pending = None
        blocks: list[Block] = []
        try:
            while True:
                meta = self._read_metadata()
                if not self.reader.has_more():
                    break
                block = self._parse_block(meta, nested=True)
                if block is not None:
                    blocks.append(block)
        finally:
            self.reader, self._pending = saved_reader, saved_pending
        return blocks

    def _new_block(self, kind: BlockKind, line: SourceLine, meta: _Metadata, **kwargs) -> Block:
        block = Block(
            kind=kind,
            location=line.location,
            attributes=self.attrs,
            title=meta.title,
            id=meta.id,
            style=meta.style,
            attrlist=meta.attrlist,
            **kwargs,
        )
        if meta.id:
            self._register_id(meta.id, meta.reftext or (self._title_text(meta.title) if meta.title else f"[{meta.id}]"), line.location)
        if meta.title:
            self._scan_xrefs(meta.title, line.location)
        return block

    def _parse_block(self, meta: _Metadata, nested: bool = False, in_list: bool = False) -> Block | None:
        reader = self.reader
        line = reader.peek()
        text = line.text
        style = meta.style

        if DELIMITER_RE.match(text):
            return self._parse_delimited(meta)
        if TABLE_RE.match(text):
            return self._parse_table(meta)
        if text in ("'''", "---", "***", "* * *", "- - -"):
            reader.advance()
            return self._new_block(BlockKind.THEMATIC_BREAK, line, meta)
        if text == "<<<":
            reader.advance()
            return self._new_block(BlockKind.PAGE_BREAK, line, meta)

        image = IMAGE_BLOCK_RE.match(text)
        if image:
            reader.advance()
            attrs = parse_attrlist(self.attrs.substitute(image.group(2), line.location), shorthand=False)
            meta.attrlist.named.update(attrs.named)
            if attrs.positional:
                meta.attrlist.named.setdefault("alt", attrs.positional[0])
                if len(attrs.positional) > 1:
                    meta.attrlist.named.setdefault("width", attrs.positional[1])
                if len(attrs.positional) > 2:
                    meta.attrlist.named.setdefault("height", attrs.positional[2])
            return self._new_block(BlockKind.IMAGE, line, meta, target=self.attrs.substitute(image.group(1).strip()))

        heading = SECTION_RE.match(text)
        if heading and (nested or style in ("discrete", "float")):
            reader.advance()
            level = len(heading.group(1)) - 1 + self.attrs.leveloffset()
            heading_text = self.attrs.resolve_counters(heading.group(2))
            block = self._new_block(BlockKind.HEADING, line, meta, lines=[heading_text], level=max(level, 1))
            if block.id is None and self.attrs.is_set("sectids"):
                block.id = self._section_id(heading_text)
                self._register_id(block.id, self._title_text(heading_text), line.location)
            return block

        if style not in VERBATIM_STYLES:
            marker = self._list_marker(text)
            if marker is not None:
                kind, key, _ = marker
                return self._parse_list(kind, key, meta, ())

            admonition = ADMONITION_RE.match(text)
            if admonition and style is None:
                lines = self._read_paragraph_lines(in_list)
                lines[0] = admonition.group(2)
                block = self._new_block(BlockKind.ADMONITION, line, meta, lines=lines)
                block.style = admonition.group(1)
                self._scan_xrefs("\n".join(lines), line.location)
                return block

        if text[:1] in (" ", "\t") and style is None:
            lines = []
            while reader.has_more() and reader.peek().text.strip():
                lines.append(reader.advance().text)
            return self._new_block(BlockKind.LITERAL, line, meta, lines=_dedent(lines))

        lines = self._read_paragraph_lines(in_list)
        return self._styled_paragraph(line, meta, lines)

    def _read_paragraph_lines(self, in_list: bool) -> list[str]:
        reader = self.reader
        lines = [reader.advance().text]
        while reader.has_more():
            text = reader.peek().text
            if not text.strip() or text == "+":
                break
            if DELIMITER_RE.match(text) or TABLE_RE.match(text):
                break
            if text.startswith("[") and BLOCK_ATTRS_RE.match(text):
                break
            if in_list and self._list_marker(text) is not None:
                break
            if text.startswith("//") and not COMMENT_BLOCK_RE.match(text):
                reader.advance()
                continue
            lines.append(reader.advance().text)
        return lines

    def _styled_paragraph(self, line: SourceLine, meta: _Metadata, lines: list[str]) -> Block:
        style = meta.style
        if style in ("source", "listing"):
            return self._new_block(BlockKind.LISTING, line, meta, lines=lines, language=self._language(meta))
        if style == "literal":
            return self._new_block(BlockKind.LITERAL, line, meta, lines=lines)
        if style == "pass":
            return self._new_block(BlockKind.PASS, line, meta, lines=lines)
        self._scan_xrefs("\n".join(lines), line.location)
        if style in ADMONITION_LABELS:
            return self._new_block(BlockKind.ADMONITION, line, meta, lines=lines)
        if style in ("quote", "verse"):
            return self._new_block(BlockKind.QUOTE, line, meta, lines=lines)
        if style in ("sidebar", "example"):
            kind = BlockKind.SIDEBAR if style == "sidebar" else BlockKind.EXAMPLE
            inner = self._new_block(BlockKind.PARAGRAPH, line, _Metadata(), lines=lines)
            return self._new_block(kind, line, meta, blocks=[inner])
        return self._new_block(BlockKind.PARAGRAPH, line, meta, lines=lines)

    def _language(self, meta: _Metadata) -> str | None:
        if meta.style == "source":
            return meta.attrlist.get(2) or meta.attrlist.get("language") or self.attrs.get("source-language")
        return meta.attrlist.get("language") or self.attrs.get("source-language")

    def _parse_delimited(self, meta: _Metadata) -> Block | None:
        reader = self.reader
        opener = reader.advance()
        delimiter = opener.text
        closer = "```" if delimiter.startswith("```") else delimiter

        inner: list[SourceLine] = []
        closed = False
        while reader.has_more():
            line = reader.advance()
            if line.text == closer:
                closed = True
                break
            inner.append(line)
        if not closed:
            self._markup_error(
                "unterminated-block",
                f"unterminated {_delimiter_name(delimiter)} block",
                opener.location,
            )

        style = meta.style
        texts = [line.text for line in inner]
        char = delimiter[0]

        if delimiter.startswith("```"):
            language = delimiter[3:].strip() or self._language(meta)
            return self._new_block(BlockKind.LISTING, opener, meta, lines=texts, language=language)
        if char == "/":
            return None
        if char == "-" and delimiter != "--":
            if style == "literal":
                return self._new_block(BlockKind.LITERAL, opener, meta, lines=texts)
            if style == "pass":
                return self._new_block(BlockKind.PASS, opener, meta, lines=texts)
            return self._new_block(BlockKind.LISTING, opener, meta, lines=texts, language=self._language(meta))
        if char == ".":
            if style in ("source", "listing"):
                return self._new_block(BlockKind.LISTING, opener, meta, lines=texts, language=self._language(meta))
            return self._new_block(BlockKind.LITERAL, opener, meta, lines=texts)
        if char == "+":
            return self._new_block(BlockKind.PASS, opener, meta, lines=texts)

        # Compound blocks
        if delimiter == "--" and style in VERBATIM_STYLES:
            kind = {
                "source": BlockKind.LISTING,
                "listing": BlockKind.LISTING,
                "literal": BlockKind.LITERAL,
                "pass": BlockKind.PASS,
            }[style]
            language = self._language(meta) if kind is BlockKind.LISTING else None
            return self._new_block(kind, opener, meta, lines=texts, language=language)

        if style in ADMONITION_LABELS and char in "=-":
            kind = BlockKind.ADMONITION
        elif char == "=":
            kind = BlockKind.EXAMPLE
        elif char == "*":
            kind = BlockKind.SIDEBAR
        elif char == "_":
            kind = BlockKind.QUOTE
        elif style == "sidebar":
            kind = BlockKind.SIDEBAR
        elif style == "example":
            kind = BlockKind.EXAMPLE
        elif style in ("quote", "verse"):
            kind = BlockKind.QUOTE
        else:
            kind = BlockKind.OPEN

        block = self._new_block(kind, opener, meta)
        if kind is BlockKind.QUOTE and style == "verse":
            block.lines = texts
        else:
            block.blocks = self._parse_nested(inner)
        return block

    # ── Lists ────────────────────────────────────────────────────

    def _list_marker(self, text: str) -> tuple[BlockKind, str, re.Match[str]] | None:
        if not text or text[0] not in " \t*-.<" and not text[0].isdigit() and "::" not in text and ";;" not in text:
            return None
        match = COLIST_RE.match(text)
        if match:
            return BlockKind.COLIST, "co", match
        match = ULIST_RE.match(text)
        if match:
            return BlockKind.ULIST, f"ul:{match.group(1)}", match
        match = OLIST_RE.match(text)
        if match:
            marker = match.group(1)
            key = marker if marker.startswith(".") else "1."
            return BlockKind.OLIST, f"ol:{key}", match
        if text[0] in " \t":
            return None
        match = DLIST_RE.match(text)
        if match and not text.startswith(("[", ":", "//")) and "://" not in match.group(1) + match.group(2):
            return BlockKind.DLIST, f"dl:{match.group(2)}", match
        return None

    def _parse_list(self, kind: BlockKind, key: str, meta: _Metadata, ancestors: tuple[str, ...]) -> Block:
        reader = self.reader
        first = reader.peek()
        block = self._new_block(kind, first, meta)
        if kind is BlockKind.OLIST:
            start = re.match(r"^[ \t]*(\d+)\.", first.text)
            if start and start.group(1) != "1" and "start" not in block.attrlist.named:
                block.attrlist.named["start"] = start.group(1)
        lineage = ancestors + (key,)

        while reader.has_more():
            marker = self._list_marker(reader.peek().text)
            if marker is None or marker[1] != key:
                break
            line = reader.advance()
            block.items.append(self._parse_list_item(kind, marker[2], line, lineage))
        return block

    def _parse_list_item(
        self,
        kind: BlockKind,
        match: re.Match[str],
        line: SourceLine,
        lineage: tuple[str, ...],
    ) -> ListItem:
        reader = self.reader
        if kind is BlockKind.DLIST:
            term: str | None = match.group(1)
            first_text = match.group(3) or ""
        else:
            term = None
            first_text = match.group(2)

        text_lines = [first_text] if first_text else []
        while reader.has_more():
            text = reader.peek().text
            if not text.strip() or text == "+":
                break
            if text.startswith("//") and not COMMENT_BLOCK_RE.match(text):
                reader.advance()
                continue
            if self._list_marker(text) is not None:
                break
            if DELIMITER_RE.match(text) or TABLE_RE.match(text) or (text.startswith("[") and BLOCK_ATTRS_RE.match(text)):
                break
            text_lines.append(reader.advance().text.strip())

        item = ListItem(
            text="\n".join(text_lines),
            location=line.location,
            attributes=self.attrs,
            term=term,
        )
        self._scan_xrefs(item.text + ("\n" + term if term else ""), line.location)

        while reader.has_more():
            text = reader.peek().text
            if text == "+":
                reader.advance()
                meta = self._read_metadata()
                if reader.has_more():
                    attached = self._parse_block(meta, nested=True, in_list=True)
                    if attached is not None:
                        item.blocks.append(attached)
                continue
            if not text.strip():
                upcoming = reader.peek_nonblank()
                if upcoming is None or self._list_marker(upcoming.text) is None:
                    break
                reader.skip_blank()
                text = reader.peek().text
            marker = self._list_marker(text)
            if marker is None:
                break
            nested_kind, nested_key, _ = marker
            if nested_key in lineage:
                break
            item.blocks.append(self._parse_list(nested_kind, nested_key, _Metadata(), lineage))
        return item

    # ── Tables ───────────────────────────────────────────────────

    def _parse_table(self, meta: _Metadata) -> Block:
        reader = self.reader
        opener = reader.advance()
        delimiter = opener.text
        inner: list[SourceLine] = []
        closed = False
        while reader.has_more():
            line = reader.advance()
            if line.text == delimiter:
                closed = True
                break
            inner.append(line)
        if not closed:
            self._markup_error("unterminated-block", "unterminated table block", opener.location)

        attrs = meta.attrlist
        default_format = {"|": "psv", "!": "psv", ",": "csv", ":": "dsv"}[delimiter[0]]
        fmt = attrs.get("format") or default_format
        columns = _parse_columns(attrs.get("cols")) if attrs.get("cols") else []

        if fmt == "psv":
            separator = attrs.get("separator") or ("!" if delimiter[0] == "!" else "|")
            cells, first_line_cells, implicit_header = self._psv_cells(inner, separator)
        else:
            cells, first_line_cells, implicit_header = self._dsv_cells(inner, fmt, attrs.get("separator"))

        if not columns:
            count = sum(c.colspan for c in first_line_cells) or 1
            columns = [TableColumn() for _ in range(count)]

        rows = _group_rows(cells, len(columns))
        for row in rows:
            for index, cell in enumerate(row):
                column = columns[min(index, len(columns) - 1)]
                if cell.style is None:
                    cell.style = column.style
                if cell.style == "a":
                    cell.blocks = self._parse_nested(
                        [SourceLine(t, cell.location.path or "", (cell.location.line or 0) + n) for n, t in enumerate(cell.text.split("\n"))]
                    )
                elif cell.text:
                    self._scan_xrefs(cell.text, cell.location)

        options = attrs.options
        has_header = "header" in options or (
            "noheader" not in options
            and implicit_header
            and len(first_line_cells) >= 1
            and sum(c.colspan for c in first_line_cells) == len(columns)
        )
        table = Table(columns=columns)
        if has_header and rows:
            table.head = [rows.pop(0)]
            for cell in table.head[0]:
                if cell.style == "a":
                    cell.style = None
        if "footer" in options and rows:
            table.foot = [rows.pop()]
        table.body = rows

        return self._new_block(BlockKind.TABLE, opener, meta, table=table)

    def _psv_cells(self, inner: list[SourceLine], separator: str) -> tuple[list[TableCell], list[TableCell], bool]:
        split_re = re.compile(r"(?<!\\)" + re.escape(separator))
        escaped = "\\" + separator
        cells: list[TableCell] = []
        first_line_cells: list[TableCell] = []
        first_line: int | None = None
        implicit_header = False
        current: TableCell | None = None
        pending_spec: str | None = None

        for index, line in enumerate(inner):
            text = line.text
            parts = split_re.split(text)
            if len(parts) == 1:
                if current is not None:
                    current.text += "\n" + text.replace(escaped, separator)
                if first_line is not None and index == first_line + 1 and not text.strip():
                    implicit_header = True
                continue

            head, spec = _split_cell_spec(parts[0])
            if current is not None and head.strip():
                current.text += "\n" + head.replace(escaped, separator)
            if first_line is None:
                first_line = index
            elif index == first_line + 1:
                implicit_header = False
            pending_spec = spec
            for k in range(1, len(parts)):
                if k < len(parts) - 1:
                    cell_text, next_spec = _split_cell_spec(parts[k])
                else:
                    cell_text, next_spec = parts[k], None
                produced = _make_cells(pending_spec, cell_text.replace(escaped, separator), line.location)
                cells.extend(produced)
                if index == first_line:
                    first_line_cells.extend(produced)
                current = produced[-1]
                pending_spec = next_spec

        for cell in cells:
            cell.text = cell.text.strip() if cell.style not in ("l", "a") else _strip_blank_edges(cell.text)
        return cells, first_line_cells, implicit_header

    def _dsv_cells(self, inner: list[SourceLine], fmt: str, separator: str | None) -> tuple[list[TableCell], list[TableCell], bool]:
        cells: list[TableCell] = []
        first_line_cells: list[TableCell] = []
        implicit_header = False
        content = [line for line in inner]
        first_index = next((i for i, line in enumerate(content) if line.text.strip()), None)
        if first_index is not None and first_index + 1 < len(content) and not content[first_index + 1].text.strip():
            implicit_header = True
        for n, line in enumerate(content):
            if not line.text.strip():
                continue
            if fmt == "csv":
                values = next(csv.reader(io.StringIO(line.text), delimiter=separator or ","), [])
            else:
                values = re.split(r"(?<!\\)" + re.escape(separator or ":"), line.text)
            produced = [TableCell(v.strip(), line.location) for v in values]
            cells.extend(produced)
            if n == first_index:
                first_line_cells = produced
        return cells, first_line_cells, implicit_header


# ── Module helpers ───────────────────────────────────────────────


def _delimiter_name(delimiter: str) -> str:
    return {
        "-": "listing",
        ".": "literal",
        "=": "example",
        "*": "sidebar",
        "_": "quote",
        "+": "passthrough",
        "/": "comment",
        "`": "fenced code",
    }.get(delimiter[0], "open") if delimiter != "--" else "open"


def _dedent(lines: list[str]) -> list[str]:
    widths = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    strip = min(widths) if widths else 0
    return [line[strip:] for line in lines]


def _strip_blank_edges(text: str) -> str:
    lines = text.split("\n")
    while lines and not lines[0].strip():
        lines.pop(0)
    while lines and not lines[-1].strip():
        lines.pop()
    return "\n".join(lines)


def _split_cell_spec(text: str) -> tuple[str, str | None]:
    """Split a trailing cell spec (``2+``, ``a``, ``^.>s``) off ``text``."""
    match = re.search(r"(^|[ \t])(\S+)$", text)
    if match:
        candidate = match.group(2)
        spec = CELL_SPEC_RE.fullmatch(candidate)
        if spec and candidate:
            return text[: match.start(2)], candidate
    return text, None


def _make_cells(spec: str | None, text: str, location: Location) -> list[TableCell]:
    colspan = rowspan = dup = 1
    halign = valign = style = None
    if spec:
        match = CELL_SPEC_RE.fullmatch(spec)
        if match:
            if match.group("dup"):
                dup = int(match.group("dup"))
            elif spec.endswith("+") or "+" in spec:
                colspan = int(match.group("colspan") or 1)
                rowspan = int(match.group("rowspan") or 1)
            halign = HALIGN.get(match.group("halign") or "")
            valign = VALIGN.get(match.group("valign") or "")
            style = match.group("style")
    return [
        TableCell(text, location, style=style, colspan=colspan, rowspan=rowspan, halign=halign, valign=valign)
        for _ in range(dup)
    ]


def _parse_columns(spec: str) -> list[TableColumn]:
    spec = spec.strip()
    if spec.isdigit():
        return [TableColumn() for _ in range(int(spec))]
    columns: list[TableColumn] = []
    for entry in re.split(r"[,;]", spec):
        entry = entry.strip()
        match = COL_SPEC_RE.fullmatch(entry) if entry else None
        if match is None:
            columns.append(TableColumn())
            continue
        repeat = int(match.group("repeat") or 1)
        width_s = (match.group("width") or "1").rstrip("%")
        width = int(width_s) if width_s.isdigit() else 1
        for _ in range(repeat):
            columns.append(
                TableColumn(
                    width=width,
                    halign=HALIGN.get(match.group("halign") or "", "left"),
                    valign=VALIGN.get(match.group("valign") or "", "top"),
                    style=match.group("style"),
                )
            )
    return columns


def _group_rows(cells: list[TableCell], ncols: int) -> list[list[TableCell]]:
    """Group cells into rows, honouring colspan and rowspan."""
    rows: list[list[TableCell]] = []
    current: list[TableCell] = []
    carried = [0] * ncols  # rows below still covered by a rowspan
    started = [0] * ncols
    col = 0

    def skip(position: int) -> int:
        while position < ncols and carried[position] > 0:
            position += 1
        return position

    col = skip(col)
    for cell in cells:
        current.append(cell)
        for covered in range(col, min(col + cell.colspan, ncols)):
            started[covered] = cell.rowspan - 1
        col = skip(col + cell.colspan)
        if col >= ncols:
            rows.append(current)
            current = []
            carried = [max(c - 1, 0, s) for c, s in zip(carried, started)]
            started = [0] * ncols
            col = skip(0)
    if current:
        rows.append(current)
    return rows
