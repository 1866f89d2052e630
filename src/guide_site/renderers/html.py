"""
HTML renderer.

Converts a parsed ``Document`` to HTML. Block conversion is done in
Python and emits the element structure and class names Asciidoctor's
HTML5 converter uses (``sect1``, ``paragraph``, ``listingblock``,
``admonitionblock note``, ``tableblock``, ...) so an existing site
stylesheet applies unchanged. The page around the content comes from
Jinja2 templates shipped with the package.

Manifesto:
    The renderer never fails on content. Everything that could be
    wrong with a guide was reported by the loader and parser; what
    reaches the renderer is converted as faithfully as possible.
    Template problems, on the other hand, are programming errors and
    raise ``RenderError``.

Architecture:
    ::

        Document ──► HtmlRenderer.convert_body()
                          │   per block kind: _convert_<kind>()
                          │   inline text:   convert_inline(ctx)
                          ▼
                     RenderedGuide(body, toc, footnotes)
                          │
                          ▼
                     guide.html.j2 (extends base.html.j2)

Tags:
    renderer, html, jinja2
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape
from markupsafe import Markup
from markupsafe import escape as _escape_attr

from guide_site.asciidoc.attributes import AttributeStore
from guide_site.asciidoc.inline import InlineContext, convert_inline, escape, image_uri, sub_quotes
from guide_site.asciidoc.model import (
    ADMONITION_LABELS,
    Block,
    BlockKind,
    Document,
    ListItem,
    Section,
    TableCell,
    TableColumn,
)
from guide_site.catalog import GuideCatalog, GuideEntry
from guide_site.config import SiteSettings
from guide_site.diagnostics import DiagnosticLog
from guide_site.errors import Location, RenderError
from guide_site.logging import get_logger

log = get_logger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"

CALLOUT_RE = re.compile(
    r"(?:(?://|#|--|;;) ?)?(\\)?&lt;(\d+|\.)&gt;(?=(?: ?\\?&lt;(?:\d+|\.)&gt;)*\s*$)", re.M
)
OLIST_STYLES = ["arabic", "loweralpha", "lowerroman", "upperalpha", "upperroman"]
OLIST_TYPES = {"arabic": None, "loweralpha": "a", "lowerroman": "i", "upperalpha": "A", "upperroman": "I"}
CELL_TAGS = {"e": "em", "s": "strong", "m": "code"}
CHECKBOX_RE = re.compile(r"^\[[ xX*]\] ")


@dataclass
class TocEntry:
    id: str
    title: Markup
    level: int
    children: list[TocEntry] = field(default_factory=list)


@dataclass
class RenderedGuide:
    """Converted content of one guide, ready for a page template."""

    slug: str
    title: Markup
    body: Markup
    toc: list[TocEntry]
    toc_title: str
    footnotes: list[tuple[int, Markup]]
    attributes: dict[str, str]


class HtmlRenderer:
    """Render guides and the catalog index to HTML.

    Args:
        settings: Site settings (title, base url)
        template_dir: Override for the packaged templates
        diagnostics: Receives render-time diagnostics (unknown xref ids)
    """

    template_name = "guide.html.j2"
    index_template_name = "index.html.j2"

    def __init__(
        self,
        settings: SiteSettings | None = None,
        template_dir: Path | None = None,
        diagnostics: DiagnosticLog | None = None,
    ):
        self.settings = settings or SiteSettings()
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml", "html.j2"]),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._counters: dict[str, int] = {}
        self._ctx: InlineContext | None = None

    # ── Pages ────────────────────────────────────────────────────

    def render(self, document: Document, entry: GuideEntry | None = None) -> str:
        """Render a complete HTML page for ``document``.

        Raises:
            RenderError: If the page template cannot be loaded or rendered
        """
        guide = self.convert(document)
        return self._render_template(
            self.template_name,
            guide=guide,
            entry=entry,
            title=strip_markup(guide.title) or guide.slug,
            location=Location.of(document.source_path),
        )

    def render_index(self, catalog: GuideCatalog, available: set[str]) -> str:
        """Render the catalog index page.

        Args:
            catalog: Guides catalog
            available: Slugs of guides rendered in this build
        """
        return self._render_template(
            self.index_template_name,
            catalog=catalog,
            available=available,
            title=self.settings.site_title,
            location=None,
        )

    def _render_template(self, name: str, *, location: Location | None, **context: Any) -> str:
        try:
            template = self.env.get_template(name)
            return template.render(
                site_title=self.settings.site_title,
                base_url=self.settings.base_url.rstrip("/"),
                **context,
            )
        except TemplateError as e:
            raise RenderError(f"cannot render template {name}: {e}", location=location, cause=e) from e

    # ── Document ─────────────────────────────────────────────────

    def convert(self, document: Document) -> RenderedGuide:
        """Convert a document's content without the page around it."""
        self._counters = {}
        self._ctx = InlineContext(
            attributes=document.header_attributes,
            ids=document.ids,
            diagnostics=self.diagnostics,
        )
        title = Markup(self._inline(document.title, document.header_attributes)) if document.title else Markup("")

        parts: list[str] = []
        if document.blocks:
            preamble = self._blocks(document.blocks)
            if document.sections and document.title:
                parts.append(f'<div id="preamble">\n<div class="sectionbody">\n{preamble}\n</div>\n</div>')
            else:
                parts.append(preamble)
        for number, section in enumerate(document.sections, 1):
            parts.append(self._section(section, str(number)))

        attrs = document.header_attributes
        toc: list[TocEntry] = []
        if attrs.is_set("toc"):
            levels = attrs.get("toclevels", "2") or "2"
            toc = self._toc(document.sections, int(levels) if levels.isdigit() else 2)

        footnotes = [(f.index, Markup(self._inline(f.text, attrs))) for f in self._ctx.footnotes]
        return RenderedGuide(
            slug=document.slug,
            title=title,
            body=Markup("\n".join(parts)),
            toc=toc,
            toc_title=attrs.get("toc-title") or "Table of Contents",
            footnotes=footnotes,
            attributes=document.attributes.as_dict(),
        )

    def convert_body(self, document: Document) -> Markup:
        guide = self.convert(document)
        return guide.body + Markup(self._footnotes_html(guide.footnotes))

    @staticmethod
    def _footnotes_html(footnotes: list[tuple[int, Markup]]) -> str:
        if not footnotes:
            return ""
        items = "\n".join(
            f'<div class="footnote" id="_footnotedef_{i}">\n<a href="#_footnoteref_{i}">{i}</a>. {text}\n</div>'
            for i, text in footnotes
        )
        return f'\n<div id="footnotes">\n<hr>\n{items}\n</div>'

    def _toc(self, sections: list[Section], levels: int) -> list[TocEntry]:
        entries = []
        for section in sections:
            if section.level > levels or not section.id:
                continue
            entries.append(TocEntry(
                id=section.id,
                title=Markup(self._inline(section.title, section.attributes)),
                level=section.level,
                children=self._toc(section.sections, levels),
            ))
        return entries

    # ── Helpers ──────────────────────────────────────────────────

    def _inline(self, text: str, attributes: AttributeStore, location: Location | None = None) -> str:
        assert self._ctx is not None
        return convert_inline(text, self._ctx.with_attributes(attributes, location))

    def _caption(self, kind: str, label: str, block: Block) -> str:
        if block.attrlist.get("caption") is not None:
            return block.attrlist.get("caption") or ""
        self._counters[kind] = self._counters.get(kind, 0) + 1
        return f"{label} {self._counters[kind]}. "

    def _title_div(self, block: Block, caption: str = "") -> str:
        if not block.title:
            return ""
        return f'<div class="title">{caption}{self._inline(block.title, block.attributes, block.location)}</div>\n'

    @staticmethod
    def _open(css: str, block: Block, tag: str = "div") -> str:
        classes = " ".join([css] + block.roles)
        id_attr = f' id="{_escape_attr(block.id)}"' if block.id else ""
        return f'<{tag}{id_attr} class="{_escape_attr(classes)}">'

    def _blocks(self, blocks: list[Block], olist_depth: int = 0) -> str:
        return "\n".join(self._block(block, olist_depth) for block in blocks)

    def _block(self, block: Block, olist_depth: int = 0) -> str:
        converter = getattr(self, f"_convert_{block.kind.value}")
        if block.kind is BlockKind.OLIST:
            return converter(block, olist_depth)
        return converter(block)

    # ── Sections ─────────────────────────────────────────────────

    def _section(self, section: Section, number: str) -> str:
        depth = section.level
        prefix = f"{number}. " if section.attributes.is_set("sectnums") else ""

        title = self._inline(section.title, section.attributes, section.location)
        id_attr = f' id="{_escape_attr(section.id)}"' if section.id else ""
        heading = f"<h{depth + 1}{id_attr}>{prefix}{title}</h{depth + 1}>"

        body = self._blocks(section.blocks)
        children = [self._section(child, f"{number}.{n}") for n, child in enumerate(section.sections, 1)]
        content = "\n".join(p for p in [body] + children if p)

        roles = " ".join(section.attrlist.roles)
        css = f"sect{depth}" + (f" {roles}" if roles else "")
        if depth == 1:
            return f'<div class="{css}">\n{heading}\n<div class="sectionbody">\n{content}\n</div>\n</div>'
        return f'<div class="{css}">\n{heading}\n{content}\n</div>'

    # ── Blocks ───────────────────────────────────────────────────

    def _convert_paragraph(self, block: Block) -> str:
        text = self._inline(block.text, block.attributes, block.location)
        return f"{self._open('paragraph', block)}\n{self._title_div(block)}<p>{text}</p>\n</div>"

    def _verbatim(self, block: Block, callouts: bool = True) -> str:
        subs = {s.strip().strip("+-") for s in (block.attrlist.get("subs") or "").split(",") if s.strip()}
        text = escape(block.text)
        if "quotes" in subs:
            text = sub_quotes(text)
        if "attributes" in subs:
            text = block.attributes.substitute(text, block.location)
        if callouts and "-callouts" not in (block.attrlist.get("subs") or ""):
            autonum = iter(range(1, 1000))

            def conum(m: re.Match[str]) -> str:
                if m.group(1):
                    return m.group(0).replace("\\", "", 1)
                number = str(next(autonum)) if m.group(2) == "." else m.group(2)
                return f'<b class="conum">({number})</b>'

            text = CALLOUT_RE.sub(conum, text)
        return text

    def _convert_listing(self, block: Block) -> str:
        text = self._verbatim(block)
        if block.language:
            lang = _escape_attr(block.language)
            pre = f'<pre class="highlight"><code class="language-{lang}" data-lang="{lang}">{text}</code></pre>'
        else:
            pre = f'<pre class="highlight"><code>{text}</code></pre>' if block.style == "source" else f"<pre>{text}</pre>"
        caption = self._caption("listing", "Listing", block) if block.title and block.attributes.is_set("listing-caption") else ""
        return (
            f"{self._open('listingblock', block)}\n{self._title_div(block, caption)}"
            f'<div class="content">\n{pre}\n</div>\n</div>'
        )

    def _convert_literal(self, block: Block) -> str:
        text = self._verbatim(block, callouts=False)
        return (
            f"{self._open('literalblock', block)}\n{self._title_div(block)}"
            f'<div class="content">\n<pre>{text}</pre>\n</div>\n</div>'
        )

    def _convert_pass(self, block: Block) -> str:
        subs = block.attrlist.get("subs") or ""
        if "attributes" in subs:
            return block.attributes.substitute(block.text, block.location)
        return block.text

    def _convert_admonition(self, block: Block) -> str:
        name = (block.style or "NOTE").upper()
        label = block.attributes.get(f"{name.lower()}-caption") or ADMONITION_LABELS.get(name, name.title())
        if block.attributes.get("icons") == "font":
            icon = f'<i class="fa icon-{name.lower()}" title="{_escape_attr(label)}"></i>'
        else:
            icon = f'<div class="title">{escape(label)}</div>'
        if block.blocks:
            content = self._blocks(block.blocks)
        else:
            content = self._inline(block.text, block.attributes, block.location)
        return (
            f"{self._open(f'admonitionblock {name.lower()}', block)}\n<table>\n<tr>\n"
            f'<td class="icon">\n{icon}\n</td>\n'
            f'<td class="content">\n{self._title_div(block)}{content}\n</td>\n'
            f"</tr>\n</table>\n</div>"
        )

    def _item_body(self, item: ListItem, olist_depth: int = 0, marker: str = "") -> str:
        parts = []
        if item.text:
            parts.append(f"<p>{marker}{self._inline(item.text, item.attributes, item.location)}</p>")
        if item.blocks:
            parts.append(self._blocks(item.blocks, olist_depth))
        return "\n".join(parts)

    def _convert_ulist(self, block: Block) -> str:
        checklist = any(CHECKBOX_RE.match(item.text) for item in block.items)
        items = []
        for item in block.items:
            if checklist and CHECKBOX_RE.match(item.text):
                mark = "&#10063; " if item.text[1] == " " else "&#10003; "
                item = replace(item, text=item.text[4:])
                items.append(f"<li>\n{self._item_body(item, marker=mark)}\n</li>")
            else:
                items.append(f"<li>\n{self._item_body(item)}\n</li>")
        css = "ulist checklist" if checklist else "ulist"
        ul = '<ul class="checklist">' if checklist else "<ul>"
        return f"{self._open(css, block)}\n{self._title_div(block)}{ul}\n" + "\n".join(items) + "\n</ul>\n</div>"

    def _convert_olist(self, block: Block, depth: int = 0) -> str:
        style = block.style if block.style in OLIST_STYLES else OLIST_STYLES[depth % len(OLIST_STYLES)]
        attrs = f' class="{style}"'
        if OLIST_TYPES[style]:
            attrs += f' type="{OLIST_TYPES[style]}"'
        start = block.attrlist.get("start")
        if start:
            attrs += f' start="{_escape_attr(start)}"'
        items = "\n".join(f"<li>\n{self._item_body(item, depth + 1)}\n</li>" for item in block.items)
        return f"{self._open(f'olist {style}', block)}\n{self._title_div(block)}<ol{attrs}>\n{items}\n</ol>\n</div>"

    def _convert_dlist(self, block: Block) -> str:
        entries = []
        for item in block.items:
            term = self._inline(item.term or "", item.attributes, item.location)
            entry = f'<dt class="hdlist1">{term}</dt>'
            body = self._item_body(item)
            if body:
                entry += f"\n<dd>\n{body}\n</dd>"
            entries.append(entry)
        return f"{self._open('dlist', block)}\n{self._title_div(block)}<dl>\n" + "\n".join(entries) + "\n</dl>\n</div>"

    def _convert_colist(self, block: Block) -> str:
        items = "\n".join(f"<li>\n{self._item_body(item)}\n</li>" for item in block.items)
        return f"{self._open('colist arabic', block)}\n{self._title_div(block)}<ol>\n{items}\n</ol>\n</div>"

    def _cell(self, cell: TableCell, tag: str, column: TableColumn, attributes: AttributeStore) -> str:
        style = cell.style if tag == "th" else cell.style or column.style
        halign = cell.halign or column.halign
        valign = cell.valign or column.valign
        if style == "h" and tag == "td":
            tag = "th"
        spans = ""
        if cell.colspan > 1:
            spans += f' colspan="{cell.colspan}"'
        if cell.rowspan > 1:
            spans += f' rowspan="{cell.rowspan}"'
        open_tag = f'<{tag} class="tableblock halign-{halign} valign-{valign}"{spans}>'

        if tag == "th" and style != "h":
            return f"{open_tag}{self._inline(cell.text, attributes, cell.location)}</{tag}>"
        if style == "a":
            content = f'<div class="content">{self._blocks(cell.blocks)}</div>'
        elif style == "l":
            content = f'<div class="literal"><pre>{escape(cell.text)}</pre></div>'
        else:
            paragraphs = [p for p in re.split(r"\n[ \t]*\n", cell.text) if p.strip()] or [""]
            inner_tag = CELL_TAGS.get(style or "")
            rendered = []
            for paragraph in paragraphs:
                text = self._inline(paragraph, attributes, cell.location)
                if inner_tag:
                    text = f"<{inner_tag}>{text}</{inner_tag}>"
                rendered.append(f'<p class="tableblock">{text}</p>')
            content = "\n".join(rendered)
        return f"{open_tag}{content}</{tag}>"

    def _convert_table(self, block: Block) -> str:
        table = block.table
        assert table is not None
        attributes = block.attributes

        frame = block.attrlist.get("frame") or "all"
        grid = block.attrlist.get("grid") or "all"
        width = block.attrlist.get("width")
        classes = ["tableblock", f"frame-{frame}", f"grid-{grid}"]
        if "autowidth" in block.attrlist.options:
            classes.append("fit-content")
        elif not width:
            classes.append("stretch")
        classes += block.roles
        style_attr = f' style="width: {_escape_attr(width.rstrip("%"))}%;"' if width and "autowidth" not in block.attrlist.options else ""
        id_attr = f' id="{_escape_attr(block.id)}"' if block.id else ""

        parts = [f'<table{id_attr} class="{" ".join(classes)}"{style_attr}>']
        if block.title:
            caption = self._caption("table", "Table", block)
            parts.append(f'<caption class="title">{caption}{self._inline(block.title, attributes)}</caption>')
        parts.append("<colgroup>")
        for pct in table.width_percentages:
            parts.append(f'<col style="width: {pct:g}%;">')
        parts.append("</colgroup>")

        for section, rows, tag in (("thead", table.head, "th"), ("tbody", table.body, "td"), ("tfoot", table.foot, "td")):
            if not rows:
                continue
            parts.append(f"<{section}>")
            for row in rows:
                cells = "\n".join(
                    self._cell(cell, tag, table.columns[min(i, len(table.columns) - 1)], attributes)
                    for i, cell in enumerate(row)
                )
                parts.append(f"<tr>\n{cells}\n</tr>")
            parts.append(f"</{section}>")
        parts.append("</table>")
        return "\n".join(parts)

    def _compound(self, css: str, block: Block, caption: str = "") -> str:
        return (
            f"{self._open(css, block)}\n{self._title_div(block, caption)}"
            f'<div class="content">\n{self._blocks(block.blocks)}\n</div>\n</div>'
        )

    def _convert_sidebar(self, block: Block) -> str:
        return (
            f"{self._open('sidebarblock', block)}\n<div class=\"content\">\n"
            f"{self._title_div(block)}{self._blocks(block.blocks)}\n</div>\n</div>"
        )

    def _convert_example(self, block: Block) -> str:
        caption = self._caption("example", "Example", block) if block.title else ""
        return self._compound("exampleblock", block, caption)

    def _convert_open(self, block: Block) -> str:
        if block.style == "abstract":
            return self._compound("quoteblock abstract", block)
        return self._compound("openblock", block)

    def _convert_quote(self, block: Block) -> str:
        attribution = block.attrlist.get(2) or block.attrlist.get("attribution")
        citetitle = block.attrlist.get(3) or block.attrlist.get("citetitle")
        footer = ""
        if attribution or citetitle:
            inner = f"&#8212; {self._inline(attribution, block.attributes)}" if attribution else ""
            if citetitle:
                inner += f"{'<br>' if inner else ''}\n<cite>{self._inline(citetitle, block.attributes)}</cite>"
            footer = f'\n<div class="attribution">\n{inner}\n</div>'

        if block.style == "verse":
            text = self._inline(block.text, block.attributes, block.location)
            return f'{self._open("verseblock", block)}\n{self._title_div(block)}<pre class="content">{text}</pre>{footer}\n</div>'
        if block.blocks:
            content = self._blocks(block.blocks)
        else:
            content = self._inline(block.text, block.attributes, block.location)
        return f"{self._open('quoteblock', block)}\n{self._title_div(block)}<blockquote>\n{content}\n</blockquote>{footer}\n</div>"

    def _convert_heading(self, block: Block) -> str:
        level = block.level + 1
        id_attr = f' id="{_escape_attr(block.id)}"' if block.id else ""
        classes = " ".join(["discrete"] + block.roles)
        title = self._inline(block.text, block.attributes, block.location)
        return f'<h{level}{id_attr} class="{classes}">{title}</h{level}>'

    def _convert_thematic_break(self, block: Block) -> str:
        return "<hr>"

    def _convert_page_break(self, block: Block) -> str:
        return '<div style="page-break-after: always;"></div>'

    def _convert_image(self, block: Block) -> str:
        target = block.target or ""
        named = block.attrlist.named
        alt = named.get("alt") or re.sub(r"[_-]", " ", target.rsplit("/", 1)[-1].rsplit(".", 1)[0])
        img = f'<img src="{_escape_attr(image_uri(target, block.attributes))}" alt="{_escape_attr(alt)}"'
        for dimension in ("width", "height"):
            if named.get(dimension):
                img += f' {dimension}="{_escape_attr(named[dimension])}"'
        img += ">"
        if named.get("link"):
            img = f'<a class="image" href="{_escape_attr(named["link"])}">{img}</a>'
        caption = self._caption("figure", "Figure", block) if block.title else ""
        title = ""
        if block.title:
            title = f'\n<div class="title">{caption}{self._inline(block.title, block.attributes)}</div>'
        return f"{self._open('imageblock', block)}\n<div class=\"content\">\n{img}\n</div>{title}\n</div>"


def strip_markup(value: Markup | str) -> str:
    return Markup(value).striptags() if value else ""


__all__ = ["HtmlRenderer", "RenderedGuide", "TocEntry", "strip_markup"]
