"""
Inline substitutions.

Converts the text of a paragraph, list item, table cell or title into
HTML. Substitutions run in the usual AsciiDoc order:

1. special characters (``&``, ``<``, ``>``)
2. quotes (strong, emphasis, monospace, mark, superscript, subscript)
3. attribute references
4. replacements (``(C)``, ``--``, ``...``, arrows)
5. macros (links, cross references, anchors, footnotes, icons, kbd, images)
6. post replacements (hard line breaks)

Passthroughs (``+text+``, ``++text++``, ``+++text+++``, ``pass:[text]``)
are extracted first and restored last, so nothing touches them.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass, field

from guide_site.asciidoc.attributes import AttributeStore
from guide_site.asciidoc.attrlist import parse_attrlist
from guide_site.diagnostics import DiagnosticLog
from guide_site.errors import Location

PLACEHOLDER = "\x96{}\x97"
PLACEHOLDER_RE = re.compile("\x96(\\d+)\x97")

PASS_TRIPLE_RE = re.compile(r"\\?\+\+\+(.+?)\+\+\+", re.S)
PASS_DOUBLE_RE = re.compile(r"\\?\+\+(.+?)\+\+", re.S)
PASS_SINGLE_RE = re.compile(r"(^|[^\w;:\\}])\+(\S|\S.*?\S)\+(?!\w)", re.S)
PASS_MACRO_RE = re.compile(r"\\?pass:([a-z,]*)\[(.*?[^\\])?\]", re.S)

_ROLE = r"(?:\[([^\]]+)\])?"

QUOTE_SUBS: list[tuple[str, bool, re.Pattern[str]]] = [
    ("strong", False, re.compile(r"\\?" + _ROLE + r"\*\*(.+?)\*\*", re.S)),
    ("strong", True, re.compile(r"(^|[^\w;:}])" + _ROLE + r"\*(\S|\S.*?\S)\*(?!\w)", re.S)),
    ("monospace", False, re.compile(r"\\?" + _ROLE + r"``(.+?)``", re.S)),
    ("monospace", True, re.compile(r"(^|[^\w;:\"'`}])" + _ROLE + r"`(\S|\S.*?\S)`(?![\w\"'`])", re.S)),
    ("emphasis", False, re.compile(r"\\?" + _ROLE + r"__(.+?)__", re.S)),
    ("emphasis", True, re.compile(r"(^|[^\w;:}])" + _ROLE + r"_(\S|\S.*?\S)_(?!\w)", re.S)),
    ("mark", False, re.compile(r"\\?" + _ROLE + r"##(.+?)##", re.S)),
    ("mark", True, re.compile(r"(^|[^\w&;:}])" + _ROLE + r"#(\S|\S.*?\S)#(?!\w)", re.S)),
    ("superscript", False, re.compile(r"\\?" + _ROLE + r"\^(\S+?)\^")),
    ("subscript", False, re.compile(r"\\?" + _ROLE + r"~(\S+?)~")),
]

QUOTE_TAGS = {
    "strong": "strong",
    "emphasis": "em",
    "monospace": "code",
    "mark": "mark",
    "superscript": "sup",
    "subscript": "sub",
}

# (pattern, replacement, what to keep of the match: none | leading)
REPLACEMENTS: list[tuple[re.Pattern[str], str, str]] = [
    (re.compile(r"\\?\(C\)"), "&#169;", "none"),
    (re.compile(r"\\?\(R\)"), "&#174;", "none"),
    (re.compile(r"\\?\(TM\)"), "&#8482;", "none"),
    (re.compile(r"(?:^| )\\?--(?: |$)", re.M), "&#8201;&#8212;&#8201;", "none"),
    (re.compile(r"(\w)\\?--(?=\w)"), "&#8212;&#8203;", "leading"),
    (re.compile(r"\\?\.\.\."), "&#8230;&#8203;", "none"),
    (re.compile(r"\\?`'"), "&#8217;", "none"),
    (re.compile(r"(\w)\\?'(?=\w)"), "&#8217;", "leading"),
    (re.compile(r"\\?-&gt;"), "&#8594;", "none"),
    (re.compile(r"\\?=&gt;"), "&#8658;", "none"),
    (re.compile(r"\\?&lt;-"), "&#8592;", "none"),
    (re.compile(r"\\?&lt;="), "&#8656;", "none"),
]

ANCHOR_RE = re.compile(r"\\?\[\[([\w:][\w:.-]*)(?:,\s*(.+?))?\]\]")
XREF_SHORTHAND_RE = re.compile(r"\\?&lt;&lt;([\w\":./#-][^,&]*?)(?:,\s*(.+?))?&gt;&gt;", re.S)
XREF_MACRO_RE = re.compile(r"\\?xref:([^\s\[]+)\[(.*?)\]", re.S)
LINK_MACRO_RE = re.compile(r"\\?(?:link|mailto):([^\s\[]+)\[(.*?)\]", re.S)
URL_RE = re.compile(
    r"(^|[\s(>\]]|&lt;)\\?((?:https?|ftp|irc)://[^\s\[\]<]*[^\s.,\[\]<)])(?:\[(.*?)\])?", re.S
)
KBD_RE = re.compile(r"\\?kbd:\[(.+?)\]")
ICON_RE = re.compile(r"\\?icon:(\S+?)\[(.*?)\]")
IMAGE_RE = re.compile(r"\\?image:([^:\s\[][^\s\[]*)\[(.*?)\]")
FOOTNOTE_RE = re.compile(r"\\?footnote:([\w-]+)?\[(.*?)\]", re.S)
HARD_BREAK_RE = re.compile(r" \+(?=\n|$)")

RAW_XREF_MACRO_RE = re.compile(r"(?<!\\)xref:([^\s\[]+)\[")
RAW_XREF_SHORTHAND_RE = re.compile(r"(?<!\\)<<([\w\":./#-][^,>]*?)(?:,[^>]*)?>>")


@dataclass
class Footnote:
    index: int
    id: str | None
    text: str


@dataclass
class InlineContext:
    """State shared by every inline conversion in one document."""

    attributes: AttributeStore
    ids: dict[str, str] = field(default_factory=dict)
    footnotes: list[Footnote] = field(default_factory=list)
    outfilesuffix: str = ".html"
    diagnostics: DiagnosticLog | None = None
    location: Location | None = None

    def with_attributes(self, attributes: AttributeStore, location: Location | None = None) -> InlineContext:
        return InlineContext(
            attributes=attributes,
            ids=self.ids,
            footnotes=self.footnotes,
            outfilesuffix=self.outfilesuffix,
            diagnostics=self.diagnostics,
            location=location,
        )


def split_xref_target(target: str) -> tuple[str | None, str | None]:
    """Split an xref target into (document path, fragment).

    Examples:
        >>> split_xref_target("cdi-reference.adoc#observers")
        ('cdi-reference.adoc', 'observers')
        >>> split_xref_target("config-reference#profiles")
        ('config-reference.adoc', 'profiles')
        >>> split_xref_target("_configuration_reference")
        (None, '_configuration_reference')
    """
    target = target.strip().strip('"')
    if "#" in target:
        path, _, fragment = target.partition("#")
        path_or_none = path or None
        frag_or_none = fragment or None
    elif target.endswith(".adoc") or "/" in target:
        path_or_none, frag_or_none = target, None
    else:
        return None, target or None
    if path_or_none is not None and "." not in path_or_none.rsplit("/", 1)[-1]:
        path_or_none += ".adoc"
    return path_or_none, frag_or_none


def find_xrefs(text: str) -> list[tuple[str | None, str | None]]:
    """Cross references in raw (unsubstituted) text."""
    found = []
    for match in RAW_XREF_MACRO_RE.finditer(text):
        found.append(split_xref_target(match.group(1)))
    for match in RAW_XREF_SHORTHAND_RE.finditer(text):
        found.append(split_xref_target(match.group(1)))
    return found


def escape(text: str) -> str:
    return html.escape(text, quote=False)


def _attr(value: str) -> str:
    return html.escape(value, quote=True)


class _Passthroughs:
    def __init__(self) -> None:
        self.values: list[str] = []

    def stash(self, value: str) -> str:
        self.values.append(value)
        return PLACEHOLDER.format(len(self.values) - 1)

    def restore(self, text: str) -> str:
        if not self.values:
            return text

        def put_back(match: re.Match[str]) -> str:
            return self.values[int(match.group(1))]

        # Stashed values can themselves contain placeholders
        for _ in range(3):
            if not PLACEHOLDER_RE.search(text):
                break
            text = PLACEHOLDER_RE.sub(put_back, text)
        return text


def _extract_passthroughs(text: str, stash: _Passthroughs) -> str:
    def triple(m: re.Match[str]) -> str:
        if m.group(0).startswith("\\"):
            return m.group(0)[1:]
        return stash.stash(m.group(1))

    def double(m: re.Match[str]) -> str:
        if m.group(0).startswith("\\"):
            return m.group(0)[1:]
        return stash.stash(escape(m.group(1)))

    def macro(m: re.Match[str]) -> str:
        if m.group(0).startswith("\\"):
            return m.group(0)[1:]
        content = (m.group(2) or "").replace("\\]", "]")
        subs = m.group(1)
        return stash.stash(escape(content) if "c" in subs.split(",") else content)

    def single(m: re.Match[str]) -> str:
        return m.group(1) + stash.stash(escape(m.group(2)))

    if "+" in text:
        text = PASS_TRIPLE_RE.sub(triple, text)
        text = PASS_DOUBLE_RE.sub(double, text)
        text = PASS_SINGLE_RE.sub(single, text)
    if "pass:" in text:
        text = PASS_MACRO_RE.sub(macro, text)
    return text


def _open_tag(tag: str, attrlist: str | None) -> str:
    if not attrlist:
        return f"<{tag}>"
    attrs = parse_attrlist(attrlist)
    parts = []
    if attrs.id:
        parts.append(f' id="{_attr(attrs.id)}"')
    roles = attrs.roles or ([attrs.positional[0]] if attrs.positional and attrs.positional[0] else [])
    if roles:
        parts.append(f' class="{_attr(" ".join(roles))}"')
    return f"<{tag}{''.join(parts)}>"


def sub_quotes(text: str) -> str:
    for kind, constrained, pattern in QUOTE_SUBS:
        tag = QUOTE_TAGS[kind]
        if constrained:

            def repl(m: re.Match[str], tag: str = tag, kind: str = kind) -> str:
                prefix, role, content = m.group(1), m.group(2), m.group(3)
                if kind == "mark" and not role:
                    return f"{prefix}<mark>{content}</mark>"
                if kind == "mark":
                    return f"{prefix}{_open_tag('span', role)}{content}</span>"
                return f"{prefix}{_open_tag(tag, role)}{content}</{tag}>"

        else:

            def repl(m: re.Match[str], tag: str = tag, kind: str = kind) -> str:
                if m.group(0).startswith("\\"):
                    return m.group(0)[1:]
                role, content = m.group(1), m.group(2)
                if kind == "mark" and role:
                    return f"{_open_tag('span', role)}{content}</span>"
                return f"{_open_tag(tag, role)}{content}</{tag}>"

        text = pattern.sub(repl, text)
    return text


def sub_replacements(text: str) -> str:
    for pattern, replacement, keep in REPLACEMENTS:

        def repl(m: re.Match[str], replacement: str = replacement, keep: str = keep) -> str:
            whole = m.group(0)
            if "\\" in whole:
                return whole.replace("\\", "", 1)
            if keep == "leading":
                return m.group(1) + replacement
            return replacement

        text = pattern.sub(repl, text)
    return text


def _link(href: str, text: str, attrlist: str | None, css: str | None = None) -> str:
    attrs = parse_attrlist(attrlist or "", shorthand=False) if attrlist else None
    window = attrs.get("window") if attrs else None
    if text.endswith("^"):
        text = text[:-1]
        window = "_blank"
    classes = [css] if css else []
    if attrs and attrs.get("role"):
        classes.append(attrs.get("role") or "")
    parts = [f'<a href="{_attr(html.unescape(href))}"']
    if classes:
        parts.append(f' class="{_attr(" ".join(classes))}"')
    if window:
        parts.append(f' target="{_attr(window)}"')
        if window == "_blank":
            parts.append(' rel="noopener"')
    parts.append(f">{text}</a>")
    return "".join(parts)


def _link_text(attrlist: str) -> str:
    """First positional attribute of a link macro (text may contain commas if quoted)."""
    if not attrlist:
        return ""
    if "=" not in attrlist:
        return attrlist
    attrs = parse_attrlist(attrlist, shorthand=False)
    return attrs.get(1) or ""


def sub_macros(text: str, ctx: InlineContext, stash: _Passthroughs) -> str:
    attributes = ctx.attributes

    if "kbd:" in text:
        def kbd(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            keys = [k.strip() for k in re.split(r"(?<!\+)\+|,", m.group(1)) if k.strip()]
            rendered = "+".join(f"<kbd>{k}</kbd>" for k in keys)
            return stash.stash(f'<span class="keyseq">{rendered}</span>' if len(keys) > 1 else rendered)

        text = KBD_RE.sub(kbd, text)

    if "icon:" in text:
        def icon(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            name = m.group(1)
            attrs = parse_attrlist(m.group(2), shorthand=False)
            title = attrs.get("title")
            if attributes.get("icons") == "font":
                title_attr = f' title="{_attr(title)}"' if title else ""
                return stash.stash(f'<span class="icon"><i class="fa fa-{_attr(name)}"{title_attr}></i></span>')
            return stash.stash(f'<span class="icon">[{escape(attrs.get("alt") or name)}&#93;</span>')

        text = ICON_RE.sub(icon, text)

    if "image:" in text:
        def image(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            target = m.group(1)
            attrs = parse_attrlist(m.group(2), shorthand=False)
            alt = attrs.get(1) or re.sub(r"[_-]", " ", target.rsplit("/", 1)[-1].rsplit(".", 1)[0])
            src = image_uri(target, attributes)
            return stash.stash(f'<span class="image"><img src="{_attr(src)}" alt="{_attr(alt)}"></span>')

        text = IMAGE_RE.sub(image, text)

    if "[[" in text:
        def anchor(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            return stash.stash(f'<a id="{_attr(m.group(1))}"></a>')

        text = ANCHOR_RE.sub(anchor, text)

    if "xref:" in text or "&lt;&lt;" in text:
        def xref(target: str, label: str | None) -> str:
            path, fragment = split_xref_target(target)
            if path is None:
                href = f"#{fragment}"
                default = ctx.ids.get(fragment or "") or f"[{fragment}]"
            else:
                base = path[:-5] + ctx.outfilesuffix if path.endswith(".adoc") else path
                href = f"{base}#{fragment}" if fragment else base
                default = href
            return stash.stash(f'<a href="{_attr(href)}">{label or escape(default)}</a>')

        def xref_macro(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            return xref(m.group(1), _link_text(m.group(2)).strip() or None)

        def xref_shorthand(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            return xref(m.group(1), (m.group(2) or "").strip() or None)

        text = XREF_MACRO_RE.sub(xref_macro, text)
        text = XREF_SHORTHAND_RE.sub(xref_shorthand, text)

    if "link:" in text or "mailto:" in text:
        def link_macro(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            target = m.group(1)
            is_mail = m.group(0).lstrip("\\").startswith("mailto:")
            href = f"mailto:{target}" if is_mail else target
            label = _link_text(m.group(2)).strip() or escape(target)
            css = "bare" if not is_mail and label == escape(target) else None
            return stash.stash(_link(href, label, m.group(2), css))

        text = LINK_MACRO_RE.sub(link_macro, text)

    if "://" in text:
        def url(m: re.Match[str]) -> str:
            lead, target, label = m.group(1), m.group(2), m.group(3)
            if m.group(0)[len(lead):].startswith("\\"):
                return lead + m.group(0)[len(lead) + 1:]
            trail = ""
            if lead == "&lt;" and target.endswith("&gt;"):
                lead, target = "", target[:-4]
            elif target.endswith("&gt;"):
                target, trail = target[:-4], "&gt;"
            if label is None or not label.strip():
                return lead + stash.stash(_link(target, escape(target), None, "bare")) + trail
            return lead + stash.stash(_link(target, _link_text(label).strip(), label))

        text = URL_RE.sub(url, text)

    if "footnote:" in text:
        def footnote(m: re.Match[str]) -> str:
            if m.group(0).startswith("\\"):
                return m.group(0)[1:]
            fid, content = m.group(1), m.group(2)
            existing = next((f for f in ctx.footnotes if fid and f.id == fid), None)
            if existing is not None and not content:
                index = existing.index
            else:
                index = len(ctx.footnotes) + 1
                ctx.footnotes.append(Footnote(index, fid, content))
            return stash.stash(
                f'<sup class="footnote">[<a id="_footnoteref_{index}" class="footnote" '
                f'href="#_footnotedef_{index}" title="View footnote.">{index}</a>]</sup>'
            )

        text = FOOTNOTE_RE.sub(footnote, text)

    return text


def image_uri(target: str, attributes: AttributeStore) -> str:
    if re.match(r"^(?:[a-z]+:)?//|^/|^data:", target):
        return target
    imagesdir = attributes.get("imagesdir")
    if imagesdir:
        return f"{imagesdir.rstrip('/')}/{target}"
    return target


def convert_inline(text: str, ctx: InlineContext, subs: str = "normal") -> str:
    """Apply inline substitutions to ``text``.

    Args:
        text: Raw AsciiDoc text
        ctx: Attributes, known ids and footnote collector
        subs: ``normal`` for prose, ``verbatim`` for listing content
            (special characters only), ``none`` for passthrough

    Examples:
        >>> ctx = InlineContext(AttributeStore({"project": "guide-site"}))
        >>> convert_inline("Use *{project}* & `mvn`", ctx)
        'Use <strong>guide-site</strong> &amp; <code>mvn</code>'
    """
    if subs == "none":
        return text
    if subs == "verbatim":
        return escape(text)

    stash = _Passthroughs()
    text = _extract_passthroughs(text, stash)
    text = escape(text)
    text = sub_quotes(text)
    text = ctx.attributes.substitute(text, ctx.location)
    text = sub_replacements(text)
    text = sub_macros(text, ctx, stash)
    text = HARD_BREAK_RE.sub("<br>", text)
    return stash.restore(text)


TAG_RE = re.compile(r"<[^>]+>")
INVALID_ID_CHARS_RE = re.compile(r"&(?:[a-z][a-z]+\d{0,2}|#\d{2,5}|#x[\da-f]{2,4});|[^ \w.-]+")


def generate_id(title_html: str, prefix: str = "_", separator: str = "_") -> str:
    """Auto-generate a section id from converted title HTML.

    Examples:
        >>> generate_id("Configuring the <em>cache</em>")
        '_configuring_the_cache'
    """
    text = TAG_RE.sub("", title_html).lower()
    text = INVALID_ID_CHARS_RE.sub("", text)
    if separator:
        text = re.sub(r"[ .-]+", separator, text).rstrip(separator)
        if prefix and text.startswith(separator) and prefix.endswith(separator):
            text = text.lstrip(separator)
    else:
        text = text.replace(" ", "")
    return f"{prefix}{text}"


def strip_tags(html_text: str) -> str:
    return html.unescape(TAG_RE.sub("", html_text))
