"""AsciiDoc processing -- preprocess, parse and substitute.

Architecture::

    Layer 1 -- Attributes
        attributes.py      AttributeStore, entries, {name} substitution
        attrlist.py        [style,key=value,%option] attribute lists

    Layer 2 -- Preprocessing
        loader.py          include:: / ifdef / ifndef / ifeval → SourceLine list

    Layer 3 -- Structure
        model.py           Document, Section, Block, Table dataclasses
        parser.py          SourceDocument → Document

    Layer 4 -- Inline
        inline.py          quotes, replacements, macros, xrefs

Tags:
    asciidoc, loader, parser, inline
"""

from pathlib import Path

from guide_site.asciidoc.attributes import AttributeEntry, AttributeStore
from guide_site.asciidoc.attrlist import AttributeList, parse_attrlist
from guide_site.asciidoc.inline import InlineContext, convert_inline
from guide_site.asciidoc.loader import DocumentLoader, SourceDocument, SourceLine
from guide_site.asciidoc.model import Block, BlockKind, Document, ListItem, Section, Table, Xref
from guide_site.asciidoc.parser import Parser
from guide_site.diagnostics import DiagnosticLog


def parse_document(
    source: str | Path,
    attributes: dict[str, str] | None = None,
    diagnostics: DiagnosticLog | None = None,
    *,
    text: str | None = None,
) -> Document:
    """Load and parse a guide in one call.

    Pass ``text`` to parse in-memory content; ``source`` is then only
    used as the document path for includes and diagnostics.
    """
    diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
    loader = DocumentLoader(attributes, diagnostics=diagnostics)
    loaded = loader.load_text(text, source) if text is not None else loader.load(source)
    return Parser(loaded, diagnostics).parse()


__all__ = [
    "AttributeEntry",
    "AttributeList",
    "AttributeStore",
    "Block",
    "BlockKind",
    "DiagnosticLog",
    "Document",
    "DocumentLoader",
    "InlineContext",
    "ListItem",
    "Parser",
    "Section",
    "SourceDocument",
    "SourceLine",
    "Table",
    "Xref",
    "convert_inline",
    "parse_attrlist",
    "parse_document",
]
