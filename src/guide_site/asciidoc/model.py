"""
Document model produced by the parser.

The model is a plain tree of dataclasses. Text-bearing nodes keep their
raw AsciiDoc text; inline substitutions happen when the tree is
rendered, using the attribute snapshot stored on each node so that an
attribute redefined halfway through a guide only affects what follows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator

from guide_site.asciidoc.attributes import AttributeStore
from guide_site.asciidoc.attrlist import AttributeList
from guide_site.errors import Location


class BlockKind(str, Enum):
    PARAGRAPH = "paragraph"
    LISTING = "listing"
    LITERAL = "literal"
    ADMONITION = "admonition"
    ULIST = "ulist"
    OLIST = "olist"
    DLIST = "dlist"
    COLIST = "colist"
    TABLE = "table"
    SIDEBAR = "sidebar"
    EXAMPLE = "example"
    QUOTE = "quote"
    OPEN = "open"
    HEADING = "heading"
    THEMATIC_BREAK = "thematic_break"
    PAGE_BREAK = "page_break"
    IMAGE = "image"
    PASS = "pass"


ADMONITION_LABELS = {
    "NOTE": "Note",
    "TIP": "Tip",
    "IMPORTANT": "Important",
    "CAUTION": "Caution",
    "WARNING": "Warning",
}


@dataclass
class ListItem:
    text: str
    location: Location
    attributes: AttributeStore
    term: str | None = None
    blocks: list[Block] = field(default_factory=list)


@dataclass
class TableColumn:
    width: int = 1
    halign: str = "left"
    valign: str = "top"
    style: str | None = None


@dataclass
class TableCell:
    text: str
    location: Location
    style: str | None = None
    colspan: int = 1
    rowspan: int = 1
    halign: str | None = None
    valign: str | None = None
    blocks: list[Block] = field(default_factory=list)


@dataclass
class Table:
    columns: list[TableColumn]
    head: list[list[TableCell]] = field(default_factory=list)
    body: list[list[TableCell]] = field(default_factory=list)
    foot: list[list[TableCell]] = field(default_factory=list)

    @property
    def width_percentages(self) -> list[float]:
        total = sum(c.width for c in self.columns) or 1
        return [round(c.width * 100 / total, 4) for c in self.columns]


@dataclass
class Block:
    """A block-level node."""

    kind: BlockKind
    location: Location
    attributes: AttributeStore
    lines: list[str] = field(default_factory=list)
    blocks: list[Block] = field(default_factory=list)
    items: list[ListItem] = field(default_factory=list)
    table: Table | None = None
    title: str | None = None
    id: str | None = None
    style: str | None = None
    language: str | None = None
    target: str | None = None
    level: int = 0
    attrlist: AttributeList = field(default_factory=AttributeList)

    @property
    def roles(self) -> list[str]:
        return self.attrlist.roles

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass
class Section:
    level: int
    title: str
    id: str | None
    location: Location
    attributes: AttributeStore
    blocks: list[Block] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    attrlist: AttributeList = field(default_factory=AttributeList)

    def walk(self) -> Iterator[Section]:
        yield self
        for section in self.sections:
            yield from section.walk()


@dataclass(frozen=True)
class Xref:
    """A cross reference found in the source.

    ``path`` is None for a reference inside the same document.
    """

    path: str | None
    fragment: str | None
    location: Location

    @property
    def is_internal(self) -> bool:
        return self.path is None


@dataclass
class Document:
    title: str | None
    source_path: Path
    attributes: AttributeStore
    header_attributes: AttributeStore
    blocks: list[Block] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    ids: dict[str, str] = field(default_factory=dict)
    xrefs: list[Xref] = field(default_factory=list)
    includes: list[Path] = field(default_factory=list)

    @property
    def slug(self) -> str:
        return self.source_path.stem

    def walk_sections(self) -> Iterator[Section]:
        for section in self.sections:
            yield from section.walk()

    def walk_blocks(self) -> Iterator[Block]:
        """Every block in document order, nested ones included."""
        def visit(blocks: list[Block]) -> Iterator[Block]:
            for block in blocks:
                yield block
                yield from visit(block.blocks)
                for item in block.items:
                    yield from visit(item.blocks)
                if block.table is not None:
                    for row in block.table.head + block.table.body + block.table.foot:
                        for cell in row:
                            yield from visit(cell.blocks)

        yield from visit(self.blocks)
        for section in self.walk_sections():
            yield from visit(section.blocks)
