"""Tests for guide_site.asciidoc.parser — document structure."""

from guide_site.asciidoc.model import BlockKind, Xref
from guide_site.diagnostics import Severity


class TestHeader:
    def test_title_author_revision(self, parse):
        doc = parse("""
            = Getting Started
            Jane Doe <jane@example.com>
            v1.2, 2024-01-01
            :toc:

            Intro paragraph.
        """)
        assert doc.title == "Getting Started"
        assert doc.attributes["author"] == "Jane Doe"
        assert doc.attributes["email"] == "jane@example.com"
        assert doc.attributes["revnumber"] == "1.2"
        assert doc.header_attributes.is_set("toc")
        assert [b.kind for b in doc.blocks] == [BlockKind.PARAGRAPH]
        assert doc.blocks[0].lines == ["Intro paragraph."]

    def test_no_header(self, parse):
        doc = parse("Just text.")
        assert doc.title is None
        assert doc.blocks[0].text == "Just text."

    def test_markdown_style_title(self, parse):
        assert parse("# Title\n\ntext").title == "Title"

    def test_attribute_snapshots_per_block(self, parse):
        doc = parse("""
            :product: A

            First {product}.

            :product: B

            Second.
        """)
        assert doc.blocks[0].attributes["product"] == "A"
        assert doc.blocks[1].attributes["product"] == "B"


class TestSections:
    def test_nesting_and_auto_ids(self, parse):
        doc = parse("""
            = Doc

            == First Section

            Text.

            === Sub

            == First Section
        """)
        first, second = doc.sections
        assert first.level == 1
        assert first.id == "_first_section"
        assert second.id == "_first_section_2"
        assert first.sections[0].level == 2
        assert first.sections[0].id == "_sub"
        assert first.blocks[0].text == "Text."
        assert doc.ids["_first_section"] == "First Section"

    def test_explicit_ids(self, parse):
        doc = parse("""
            = Doc

            [[custom,Custom Title]]
            == Title

            [#other]
            == Two
        """)
        assert [s.id for s in doc.sections] == ["custom", "other"]
        assert doc.ids["custom"] == "Custom Title"
        assert doc.ids["other"] == "Two"

    def test_sectids_unset_disables_auto_ids(self, parse):
        doc = parse("= Doc\n:sectids!:\n\n== Plain")
        assert doc.sections[0].id is None

    def test_leveloffset(self, parse, diagnostics):
        doc = parse("""
            = Doc

            :leveloffset: +1

            = Part

            Text
        """)
        assert doc.sections[0].level == 1
        assert doc.sections[0].title == "Part"
        assert not diagnostics.warnings

    def test_level_zero_section_warns(self, parse, diagnostics):
        doc = parse("= Doc\n\n= Another")
        assert doc.sections[0].level == 1
        assert diagnostics.by_code("section-level-zero")

    def test_out_of_sequence_warns(self, parse, diagnostics):
        parse("= Doc\n\n==== Deep")
        [warning] = diagnostics.by_code("section-out-of-sequence")
        assert warning.location.line == 3

    def test_counter_titles_resolved_once(self, parse):
        doc = parse("= Doc\n\n== Step {counter:step}\n\n== Step {counter:step}")
        assert [(s.title, s.id) for s in doc.sections] == [("Step 1", "_step_1"), ("Step 2", "_step_2")]
        assert doc.sections[1].attributes["step"] == "2"

    def test_xref_scan_does_not_advance_counters(self, parse):
        doc = parse("See <<_step_{counter:n}>>.\n\n== Step {counter:n}")
        assert doc.sections[0].title == "Step 1"

    def test_discrete_heading_is_a_block(self, parse):
        doc = parse("[discrete]\n== Not a section")
        assert doc.sections == []
        assert doc.blocks[0].kind is BlockKind.HEADING
        assert doc.blocks[0].level == 1

    def test_section_title_inside_example_is_heading(self, parse):
        doc = parse("====\n== Inner\n====")
        example = doc.blocks[0]
        assert example.kind is BlockKind.EXAMPLE
        assert example.blocks[0].kind is BlockKind.HEADING


class TestDelimitedBlocks:
    def test_source_listing(self, parse):
        doc = parse("""
            [source,java]
            ----
            class A {}
            ----
        """)
        block = doc.blocks[0]
        assert block.kind is BlockKind.LISTING
        assert block.language == "java"
        assert block.lines == ["class A {}"]

    def test_default_source_language(self, parse):
        doc = parse(":source-language: java\n\n[source]\n----\nx\n----")
        assert doc.blocks[0].language == "java"

    def test_fenced_code(self, parse):
        doc = parse("```yaml\nkey: v\n```")
        assert doc.blocks[0].kind is BlockKind.LISTING
        assert doc.blocks[0].language == "yaml"

    def test_unterminated_block(self, parse, diagnostics):
        doc = parse("----\ncode")
        assert doc.blocks[0].lines == ["code"]
        [error] = diagnostics.by_code("unterminated-block")
        assert error.severity is Severity.ERROR
        assert error.location.line == 1

    def test_literal_block_and_indented_paragraph(self, parse):
        doc = parse("....\n*raw*\n....\n\n  indented text")
        assert [b.kind for b in doc.blocks] == [BlockKind.LITERAL, BlockKind.LITERAL]
        assert doc.blocks[1].lines == ["indented text"]

    def test_titled_example(self, parse):
        doc = parse(".Title\n====\nInside\n====")
        block = doc.blocks[0]
        assert block.kind is BlockKind.EXAMPLE
        assert block.title == "Title"
        assert block.blocks[0].kind is BlockKind.PARAGRAPH

    def test_quote_with_attribution(self, parse):
        doc = parse("[quote, Author]\n____\nWords.\n____")
        block = doc.blocks[0]
        assert block.kind is BlockKind.QUOTE
        assert block.attrlist.get(2) == "Author"

    def test_comments_are_dropped(self, parse):
        doc = parse("// comment\nText\n////\nblock comment\n////")
        assert [b.text for b in doc.blocks] == ["Text"]

    def test_breaks(self, parse):
        doc = parse("a\n\n'''\n\n<<<")
        assert [b.kind for b in doc.blocks] == [BlockKind.PARAGRAPH, BlockKind.THEMATIC_BREAK, BlockKind.PAGE_BREAK]

    def test_image_block(self, parse):
        block = parse("image::arch.png[Architecture, 600]").blocks[0]
        assert block.kind is BlockKind.IMAGE
        assert block.target == "arch.png"
        assert block.attrlist.named["alt"] == "Architecture"
        assert block.attrlist.named["width"] == "600"


class TestAdmonitions:
    def test_paragraph_admonition(self, parse):
        block = parse("NOTE: Be careful.").blocks[0]
        assert block.kind is BlockKind.ADMONITION
        assert block.style == "NOTE"
        assert block.lines == ["Be careful."]

    def test_block_admonition(self, parse):
        block = parse("[WARNING]\n====\nInside.\n====").blocks[0]
        assert block.kind is BlockKind.ADMONITION
        assert block.style == "WARNING"
        assert block.blocks[0].text == "Inside."


class TestLists:
    def test_nested_unordered(self, parse):
        block = parse("* one\n** nested\n* two").blocks[0]
        assert block.kind is BlockKind.ULIST
        assert [i.text for i in block.items] == ["one", "two"]
        nested = block.items[0].blocks[0]
        assert nested.kind is BlockKind.ULIST
        assert nested.items[0].text == "nested"

    def test_ordered_with_start(self, parse):
        block = parse("3. three\n4. four").blocks[0]
        assert block.kind is BlockKind.OLIST
        assert len(block.items) == 2
        assert block.attrlist.named["start"] == "3"

    def test_description_list(self, parse):
        block = parse("quarkus.http.port:: The port.\nother:: Other.").blocks[0]
        assert block.kind is BlockKind.DLIST
        assert [(i.term, i.text) for i in block.items] == [
            ("quarkus.http.port", "The port."),
            ("other", "Other."),
        ]

    def test_callout_list(self, parse):
        doc = parse("----\nfoo <1>\n----\n<1> The foo.")
        assert doc.blocks[1].kind is BlockKind.COLIST
        assert doc.blocks[1].items[0].text == "The foo."

    def test_list_continuation(self, parse):
        block = parse("""
            * Step one
            +
            ----
            mvn package
            ----
            * Step two
        """).blocks[0]
        assert len(block.items) == 2
        attached = block.items[0].blocks[0]
        assert attached.kind is BlockKind.LISTING
        assert attached.lines == ["mvn package"]

    def test_blank_line_between_items(self, parse):
        block = parse("* one\n\n* two").blocks[0]
        assert len(block.items) == 2


class TestTables:
    def test_header_option_and_columns(self, parse):
        block = parse("""
            [cols="1,2", options="header"]
            |===
            |Name |Value
            |a |b
            |===
        """).blocks[0]
        table = block.table
        assert [c.text for c in table.head[0]] == ["Name", "Value"]
        assert [[c.text for c in row] for row in table.body] == [["a", "b"]]
        assert [c.width for c in table.columns] == [1, 2]

    def test_implicit_header(self, parse):
        table = parse("|===\n|Name |Value\n\n|a |b\n|===").blocks[0].table
        assert [c.text for c in table.head[0]] == ["Name", "Value"]
        assert len(table.body) == 1

    def test_asciidoc_cell(self, parse):
        table = parse('[cols="1,1"]\n|===\na|* item\n|plain\n|===').blocks[0].table
        cell = table.body[0][0]
        assert cell.style == "a"
        assert cell.blocks[0].kind is BlockKind.ULIST

    def test_colspan(self, parse):
        table = parse("|===\n|a |b |c\n\n2+|wide |d\n|===").blocks[0].table
        wide, last = table.body[0]
        assert wide.colspan == 2
        assert last.text == "d"

    def test_rowspan(self, parse):
        table = parse('[cols="2"]\n|===\n.2+|tall |x\n|y\n|===').blocks[0].table
        assert [[c.text for c in row] for row in table.body] == [["tall", "x"], ["y"]]
        assert table.body[0][0].rowspan == 2

    def test_csv_table(self, parse):
        table = parse('[format=csv]\n|===\na,b\nc,"d,e"\n|===').blocks[0].table
        assert [[c.text for c in row] for row in table.body] == [["a", "b"], ["c", "d,e"]]

    def test_column_styles_and_alignment(self, parse):
        table = parse('[cols="^1,>2m"]\n|===\n|a |b\n|===').blocks[0].table
        assert [c.halign for c in table.columns] == ["center", "right"]
        assert table.body[0][1].style == "m"

    def test_unterminated_table(self, parse, diagnostics):
        parse("|===\n|a")
        assert diagnostics.by_code("unterminated-block")


class TestIdsAndXrefs:
    def test_duplicate_id_warns(self, parse, diagnostics):
        parse("[[x]]\nPara one.\n\n[[x]]\nPara two.")
        assert diagnostics.by_code("duplicate-id")

    def test_xrefs_recorded(self, parse):
        doc = parse("See <<_first>> and xref:other.adoc#frag[Other].")
        targets = {(x.path, x.fragment) for x in doc.xrefs}
        assert targets == {(None, "_first"), ("other.adoc", "frag")}
        assert all(isinstance(x, Xref) and x.location.line == 1 for x in doc.xrefs)

    def test_inline_anchor_registered(self, parse):
        doc = parse("[[my-anchor]]Text here.")
        assert "my-anchor" in doc.ids
