"""Tests for guide_site.renderers.html."""

import pytest

from guide_site.catalog import GuideEntry, load_catalog
from guide_site.config import SiteSettings
from guide_site.errors import RenderError
from guide_site.renderers.html import HtmlRenderer


@pytest.fixture
def renderer():
    return HtmlRenderer(SiteSettings(site_title="Docs", base_url="/guides/"))


@pytest.fixture
def body(parse, renderer):
    def _body(content, attributes=None):
        return str(renderer.convert_body(parse(content, attributes)))

    return _body


class TestSections:
    def test_paragraph(self, body):
        assert body("Hello *world*.") == '<div class="paragraph">\n<p>Hello <strong>world</strong>.</p>\n</div>'

    def test_section_structure(self, body):
        html = body("= Doc\n\n== Intro\n\nText.")
        assert '<div class="sect1">\n<h2 id="_intro">Intro</h2>\n<div class="sectionbody">' in html

    def test_preamble_wrapper(self, body):
        html = body("= Doc\n\nLead.\n\n== Intro\n\nText.")
        assert html.startswith('<div id="preamble">\n<div class="sectionbody">')

    def test_section_numbers(self, body):
        html = body("= Doc\n:sectnums:\n\n== A\n\n=== B\n\n== C")
        assert '<h2 id="_a">1. A</h2>' in html
        assert '<h3 id="_b">1.1. B</h3>' in html
        assert '<h2 id="_c">2. C</h2>' in html

    def test_discrete_heading(self, body):
        assert 'class="discrete">Aside</h3>' in body("[discrete]\n=== Aside")


class TestBlocks:
    def test_source_listing_with_callout(self, body):
        html = body("[source,java]\n----\nif (a < b) {} // <1>\n----")
        assert (
            '<pre class="highlight"><code class="language-java" data-lang="java">'
            'if (a &lt; b) {} <b class="conum">(1)</b></code></pre>'
        ) in html

    def test_listing_attribute_substitution_is_opt_in(self, body):
        assert "echo {v}" in body("----\necho {v}\n----", {"v": "1.0"})
        assert "echo 1.0" in body("[subs=attributes+]\n----\necho {v}\n----", {"v": "1.0"})

    def test_literal_is_escaped(self, body):
        assert "<pre>&lt;raw&gt;</pre>" in body("....\n<raw>\n....")

    def test_passthrough_block(self, body):
        assert body("++++\n<video/>\n++++") == "<video/>"

    def test_admonition_text_label(self, body):
        html = body("NOTE: Careful.")
        assert html.startswith('<div class="admonitionblock note">')
        assert '<div class="title">Note</div>' in html
        assert "Careful." in html

    def test_admonition_font_icon(self, body):
        html = body("TIP: Use dev mode.", {"icons": "font"})
        assert '<i class="fa icon-tip" title="Tip"></i>' in html

    def test_example_caption(self, body):
        assert '<div class="title">Example 1. Demo</div>' in body(".Demo\n====\nx\n====")

    def test_quote_attribution(self, body):
        assert "&#8212; Jane" in body("[quote, Jane]\n____\nWords.\n____")

    def test_image(self, body):
        html = body("image::arch.png[Architecture,width=300]", {"imagesdir": "images"})
        assert '<img src="images/arch.png" alt="Architecture" width="300">' in html


class TestLists:
    def test_unordered(self, body):
        assert '<ul>\n<li>\n<p>one</p>\n</li>\n<li>\n<p>two</p>\n</li>\n</ul>' in body("* one\n* two")

    def test_checklist(self, body):
        html = body("* [x] done\n* [ ] todo")
        assert '<ul class="checklist">' in html
        assert "<p>&#10003; done</p>" in html
        assert "<p>&#10063; todo</p>" in html

    def test_nested_ordered_styles(self, body):
        html = body(". one\n.. nested")
        assert '<ol class="arabic">' in html
        assert '<ol class="loweralpha" type="a">' in html

    def test_description_list(self, body):
        assert '<dt class="hdlist1">port</dt>\n<dd>\n<p>The port.</p>\n</dd>' in body("port:: The port.")


class TestTables:
    def test_header_widths_and_cells(self, body):
        html = body('[cols="1,3", options="header"]\n|===\n|Key |Value\n|a |*b*\n|===')
        assert '<col style="width: 25%;">' in html
        assert '<col style="width: 75%;">' in html
        assert '<th class="tableblock halign-left valign-top">Key</th>' in html
        assert '<td class="tableblock halign-left valign-top"><p class="tableblock"><strong>b</strong></p></td>' in html

    def test_monospace_column(self, body):
        html = body('[cols="1,1m"]\n|===\n|a |b\n|===')
        assert '<p class="tableblock"><code>b</code></p>' in html

    def test_spans(self, body):
        html = body("|===\n|a |b\n\n2+|wide\n|===")
        assert 'colspan="2"' in html


class TestDocument:
    def test_toc_levels(self, parse, renderer):
        guide = renderer.convert(parse("= Doc\n:toc:\n\n== A\n\n=== B\n\n==== C"))
        [a] = guide.toc
        assert a.title == "A"
        assert [b.title for b in a.children] == ["B"]
        assert a.children[0].children == []

    def test_counters_in_section_titles_advance_once(self, parse, renderer):
        guide = renderer.convert(parse("= Doc\n:toc:\n\n== Step {counter:step}\n\nText.\n\n== Step {counter:step}"))
        assert '<h2 id="_step_1">Step 1</h2>' in guide.body
        assert '<h2 id="_step_2">Step 2</h2>' in guide.body
        assert [entry.title for entry in guide.toc] == ["Step 1", "Step 2"]

    def test_counter_in_block_title(self, body):
        html = body(".Part {counter:part}\n----\nx\n----\n\n.Part {counter:part}\n----\ny\n----")
        assert '<div class="title">Part 1</div>' in html
        assert '<div class="title">Part 2</div>' in html

    def test_no_toc_unless_requested(self, parse, renderer):
        assert renderer.convert(parse("= Doc\n\n== A")).toc == []

    def test_footnotes(self, body):
        html = body("Text.footnote:[A note.]")
        assert '<div id="footnotes">' in html
        assert "A note." in html


class TestPages:
    def test_guide_page(self, parse, renderer):
        html = renderer.render(parse("= Getting *Started*\n:toc:\n\n== A\n\nText."))
        assert "<title>Getting Started - Docs</title>" in html
        assert "<h1>Getting <strong>Started</strong></h1>" in html
        assert '<body class="article toc2 toc-left">' in html
        assert '<div id="toctitle">Table of Contents</div>' in html
        assert '<a href="/guides/index.html">All guides</a>' in html

    def test_catalog_entry_metadata(self, parse, renderer):
        entry = GuideEntry(title="Doc", url="/guides/doc", description="Describes the doc.", keywords="a b")
        html = renderer.render(parse("= Doc"), entry)
        assert '<meta name="description" content="Describes the doc.">' in html
        assert '<meta name="keywords" content="a, b">' in html

    def test_untitled_guide_uses_slug(self, parse, renderer):
        assert "<title>doc - Docs</title>" in renderer.render(parse("Just text."))

    def test_missing_template_raises_render_error(self, parse, tmp_path):
        renderer = HtmlRenderer(template_dir=tmp_path / "empty")
        with pytest.raises(RenderError, match="guide.html.j2"):
            renderer.render(parse("= Doc"))

    def test_index_page(self, fixtures_path, renderer):
        catalog = load_catalog(fixtures_path / "site" / "guides.yaml")
        html = renderer.render_index(catalog, {"getting-started"})
        assert "<title>Docs</title>" in html
        assert '<a href="/guides/getting-started.html">Getting Started</a>' in html
        assert '<span class="unavailable">gRPC Reference</span>' in html
        assert '<a href="https://quarkus.io/blog">Blog</a>' in html
        assert '<a href="https://grpc.io">gRPC</a>' in html
        assert '<div class="sect1 guide-category" id="reference">' in html
