"""Tests for guide_site.asciidoc.attrlist."""

from guide_site.asciidoc.attrlist import parse_attrlist


class TestParseAttrlist:
    def test_positional_and_named(self):
        attrs = parse_attrlist("source,java,indent=0")
        assert attrs.style == "source"
        assert attrs.get(2) == "java"
        assert attrs.get("indent") == "0"
        assert attrs.get(5) is None

    def test_quoted_values_keep_commas(self):
        attrs = parse_attrlist('cols="1,2,1",options="header"')
        assert attrs.named["cols"] == "1,2,1"
        assert attrs.has_option("header")

    def test_shorthand(self):
        attrs = parse_attrlist("source#example.wide%linenums,java")
        assert attrs.style == "source"
        assert attrs.id == "example"
        assert attrs.roles == ["wide"]
        assert attrs.has_option("linenums")
        assert attrs.get(2) == "java"

    def test_shorthand_without_style(self):
        attrs = parse_attrlist(".configuration-reference.searchable")
        assert attrs.style is None
        assert attrs.roles == ["configuration-reference", "searchable"]

    def test_shorthand_disabled(self):
        attrs = parse_attrlist("#not-an-id", shorthand=False)
        assert attrs.id is None
        assert attrs.positional == ["#not-an-id"]

    def test_named_role_and_opts(self):
        attrs = parse_attrlist('role="lead primary",opts=optional')
        assert attrs.roles == ["lead", "primary"]
        assert attrs.has_option("optional")

    def test_empty(self):
        attrs = parse_attrlist("  ")
        assert not attrs
        assert attrs.style is None
