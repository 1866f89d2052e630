"""Output renderers. HTML is the only backend."""

from guide_site.renderers.html import HtmlRenderer, RenderedGuide, TocEntry, strip_markup

__all__ = ["HtmlRenderer", "RenderedGuide", "TocEntry", "strip_markup"]
