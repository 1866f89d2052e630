"""Command line interface (``guide-site``)."""

from guide_site.cli.app import app

__all__ = ["app"]
