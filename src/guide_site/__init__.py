"""
guide-site: build a guides website from AsciiDoc sources.

Layers::

    config / logging / errors / diagnostics     ambient stack
    asciidoc/                                   load, parse, substitute
    config_reference/                           generated property tables
    catalog                                     curated guide list
    renderers/                                  HTML output
    builder                                     whole-site orchestration
    cli/                                        ``guide-site`` command
"""

__version__ = "0.3.0"
