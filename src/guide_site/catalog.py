"""
Guides catalog.

The catalog is the curated list of guides shown on the site's index
page, grouped by category::

    categories:
      - category: Getting Started
        cat-id: getting-started
        guides:
          - title: Building Native Executables
            url: /guides/building-native-image
            description: Build native executables with GraalVM or Mandrel.
            keywords: native graalvm

Manifesto:
    The catalog and the guide sources drift apart: guides get renamed,
    a guide gets listed twice, a new guide is never listed. ``check()``
    makes that drift visible at build time instead of as a 404.

Features:
    - Schema validation with pydantic, errors wrapped in CatalogError
    - Lookup by url, by category id, ranked free-text search
    - Drift checks against the guide sources on disk
    - Markdown-ish descriptions (links, bullets) rendered to safe HTML

Tags:
    catalog, index, search, pydantic
"""

from __future__ import annotations

import re
from pathlib import Path

import yaml
from markupsafe import Markup, escape
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from guide_site.diagnostics import Diagnostic, Severity
from guide_site.errors import CatalogError, Location
from guide_site.logging import get_logger

log = get_logger(__name__)

MD_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
BULLET_RE = re.compile(r"^\s*[*-]\s+(.*)$")


class GuideEntry(BaseModel):
    """One guide listed in the catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    title: str = Field(min_length=1)
    url: str = Field(min_length=1)
    description: str = ""
    keywords: tuple[str, ...] = ()

    @field_validator("keywords", mode="before")
    @classmethod
    def _split_keywords(cls, value: object) -> object:
        # The catalog writes keywords as one space separated string
        if isinstance(value, str):
            return tuple(value.split())
        return value

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def slug(self) -> str:
        return slug(self.url)

    @property
    def is_external(self) -> bool:
        return "://" in self.url

    def description_html(self) -> Markup:
        return description_html(self.description)


class Category(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    category: str = Field(min_length=1)
    cat_id: str = Field(alias="cat-id", min_length=1)
    guides: tuple[GuideEntry, ...] = ()


class GuideCatalog(BaseModel):
    """Root of the catalog file."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    categories: tuple[Category, ...] = ()

    def all_guides(self) -> list[GuideEntry]:
        """Every listed guide in catalog order, duplicates included."""
        return [guide for category in self.categories for guide in category.guides]

    def find_by_url(self, url: str) -> GuideEntry | None:
        wanted = url.rstrip("/")
        for guide in self.all_guides():
            if guide.url.rstrip("/") == wanted:
                return guide
        return None

    def by_category(self, cat_id: str) -> Category | None:
        for category in self.categories:
            if category.cat_id == cat_id:
                return category
        return None

    def category_of(self, guide: GuideEntry) -> Category | None:
        for category in self.categories:
            if guide in category.guides:
                return category
        return None

    def search(self, query: str) -> list[GuideEntry]:
        """Guides matching every word of ``query``, best matches first.

        A guide whose title matches ranks above one matched only by a
        keyword, which ranks above a description-only match. Ties keep
        catalog order. A guide listed twice is returned once.
        """
        words = query.lower().split()
        if not words:
            return []

        ranked: list[tuple[int, int, GuideEntry]] = []
        seen: set[str] = set()
        for position, guide in enumerate(self.all_guides()):
            if guide.url in seen:
                continue
            title = guide.title.lower()
            keywords = " ".join(guide.keywords).lower()
            description = guide.description.lower()
            score = 0
            for word in words:
                if word in title:
                    score += 100
                elif word in keywords:
                    score += 10
                elif word in description:
                    score += 1
                else:
                    score = 0
                    break
            if score:
                seen.add(guide.url)
                ranked.append((-score, position, guide))
        return [guide for _, _, guide in sorted(ranked, key=lambda r: (r[0], r[1]))]

    def check(self, available_slugs: set[str] | None = None, location: Location | None = None) -> list[Diagnostic]:
        """Find catalog drift.

        Args:
            available_slugs: Slugs of the guide sources on disk; source
                checks are skipped when None
            location: Location attached to every diagnostic
        """
        found: list[Diagnostic] = []
        location = location or Location()

        seen_categories: set[str] = set()
        for category in self.categories:
            if category.cat_id in seen_categories:
                found.append(Diagnostic(
                    Severity.WARNING,
                    "catalog-duplicate-category",
                    f"category id listed more than once: {category.cat_id}",
                    location,
                ))
            seen_categories.add(category.cat_id)

        first_seen: dict[str, str] = {}
        for category in self.categories:
            for guide in category.guides:
                key = guide.url.rstrip("/")
                if key in first_seen:
                    found.append(Diagnostic(
                        Severity.WARNING,
                        "catalog-duplicate-url",
                        f"guide {guide.url} is listed in {first_seen[key]!r} and again in {category.category!r}",
                        location,
                    ))
                else:
                    first_seen[key] = category.category

        if available_slugs is not None:
            listed = {guide.slug for guide in self.all_guides() if not guide.is_external}
            reported: set[str] = set()
            for guide in self.all_guides():
                if not guide.is_external and guide.slug not in available_slugs and guide.slug not in reported:
                    reported.add(guide.slug)
                    found.append(Diagnostic(
                        Severity.WARNING,
                        "catalog-missing-source",
                        f"catalog lists {guide.url} but there is no {guide.slug}.adoc",
                        location,
                    ))
            for missing in sorted(available_slugs - listed):
                found.append(Diagnostic(
                    Severity.INFO,
                    "catalog-unlisted-source",
                    f"guide {missing}.adoc is not listed in the catalog",
                    location,
                ))
        return found


def slug(url: str) -> str:
    """Last path segment of a guide url.

    Examples:
        >>> slug("/guides/building-native-image")
        'building-native-image'
        >>> slug("/guides/cdi-reference/")
        'cdi-reference'
    """
    path = url.split("#", 1)[0].split("?", 1)[0].rstrip("/")
    name = path.rsplit("/", 1)[-1]
    return name[:-5] if name.endswith(".html") else name


def _inline_markdown(text: str) -> str:
    escaped = str(escape(text))
    return MD_LINK_RE.sub(lambda m: f'<a href="{m.group(2)}">{m.group(1)}</a>', escaped)


def description_html(text: str) -> Markup:
    """Render a catalog description: paragraphs, ``*`` bullets, ``[text](url)`` links.

    Examples:
        >>> str(description_html("Uses [CDI](https://cdi.dev) & more."))
        '<p>Uses <a href="https://cdi.dev">CDI</a> &amp; more.</p>'
    """
    parts: list[str] = []
    paragraph: list[str] = []
    bullets: list[str] = []

    def flush() -> None:
        if paragraph:
            parts.append("<p>" + " ".join(paragraph) + "</p>")
            paragraph.clear()
        if bullets:
            parts.append("<ul>" + "".join(f"<li>{b}</li>" for b in bullets) + "</ul>")
            bullets.clear()

    for line in text.strip().splitlines():
        if not line.strip():
            flush()
            continue
        bullet = BULLET_RE.match(line)
        if bullet:
            if paragraph:
                flush()
            bullets.append(_inline_markdown(bullet.group(1).strip()))
        else:
            if bullets:
                flush()
            paragraph.append(_inline_markdown(line.strip()))
    flush()
    return Markup("".join(parts))


def load_catalog(path: str | Path) -> GuideCatalog:
    """Load and validate a catalog file.

    Raises:
        CatalogError: Missing file, invalid YAML, or schema violation
    """
    path = Path(path)
    location = Location.of(path)
    if not path.is_file():
        raise CatalogError(f"catalog file not found: {path}", location=location)

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is not None:
            location = Location.of(path, mark.line + 1)
        raise CatalogError(f"invalid YAML in catalog: {e}", location=location, cause=e) from e

    if not isinstance(data, dict):
        raise CatalogError("catalog must be a mapping with a 'categories' list", location=location)

    try:
        catalog = GuideCatalog.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first["loc"])
        raise CatalogError(f"invalid catalog entry at {where}: {first['msg']}", location=location, cause=e) from e

    log.debug(
        "catalog.loaded",
        path=str(path),
        categories=len(catalog.categories),
        guides=len(catalog.all_guides()),
    )
    return catalog
