"""
Site builder.

Coordinates a full site build: regenerate configuration reference
includes, load and parse every guide, check cross references and the
catalog, render HTML, copy images.

Example:
    >>> builder = SiteBuilder(SiteSettings(source_dir=Path("docs/src/main/asciidoc")))
    >>> report = builder.build()
    >>> report.counts()
    {'guides': 212, 'failed': 0, 'written': 214, 'error': 0, 'warning': 3, 'info': 12}
"""

from __future__ import annotations

import shutil
import tempfile
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from guide_site.asciidoc.loader import DocumentLoader
from guide_site.asciidoc.model import Document
from guide_site.asciidoc.parser import Parser
from guide_site.catalog import GuideCatalog, load_catalog
from guide_site.config import SiteSettings
from guide_site.config_reference import load_metadata_dir, write_includes
from guide_site.diagnostics import DiagnosticLog, Severity
from guide_site.errors import GuideSiteError, Location, SourceNotFoundError
from guide_site.logging import bound_context, get_logger, log_step
from guide_site.renderers.html import HtmlRenderer

log = get_logger(__name__)

PARTIAL_DIRS = ("includes", "_includes", "_attributes")


@dataclass
class GuideResult:
    """Outcome for one guide."""

    slug: str
    source: Path
    title: str | None = None
    output: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "source": str(self.source),
            "title": self.title,
            "output": str(self.output) if self.output else None,
            "error": self.error,
        }


@dataclass
class BuildReport:
    """Everything a build found and produced."""

    guides: list[GuideResult] = field(default_factory=list)
    diagnostics: DiagnosticLog = field(default_factory=DiagnosticLog)
    written: list[Path] = field(default_factory=list)
    duration_ms: float = 0.0

    def ok(self, strict: bool = False) -> bool:
        """True when nothing failed; in strict mode warnings fail too."""
        if self.diagnostics.has_errors() or any(not g.ok for g in self.guides):
            return False
        return not (strict and self.diagnostics.warnings)

    def counts(self) -> dict[str, int]:
        return {
            "guides": len(self.guides),
            "failed": sum(1 for g in self.guides if not g.ok),
            "written": len(self.written),
            **self.diagnostics.counts(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "counts": self.counts(),
            "duration_ms": round(self.duration_ms, 2),
            "guides": [g.to_dict() for g in self.guides],
            "written": [str(p) for p in self.written],
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class SiteBuilder:
    """Build or validate a guide site.

    Manifesto:
        One command builds the whole site. A broken guide is reported
        with file and line, and every other guide still gets built,
        so a single run shows every problem there is.

    Architecture:
        ::

            SiteBuilder.build()
                  │
                  ├──► generate_config_reference()   metadata → _generated/config/*.adoc
                  ├──► discover()                    *.adoc guides (partials skipped)
                  ├──► load_guide() per guide        DocumentLoader → Parser → Document
                  ├──► _check_xrefs()                anchors and target files
                  ├──► _check_catalog()              catalog drift
                  ├──► HtmlRenderer.render()         <output_dir>/<slug>.html
                  ├──► _copy_images()
                  └──► BuildReport

    Guardrails:
        ❌ DON'T: Stop the build on the first failing guide
        ✅ DO: Record the failure and carry on

        ❌ DON'T: Parse a guide twice to check xrefs
        ✅ DO: Keep every Document of the run and check against them

    Tags:
        builder, orchestrator, site
    """

    def __init__(self, settings: SiteSettings, diagnostics: DiagnosticLog | None = None):
        self.settings = settings
        self.diagnostics = diagnostics if diagnostics is not None else DiagnosticLog()
        self.source_dir = Path(settings.source_dir)
        self.output_dir = Path(settings.output_dir)
        self._catalog: GuideCatalog | None = None
        self._catalog_loaded = False
        self._generated_dir = settings.generated_path

    # ── Discovery ────────────────────────────────────────────────

    def _is_partial(self, path: Path) -> bool:
        if path.name.startswith("_"):
            return True
        relative = path.relative_to(self.source_dir)
        if any(part in PARTIAL_DIRS for part in relative.parts[:-1]):
            return True
        generated = self.settings.generated_path
        try:
            path.relative_to(generated)
            return True
        except ValueError:
            return False

    def discover(self) -> list[Path]:
        """Guide sources: ``*.adoc`` files directly in the source directory.

        Raises:
            SourceNotFoundError: If the source directory does not exist
        """
        if not self.source_dir.is_dir():
            raise SourceNotFoundError(
                f"source directory not found: {self.source_dir}",
                location=Location.of(self.source_dir),
            )
        return sorted(p for p in self.source_dir.glob("*.adoc") if p.is_file() and not self._is_partial(p))

    # ── Stages ───────────────────────────────────────────────────

    def generate_config_reference(self) -> list[Path]:
        """Regenerate configuration reference includes from metadata.

        Returns:
            Include files whose content changed (empty when no metadata
            directory is configured)
        """
        metadata_dir = self.settings.config_metadata_dir
        if metadata_dir is None:
            return []
        try:
            with log_step("config_reference.generate", log, directory=str(metadata_dir)) as timer:
                roots = load_metadata_dir(metadata_dir)
                written = write_includes(roots, self._generated_dir)
                timer.add_metric("roots", len(roots))
                timer.add_metric("changed", len(written))
        except GuideSiteError as e:
            self.diagnostics.from_error("config-reference-invalid", e)
            return []
        return written

    def _attributes(self) -> dict[str, str]:
        # Soft defaults (trailing @) that guides may override
        attributes = {
            "generated-dir": f"{self._generated_dir.resolve()}@",
            "imagesdir": "images@",
            "outfilesuffix": ".html@",
        }
        attributes.update(self.settings.attributes)
        return attributes

    def load_guide(self, path: str | Path) -> Document:
        """Load, preprocess and parse one guide.

        Raises:
            SourceNotFoundError: If the file does not exist
        """
        loader = DocumentLoader(
            self._attributes(),
            max_include_depth=self.settings.max_include_depth,
            diagnostics=self.diagnostics,
            attribute_missing=self.settings.attribute_missing,
            base_dir=self.source_dir,
        )
        source = loader.load(path)
        return Parser(source, self.diagnostics).parse()

    def catalog(self) -> GuideCatalog | None:
        """The configured catalog, loaded once; None when not configured or invalid."""
        if not self._catalog_loaded:
            self._catalog_loaded = True
            if self.settings.catalog_file is not None:
                try:
                    self._catalog = load_catalog(self.settings.catalog_file)
                except GuideSiteError as e:
                    self.diagnostics.from_error("catalog-invalid", e)
        return self._catalog

    # ── Checks ───────────────────────────────────────────────────

    def _check_xrefs(self, documents: dict[Path, Document]) -> None:
        for source, document in documents.items():
            for xref in document.xrefs:
                if xref.path is None:
                    if xref.fragment and xref.fragment not in document.ids:
                        self.diagnostics.warning(
                            "xref-unresolved",
                            f"possible invalid reference: {xref.fragment}",
                            xref.location,
                        )
                    continue

                target = (source.parent / xref.path).resolve()
                other = documents.get(target)
                if other is None and not target.is_file():
                    self.diagnostics.warning(
                        "xref-unresolved",
                        f"cross reference to missing document: {xref.path}",
                        xref.location,
                    )
                elif other is not None and xref.fragment and xref.fragment not in other.ids:
                    self.diagnostics.warning(
                        "xref-unresolved",
                        f"cross reference to missing anchor: {xref.path}#{xref.fragment}",
                        xref.location,
                    )

    def _check_catalog(self, slugs: set[str]) -> None:
        catalog = self.catalog()
        if catalog is None:
            return
        location = Location.of(self.settings.catalog_file)
        self.diagnostics.extend(catalog.check(slugs, location))

    # ── Output ───────────────────────────────────────────────────

    def _copy_images(self) -> list[Path]:
        images = self.settings.images_path
        if not images.is_dir():
            return []
        target = self.output_dir / "images"
        shutil.copytree(images, target, dirs_exist_ok=True)
        return [target / p.relative_to(images) for p in images.rglob("*") if p.is_file()]

    # ── Runs ─────────────────────────────────────────────────────

    def build(self, only: Iterable[str] | None = None) -> BuildReport:
        """Build the site into ``output_dir``."""
        return self._run(write=True, only=only)

    def validate(self, only: Iterable[str] | None = None) -> BuildReport:
        """Load, parse and check everything without writing any file.

        Configuration reference tables are generated into a temporary
        directory, so the source tree stays as it is.
        """
        return self._run(write=False, only=only)

    def _run(self, write: bool, only: Iterable[str] | None) -> BuildReport:
        # Each run reports only its own findings
        self.diagnostics = DiagnosticLog()
        self._catalog, self._catalog_loaded = None, False

        if write or self.settings.config_metadata_dir is None:
            return self._run_stages(write, only)
        # Validation leaves the source tree untouched: tables go to a scratch dir
        with tempfile.TemporaryDirectory(prefix="guide-site-") as scratch:
            self._generated_dir = Path(scratch)
            try:
                return self._run_stages(write, only)
            finally:
                self._generated_dir = self.settings.generated_path

    def _run_stages(self, write: bool, only: Iterable[str] | None) -> BuildReport:
        started = time.perf_counter()
        report = BuildReport(diagnostics=self.diagnostics)
        step = "site.build" if write else "site.validate"

        with log_step(step, log, source_dir=str(self.source_dir)) as timer:
            generated = self.generate_config_reference()
            if write:
                report.written.extend(generated)

            sources = self.discover()
            all_slugs = {p.stem for p in sources}
            if only is not None:
                wanted = {Path(name).stem for name in only}
                sources = [p for p in sources if p.stem in wanted]
                for missing in sorted(wanted - all_slugs):
                    self.diagnostics.error(
                        "guide-not-found",
                        f"no guide named {missing}",
                        Location.of(self.source_dir / f"{missing}.adoc"),
                    )

            documents: dict[Path, Document] = {}
            results: dict[Path, GuideResult] = {}
            for path in sources:
                result = GuideResult(slug=path.stem, source=path)
                results[path] = result
                report.guides.append(result)
                try:
                    with bound_context(document=path.name), log_step("guide.load", log):
                        document = self.load_guide(path)
                except GuideSiteError as e:
                    result.error = str(e)
                    self.diagnostics.from_error("guide-failed", e)
                    continue
                result.title = document.title
                documents[path.resolve()] = document

            self._check_xrefs(documents)
            self._check_catalog(all_slugs)

            if write:
                report.written.extend(self._write(documents, results))

            timer.add_metric("guides", len(report.guides))
            timer.add_metric("errors", len(self.diagnostics.errors))
            timer.add_metric("warnings", len(self.diagnostics.warnings))

        report.duration_ms = (time.perf_counter() - started) * 1000
        for diagnostic in self.diagnostics:
            if diagnostic.severity is Severity.ERROR:
                log.warning("build.error", code=diagnostic.code, location=str(diagnostic.location), detail=diagnostic.message)
        return report

    def _write(self, documents: dict[Path, Document], results: dict[Path, GuideResult]) -> list[Path]:
        renderer = HtmlRenderer(self.settings, diagnostics=self.diagnostics)
        catalog = self.catalog()
        base_url = self.settings.base_url.rstrip("/")
        self.output_dir.mkdir(parents=True, exist_ok=True)

        written: list[Path] = []
        rendered: set[str] = set()
        for result in results.values():
            document = documents.get(result.source.resolve())
            if document is None:
                continue
            entry = catalog.find_by_url(f"{base_url}/{result.slug}") if catalog else None
            try:
                with bound_context(document=result.source.name):
                    html = renderer.render(document, entry)
            except GuideSiteError as e:
                result.error = str(e)
                self.diagnostics.from_error("render-failed", e)
                continue
            output = self.output_dir / f"{result.slug}.html"
            output.write_text(html, encoding="utf-8")
            result.output = output
            rendered.add(result.slug)
            written.append(output)

        written.extend(self._copy_images())

        if catalog is not None:
            # Guides from an earlier, fuller build are still linkable
            available = rendered | {p.stem for p in self.output_dir.glob("*.html") if p.stem != "index"}
            try:
                index = renderer.render_index(catalog, available)
            except GuideSiteError as e:
                self.diagnostics.from_error("render-failed", e)
            else:
                index_path = self.output_dir / "index.html"
                index_path.write_text(index, encoding="utf-8")
                written.append(index_path)
        return written
