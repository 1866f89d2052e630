"""
Diagnostics collected while building the site.

A build does not stop on the first bad guide. Every stage appends
findings to a ``DiagnosticLog`` and the builder reports them all at the
end. Whether warnings fail the build is decided by the caller
(``strict`` mode).
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from guide_site.errors import GuideSiteError, Location
from guide_site.logging import get_logger

log = get_logger(__name__)


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """One finding, e.g. a missing include or an unresolved xref."""

    severity: Severity
    code: str
    message: str
    location: Location = field(default_factory=Location)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.location.path is not None:
            result["location"] = self.location.to_dict()
        return result

    def __str__(self) -> str:
        return f"{self.location}: {self.severity.value}: {self.message} [{self.code}]"


class DiagnosticLog:
    """Ordered collection of diagnostics."""

    def __init__(self) -> None:
        self._items: list[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        self._items.append(diagnostic)
        log.debug(
            "diagnostic",
            severity=diagnostic.severity.value,
            code=diagnostic.code,
            location=str(diagnostic.location),
            detail=diagnostic.message,
        )
        return diagnostic

    def info(self, code: str, message: str, location: Location | None = None) -> Diagnostic:
        return self.add(Diagnostic(Severity.INFO, code, message, location or Location()))

    def warning(self, code: str, message: str, location: Location | None = None) -> Diagnostic:
        return self.add(Diagnostic(Severity.WARNING, code, message, location or Location()))

    def error(self, code: str, message: str, location: Location | None = None) -> Diagnostic:
        return self.add(Diagnostic(Severity.ERROR, code, message, location or Location()))

    def from_error(self, code: str, err: GuideSiteError) -> Diagnostic:
        """Record a raised pipeline error as an error diagnostic."""
        return self.error(code, err.message, err.location)

    def extend(self, diagnostics: Iterator[Diagnostic] | list[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    @property
    def errors(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.ERROR]

    @property
    def warnings(self) -> list[Diagnostic]:
        return [d for d in self._items if d.severity is Severity.WARNING]

    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self._items)

    def by_code(self, code: str) -> list[Diagnostic]:
        return [d for d in self._items if d.code == code]

    def counts(self) -> dict[str, int]:
        counter = Counter(d.severity.value for d in self._items)
        return {s.value: counter.get(s.value, 0) for s in Severity}

    def __iter__(self) -> Iterator[Diagnostic]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)
