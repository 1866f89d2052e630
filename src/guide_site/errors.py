"""
Structured error types for the guide site pipeline.

Errors raised by the pipeline carry a category and, when known, the
source location (file and line) that triggered them. The same location
type is used by non-fatal diagnostics, so a failing include and a
warning about a missing attribute point at source the same way.

Architecture:
    ::

        GuideSiteError  (category, location, cause)
            │
            ├── SourceNotFoundError      (SOURCE)
            ├── IncludeNotFoundError     (INCLUDE)
            ├── IncludeDepthError        (INCLUDE)
            ├── MarkupError              (MARKUP)
            ├── CatalogError             (CATALOG)
            ├── ConfigReferenceError     (CONFIG_REFERENCE)
            ├── SettingsError            (CONFIG)
            └── RenderError              (RENDER)

Guardrails:
    ❌ DON'T: Raise bare Exception from pipeline code
    ✅ DO: Raise the subclass for the stage that failed

    ❌ DON'T: Swallow the original exception when wrapping
    ✅ DO: Pass it as cause= so tracebacks keep the chain

Tags:
    error-handling, exception-hierarchy, diagnostics
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any


class ErrorCategory(str, Enum):
    """Pipeline stage an error belongs to."""

    SOURCE = "SOURCE"
    INCLUDE = "INCLUDE"
    MARKUP = "MARKUP"
    CATALOG = "CATALOG"
    CONFIG_REFERENCE = "CONFIG_REFERENCE"
    CONFIG = "CONFIG"
    RENDER = "RENDER"


@dataclass(frozen=True)
class Location:
    """A position in a source file. Line numbers are 1-based."""

    path: str | None = None
    line: int | None = None

    @classmethod
    def of(cls, path: str | Path | None, line: int | None = None) -> Location:
        return cls(str(path) if path is not None else None, line)

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in (("path", self.path), ("line", self.line)) if v is not None}

    def __str__(self) -> str:
        if self.path is None:
            return "<unknown>"
        if self.line is None:
            return self.path
        return f"{self.path}:{self.line}"


class GuideSiteError(Exception):
    """
    Base class for every error raised by the pipeline.

    Subclasses set ``default_category``; callers may override it.

    Examples:
        >>> err = MarkupError("unterminated listing block", location=Location("a.adoc", 12))
        >>> err.category
        <ErrorCategory.MARKUP: 'MARKUP'>
        >>> str(err.location)
        'a.adoc:12'
    """

    default_category: ErrorCategory = ErrorCategory.SOURCE

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        location: Location | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.location = location
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if self.location is not None:
            result["location"] = self.location.to_dict()
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __str__(self) -> str:
        if self.location is not None and self.location.path is not None:
            return f"{self.location}: {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


class SourceNotFoundError(GuideSiteError):
    """A guide, catalog or metadata file does not exist."""

    default_category = ErrorCategory.SOURCE


class IncludeNotFoundError(GuideSiteError):
    """A non-optional ``include::`` target does not exist."""

    default_category = ErrorCategory.INCLUDE

    def __init__(self, target: str, **kwargs: Any):
        super().__init__(f"include file not found: {target}", **kwargs)
        self.target = target


class IncludeDepthError(GuideSiteError):
    """Include nesting went deeper than the configured maximum."""

    default_category = ErrorCategory.INCLUDE

    def __init__(self, target: str, max_depth: int, **kwargs: Any):
        super().__init__(
            f"maximum include depth of {max_depth} exceeded while including {target}",
            **kwargs,
        )
        self.target = target
        self.max_depth = max_depth


class MarkupError(GuideSiteError):
    """Malformed AsciiDoc markup."""

    default_category = ErrorCategory.MARKUP


class CatalogError(GuideSiteError):
    """The guides catalog could not be read or violates its schema."""

    default_category = ErrorCategory.CATALOG


class ConfigReferenceError(GuideSiteError):
    """Configuration-property metadata is malformed."""

    default_category = ErrorCategory.CONFIG_REFERENCE


class SettingsError(GuideSiteError):
    """Site settings could not be loaded."""

    default_category = ErrorCategory.CONFIG


class RenderError(GuideSiteError):
    """A document could not be converted to HTML."""

    default_category = ErrorCategory.RENDER
