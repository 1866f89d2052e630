"""
Structured logging for the guide site pipeline.

Configuration is read from environment variables when not passed:
- GUIDES_LOG_LEVEL: DEBUG | INFO | WARNING | ERROR (default: INFO)
- GUIDES_LOG_FORMAT: json | console (default: console)

Usage:
    from guide_site.logging import configure_logging, get_logger, log_step

    configure_logging()
    log = get_logger(__name__)

    with log_step("render_guides", guides=12):
        ...
"""

from __future__ import annotations

import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Literal

import structlog
from structlog.types import Processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | str | None = None,
    format: Literal["json", "console"] | str | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once at startup (CLI entry). Subsequent calls are
    no-ops unless force=True.

    Args:
        level: Log level (overrides GUIDES_LOG_LEVEL env var)
        format: Output format (overrides GUIDES_LOG_FORMAT env var)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("GUIDES_LOG_LEVEL", "INFO")).upper()
    log_format = (format or os.environ.get("GUIDES_LOG_FORMAT", "console")).lower()
    numeric_level = getattr(logging, log_level, logging.INFO)

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.contextvars.merge_contextvars,
        structlog.processors.format_exc_info,
        structlog.processors.StackInfoRenderer(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdlib handler that structlog writes through; stderr keeps stdout
    # free for `render` output.
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=numeric_level,
        force=True,
    )
    logging.getLogger("guide_site").setLevel(numeric_level)

    _configured = True


def is_configured() -> bool:
    return _configured


def get_logger(name: str | None = None) -> Any:
    """Get a structlog logger (typically ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


@contextmanager
def bound_context(**kwargs: Any) -> Iterator[None]:
    """Attach key/value pairs to every log entry inside the block.

    Values bound by an outer block are restored on exit.

    Example:
        >>> with bound_context(document="getting-started.adoc"):
        ...     log.info("guide.parsed")   # carries document=...
    """
    with structlog.contextvars.bound_contextvars(**kwargs):
        yield


@dataclass
class TimingResult:
    """Result of a timed step."""

    step: str
    started_at: float = field(default_factory=time.perf_counter)
    ended_at: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    status: str = "ok"

    def stop(self) -> TimingResult:
        self.ended_at = time.perf_counter()
        return self

    @property
    def duration_ms(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.perf_counter()
        return (end - self.started_at) * 1000

    def add_metric(self, key: str, value: Any) -> TimingResult:
        self.metrics[key] = value
        return self


@contextmanager
def log_step(step: str, logger: Any = None, **fields: Any) -> Iterator[TimingResult]:
    """
    Log the start (DEBUG) and end (INFO) of a step with its duration.

    Exceptions are logged with ``status=error`` and re-raised.

    Example:
        >>> with log_step("load_catalog", path="guides.yaml") as timer:
        ...     catalog = load_catalog(path)
        ...     timer.add_metric("guides", len(catalog.all_guides()))
    """
    log = logger or get_logger("guide_site.timing")
    timer = TimingResult(step=step)
    log.debug(f"{step}.start", **fields)
    try:
        yield timer
    except Exception as e:
        timer.stop()
        timer.status = "error"
        log.error(
            f"{step}.failed",
            duration_ms=round(timer.duration_ms, 2),
            error=str(e),
            error_type=type(e).__name__,
            **fields,
        )
        raise
    timer.stop()
    log.info(
        f"{step}.done",
        duration_ms=round(timer.duration_ms, 2),
        **fields,
        **timer.metrics,
    )
