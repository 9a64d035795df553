"""
utils/logging.py — structlog setup shared by every import command.

configure_logging() is called once by the CLI before a command runs. structlog
renders each record and hands it to the stdlib logger of the same name, so
levels, handlers and library loggers are configured in one place. Records go
to stderr so the run summary printed on stdout stays readable;
settings.log_format picks JSON lines (for schedulers) or the console
renderer (for people).

Usage:
    from econcal_pipeline.utils.logging import configure_logging, get_logger, import_context

    configure_logging(log_level="DEBUG")
    log = get_logger(__name__, pipeline="historical")

    with import_context(command="import fred"):
        log.info("fred_fetch", series_id="UNRATE")   # carries command=...
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

from econcal_shared.config import settings

# Client libraries that log every request at INFO through stdlib logging
NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "supabase")


def _processors(fmt: str) -> list[Any]:
    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    return [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def configure_logging(
    log_level: str | None = None,
    log_format: str | None = None,
) -> None:
    """
    Configure structlog (and the stdlib root logger) for an import process.

    Args:
        log_level:  Override settings.log_level ("DEBUG", "INFO", …).
        log_format: Override settings.log_format ("json" | "console").
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    # basicConfig is a no-op once the root logger has handlers
    logging.getLogger().setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_processors(log_format or settings.log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str, **initial_values: Any) -> structlog.BoundLogger:
    """Module logger with `initial_values` bound to every record."""
    logger = structlog.get_logger(name)
    if initial_values:
        logger = logger.bind(**initial_values)
    return logger  # type: ignore[return-value]


@contextmanager
def import_context(**values: Any) -> Iterator[None]:
    """Bind `values` to every log record emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield
