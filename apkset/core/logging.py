"""
Structured logging for apkset.

Events are written to stderr so that command output on stdout stays
machine-readable. Resolution events are emitted at debug level, which keeps
the CLI quiet by default.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from .config import Config


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # Resolved per call: the CLI may run with a replaced sys.stderr.
    return structlog.PrintLogger(sys.stderr)


def setup_logging(config: Config | None = None, json_output: bool | None = None) -> None:
    """Configure structlog.

    Args:
        config: Source of the log level; INFO when omitted.
        json_output: Render JSON lines (True) or the console format (False).
            Defaults to the console format when stderr is a terminal.
    """
    level = getattr(logging, config.log_level if config else "INFO", logging.INFO)
    if json_output is None:
        json_output = not sys.stderr.isatty()

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False)
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind values (device serial, request id) to every subsequent log entry."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context(*keys: str) -> None:
    """Unbind the given keys, or every bound value when none are given."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()
