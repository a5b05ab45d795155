"""Structured logging configuration using structlog.

The library never configures logging on import.  Applications (and the CLI)
call :func:`setup_logging` once; components take an injected logger and fall
back to :func:`get_logger`, which writes warnings and above to stderr until
structlog has been configured.
"""

from __future__ import annotations

import sys
from typing import Any, cast

import structlog

__all__ = ["setup_logging", "get_logger"]

_LEVELS: dict[str, int] = {
    "DEBUG": 10,
    "INFO": 20,
    "WARNING": 30,
    "ERROR": 40,
    "CRITICAL": 50,
}


def _processors(fmt: str) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def setup_logging(level: str = "WARNING", fmt: str = "console") -> None:
    """Configure structlog for aumai-aiconfig output.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        fmt: ``"json"`` for machine-readable output, ``"console"`` otherwise.
    """
    structlog.configure(
        processors=_processors(fmt),
        wrapper_class=structlog.make_filtering_bound_logger(
            _LEVELS.get(level.upper(), _LEVELS["WARNING"])
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger bound to ``name``.

    Before :func:`setup_logging` (or any other ``structlog.configure``) has
    run, the logger only emits warnings and above, to stderr.
    """
    if structlog.is_configured():
        return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
    logger = structlog.wrap_logger(
        structlog.PrintLogger(sys.stderr),
        processors=_processors("console"),
        wrapper_class=structlog.make_filtering_bound_logger(_LEVELS["WARNING"]),
        context_class=dict,
    )
    return cast(structlog.stdlib.BoundLogger, logger.bind(logger_name=name))
