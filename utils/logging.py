"""
Logger construction.

The verbosity is fixed when the logger is built; components receive the
logger at construction instead of reading a process-wide level.
"""
from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    try:
        return LEVELS[level.strip().lower()]
    except KeyError:
        raise ValueError(f"unknown log level: {level!r}") from None


def make_logger(level: str | int = "info", fmt: str = "console", sink: Any = None, **context):
    """Build a structlog logger that drops everything below `level`.

    `sink` is the underlying output logger (stderr by default); tests pass a
    structlog.testing.CapturingLogger.
    """
    processors: list[Any] = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if fmt == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    log = structlog.wrap_logger(
        sink if sink is not None else structlog.PrintLogger(sys.stderr),
        wrapper_class=structlog.make_filtering_bound_logger(parse_level(level)),
        processors=processors,
    )
    return log.bind(**context) if context else log
