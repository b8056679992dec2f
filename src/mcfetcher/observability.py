"""Structured logging configuration using structlog.

Debug and info events go to stdout; warnings and above go to stderr.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, TextIO

import structlog

_STDERR_METHODS = frozenset({"warning", "warn", "error", "err", "exception", "critical", "fatal", "failure"})


class SplitStreamLogger:
    """A structlog logger that routes rendered lines by level to two streams."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self._out = structlog.PrintLogger(out or sys.stdout)
        self._err = structlog.PrintLogger(err or sys.stderr)

    def __getattr__(self, name: str) -> Any:
        target = self._err if name in _STDERR_METHODS else self._out
        return target.msg


class SplitStreamLoggerFactory:
    """Logger factory producing :class:`SplitStreamLogger` instances."""

    def __init__(self, out: TextIO | None = None, err: TextIO | None = None) -> None:
        self._out = out
        self._err = err

    def __call__(self, *args: Any) -> SplitStreamLogger:
        return SplitStreamLogger(self._out, self._err)


def setup_logging(level: str = "info", json_output: bool | None = None) -> None:
    """Configure structlog once for the whole process.

    Args:
        level: Minimum level name (debug, info, warning, error).
        json_output: Force JSON (True) or console (False) rendering. By default
            console rendering is used only when stderr is a terminal.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    if json_output is None:
        json_output = not sys.stderr.isatty()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=SplitStreamLoggerFactory(),
        cache_logger_on_first_use=True,
    )
