"""Minimal leveled logging to standard error."""

from __future__ import annotations

import sys
from enum import IntEnum

__all__ = ["LogLevel", "format_line", "log"]


class LogLevel(IntEnum):
    """Severity of a log line, from least to most severe."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4


_LABELS = (
    "[TRACE]",
    "[DEBUG]",
    "[INFO] ",
    "[WARN] ",
    "[ERROR]",
)


def format_line(level: int, message: str) -> str:
    """Return the log line for ``message``; out-of-range levels are clamped."""
    index = min(max(int(level), 0), len(_LABELS) - 1)
    return f"{_LABELS[index]} {message}"


def log(level: int, fmt: str, *args: object) -> None:
    """Write one printf-style formatted line to standard error."""
    message = fmt % args if args else fmt
    sys.stderr.write(format_line(level, message) + "\n")