"""Leveled terminal logging for ``bm`` commands and the team daemon.

Messages go through a ``rich`` console: warnings and errors to stderr,
everything else to stdout. The level comes from ``--log-level`` or
``BM_LOG_LEVEL``. The daemon turns on timestamped lines because its output
is appended to a log file rather than read live.
"""

from __future__ import annotations

import datetime as dt
import os
import sys
from enum import IntEnum

from rich.console import Console
from rich.text import Text

LOG_LEVEL_ENV = "BM_LOG_LEVEL"


class LogLevel(IntEnum):
    DEBUG = 20
    INFO = 30
    WARNING = 40
    ERROR = 50


_LEVEL_BY_NAME = {
    "trace": LogLevel.DEBUG,
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "success": LogLevel.INFO,
    "warning": LogLevel.WARNING,
    "warn": LogLevel.WARNING,
    "error": LogLevel.ERROR,
}
_STYLES = {
    LogLevel.DEBUG: "cyan",
    LogLevel.INFO: "",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
}
_DEFAULT_LEVEL = LogLevel.INFO
_configured_level: LogLevel | None = None
_no_color_override: bool | None = None
_timestamps = False


def parse_level(value: str | None) -> LogLevel:
    """Map a level name to a level; unknown or empty names mean INFO.

    Example:
        >>> parse_level("WARN").name
        'WARNING'
        >>> parse_level("chatty").name
        'INFO'
    """
    if not value or not value.strip():
        return _DEFAULT_LEVEL
    return _LEVEL_BY_NAME.get(value.strip().lower(), _DEFAULT_LEVEL)


def configured_level() -> LogLevel:
    global _configured_level
    if _configured_level is None:
        _configured_level = parse_level(os.environ.get(LOG_LEVEL_ENV))
    return _configured_level


def set_level(value: str | None) -> None:
    """Override the level read from the environment."""
    global _configured_level
    _configured_level = parse_level(value)


def set_no_color(value: bool) -> None:
    global _no_color_override
    _no_color_override = value


def set_timestamps(enabled: bool) -> None:
    """Prefix every line with a UTC time and level name."""
    global _timestamps
    _timestamps = enabled


def no_color() -> bool:
    if _no_color_override is not None:
        return _no_color_override
    return bool(os.environ.get("NO_COLOR") or os.environ.get("BM_NO_COLOR"))


def console(*, stderr: bool = False) -> Console:
    return Console(
        file=sys.stderr if stderr else sys.stdout,
        soft_wrap=True,
        highlight=False,
        no_color=no_color(),
    )


def format_line(level: LogLevel, message: str, *, now: dt.datetime | None = None) -> str:
    """Render a message, adding the timestamp prefix when enabled.

    Example:
        >>> format_line(LogLevel.INFO, "woke dev-bob")
        'woke dev-bob'
    """
    if not _timestamps:
        return message
    stamp = (now or dt.datetime.now(tz=dt.timezone.utc)).strftime("%Y-%m-%dT%H:%M:%SZ")
    return f"{stamp} {level.name:<7} {message}"


def _emit(level: LogLevel, message: str) -> None:
    if level < configured_level():
        return
    text = Text(format_line(level, message), style=_STYLES[level])
    console(stderr=level >= LogLevel.WARNING).print(text)


def debug(message: str) -> None:
    _emit(LogLevel.DEBUG, message)


def info(message: str) -> None:
    _emit(LogLevel.INFO, message)


def warning(message: str) -> None:
    _emit(LogLevel.WARNING, message)


def error(message: str) -> None:
    _emit(LogLevel.ERROR, message)
