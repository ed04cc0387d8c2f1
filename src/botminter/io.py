"""Console I/O helpers for user-facing messages."""

from __future__ import annotations

import sys
from typing import NoReturn

from .errors import BotminterFailure


def say(message: str) -> None:
    """Print a normal message to stdout.

    Args:
        message: Text to print.

    Returns:
        None.

    Example:
        >>> say("Hello")
        Hello
    """
    print(message)


def die(message: str, code: int = 1) -> NoReturn:
    """Print an error message and exit.

    Args:
        message: Error message to display.
        code: Exit code to use.

    Returns:
        None. Exits the process via ``sys.exit``.
    """
    print(f"error: {message}", file=sys.stderr)
    sys.exit(code)


def die_with_failure(failure: BotminterFailure) -> NoReturn:
    """Exit with a failure's message and its recovery hint, when present."""
    message = str(failure)
    if failure.recovery_hint:
        message = f"{message}\n{failure.recovery_hint}"
    die(message)
