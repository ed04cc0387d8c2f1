"""Command implementations exposed by the botminter CLI."""

from .daemon import start_daemon, status_daemon, stop_daemon
from .start import start_members
from . import status
from .stop import stop_members
from .teams import sync_team

__all__ = [
    "start_daemon",
    "start_members",
    "status",
    "status_daemon",
    "stop_daemon",
    "stop_members",
    "sync_team",
]
