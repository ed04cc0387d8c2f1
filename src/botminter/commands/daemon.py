"""Manage the per-team event daemon."""

from __future__ import annotations

from .. import config
from .. import daemon as bm_daemon
from ..io import say
from ..models import DEFAULT_DAEMON_PORT, DEFAULT_POLL_INTERVAL_SECS, DaemonConfig
from . import resolve


def _daemon_config(team_name: str, args: object) -> DaemonConfig:
    return DaemonConfig(
        team=team_name,
        mode=getattr(args, "mode", None) or "webhook",
        port=getattr(args, "port", None) or DEFAULT_DAEMON_PORT,
        interval_secs=getattr(args, "interval", None) or DEFAULT_POLL_INTERVAL_SECS,
    )


def start_daemon(args: object, *, controller: bm_daemon.DaemonController | None = None) -> None:
    """Launch the team daemon in the background.

    Raises:
        LifecycleConflictError: The daemon is already running.
        ConfigurationError: Poll mode was requested without a GitHub repository.
    """
    team = resolve.resolve_team(getattr(args, "team", None))
    config.check_schema_version(team)
    active = controller or bm_daemon.DaemonController(team.name)
    daemon_config = _daemon_config(team.name, args)
    bm_daemon.check_daemon_config(team, daemon_config)
    pid = active.start(daemon_config, env=config.team_env(team))
    say(f"Daemon started (PID {pid}, {bm_daemon.describe_mode(daemon_config)})")


def stop_daemon(args: object, *, controller: bm_daemon.DaemonController | None = None) -> None:
    """Stop the team daemon.

    Raises:
        LifecycleConflictError: The daemon is not running.
    """
    team = resolve.resolve_team(getattr(args, "team", None))
    active = controller or bm_daemon.DaemonController(team.name)
    pid = active.stop()
    say(f"Daemon stopped (PID {pid})")


def status_daemon(args: object, *, controller: bm_daemon.DaemonController | None = None) -> None:
    team = resolve.resolve_team(getattr(args, "team", None))
    active = controller or bm_daemon.DaemonController(team.name)
    say(active.status().describe())


def run_daemon(args: object) -> None:
    """Body of the hidden ``daemon-run`` command."""
    team = resolve.resolve_team(getattr(args, "team", None))
    bm_daemon.run_daemon(team, _daemon_config(team.name, args))
