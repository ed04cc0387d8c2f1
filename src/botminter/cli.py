"""Typer entrypoint for the ``bm`` command."""

from enum import Enum
from types import SimpleNamespace
from typing import Annotated, Callable, Optional

import typer

from . import __version__
from . import log as bm_log
from .commands import daemon as daemon_cmd
from .commands.start import start_members as start_cmd
from .commands.status import status as status_cmd
from .commands.stop import stop_members as stop_cmd
from .commands.teams import sync_team as teams_sync_cmd
from .errors import BotminterFailure
from .io import die_with_failure
from .models import DEFAULT_DAEMON_PORT, DEFAULT_POLL_INTERVAL_SECS

app = typer.Typer(
    help="Provision and supervise teams of long-running agent members.",
    add_completion=False,
    no_args_is_help=True,
)
teams_app = typer.Typer(help="Manage team workspaces.", no_args_is_help=True)
daemon_app = typer.Typer(help="Manage the per-team event daemon.", no_args_is_help=True)
app.add_typer(teams_app, name="teams")
app.add_typer(daemon_app, name="daemon")


class LogLevelName(str, Enum):
    trace = "trace"
    debug = "debug"
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"


class DaemonModeName(str, Enum):
    webhook = "webhook"
    poll = "poll"


TeamOption = Annotated[
    Optional[str], typer.Option("--team", "-t", help="Team name (defaults to default_team).")
]


def _run(command: Callable[[SimpleNamespace], None], **values: object) -> None:
    try:
        command(SimpleNamespace(**values))
    except BotminterFailure as exc:
        die_with_failure(exc)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"bm {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = False,
    log_level: Annotated[
        Optional[LogLevelName],
        typer.Option("--log-level", help="Log level (overrides BM_LOG_LEVEL)."),
    ] = None,
    no_color: Annotated[
        bool, typer.Option("--no-color", help="Disable colored output.")
    ] = False,
) -> None:
    if log_level is not None:
        bm_log.set_level(log_level.value)
    if no_color:
        bm_log.set_no_color(True)


@teams_app.command("sync")
def teams_sync(
    team: TeamOption = None,
    push: Annotated[
        bool, typer.Option("--push", help="Push the team repo before syncing.")
    ] = False,
) -> None:
    """Create or repair every member workspace of a team."""
    _run(teams_sync_cmd, team=team, push=push)


@app.command("start")
def start(team: TeamOption = None) -> None:
    """Start every provisioned member that is not running."""
    _run(start_cmd, team=team)


@app.command("up", hidden=True)
def up(team: TeamOption = None) -> None:
    """Alias for ``start``."""
    _run(start_cmd, team=team)


@app.command("stop")
def stop(
    team: TeamOption = None,
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Kill without waiting for a graceful exit.")
    ] = False,
) -> None:
    """Stop every running member of a team."""
    _run(stop_cmd, team=team, force=force)


@app.command("status")
def status(
    team: TeamOption = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show runtime details for running members.")
    ] = False,
) -> None:
    """Show team, daemon, and member status."""
    _run(status_cmd, team=team, verbose=verbose)


@daemon_app.command("start")
def daemon_start(
    team: TeamOption = None,
    mode: Annotated[
        DaemonModeName, typer.Option("--mode", help="Event source.")
    ] = DaemonModeName.webhook,
    port: Annotated[
        int, typer.Option("--port", help="Webhook listener port.")
    ] = DEFAULT_DAEMON_PORT,
    interval: Annotated[
        int, typer.Option("--interval", help="Seconds between polls.")
    ] = DEFAULT_POLL_INTERVAL_SECS,
) -> None:
    """Start the event daemon in the background."""
    _run(daemon_cmd.start_daemon, team=team, mode=mode.value, port=port, interval=interval)


@daemon_app.command("stop")
def daemon_stop(team: TeamOption = None) -> None:
    """Stop the event daemon."""
    _run(daemon_cmd.stop_daemon, team=team)


@daemon_app.command("status")
def daemon_status(team: TeamOption = None) -> None:
    """Show whether the event daemon is running."""
    _run(daemon_cmd.status_daemon, team=team)


@app.command("daemon-run", hidden=True)
def daemon_run(
    team: Annotated[str, typer.Option("--team")],
    mode: Annotated[DaemonModeName, typer.Option("--mode")] = DaemonModeName.webhook,
    port: Annotated[int, typer.Option("--port")] = DEFAULT_DAEMON_PORT,
    interval: Annotated[int, typer.Option("--interval")] = DEFAULT_POLL_INTERVAL_SECS,
) -> None:
    _run(daemon_cmd.run_daemon, team=team, mode=mode.value, port=port, interval=interval)


def main() -> None:
    app(prog_name="bm")


if __name__ == "__main__":
    main()
