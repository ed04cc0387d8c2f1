"""Show team, daemon, and member process status."""

from __future__ import annotations

from pathlib import Path

from rich import box
from rich.table import Table
from rich.text import Text

from .. import exec as exec_util
from .. import log as bm_log
from .. import members
from ..daemon import DaemonController
from ..io import say
from ..state import format_timestamp, member_key
from ..supervisor import Crashed, MemberStatus, ProcessSupervisor, Running
from . import resolve

RUNTIME_DETAIL_COMMANDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Hats", ("ralph", "hats")),
    ("Loops", ("ralph", "loops", "list")),
    ("Events", ("ralph", "events")),
    ("Bot", ("ralph", "bot", "status")),
)
EMPTY_CELL = "-"


def status(
    args: object,
    *,
    supervisor: ProcessSupervisor | None = None,
    daemon: DaemonController | None = None,
) -> None:
    """Print the team header and a member table, then sweep crashed entries.

    Args:
        args: Namespace with ``team`` and ``verbose`` attributes.
    """
    ctx = resolve.resolve_team_context(getattr(args, "team", None))
    active = supervisor or resolve.default_supervisor()
    controller = daemon or DaemonController(ctx.team.name)

    say(f"Team: {ctx.team.name}")
    say(f"Profile: {ctx.team.profile}")
    if ctx.team.github_repo:
        say(f"GitHub: {ctx.team.github_repo}")
    if ctx.project_names:
        say(f"Projects: {', '.join(ctx.project_names)}")
    daemon_status = controller.status()
    if daemon_status.running:
        say(daemon_status.describe())
    say("")

    if not ctx.members:
        say("No members hired yet.")
        return

    statuses = active.list_statuses(ctx.team.name, ctx.members)
    _render_members(ctx.team_repo, statuses)

    if getattr(args, "verbose", False):
        _render_runtime_details(ctx.team.name, statuses, active)


def _status_cells(current: MemberStatus) -> tuple[str, str]:
    if isinstance(current, (Running, Crashed)):
        return format_timestamp(current.started_at), str(current.pid)
    return EMPTY_CELL, EMPTY_CELL


def _role_cell(team_repo: Path, member: str) -> Text:
    role = members.read_member_role(team_repo, member)
    return Text(role, style=members.rich_style_for_status(role))


def _render_members(team_repo: Path, statuses: list[tuple[str, MemberStatus]]) -> None:
    table = Table(box=box.SIMPLE)
    table.add_column("Member", no_wrap=True)
    table.add_column("Role", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Started", no_wrap=True)
    table.add_column("PID", justify="right")
    for member, current in statuses:
        started, pid = _status_cells(current)
        table.add_row(
            member,
            _role_cell(team_repo, member),
            Text(current.label, style=members.style_for_run_status(current.label)),
            started,
            pid,
        )
    bm_log.console().print(table)


def _render_runtime_details(
    team_name: str,
    statuses: list[tuple[str, MemberStatus]],
    supervisor: ProcessSupervisor,
) -> None:
    state = supervisor.store.load()
    for member, current in statuses:
        if not isinstance(current, Running):
            continue
        entry = state.members.get(member_key(team_name, member))
        if entry is None:
            continue
        say(f"\n── {member} (PID {current.pid}) ──")
        for label, argv in RUNTIME_DETAIL_COMMANDS:
            result = exec_util.try_run_command(list(argv), cwd=entry.workspace)
            if result is None or not result.ok:
                continue
            say(f"\n  {label}:")
            for line in result.stdout.splitlines():
                say(f"    {line}")
