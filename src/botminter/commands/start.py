"""Start member processes for a team."""

from __future__ import annotations

from .. import config
from .. import log as bm_log
from ..errors import LifecycleConflictError
from ..io import say
from ..overlay import BM_DIRNAME
from ..supervisor import ProcessSupervisor, Running, member_workspace
from . import resolve


def start_members(args: object, *, supervisor: ProcessSupervisor | None = None) -> None:
    """Launch every member that has a workspace and is not already running."""
    ctx = resolve.resolve_team_context(getattr(args, "team", None), check_schema=True)
    if not ctx.members:
        say("No members hired. Run `bm hire <role>` first.")
        return
    active = supervisor or resolve.default_supervisor()
    env = config.team_env(ctx.team)

    started = 0
    skipped = 0
    missing: list[str] = []
    for member in ctx.members:
        current = active.status(ctx.team.name, member)
        if isinstance(current, Running):
            say(f"{member}: already running (PID {current.pid})")
            skipped += 1
            continue
        workspace = member_workspace(ctx.team, member, ctx.project_names)
        if not (workspace / BM_DIRNAME).is_dir():
            missing.append(member)
            continue
        try:
            entry = active.start_member(ctx.team, member, workspace, env=env)
        except LifecycleConflictError as exc:
            say(f"{member}: {exc}")
            skipped += 1
            continue
        say(f"{member}: started (PID {entry.pid})")
        started += 1

    say(f"Started {started} member(s), {skipped} already running.")
    if missing:
        bm_log.warning(
            f"{len(missing)} member(s) have no workspace: {', '.join(missing)}. "
            "Run `bm teams sync` first."
        )
