"""Stop member processes for a team."""

from __future__ import annotations

from ..io import say
from ..supervisor import Crashed, ProcessSupervisor, Running
from . import resolve


def stop_members(args: object, *, supervisor: ProcessSupervisor | None = None) -> None:
    """Stop every running member of the team and clear crashed entries.

    Args:
        args: Namespace with ``team`` and ``force`` attributes.
    """
    ctx = resolve.resolve_team_context(getattr(args, "team", None))
    active = supervisor or resolve.default_supervisor()
    force = bool(getattr(args, "force", False))

    stopped = 0
    for member in ctx.members:
        previous = active.stop_member(ctx.team.name, member, force=force)
        if isinstance(previous, Running):
            say(f"{member}: stopped (PID {previous.pid})")
            stopped += 1
        elif isinstance(previous, Crashed):
            say(f"{member}: was not running (cleared stale PID {previous.pid})")
    if stopped:
        say(f"Stopped {stopped} member(s).")
    else:
        say("No members running.")
