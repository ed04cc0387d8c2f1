"""Reconcile every member workspace of a team."""

from __future__ import annotations

from .. import config, git, workspace
from .. import log as bm_log
from ..errors import SyncFailedError
from ..io import say
from .resolve import resolve_team_context

NO_MEMBERS_MESSAGE = "No members hired. Run `bm hire <role>` first."


def sync_team(args: object) -> None:
    """Create missing workspaces and repair existing ones.

    Args:
        args: Namespace with ``team`` and ``push`` attributes.

    Raises:
        SyncFailedError: One or more member/project pairs failed.
    """
    ctx = resolve_team_context(getattr(args, "team", None), check_schema=True)
    env = config.team_env(ctx.team)
    if getattr(args, "push", False):
        bm_log.info(f"pushing team repo {ctx.team_repo}")
        git.git_push(ctx.team_repo, env=env)

    if not ctx.members:
        say(NO_MEMBERS_MESSAGE)
        return

    report = workspace.reconcile_team(ctx.team, ctx.members, ctx.projects, env=env)
    say(report.summary())
    if report.failures:
        raise SyncFailedError(report.failures)
